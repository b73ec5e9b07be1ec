import threading
import time
from pathlib import Path
from typing import Dict, List, Optional, Union

import pytest

from static_cloner import FetchResult, HTTPStatusError, Settings, SiteCloner

SITE = "https://site.example"
CDN = "https://cdn.example"


class FakeFetcher:
    def __init__(
        self,
        pages: Optional[Dict[str, Union[str, int]]] = None,
        assets: Optional[Dict[str, Union[bytes, int]]] = None,
        download_delay: float = 0.0,
    ):
        self.pages = pages or {}
        self.assets = assets or {}
        self.download_delay = download_delay
        self.fetched: List[str] = []
        self.downloaded: List[str] = []
        self.lock = threading.Lock()
        self.closed = False

    def fetch(self, url: str) -> FetchResult:
        self.fetched.append(url)
        body = self.pages.get(url, 404)
        if isinstance(body, int):
            raise HTTPStatusError(url, body)
        return FetchResult(status=200, headers={"Content-Type": "text/html"}, body=body)

    def download(self, url: str, fileobj) -> int:
        with self.lock:
            self.downloaded.append(url)
        if self.download_delay:
            time.sleep(self.download_delay)
        data = self.assets.get(url, 404)
        if isinstance(data, int):
            raise HTTPStatusError(url, data)
        fileobj.write(data)
        return len(data)

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def settings() -> Settings:
    return Settings(workers=1, patch_scripts=False, asset_hosts=("cdn.example",))


@pytest.fixture
def make_cloner(tmp_path: Path, settings: Settings):
    def _make(fetcher: FakeFetcher, seed: str = SITE + "/", **overrides) -> SiteCloner:
        for key, value in overrides.items():
            setattr(settings, key, value)
        return SiteCloner(seed, tmp_path / "site", settings, fetcher)

    return _make
