import argparse
import errno
import logging
import mimetypes
import os
import random
import re
import sys
import tempfile
import time
import tomllib
from collections import deque
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field, fields
from enum import Enum
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from threading import Lock
from typing import BinaryIO, Dict, Iterable, List, Optional, Set, Tuple
from urllib.parse import unquote, urlparse

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

# ---------- Config ----------

DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/124.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.7",
}

DEFAULT_ASSET_HOSTS = ("framerusercontent.com",)
DEFAULT_BUNDLE_EXTS = (".mjs", ".js")

ASSETS_DIR = "assets"

# characters that cannot appear in a localized file name; "%" and whitespace
# would be decoded by the serving side and miss the file on disk
INVALID_FILENAME_CHARS_RE = re.compile(r'[<>:"/\\|?*%\s]')
QUERY_SEPARATORS_RE = re.compile(r"[=&]")

# the path runs to the matching quote, so the other quote may appear in it
REL_HREF_RE = re.compile(r"""href=(["'])\./((?:(?!\1)[^#?<>\n])*)(?:(?!\1)[^<>\n])*\1""")

ANALYTICS_SCRIPT_RE = re.compile(
    r'<script[^>]*src="https://events\.framer\.com/[^"]*"[^>]*></script>'
)
HEAD_OPEN_RE = re.compile(r"<head(?:\s[^>]*)?>", re.IGNORECASE)
LOCALE_URL_RE = re.compile(r"let t=new URL\(e\)")
LOCALE_HOSTNAME_RE = re.compile(r"new URL\(r\)\.hostname")

EDITOR_BAR_IMPORT_RE = re.compile(r'import\("https://edit\.framer\.com/init\.mjs"\)')
EDITOR_BAR_STUB = "Promise.resolve({createEditorBar:()=>()=>null})"
RELATIVE_BASE_URL_RE = re.compile(r'new URL\("(\./[^"]+?)","(\.\./[^"]+?)"\)')

ROUTER_PATCH_MARKER = "data-static-cloner"
ROUTER_PATCH = (
    f"<script {ROUTER_PATCH_MARKER}>(function(){{"
    # CMS data requests never settle, so suspense keeps the server-rendered DOM
    'var f=window.fetch;window.fetch=function(r,o){'
    'var s=typeof r==="string"?r:(r&&r.url||"");'
    'if(s.indexOf(".framercms")!==-1)return new Promise(function(){});'
    "return f.call(this,r,o)};"
    # capture phase runs before the client-side router sees the click
    'document.addEventListener("click",function(e){'
    'var a=e.target.closest?e.target.closest("a"):null;if(!a)return;'
    'var h=a.getAttribute("href");if(!h||h.charAt(0)==="#")return;'
    "try{var u=new URL(h,location.href);"
    "if(u.origin===location.origin&&u.pathname!==location.pathname){"
    "e.preventDefault();e.stopPropagation();location.href=u.href}"
    "}catch(x){}},true);"
    "var p=history.pushState;history.pushState=function(s,t,u){"
    "if(u){var n=new URL(u,location.href);"
    "if(n.pathname!==location.pathname){location.href=n.href;return}}"
    "return p.apply(this,arguments)}"
    "})()</script>"
)

PREVIEW_MIME_TYPES = {
    ".html": "text/html",
    ".css": "text/css",
    ".js": "application/javascript",
    ".mjs": "application/javascript",
    ".json": "application/json",
    ".svg": "image/svg+xml",
    ".ico": "image/x-icon",
    ".webp": "image/webp",
    ".avif": "image/avif",
    ".woff": "font/woff",
    ".woff2": "font/woff2",
    ".ttf": "font/ttf",
    ".otf": "font/otf",
    ".mp4": "video/mp4",
    ".webm": "video/webm",
}


# ---------- Settings ----------

@dataclass
class Settings:
    timeout: float = 15.0
    workers: int = 4             # concurrent asset downloads
    delay: float = 0.0           # min seconds between requests to one host
    jitter: float = 0.3          # 0..1 fraction of added random delay
    max_bytes: int = 50_000_000
    max_redirects: int = 10
    max_pages: Optional[int] = None

    asset_hosts: Tuple[str, ...] = DEFAULT_ASSET_HOSTS
    bundle_exts: Tuple[str, ...] = DEFAULT_BUNDLE_EXTS
    patch_scripts: bool = True

    # Rendering options
    render_js: bool = False
    render_timeout_ms: int = 30000
    wait_until: str = "networkidle"


# ---------- Errors ----------

class ClonerError(Exception):
    pass


class ConfigError(ClonerError):
    pass


class FrontierError(ClonerError):
    pass


class FetchError(ClonerError):
    def __init__(self, url: str, message: str):
        super().__init__(f"{message} ({url})")
        self.url = url


class HTTPStatusError(FetchError):
    def __init__(self, url: str, status: int):
        super().__init__(url, f"HTTP {status}")
        self.status = status


class TransportError(FetchError):
    pass


class NotHtmlError(FetchError):
    pass


# ---------- Throttling ----------

class Throttle:
    def __init__(self, delay: float, jitter: float = 0.0):
        self.delay = max(0.0, delay)
        self.jitter = max(0.0, min(1.0, jitter))
        self.next_slot: Dict[str, float] = {}
        self.lock = Lock()

    def acquire(self, url: str) -> None:
        if self.delay <= 0:
            return
        host = urlparse(url).netloc
        with self.lock:
            now = time.monotonic()
            slot = max(now, self.next_slot.get(host, 0.0))
            interval = self.delay + random.uniform(0, self.jitter * self.delay)
            self.next_slot[host] = slot + interval
        wait = slot - now
        if wait > 0:
            time.sleep(wait)


# ---------- Utilities ----------

def sanitize_filename(name: str) -> str:
    name = INVALID_FILENAME_CHARS_RE.sub("_", name)
    name = name or "file"
    if name.startswith("."):
        name = "_" + name[1:]
    return name[:200]


def ensure_parent_dir(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def parse_seed_url(seed_url: str) -> Tuple[str, str]:
    p = urlparse((seed_url or "").strip())
    if p.scheme not in {"http", "https"} or not p.hostname:
        raise ConfigError(f"Invalid URL {seed_url!r}. Use http:// or https://")
    return f"{p.scheme}://{p.netloc.lower()}", normalize_page_path(p.path)


def normalize_page_path(raw: str) -> str:
    path = re.split(r"[?#]", raw, maxsplit=1)[0]
    segments = [seg for seg in path.split("/") if seg and seg not in (".", "..")]
    return "/" + "/".join(segments)


def page_file_path(page_path: str) -> str:
    if page_path == "/":
        return "index.html"
    return page_path.lstrip("/") + ".html"


def page_depth(page_path: str) -> int:
    if page_path == "/":
        return 0
    return len(page_path.lstrip("/").split("/")) - 1


def relative_prefix(depth: int) -> str:
    return "../" * depth if depth > 0 else "./"


def local_asset_path(url: str) -> str:
    p = urlparse(url)
    segments = [seg for seg in p.path.split("/") if seg and seg not in (".", "..")]
    if not segments:
        segments = ["index"]
    if p.query:
        # variants of one resource differ only by query; keep them apart
        root, ext = os.path.splitext(segments[-1])
        segments[-1] = root + "_" + QUERY_SEPARATORS_RE.sub("_", p.query) + ext
    return "/".join([ASSETS_DIR] + [sanitize_filename(seg) for seg in segments])


def default_output_dir(seed_url: str, base: Path = Path("out")) -> Path:
    host = re.sub(r"[^a-zA-Z0-9]", "_", urlparse(seed_url).netloc)
    candidate = base / host
    n = 2
    while candidate.exists():
        candidate = base / f"{host}_{n}"
        n += 1
    return candidate


# ---------- HTTP ----------

@dataclass
class FetchResult:
    status: int
    headers: Dict[str, str]
    body: str


def build_session(
    headers: Optional[Dict[str, str]] = None, max_redirects: int = 10
) -> requests.Session:
    s = requests.Session()
    # one attempt per request; failures surface to the caller
    retry = Retry(total=0, raise_on_status=False)
    adapter = HTTPAdapter(max_retries=retry, pool_connections=16, pool_maxsize=16)
    s.mount("http://", adapter)
    s.mount("https://", adapter)
    s.headers.update(DEFAULT_HEADERS if headers is None else headers)
    s.max_redirects = max_redirects
    return s


class HttpFetcher:
    def __init__(
        self,
        settings: Settings,
        session: Optional[requests.Session] = None,
        throttle: Optional[Throttle] = None,
    ):
        self.settings = settings
        self.session = session or build_session(max_redirects=settings.max_redirects)
        self.throttle = throttle or Throttle(settings.delay, settings.jitter)

    def _get(self, url: str, *, stream: bool = False) -> requests.Response:
        self.throttle.acquire(url)
        try:
            r = self.session.get(url, timeout=self.settings.timeout, stream=stream)
        except requests.RequestException as e:
            raise TransportError(url, str(e)) from e
        if not 200 <= r.status_code < 300:
            r.close()
            raise HTTPStatusError(url, r.status_code)
        return r

    def fetch(self, url: str) -> FetchResult:
        r = self._get(url)
        ct = (r.headers.get("Content-Type") or "").lower()
        if ct and "text/html" not in ct and "application/xhtml+xml" not in ct:
            raise NotHtmlError(url, f"not an HTML document ({ct})")
        if "charset" not in ct:
            r.encoding = "utf-8"
        return FetchResult(status=r.status_code, headers=dict(r.headers), body=r.text)

    def download(self, url: str, fileobj: BinaryIO) -> int:
        r = self._get(url, stream=True)
        with r:
            cl = r.headers.get("Content-Length")
            if cl is not None and cl.isdigit() and int(cl) > self.settings.max_bytes:
                raise FetchError(url, f"file too large ({cl} bytes)")
            written = 0
            try:
                for chunk in r.iter_content(chunk_size=64 * 1024):
                    if not chunk:
                        continue
                    written += len(chunk)
                    if written > self.settings.max_bytes:
                        raise FetchError(url, f"file exceeds {self.settings.max_bytes} bytes")
                    fileobj.write(chunk)
            except requests.RequestException as e:
                raise TransportError(url, str(e)) from e
        return written

    def close(self) -> None:
        self.session.close()


class PlaywrightFetcher(HttpFetcher):
    """Renders pages in headless Chromium; assets still go over plain HTTP."""

    def __init__(
        self,
        settings: Settings,
        session: Optional[requests.Session] = None,
        throttle: Optional[Throttle] = None,
    ):
        try:
            from playwright.sync_api import Error, sync_playwright
        except ImportError as e:
            raise ConfigError(
                "Playwright not installed. Install 'playwright' then 'playwright install chromium'."
            ) from e
        super().__init__(settings, session, throttle)
        self._sync_playwright = sync_playwright
        self._error_cls = Error
        self._playwright = None
        self._browser = None

    def _ensure_browser(self):
        if self._browser is None:
            self._playwright = self._sync_playwright().start()
            self._browser = self._playwright.chromium.launch(headless=True)
        return self._browser

    def fetch(self, url: str) -> FetchResult:
        self.throttle.acquire(url)
        try:
            page = self._ensure_browser().new_page()
            try:
                response = page.goto(
                    url,
                    wait_until=self.settings.wait_until,
                    timeout=self.settings.render_timeout_ms,
                )
                if response is None:
                    raise TransportError(url, "no response")
                if not 200 <= response.status < 300:
                    raise HTTPStatusError(url, response.status)
                return FetchResult(
                    status=response.status, headers=response.headers, body=page.content()
                )
            finally:
                page.close()
        except self._error_cls as e:
            raise TransportError(url, str(e)) from e

    def close(self) -> None:
        if self._browser is not None:
            self._browser.close()
            self._browser = None
        if self._playwright is not None:
            self._playwright.stop()
            self._playwright = None
        super().close()


def get_fetcher(settings: Settings) -> HttpFetcher:
    if settings.render_js:
        return PlaywrightFetcher(settings)
    return HttpFetcher(settings)


# ---------- Discovery ----------

def origin_pattern(origin: str) -> str:
    # http, https and scheme-relative forms of the origin, host case-insensitive
    host = urlparse(origin).netloc
    return r"(?i:(?:https?:)?//" + re.escape(host) + r")"


def discover_links(text: str, origin: str) -> List[str]:
    found: List[Tuple[int, str]] = []

    for m in REL_HREF_RE.finditer(text):
        ref = m.group(2)
        if not ref or ref.startswith(ASSETS_DIR + "/") or "://" in ref:
            continue
        found.append((m.start(), normalize_page_path(ref)))

    abs_re = re.compile(
        r"""href=(["'])""" + origin_pattern(origin)
        + r"""(/(?:(?!\1)[^#?<>\n])*)?(?:[#?](?:(?!\1)[^<>\n])*)?\1"""
    )
    for m in abs_re.finditer(text):
        ref = m.group(2) or "/"
        if ref.lstrip("/").startswith(ASSETS_DIR + "/"):
            continue
        found.append((m.start(), normalize_page_path(ref)))

    found.sort()
    return list(dict.fromkeys(path for _, path in found))


def asset_url_pattern(hosts: Iterable[str]) -> re.Pattern[str]:
    alt = "|".join(re.escape(h) for h in hosts)
    return re.compile(r"https://(?:" + alt + r")/[^\"'\s)}\]>\\]+")


def find_asset_urls(text: str, pattern: re.Pattern[str]) -> List[str]:
    urls: List[str] = []
    for m in pattern.finditer(text):
        u = m.group(0).split("&quot;", 1)[0]
        if u.endswith("/"):
            continue
        urls.append(u)
    return list(dict.fromkeys(urls))


# ---------- Crawl frontier ----------

class CrawlState(Enum):
    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class Frontier:
    def __init__(self):
        self.queue: deque[str] = deque()
        self.states: Dict[str, CrawlState] = {}
        self.lock = Lock()

    def enqueue(self, page_path: str) -> bool:
        with self.lock:
            if page_path in self.states:
                return False
            self.states[page_path] = CrawlState.QUEUED
            self.queue.append(page_path)
            return True

    def dequeue_next(self) -> Optional[str]:
        with self.lock:
            return self.queue.popleft() if self.queue else None

    def _transition(self, page_path: str, source: CrawlState, target: CrawlState) -> None:
        with self.lock:
            current = self.states.get(page_path)
            if current is not source:
                state = current.value if current else "unknown"
                raise FrontierError(f"cannot mark {page_path} {target.value} while {state}")
            self.states[page_path] = target

    def mark_in_progress(self, page_path: str) -> None:
        self._transition(page_path, CrawlState.QUEUED, CrawlState.IN_PROGRESS)

    def mark_completed(self, page_path: str) -> None:
        self._transition(page_path, CrawlState.IN_PROGRESS, CrawlState.COMPLETED)

    def mark_failed(self, page_path: str) -> None:
        self._transition(page_path, CrawlState.IN_PROGRESS, CrawlState.FAILED)

    def state(self, page_path: str) -> Optional[CrawlState]:
        with self.lock:
            return self.states.get(page_path)

    def _having(self, *states: CrawlState) -> List[str]:
        with self.lock:
            return [p for p, s in self.states.items() if s in states]

    def known(self) -> List[str]:
        return self._having(CrawlState.QUEUED, CrawlState.IN_PROGRESS, CrawlState.COMPLETED)

    def completed(self) -> List[str]:
        return self._having(CrawlState.COMPLETED)

    def failed(self) -> List[str]:
        return self._having(CrawlState.FAILED)

    def pending(self) -> List[str]:
        with self.lock:
            return list(self.queue)

    def __len__(self) -> int:
        with self.lock:
            return len(self.queue)


# ---------- Assets ----------

class AssetResolver:
    def __init__(self, output_root: Path, fetcher: HttpFetcher, workers: int = 1):
        self.output_root = output_root
        self.fetcher = fetcher
        self.workers = max(1, workers)
        self.mapping: Dict[str, str] = {}
        self.downloaded: Set[str] = set()
        self.failed: Dict[str, str] = {}
        self.lock = Lock()
        self.gates: Dict[str, Lock] = {}

    def resolve(self, url: str) -> str:
        # markup may carry the query separator HTML-escaped
        target = url.replace("&amp;", "&")
        with self.lock:
            local = self.mapping.get(target)
            if local is None:
                local = local_asset_path(target)
                self.mapping[target] = local
                self.gates[target] = Lock()
            gate = self.gates[target]
        with gate:
            if target not in self.downloaded and target not in self.failed:
                self._attempt(target, local)
        return local

    def resolve_all(self, urls: Iterable[str]) -> Dict[str, str]:
        url_list = list(dict.fromkeys(urls))
        if self.workers == 1 or len(url_list) < 2:
            return {u: self.resolve(u) for u in url_list}

        result: Dict[str, str] = {}
        with ThreadPoolExecutor(max_workers=self.workers) as pool:
            future_map = {pool.submit(self.resolve, u): u for u in url_list}
            for fut in as_completed(future_map):
                result[future_map[fut]] = fut.result()
        return {u: result[u] for u in url_list}

    def _attempt(self, url: str, local: str) -> None:
        try:
            written = self.download(url, self.output_root / local)
        except (FetchError, OSError) as e:
            logging.warning("failed asset %s: %s", url, e)
            with self.lock:
                self.failed[url] = str(e)
            return
        logging.debug("downloaded asset: %s -> %s (%d bytes)", url, local, written)
        with self.lock:
            self.downloaded.add(url)

    def download(self, url: str, dest: Path) -> int:
        ensure_parent_dir(dest)
        # unique per attempt: distinct URLs may flatten to one local path
        fd, tmp = tempfile.mkstemp(dir=dest.parent, prefix=dest.name + ".", suffix=".part")
        part = Path(tmp)
        try:
            with os.fdopen(fd, "wb") as f:
                written = self.fetcher.download(url, f)
            os.replace(part, dest)
        finally:
            if part.exists():
                part.unlink()
        return written


# ---------- Rewriters ----------

def replace_asset_urls(text: str, asset_map: Dict[str, str], prefix: str) -> str:
    for remote, local in sorted(asset_map.items(), key=lambda kv: len(kv[0]), reverse=True):
        text = text.replace(remote, prefix + local)
    return text


def rewrite_page_links(
    text: str, page_paths: Iterable[str], depth: int, origin: str
) -> str:
    prefix = relative_prefix(depth)
    origin_re = origin_pattern(origin)

    # longest first so /blog never claims a reference meant for /blog/post-1
    for page_path in sorted(set(page_paths), key=lambda p: (len(p), p), reverse=True):
        clean = page_path.lstrip("/")
        if not clean:
            continue
        target = f"{prefix}{clean}.html"
        pattern = re.compile(
            r"""href=(["'])(?:\./|""" + origin_re + "/)" + re.escape(clean) + r"""/?(?=\1|[#?])"""
        )
        text = pattern.sub(lambda m: f"href={m.group(1)}{target}", text)

    root_re = re.compile(r"""href=(["'])(?:\./|""" + origin_re + r"/?)\1")
    text = root_re.sub(lambda m: f"href={m.group(1)}{prefix}index.html{m.group(1)}", text)

    anchor_re = re.compile(r"""href=(["'])(?:\./|""" + origin_re + r"""/?)(#[^"']+)\1""")
    text = anchor_re.sub(
        lambda m: f"href={m.group(1)}{prefix}index.html{m.group(2)}{m.group(1)}", text
    )
    return text


def rewrite_document(
    text: str,
    asset_map: Dict[str, str],
    page_paths: Iterable[str],
    depth: int,
    origin: str,
) -> str:
    """Point asset URLs and in-site page links at the local output tree.

    Asset URLs are replaced before page links, page links before the bare
    root, the bare root before root anchors. Each later pattern is a subset
    of an earlier one, so the order is what keeps them from overlapping.
    """
    text = replace_asset_urls(text, asset_map, relative_prefix(depth))
    return rewrite_page_links(text, page_paths, depth, origin)


def patch_page_scripts(html: str) -> str:
    html = ANALYTICS_SCRIPT_RE.sub("", html)
    if ROUTER_PATCH_MARKER not in html:
        html = HEAD_OPEN_RE.sub(lambda m: m.group(0) + ROUTER_PATCH, html, count=1)
    # locale redirect builds URLs from relative hrefs without a base
    html = LOCALE_URL_RE.sub("let t=new URL(e,location.href)", html)
    html = LOCALE_HOSTNAME_RE.sub("new URL(r,location.href).hostname", html)
    return html


def patch_bundle_text(text: str) -> str:
    if "edit.framer.com" in text:
        text = EDITOR_BAR_IMPORT_RE.sub(EDITOR_BAR_STUB, text)
    if RELATIVE_BASE_URL_RE.search(text):
        text = RELATIVE_BASE_URL_RE.sub(r'new URL("\1",new URL("\2",import.meta.url))', text)
    return text


# ---------- Finalization ----------

def finalize_links(output_root: Path, completed: Iterable[str], origin: str) -> int:
    """Re-run page link rewriting over every saved page with the full page set.

    Pages written early could only link to pages known at that moment.
    Returns the number of documents that changed.
    """
    page_paths = list(completed)
    changed = 0
    for page_path in page_paths:
        fp = output_root / page_file_path(page_path)
        try:
            text = fp.read_text(encoding="utf-8")
            new_text = rewrite_page_links(text, page_paths, page_depth(page_path), origin)
            if new_text != text:
                fp.write_text(new_text, encoding="utf-8")
                changed += 1
        except OSError as e:
            logging.warning("cannot finalize %s: %s", fp, e)
    return changed


# ---------- Bundles ----------

class BundlePostProcessor:
    """Localizes asset URLs embedded in downloaded script bundles."""

    def __init__(
        self,
        output_root: Path,
        resolver: AssetResolver,
        asset_pattern: re.Pattern[str],
        bundle_exts: Iterable[str] = DEFAULT_BUNDLE_EXTS,
    ):
        self.output_root = output_root
        self.resolver = resolver
        self.asset_pattern = asset_pattern
        self.bundle_exts = {e.lower() for e in bundle_exts}
        self.processed: Set[Path] = set()
        self.patched = 0

    def find_bundles(self) -> List[Path]:
        assets = self.output_root / ASSETS_DIR
        if not assets.is_dir():
            return []
        return sorted(
            p for p in assets.rglob("*")
            if p.is_file() and p.suffix.lower() in self.bundle_exts and p not in self.processed
        )

    def run(self) -> int:
        # bundles fetched while processing others get their own turn
        while True:
            pending = self.find_bundles()
            if not pending:
                break
            for bundle in pending:
                self.processed.add(bundle)
                try:
                    if self.process(bundle):
                        self.patched += 1
                except OSError as e:
                    logging.warning("cannot post-process %s: %s", bundle, e)
        return len(self.processed)

    def process(self, bundle: Path) -> bool:
        text = bundle.read_text(encoding="utf-8", errors="surrogateescape")
        new_text = text

        urls = find_asset_urls(text, self.asset_pattern)
        if urls:
            mapping = self.resolver.resolve_all(urls)
            rel = Path(os.path.relpath(self.output_root, bundle.parent)).as_posix()
            new_text = replace_asset_urls(new_text, mapping, rel + "/")

        new_text = patch_bundle_text(new_text)
        if new_text == text:
            return False
        bundle.write_text(new_text, encoding="utf-8", errors="surrogateescape")
        logging.debug("patched bundle %s", bundle)
        return True


# ---------- Main flow ----------

@dataclass
class CloneReport:
    output_root: Path
    pages_cloned: List[str] = field(default_factory=list)
    pages_failed: List[str] = field(default_factory=list)
    pages_skipped: List[str] = field(default_factory=list)
    assets_downloaded: int = 0
    assets_failed: List[str] = field(default_factory=list)
    bundles_processed: int = 0
    bundles_patched: int = 0
    pages_finalized: int = 0


class SiteCloner:
    def __init__(
        self,
        seed_url: str,
        output_root: Path,
        settings: Optional[Settings] = None,
        fetcher: Optional[HttpFetcher] = None,
    ):
        self.settings = settings or Settings()
        self.origin, self.seed_path = parse_seed_url(seed_url)
        self.output_root = Path(output_root)
        self.fetcher = fetcher or get_fetcher(self.settings)
        self.frontier = Frontier()
        self.resolver = AssetResolver(self.output_root, self.fetcher, self.settings.workers)
        self.asset_pattern = asset_url_pattern(self.settings.asset_hosts)

    def run(self) -> CloneReport:
        self.output_root.mkdir(parents=True, exist_ok=True)

        # every reachable page is discovered from the homepage
        self.frontier.enqueue("/")
        self.frontier.enqueue(self.seed_path)

        max_pages = self.settings.max_pages
        attempted = 0
        while max_pages is None or attempted < max_pages:
            page_path = self.frontier.dequeue_next()
            if page_path is None:
                break
            attempted += 1
            self.clone_page(page_path)

        logging.info("Finalizing link rewriting...")
        finalized = finalize_links(self.output_root, self.frontier.completed(), self.origin)

        logging.info("Post-processing script bundles...")
        post = BundlePostProcessor(
            self.output_root, self.resolver, self.asset_pattern, self.settings.bundle_exts
        )
        bundles = post.run()

        return CloneReport(
            output_root=self.output_root,
            pages_cloned=self.frontier.completed(),
            pages_failed=self.frontier.failed(),
            pages_skipped=self.frontier.pending(),
            assets_downloaded=len(self.resolver.downloaded),
            assets_failed=sorted(self.resolver.failed),
            bundles_processed=bundles,
            bundles_patched=post.patched,
            pages_finalized=finalized,
        )

    def clone_page(self, page_path: str) -> bool:
        self.frontier.mark_in_progress(page_path)
        url = self.origin + page_path
        logging.info("Cloning: %s", url)

        try:
            content = self.fetcher.fetch(url).body
        except FetchError as e:
            logging.warning("failed to fetch %s: %s", url, e)
            self.frontier.mark_failed(page_path)
            return False

        for link in discover_links(content, self.origin):
            if self.frontier.enqueue(link):
                logging.info("  discovered: %s", link)

        asset_urls = find_asset_urls(content, self.asset_pattern)
        logging.info("  assets: %d", len(asset_urls))
        asset_map = self.resolver.resolve_all(asset_urls)

        # only pages already on disk are link targets; queued ones are linked
        # by the finalization pass once they are saved
        targets = self.frontier.completed() + [page_path]
        content = rewrite_document(
            content, asset_map, targets, page_depth(page_path), self.origin
        )
        if self.settings.patch_scripts:
            content = patch_page_scripts(content)

        filename = page_file_path(page_path)
        target = self.output_root / filename
        try:
            ensure_parent_dir(target)
            target.write_text(content, encoding="utf-8")
        except OSError as e:
            logging.warning("failed to save %s: %s", target, e)
            self.frontier.mark_failed(page_path)
            return False

        self.frontier.mark_completed(page_path)
        logging.info("  saved: %s", filename)
        return True


def print_report(report: CloneReport) -> None:
    print("Clone complete")
    print(f"Pages cloned: {len(report.pages_cloned)}")
    if report.pages_failed:
        print(f"Pages failed: {len(report.pages_failed)}")
    if report.pages_skipped:
        print(f"Pages skipped (page limit): {len(report.pages_skipped)}")
    print(f"Assets downloaded: {report.assets_downloaded}")
    if report.assets_failed:
        print(f"Assets failed: {len(report.assets_failed)}")
    print(f"Pages relinked after crawl: {report.pages_finalized}")
    print(f"Bundles processed: {report.bundles_processed} ({report.bundles_patched} patched)")
    print(f"Root: {report.output_root}")
    print("To serve locally:")
    print(f"  static-serve {report.output_root}")


def clone_site(seed_url: str, output_folder: Path, settings: Settings) -> CloneReport:
    fetcher = get_fetcher(settings)
    try:
        cloner = SiteCloner(seed_url, Path(output_folder).resolve(), settings, fetcher)
        report = cloner.run()
    finally:
        fetcher.close()
    print_report(report)
    return report


# ---------- Preview server ----------

def resolve_preview_path(root: Path, request_path: str) -> Tuple[int, Optional[Path]]:
    url_path = unquote(request_path.split("?", 1)[0].split("#", 1)[0]) or "/"
    if url_path == "/":
        url_path = "/index.html"
    candidates = [url_path]
    if not os.path.splitext(url_path)[1]:
        candidates.insert(0, url_path + ".html")

    root = root.resolve()
    for candidate in candidates:
        fp = (root / candidate.lstrip("/")).resolve()
        if fp != root and root not in fp.parents:
            return 403, None
        if fp.is_file():
            return 200, fp
    return 404, None


def guess_preview_type(path: Path) -> str:
    ext = path.suffix.lower()
    if ext in PREVIEW_MIME_TYPES:
        return PREVIEW_MIME_TYPES[ext]
    return mimetypes.guess_type(path.name)[0] or "application/octet-stream"


class PreviewHandler(BaseHTTPRequestHandler):
    root: Path = Path(".")

    def do_GET(self) -> None:
        self._serve(send_body=True)

    def do_HEAD(self) -> None:
        self._serve(send_body=False)

    def _serve(self, send_body: bool) -> None:
        status, fp = resolve_preview_path(self.root, self.path)
        if fp is None:
            self.send_error(status)
            return
        data = fp.read_bytes()
        self.send_response(200)
        self.send_header("Content-Type", guess_preview_type(fp))
        self.send_header("Content-Length", str(len(data)))
        self.end_headers()
        if send_body:
            self.wfile.write(data)

    def log_message(self, format: str, *args) -> None:
        logging.info("%s - %s", self.address_string(), format % args)


def find_default_site(base: Path = Path("out")) -> Path:
    if not base.is_dir():
        raise ConfigError(f"No {base}/ directory found. Clone a site first.")
    sites = sorted(p for p in base.iterdir() if p.is_dir())
    if not sites:
        raise ConfigError(f"No cloned site found in {base}/. Clone a site first.")
    return sites[0]


def serve(root: Path, port: int) -> None:
    handler = type("SitePreviewHandler", (PreviewHandler,), {"root": root.resolve()})
    while True:
        try:
            server = ThreadingHTTPServer(("", port), handler)
            break
        except OSError as e:
            if e.errno != errno.EADDRINUSE:
                raise
            logging.info("Port %d in use, trying %d...", port, port + 1)
            port += 1

    print(f"Serving {root}")
    print(f"Open http://localhost:{port}")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.server_close()


# ---------- CLI ----------

def load_config_file(path: str) -> Dict[str, object]:
    p = Path(path)
    if p.suffix.lower() not in {".toml", ".tml"}:
        raise ConfigError("Unsupported config format. Use .toml")
    try:
        with open(p, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigError(f"cannot read config {p}: {e}") from e

    known = {f.name for f in fields(Settings)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError("unknown config keys: " + ", ".join(unknown))
    return data


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="static-clone",
        description="Clone a site into a self-contained static copy.",
    )
    p.add_argument("url", help="http(s) URL of the site to clone")
    p.add_argument("output_folder", nargs="?", default=None,
                   help="output directory (default: out/<host>)")
    p.add_argument("--config", type=str, default=None, help="path to config.toml")
    p.add_argument("--timeout", type=float, default=15.0, help="request timeout seconds")
    p.add_argument("--workers", type=int, default=4, help="concurrent asset downloads")
    p.add_argument("--delay", type=float, default=0.0, help="min seconds between requests per host")
    p.add_argument("--jitter", type=float, default=0.3, help="delay jitter fraction 0..1")
    p.add_argument("--max-bytes", type=int, default=50_000_000, help="max bytes per asset")
    p.add_argument("--max-redirects", type=int, default=10, help="redirects followed per request")
    p.add_argument("--max-pages", type=int, default=None, help="stop after this many pages")
    p.add_argument("--asset-host", dest="asset_hosts", nargs="+", default=None,
                   help="hosts whose assets are localized (default: framerusercontent.com)")
    p.add_argument("--bundle-ext", dest="bundle_exts", nargs="+", default=None,
                   help="script extensions scanned after the crawl (default: .mjs .js)")
    p.add_argument("--no-patch-scripts", dest="patch_scripts", action="store_false",
                   help="keep page scripts untouched")
    p.add_argument("--verbose", action="store_true", help="debug logging")

    # render
    p.add_argument("--render-js", action="store_true", help="render pages with Playwright")
    p.add_argument("--render-timeout-ms", type=int, default=30000, help="Playwright timeout ms")
    p.add_argument("--wait-until", type=str, default="networkidle", help="Playwright wait_until")

    # preview
    p.add_argument("--serve", action="store_true", help="preview the clone when done")
    p.add_argument("--port", type=int, default=int(os.environ.get("PORT", "3000")),
                   help="preview port")
    return p


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = build_arg_parser()
    preliminary, _ = parser.parse_known_args(argv)
    if preliminary.config:
        parser.set_defaults(**load_config_file(preliminary.config))
    return parser.parse_args(argv)


def settings_from_args(args: argparse.Namespace) -> Settings:
    return Settings(
        timeout=args.timeout,
        workers=max(1, args.workers),
        delay=max(0.0, args.delay),
        jitter=max(0.0, min(1.0, args.jitter)),
        max_bytes=max(1024, args.max_bytes),
        max_redirects=max(0, args.max_redirects),
        max_pages=None if args.max_pages is None else max(1, args.max_pages),
        asset_hosts=tuple(args.asset_hosts or DEFAULT_ASSET_HOSTS),
        bundle_exts=tuple(args.bundle_exts or DEFAULT_BUNDLE_EXTS),
        patch_scripts=args.patch_scripts,
        render_js=args.render_js,
        render_timeout_ms=args.render_timeout_ms,
        wait_until=args.wait_until,
    )


def main(argv: Optional[List[str]] = None) -> None:
    try:
        args = parse_args(argv)
        settings = settings_from_args(args)
        parse_seed_url(args.url)
    except ConfigError as e:
        print(e)
        sys.exit(1)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )

    print("Reminder: only clone content you own or have permission to copy.")

    output = Path(args.output_folder) if args.output_folder else default_output_dir(args.url)
    try:
        report = clone_site(args.url, output, settings)
    except ConfigError as e:
        print(e)
        sys.exit(1)

    if args.serve:
        serve(report.output_root, args.port)


def serve_main(argv: Optional[List[str]] = None) -> None:
    p = argparse.ArgumentParser(prog="static-serve", description="Preview a cloned site.")
    p.add_argument("directory", nargs="?", default=None,
                   help="cloned site root (default: first site under out/)")
    p.add_argument("--port", type=int, default=int(os.environ.get("PORT", "3000")),
                   help="port to listen on")
    args = p.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
    try:
        root = Path(args.directory) if args.directory else find_default_site()
    except ConfigError as e:
        print(e)
        sys.exit(1)
    if not root.is_dir():
        print(f"Not a directory: {root}")
        sys.exit(1)
    serve(root, args.port)


if __name__ == "__main__":
    main()
