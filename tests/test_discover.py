from static_cloner import asset_url_pattern, discover_links, find_asset_urls

ORIGIN = "https://site.example"


def test_relative_and_absolute_links():
    html = (
        '<a href="./products">P</a>'
        '<a href="https://site.example/blog/post-1">B</a>'
        '<a href="https://site.example/">Home</a>'
    )
    assert discover_links(html, ORIGIN) == ["/products", "/blog/post-1", "/"]


def test_results_are_deduplicated_across_forms():
    html = (
        '<a href="./about">1</a>'
        "<a href='./about'>2</a>"
        '<a href="https://site.example/about">3</a>'
        '<a href="./about/">4</a>'
        '<a href="./about#team">5</a>'
        '<a href="./about?ref=nav">6</a>'
    )
    assert discover_links(html, ORIGIN) == ["/about"]


def test_ignores_assets_foreign_hosts_and_empty_path():
    html = (
        '<a href="./">root</a>'
        '<a href="./#contact">anchor</a>'
        '<link href="./assets/site.css">'
        '<a href="https://site.example/assets/logo.png">logo</a>'
        '<a href="https://other.example/page">other</a>'
        '<a href="https://site.example.evil.example/x">lookalike</a>'
        '<a href="mailto:hi@site.example">mail</a>'
    )
    assert discover_links(html, ORIGIN) == []


def test_origin_comparison_is_normalized():
    html = (
        '<a href="HTTPS://SITE.EXAMPLE/Contact">1</a>'
        '<a href="http://site.example/pricing">2</a>'
        '<a href="//site.example/docs">3</a>'
        '<a href="https://site.example">4</a>'
    )
    assert discover_links(html, ORIGIN) == ["/Contact", "/pricing", "/docs", "/"]


def test_path_may_contain_the_other_quote():
    html = (
        "<a href=\"./it's\">1</a>"
        "<a href=\"https://site.example/what's-new?x=1\">2</a>"
        "<a href='./say-\"hi\"'>3</a>"
    )
    assert discover_links(html, ORIGIN) == ["/it's", "/what's-new", '/say-"hi"']


def test_tolerates_malformed_markup():
    html = '<a href="./ok">x</a><a href="./broken>y</a <a href=./unquoted>'
    assert "/ok" in discover_links(html, ORIGIN)


def test_find_asset_urls_in_markup():
    pattern = asset_url_pattern(["framerusercontent.com"])
    html = (
        '<img src="https://framerusercontent.com/images/a.png" '
        'srcset="https://framerusercontent.com/images/a.png?scale-down-to=512 512w, '
        'https://framerusercontent.com/images/a.png 1024w">'
        '<div style="background:url(https://framerusercontent.com/images/bg.jpg)"></div>'
        '<script type="module" src="https://framerusercontent.com/sites/1/script_main.mjs"></script>'
        '<link href="https://framerusercontent.com/sites/">'
        '<img src="https://cdn.other.example/x.png">'
    )
    assert find_asset_urls(html, pattern) == [
        "https://framerusercontent.com/images/a.png",
        "https://framerusercontent.com/images/a.png?scale-down-to=512",
        "https://framerusercontent.com/images/bg.jpg",
        "https://framerusercontent.com/sites/1/script_main.mjs",
    ]


def test_find_asset_urls_stops_at_escaped_quotes():
    pattern = asset_url_pattern(["framerusercontent.com"])
    text = (
        '{\\"src\\":\\"https://framerusercontent.com/images/b.png\\"}'
        '<div data-x="{&quot;u&quot;:&quot;https://framerusercontent.com/images/c.png&quot;}">'
    )
    assert find_asset_urls(text, pattern) == [
        "https://framerusercontent.com/images/b.png",
        "https://framerusercontent.com/images/c.png",
    ]
