from static_cloner import (
    ROUTER_PATCH_MARKER,
    patch_bundle_text,
    patch_page_scripts,
    rewrite_document,
    rewrite_page_links,
)

ORIGIN = "https://site.example"
PAGES = ["/", "/blog", "/blog/post-1", "/products"]


def test_longer_page_paths_win():
    html = '<a href="./blog">Blog</a><a href="./blog/post-1">Post</a>'
    out = rewrite_page_links(html, PAGES, 0, ORIGIN)
    assert out == '<a href="./blog.html">Blog</a><a href="./blog/post-1.html">Post</a>'


def test_depth_prefix_on_every_reference():
    html = (
        '<a href="./">Home</a>'
        '<a href="https://site.example/products">Products</a>'
        '<a href="./#contact">Contact</a>'
        '<img src="https://cdn.example/img/a.png">'
    )
    assets = {"https://cdn.example/img/a.png": "assets/img/a.png"}

    out = rewrite_document(html, assets, PAGES, 2, ORIGIN)
    assert out == (
        '<a href="../../index.html">Home</a>'
        '<a href="../../products.html">Products</a>'
        '<a href="../../index.html#contact">Contact</a>'
        '<img src="../../assets/img/a.png">'
    )


def test_depth_zero_uses_current_directory():
    html = '<a href="https://site.example/">Home</a><img src="https://cdn.example/x.png">'
    out = rewrite_document(html, {"https://cdn.example/x.png": "assets/x.png"}, PAGES, 0, ORIGIN)
    assert out == '<a href="./index.html">Home</a><img src="./assets/x.png">'


def test_longer_asset_urls_replaced_first():
    html = 'src="https://cdn.example/a.png?scale-down-to=512" src="https://cdn.example/a.png"'
    assets = {
        "https://cdn.example/a.png": "assets/a.png",
        "https://cdn.example/a.png?scale-down-to=512": "assets/a_scale-down-to_512.png",
    }
    out = rewrite_document(html, assets, [], 0, ORIGIN)
    assert out == 'src="./assets/a_scale-down-to_512.png" src="./assets/a.png"'


def test_fragments_queries_and_trailing_slashes_are_kept():
    html = (
        "<a href='./products'>1</a>"
        '<a href="./blog/#latest">2</a>'
        '<a href="https://site.example/blog?page=2">3</a>'
        '<a href="//site.example/blog/post-1">4</a>'
    )
    out = rewrite_page_links(html, PAGES, 1, ORIGIN)
    assert out == (
        "<a href='../products.html'>1</a>"
        '<a href="../blog.html#latest">2</a>'
        '<a href="../blog.html?page=2">3</a>'
        '<a href="../blog/post-1.html">4</a>'
    )


def test_unknown_pages_and_foreign_links_untouched():
    html = '<a href="./pricing">x</a><a href="https://other.example/blog">y</a>'
    assert rewrite_page_links(html, PAGES, 0, ORIGIN) == html


def test_page_link_rewrite_reaches_fixed_point():
    html = (
        '<a href="./">a</a><a href="./blog">b</a><a href="./#top">c</a>'
        '<a href="https://site.example/blog/post-1">d</a>'
    )
    once = rewrite_page_links(html, PAGES, 1, ORIGIN)
    assert rewrite_page_links(once, PAGES, 1, ORIGIN) == once


def test_patch_page_scripts():
    html = (
        '<html><head lang="en"><meta charset="utf-8">'
        '<script async src="https://events.framer.com/script?v=2" data-fid="x"></script>'
        "</head><body><header></header><script>let t=new URL(e);new URL(r).hostname</script>"
        "</body></html>"
    )
    out = patch_page_scripts(html)
    assert "events.framer.com" not in out
    assert out.startswith(f'<html><head lang="en"><script {ROUTER_PATCH_MARKER}>')
    assert out.count(ROUTER_PATCH_MARKER) == 1
    assert "let t=new URL(e,location.href)" in out
    assert "new URL(r,location.href).hostname" in out
    assert patch_page_scripts(out) == out


def test_patch_bundle_text():
    js = (
        'const m=await import("https://edit.framer.com/init.mjs");'
        'const u=new URL("./data.framercms","../chunks/base/");'
    )
    out = patch_bundle_text(js)
    assert out == (
        "const m=await Promise.resolve({createEditorBar:()=>()=>null});"
        'const u=new URL("./data.framercms",new URL("../chunks/base/",import.meta.url));'
    )
    assert patch_bundle_text(out) == out


def test_patch_bundle_text_noop_without_triggers():
    js = 'export const x=new URL("./a.json",import.meta.url);'
    assert patch_bundle_text(js) == js
