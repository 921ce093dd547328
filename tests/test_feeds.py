from calltechcare.routes.feeds import LOCATION_SLUGS_QUERY, POSTS_QUERY, build_rss, build_sitemap


def test_sitemap_lists_static_pages_and_locations():
    xml = build_sitemap(["miami", "", "fort-lauderdale"], site_url="https://example.com", today="2026-01-02")

    assert xml.startswith('<?xml version="1.0" encoding="UTF-8"?>')
    assert "<loc>https://example.com/</loc>" in xml
    assert "<loc>https://example.com/locations/miami</loc>" in xml
    assert "<loc>https://example.com/locations/fort-lauderdale</loc>" in xml
    assert xml.count("<url>") == 7
    assert "<lastmod>2026-01-02</lastmod>" in xml


def test_rss_escapes_and_skips_incomplete_posts():
    posts = [
        {
            "title": "Wi-Fi & Mesh <Guide>",
            "slug": {"current": "wifi-mesh"},
            "excerpt": "Fast \"home\" Wi-Fi",
            "publishedAt": "2026-01-05T10:00:00Z",
        },
        {"title": "", "slug": {"current": "untitled"}},
        {"title": "No slug"},
    ]

    xml = build_rss(posts, site_url="https://example.com")

    assert xml.count("<item>") == 1
    assert "<title>Wi-Fi &amp; Mesh &lt;Guide&gt;</title>" in xml
    assert "<description>Fast &quot;home&quot; Wi-Fi</description>" in xml
    assert "<link>https://example.com/blog/wifi-mesh</link>" in xml
    assert "<pubDate>Mon, 05 Jan 2026 10:00:00 GMT</pubDate>" in xml


def test_sitemap_endpoint(client, fake_sanity):
    fake_sanity.results[LOCATION_SLUGS_QUERY] = ["miami"]

    response = client.get("/sitemap.xml")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/xml")
    assert "/locations/miami</loc>" in response.text


def test_rss_endpoint_without_cms_still_renders(client, fake_sanity):
    fake_sanity.configured = False

    response = client.get("/blog/rss.xml")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/rss+xml")
    assert "<item>" not in response.text
    assert fake_sanity.queries == []


def test_rss_endpoint_lists_posts(client, fake_sanity):
    fake_sanity.results[POSTS_QUERY] = [{"title": "Hello", "slug": {"current": "hello"}}]

    response = client.get("/blog/rss.xml")

    assert "/blog/hello</link>" in response.text
    assert "s-maxage=3600" in response.headers["cache-control"]
