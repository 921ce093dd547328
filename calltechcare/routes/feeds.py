"""sitemap.xml, blog RSS and robots.txt"""

import logging
from datetime import datetime, timezone
from email.utils import format_datetime
from typing import Optional
from xml.sax.saxutils import escape

from fastapi import APIRouter, Depends, Response
from fastapi.responses import PlainTextResponse

from ..config import SITE_URL
from ..services.sanity_client import CMSError, SanityClient, get_sanity_client

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Feeds"])

XML_ESCAPES = {'"': "&quot;", "'": "&apos;"}

# (path, changefreq, priority)
STATIC_PAGES = (
    ("/", "weekly", "1.0"),
    ("/services", "weekly", "0.9"),
    ("/plans", "monthly", "0.8"),
    ("/locations", "weekly", "0.8"),
    ("/contact", "monthly", "0.8"),
)

LOCATION_SLUGS_QUERY = '*[_type == "location" && isActive == true].slug.current'
POSTS_QUERY = """*[_type == "post" && publishedAt <= now() && defined(slug.current)] | order(publishedAt desc)[0...50]{
  title, slug, excerpt, metaDescription, publishedAt, _updatedAt
}"""

FEED_DESCRIPTION = (
    "Tech tips, Wi-Fi guides, TV mounting advice, cybersecurity basics, and IT best "
    "practices for homes and small businesses in South Florida."
)


def xml_escape(value: str) -> str:
    return escape(value, XML_ESCAPES)


def rfc822(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return format_datetime(parsed.astimezone(timezone.utc), usegmt=True)


def build_sitemap(location_slugs: list[str], site_url: str = SITE_URL, today: Optional[str] = None) -> str:
    today = today or datetime.now(timezone.utc).date().isoformat()
    entries = [(f"{site_url}{path}", freq, priority) for path, freq, priority in STATIC_PAGES]
    entries += [(f"{site_url}/locations/{slug}", "weekly", "0.7") for slug in location_slugs if slug]

    urls = "".join(
        f"<url><loc>{xml_escape(loc)}</loc><lastmod>{today}</lastmod>"
        f"<changefreq>{freq}</changefreq><priority>{priority}</priority></url>"
        for loc, freq, priority in entries
    )
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        f'<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">{urls}</urlset>'
    )


def build_rss(posts: list[dict], site_url: str = SITE_URL) -> str:
    """RSS 2.0 feed; posts without a slug or title are skipped"""
    feed_url = f"{site_url}/blog/rss.xml"
    items = []
    for post in posts or []:
        slug = (post.get("slug") or {}).get("current")
        title = (post.get("title") or "").strip()
        if not slug or not title:
            continue

        url = f"{site_url}/blog/{slug}"
        parts = [
            "<item>",
            f"<title>{xml_escape(title)}</title>",
            f"<link>{xml_escape(url)}</link>",
            f'<guid isPermaLink="true">{xml_escape(url)}</guid>',
        ]
        pub_date = rfc822(post.get("publishedAt") or post.get("_updatedAt"))
        if pub_date:
            parts.append(f"<pubDate>{xml_escape(pub_date)}</pubDate>")
        description = (post.get("metaDescription") or post.get("excerpt") or "").strip()
        if description:
            parts.append(f"<description>{xml_escape(description)}</description>")
        parts.append("</item>")
        items.append("".join(parts))

    build_date = format_datetime(datetime.now(timezone.utc), usegmt=True)
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:atom="http://www.w3.org/2005/Atom">
  <channel>
    <title>CallTechCare Blog</title>
    <link>{site_url}/blog</link>
    <description>{xml_escape(FEED_DESCRIPTION)}</description>
    <language>en-us</language>
    <lastBuildDate>{build_date}</lastBuildDate>
    <atom:link href="{feed_url}" rel="self" type="application/rss+xml" />
    {"".join(items)}
  </channel>
</rss>"""


@router.get("/sitemap.xml")
async def sitemap(sanity: SanityClient = Depends(get_sanity_client)):
    slugs: list[str] = []
    if sanity.is_configured():
        try:
            slugs = await sanity.fetch(LOCATION_SLUGS_QUERY) or []
        except CMSError as e:
            logger.warning(f"⚠️ Sitemap built without location pages: {e}")
    return Response(content=build_sitemap(slugs), media_type="application/xml")


@router.get("/blog/rss.xml")
async def blog_rss(sanity: SanityClient = Depends(get_sanity_client)):
    posts: list[dict] = []
    if sanity.is_configured():
        try:
            posts = await sanity.fetch(POSTS_QUERY) or []
        except CMSError as e:
            logger.warning(f"⚠️ RSS feed built without posts: {e}")
    return Response(
        content=build_rss(posts),
        media_type="application/rss+xml; charset=utf-8",
        headers={"Cache-Control": "public, s-maxage=3600, stale-while-revalidate=86400"},
    )


@router.get("/robots.txt", response_class=PlainTextResponse)
async def robots():
    return "\n".join(
        [
            "User-Agent: *",
            "Allow: /",
            "Disallow: /account",
            "Disallow: /account/",
            "",
            f"Sitemap: {SITE_URL}/sitemap.xml",
            "",
        ]
    )
