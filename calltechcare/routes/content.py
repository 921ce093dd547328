"""Read-only proxies over the CMS catalog"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from ..services.sanity_client import CMSError, SanityClient, get_sanity_client

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Content"])

GROUPS_QUERY = """*[_type == "serviceGroup"] | order(order asc){
  _id,
  title,
  "slug": slug.current,
  description,
  order,
  promo {enabled, title, subtitle, buttonText, items, icon {asset->{url}, alt}},
  category->{title, "slug": slug.current, icon {"url": asset->url, alt}}
}"""

SERVICE_FIELDS = """
  _id,
  title,
  "slug": slug.current,
  serviceType,
  description,
  navDescription,
  icon {asset->{url}, alt},
  price,
  showPrice,
  pricingModel,
  hourlyConfig {minimumHours, maximumHours, billingIncrement},
  popular,
  rating,
  reviewsCount
"""

SERVICES_QUERY = f'*[_type == "service" && enabled == true]{{{SERVICE_FIELDS}, group->{{_id}}}}'
SERVICE_BY_SLUG_QUERY = f"""*[_type == "service" && slug.current == $slug][0]{{
  {SERVICE_FIELDS},
  options,
  "reviews": *[_type == "review" && approved == true && serviceSlug == ^.slug.current]
    | order(createdAt desc)[0...20]{{userName, rating, title, comment, createdAt}}
}}"""
SERVICE_LIST_FIELDS = """title, "slug": slug.current, price, showPrice, description, serviceType, popular"""
GROUP_SERVICES_QUERY = (
    f'*[_type == "service" && group->slug.current == $slug && enabled == true]{{{SERVICE_LIST_FIELDS}}}'
)
SUBSERVICES_QUERY = f'*[_type == "service" && parentService->slug.current == $slug]{{{SERVICE_LIST_FIELDS}}}'
POPULAR_QUERY = """*[_type == "service" && popular == true]{
  _id, title, "slug": slug.current, "icon": icon, "emoji": emoji, serviceType
} | order(title asc)"""
SEARCH_QUERY = """*[_type == "service" && enabled == true && title match $pattern] | order(title asc)[0...10]{
  _id, title, "slug": slug.current, serviceType, price
}"""
REQUEST_QUOTE_CONTENT_QUERY = """*[_type == "requestQuotePage"][0]{
  sidebarBenefitsTitle,
  sidebarBenefits[]{title, desc, icon{alt, asset->{url}}},
  socialProof{icon{alt, asset->{url}}, quotesThisMonthText, ratingValue, reviewsText},
  immediateHelp
}"""

SERVICE_PUBLIC_KEYS = (
    "title",
    "slug",
    "description",
    "navDescription",
    "icon",
    "price",
    "showPrice",
    "pricingModel",
    "hourlyConfig",
    "popular",
    "serviceType",
)


def group_service_catalog(groups: list[dict], services: list[dict]) -> list[dict]:
    """
    Nest enabled services under their group and groups under their category.

    Groups without a category slug are skipped; categories keep first-seen order.
    """
    services_by_group: dict[str, list[dict]] = {}
    for service in services or []:
        group_id = (service.get("group") or {}).get("_id")
        if not group_id:
            continue
        services_by_group.setdefault(group_id, []).append({k: service.get(k) for k in SERVICE_PUBLIC_KEYS})

    categories: list[dict] = []
    by_slug: dict[str, dict] = {}
    for group in groups or []:
        category = group.get("category") or {}
        category_slug = category.get("slug")
        if not category_slug:
            continue
        bucket = by_slug.get(category_slug)
        if bucket is None:
            bucket = {
                "category": category.get("title"),
                "categorySlug": category_slug,
                "icon": category.get("icon") or "tag",
                "groups": [],
            }
            by_slug[category_slug] = bucket
            categories.append(bucket)
        bucket["groups"].append(
            {
                "title": group.get("title"),
                "slug": group.get("slug"),
                "description": group.get("description"),
                "promo": group.get("promo"),
                "services": services_by_group.get(group.get("_id"), []),
            }
        )
    return categories


def _require_cms(sanity: SanityClient):
    if not sanity.is_configured():
        raise HTTPException(status_code=503, detail="Content service is not configured")


@router.get("/services")
async def list_services(sanity: SanityClient = Depends(get_sanity_client)):
    """Service catalog grouped by category and group"""
    _require_cms(sanity)
    try:
        groups = await sanity.fetch(GROUPS_QUERY)
        services = await sanity.fetch(SERVICES_QUERY)
    except CMSError as e:
        raise HTTPException(status_code=500, detail="Failed to load services") from e
    return group_service_catalog(groups, services)


@router.get("/services/{slug}")
async def get_service(slug: str, sanity: SanityClient = Depends(get_sanity_client)):
    _require_cms(sanity)
    try:
        service = await sanity.fetch(SERVICE_BY_SLUG_QUERY, {"slug": slug})
    except CMSError as e:
        raise HTTPException(status_code=500, detail="Failed to load service") from e
    if not service:
        raise HTTPException(status_code=404, detail="Service not found")
    return service


@router.get("/service-group")
async def list_group_services(slug: str = Query(""), sanity: SanityClient = Depends(get_sanity_client)):
    """Enabled services in one service group"""
    if not slug.strip():
        return []
    _require_cms(sanity)
    try:
        services = await sanity.fetch(GROUP_SERVICES_QUERY, {"slug": slug.strip()})
    except CMSError as e:
        raise HTTPException(status_code=500, detail="Failed to load services") from e
    return services or []


@router.get("/service-subservices")
async def list_subservices(slug: str = Query(""), sanity: SanityClient = Depends(get_sanity_client)):
    if not slug.strip():
        return []
    _require_cms(sanity)
    try:
        services = await sanity.fetch(SUBSERVICES_QUERY, {"slug": slug.strip()})
    except CMSError as e:
        raise HTTPException(status_code=500, detail="Failed to load sub-services") from e
    return services or []


@router.get("/popular-searches")
async def popular_searches(sanity: SanityClient = Depends(get_sanity_client)):
    _require_cms(sanity)
    try:
        results = await sanity.fetch(POPULAR_QUERY)
    except CMSError as e:
        raise HTTPException(status_code=500, detail="Failed to load popular searches") from e
    return {"results": results or []}


@router.get("/search")
async def search_services(q: str = Query(""), sanity: SanityClient = Depends(get_sanity_client)):
    """Title search over enabled services (at most 10 results)"""
    _require_cms(sanity)
    term = q.strip().replace("*", "")
    pattern = f"*{term}*" if term else "*"
    try:
        results = await sanity.fetch(SEARCH_QUERY, {"pattern": pattern})
    except CMSError as e:
        raise HTTPException(status_code=500, detail="Search failed") from e
    return {"results": results or []}


@router.get("/request-quote-content")
async def request_quote_content(sanity: SanityClient = Depends(get_sanity_client)):
    _require_cms(sanity)
    try:
        return await sanity.fetch(REQUEST_QUOTE_CONTENT_QUERY)
    except CMSError as e:
        raise HTTPException(status_code=500, detail="Failed to load content") from e
