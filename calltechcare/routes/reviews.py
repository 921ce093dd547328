import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile

from ..auth import get_current_user
from ..models import User
from ..rate_limiter import form_rate_limit
from ..security_utils import sanitize_text
from ..services.sanity_client import CMSError, SanityClient, get_sanity_client

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Reviews"])

MAX_MEDIA_BYTES = 10 * 1024 * 1024

APPROVED_RATINGS_QUERY = '*[_type == "review" && approved == true && serviceSlug == $slug]{ rating }'
SERVICE_ID_QUERY = '*[_type == "service" && slug.current == $slug][0]{ _id }'


def average_rating(reviews: list[dict]) -> float:
    """Mean of the ratings rounded to one decimal; 0 when there are none"""
    if not reviews:
        return 0
    total = sum(float(r.get("rating") or 0) for r in reviews)
    return round(total / len(reviews), 1)


@router.post("/reviews", dependencies=[Depends(form_rate_limit)])
async def submit_review(
    serviceSlug: Optional[str] = Form(None),
    rating: Optional[int] = Form(None),
    comment: Optional[str] = Form(None),
    title: Optional[str] = Form(None),
    media: Optional[UploadFile] = File(None),
    current_user: User = Depends(get_current_user),
    sanity: SanityClient = Depends(get_sanity_client),
):
    """Create an unapproved review in the CMS, with an optional photo or video"""
    if not serviceSlug or not rating or not comment:
        raise HTTPException(status_code=400, detail="Missing required fields")
    if not 1 <= rating <= 5:
        raise HTTPException(status_code=400, detail="Rating must be between 1 and 5")
    if not sanity.can_write():
        raise HTTPException(status_code=503, detail="Reviews are temporarily unavailable")

    review_doc = {
        "_type": "review",
        "userName": current_user.name or "Anonymous",
        "serviceSlug": serviceSlug,
        "rating": rating,
        "comment": sanitize_text(comment, max_length=5000),
        "title": sanitize_text(title, max_length=200) if title else None,
        "approved": False,
        "createdAt": datetime.now(timezone.utc).isoformat(),
    }

    try:
        if media is not None and media.filename:
            content = await media.read()
            if len(content) > MAX_MEDIA_BYTES:
                raise HTTPException(status_code=400, detail="File too large. Maximum size is 10MB")
            asset = await sanity.upload_asset(
                content, media.filename, media.content_type or "application/octet-stream", kind="files"
            )
            review_doc["media"] = {"_type": "file", "asset": {"_type": "reference", "_ref": asset.get("_id")}}

        created = await sanity.create(review_doc)
    except CMSError as e:
        logger.error(f"❌ Review submission failed for {serviceSlug}: {e}")
        raise HTTPException(status_code=500, detail="Failed to submit review") from e

    logger.info(f"⭐ Review for {serviceSlug} from user {current_user.id} awaiting approval")
    return {
        "success": True,
        "message": "Review submitted successfully. Awaiting approval.",
        "review": created,
    }


@router.post("/sanity/review-update")
async def review_update_webhook(request: Request, sanity: SanityClient = Depends(get_sanity_client)):
    """CMS webhook: recompute a service's rating from its approved reviews"""
    try:
        body = await request.json()
    except ValueError as e:
        raise HTTPException(status_code=400, detail="Invalid JSON payload") from e

    document = body.get("document") if isinstance(body, dict) else None
    service_slug = (document or {}).get("serviceSlug")
    if not service_slug:
        raise HTTPException(status_code=400, detail="Missing serviceSlug")

    try:
        reviews = await sanity.fetch(APPROVED_RATINGS_QUERY, {"slug": service_slug}) or []
        rating = average_rating(reviews)

        service_doc = await sanity.fetch(SERVICE_ID_QUERY, {"slug": service_slug})
        if not service_doc or not service_doc.get("_id"):
            raise HTTPException(status_code=404, detail="Service not found")

        await sanity.patch_set(service_doc["_id"], {"rating": rating, "reviewsCount": len(reviews)})
    except CMSError as e:
        logger.error(f"❌ Review update error for {service_slug}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update service rating") from e

    logger.info(f"⭐ {service_slug} rating now {rating} from {len(reviews)} reviews")
    return {
        "message": "Service rating updated successfully",
        "slug": service_slug,
        "rating": rating,
        "reviewsCount": len(reviews),
    }
