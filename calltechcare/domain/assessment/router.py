"""Assessment router - quiz submission, shared results and statistics"""

import logging

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ...database import get_db
from ...rate_limiter import form_rate_limit, get_client_ip
from ...services.sanity_client import SanityClient, get_sanity_client
from .schemas import AssessmentSubmit, AssessmentSubmitResponse
from .service import AssessmentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/assessment", tags=["Assessment"])


def get_assessment_service(
    db: Session = Depends(get_db),
    sanity: SanityClient = Depends(get_sanity_client),
) -> AssessmentService:
    """Dependency injection for AssessmentService"""
    return AssessmentService(db, sanity)


@router.post("/submit", response_model=AssessmentSubmitResponse, dependencies=[Depends(form_rate_limit)])
async def submit_assessment(
    data: AssessmentSubmit,
    request: Request,
    service: AssessmentService = Depends(get_assessment_service),
):
    metadata = {
        "userAgent": request.headers.get("user-agent", ""),
        "referrer": request.headers.get("referer", ""),
        "ipAddress": get_client_ip(request),
    }
    return await service.submit(data, metadata)


# Registered before /{share_id} so "stats" is not read as a share id
@router.get("/stats")
async def get_assessment_stats(
    days: int = Query(30, ge=1, le=365),
    service: AssessmentService = Depends(get_assessment_service),
):
    return service.get_stats(days)


@router.get("/{share_id}")
async def get_shared_assessment(
    share_id: str,
    service: AssessmentService = Depends(get_assessment_service),
):
    """Shared result; increments the view counter"""
    return await service.get_shared_result(share_id)
