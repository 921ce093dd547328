"""Assessment schemas"""

from typing import Any, Optional

from pydantic import BaseModel


class UserInfo(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    company: Optional[str] = None
    phone: Optional[str] = None


class AssessmentSubmit(BaseModel):
    assessmentSlug: Optional[str] = None
    answers: Optional[dict[str, Any]] = None
    userInfo: Optional[UserInfo] = None


class RecommendationSummary(BaseModel):
    title: Optional[str] = None
    level: Optional[str] = None
    summary: Optional[str] = None
    keyFindings: Optional[list[Any]] = None
    recommendations: Optional[list[Any]] = None
    suggestedServices: Optional[list[Any]] = None
    ctaText: Optional[str] = None
    ctaLink: Optional[str] = None


class AssessmentSubmitResponse(BaseModel):
    success: bool
    shareId: str
    score: float
    recommendation: RecommendationSummary
    categoryScores: dict[str, float]
