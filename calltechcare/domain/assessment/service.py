"""Assessment service - Scoring, sharing and statistics for the quiz funnel"""

import logging
import secrets
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Assessment
from ...services.sanity_client import CMSError, SanityClient
from .repository import AssessmentRepository
from .schemas import AssessmentSubmit
from .scoring import calculate_category_scores, calculate_score, find_recommendation

logger = logging.getLogger(__name__)

SHARE_ID_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789_-"
SHARE_ID_LENGTH = 10
SCORE_BUCKETS = (0, 20, 40, 60, 80, 100)

RECOMMENDATION_FIELDS = """
    _id,
    title,
    scoreRange,
    level,
    summary,
    keyFindings,
    recommendations,
    suggestedServices[]->,
    ctaText,
    ctaLink
"""

CONFIG_BY_SLUG_QUERY = f"""*[_type == "assessmentConfig" && slug.current == $slug][0]{{
  _id,
  title,
  slug,
  subtitle,
  isActive,
  categories[]->{{
    _id,
    title,
    slug,
    description,
    icon,
    order,
    questions[]->{{_id, question, questionType, options, weight, helpText}}
  }},
  recommendations[]->{{{RECOMMENDATION_FIELDS}}}
}}"""

RECOMMENDATION_BY_ID_QUERY = (
    f'*[_type == "assessmentRecommendation" && _id == $id][0]{{{RECOMMENDATION_FIELDS}}}'
)
CONFIG_SUMMARY_QUERY = '*[_type == "assessmentConfig" && _id == $id][0]{title, subtitle, categories[]->{title}}'


def generate_share_id() -> str:
    return "".join(secrets.choice(SHARE_ID_ALPHABET) for _ in range(SHARE_ID_LENGTH))


def recommendation_summary(recommendation: dict) -> dict:
    keys = (
        "title",
        "level",
        "summary",
        "keyFindings",
        "recommendations",
        "suggestedServices",
        "ctaText",
        "ctaLink",
    )
    return {key: recommendation.get(key) for key in keys}


def bucket_label(score: float) -> str:
    for low, high in zip(SCORE_BUCKETS, SCORE_BUCKETS[1:]):
        if low <= score < high:
            return f"{low}-{high}"
    return "100+"


class AssessmentService:
    """Service layer for assessments"""

    def __init__(self, db: Session, sanity: SanityClient):
        self.db = db
        self.sanity = sanity
        self.repo = AssessmentRepository()

    async def _fetch(self, query: str, params: dict):
        if not self.sanity.is_configured():
            raise HTTPException(status_code=503, detail="Content service is not configured")
        return await self.sanity.fetch(query, params)

    async def submit(self, data: AssessmentSubmit, request_metadata: dict) -> dict:
        if not data.assessmentSlug or data.answers is None:
            raise HTTPException(status_code=400, detail="Missing required fields")

        try:
            config = await self._fetch(CONFIG_BY_SLUG_QUERY, {"slug": data.assessmentSlug})
        except CMSError as e:
            logger.error(f"❌ Could not load assessment {data.assessmentSlug}: {e}")
            raise HTTPException(status_code=502, detail="Failed to load assessment") from e

        if not config:
            raise HTTPException(status_code=404, detail="Assessment not found")

        score = calculate_score(data.answers, config)
        recommendation = find_recommendation(score, config.get("recommendations"))
        if not recommendation:
            logger.error(f"No recommendation tier covers score {score:.1f} for {data.assessmentSlug}")
            raise HTTPException(status_code=500, detail="No recommendation found for score")

        category_scores = calculate_category_scores(data.answers, config)

        share_id = generate_share_id()
        while self.repo.share_id_exists(self.db, share_id):
            share_id = generate_share_id()

        self.repo.create(
            self.db,
            share_id=share_id,
            assessment_id=config.get("_id") or data.assessmentSlug,
            assessment_slug=data.assessmentSlug,
            assessment_type=config.get("title"),
            answers=data.answers,
            score=score,
            recommendation_id=recommendation.get("_id"),
            category_scores=category_scores,
            user_info=data.userInfo.model_dump(exclude_none=True) if data.userInfo else {},
            request_metadata=request_metadata,
        )
        logger.info(f"📝 Assessment {data.assessmentSlug} scored {score:.1f}, shared as {share_id}")

        return {
            "success": True,
            "shareId": share_id,
            "score": score,
            "recommendation": recommendation_summary(recommendation),
            "categoryScores": category_scores,
        }

    async def get_shared_result(self, share_id: str) -> dict:
        """Shared result page data; every call counts as one view"""
        assessment = self.repo.record_view(self.db, share_id)
        if not assessment:
            raise HTTPException(status_code=404, detail="Assessment not found")

        recommendation: Optional[dict] = None
        config: Optional[dict] = None
        try:
            if assessment.recommendation_id:
                recommendation = await self._fetch(RECOMMENDATION_BY_ID_QUERY, {"id": assessment.recommendation_id})
            config = await self._fetch(CONFIG_SUMMARY_QUERY, {"id": assessment.assessment_id})
        except CMSError as e:
            logger.warning(f"⚠️ CMS details unavailable for shared assessment {share_id}: {e}")

        return {
            "success": True,
            "assessment": {
                "score": assessment.score,
                "categoryScores": assessment.category_scores or {},
                "createdAt": assessment.created_at.isoformat() if assessment.created_at else None,
                "viewCount": assessment.view_count,
            },
            "recommendation": recommendation,
            "config": config,
        }

    def get_stats(self, days: int = 30) -> dict:
        start = datetime.utcnow() - timedelta(days=days)
        total, average = self.repo.totals(self.db, start)
        rows: list[Assessment] = self.repo.since(self.db, start).all()

        distribution = {f"{low}-{high}": 0 for low, high in zip(SCORE_BUCKETS, SCORE_BUCKETS[1:])}
        distribution["100+"] = 0
        category_totals = defaultdict(lambda: [0.0, 0])
        with_contact = 0

        for row in rows:
            distribution[bucket_label(row.score or 0)] += 1
            for title, value in (row.category_scores or {}).items():
                category_totals[title][0] += float(value or 0)
                category_totals[title][1] += 1
            if (row.user_info or {}).get("email"):
                with_contact += 1

        category_scores = sorted(
            (
                {"category": title, "avgScore": round(total_score / count, 1), "count": count}
                for title, (total_score, count) in category_totals.items()
            ),
            key=lambda c: c["avgScore"],
            reverse=True,
        )
        lead_capture_rate = (with_contact / total * 100) if total else 0

        return {
            "success": True,
            "period": f"Last {days} days",
            "statistics": {
                "totalAssessments": total,
                "averageScore": round(average, 1),
                "leadCaptureRate": round(lead_capture_rate, 1),
                "withContactInfo": with_contact,
            },
            "scoreDistribution": [{"range": label, "count": count} for label, count in distribution.items()],
            "categoryScores": category_scores,
            "topShared": [
                {
                    "shareId": a.share_id,
                    "score": a.score,
                    "viewCount": a.view_count,
                    "createdAt": a.created_at.isoformat() if a.created_at else None,
                }
                for a in self.repo.most_viewed(self.db, start)
            ],
            "assessmentsOverTime": [
                {"date": str(day), "count": count, "avgScore": round(float(avg or 0), 1)}
                for day, count, avg in self.repo.daily_counts(self.db, start)
            ],
            "recentAssessments": [
                {
                    "shareId": a.share_id,
                    "score": a.score,
                    "createdAt": a.created_at.isoformat() if a.created_at else None,
                    "email": (a.user_info or {}).get("email"),
                    "company": (a.user_info or {}).get("company"),
                }
                for a in self.repo.recent(self.db, start)
            ],
        }
