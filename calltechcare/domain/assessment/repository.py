"""Assessment repository - Database operations for submissions and statistics"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models import Assessment


class AssessmentRepository:
    """Repository for assessment database operations"""

    @staticmethod
    def create(db: Session, **assessment_data) -> Assessment:
        assessment = Assessment(**assessment_data)
        db.add(assessment)
        db.commit()
        db.refresh(assessment)
        return assessment

    @staticmethod
    def share_id_exists(db: Session, share_id: str) -> bool:
        return db.query(Assessment.id).filter(Assessment.share_id == share_id).first() is not None

    @staticmethod
    def record_view(db: Session, share_id: str) -> Optional[Assessment]:
        """Increment the view counter in the database and return the refreshed row"""
        updated = (
            db.query(Assessment)
            .filter(Assessment.share_id == share_id)
            .update({Assessment.view_count: Assessment.view_count + 1}, synchronize_session=False)
        )
        db.commit()
        if not updated:
            return None
        return db.query(Assessment).filter(Assessment.share_id == share_id).first()

    # ============================================
    # Statistics
    # ============================================

    @staticmethod
    def since(db: Session, start: datetime):
        return db.query(Assessment).filter(Assessment.created_at >= start)

    @staticmethod
    def totals(db: Session, start: datetime) -> tuple[int, float]:
        count, average = (
            db.query(func.count(Assessment.id), func.avg(Assessment.score))
            .filter(Assessment.created_at >= start)
            .one()
        )
        return int(count or 0), float(average or 0)

    @staticmethod
    def daily_counts(db: Session, start: datetime) -> list[tuple]:
        day = func.date(Assessment.created_at)
        return (
            db.query(day, func.count(Assessment.id), func.avg(Assessment.score))
            .filter(Assessment.created_at >= start)
            .group_by(day)
            .order_by(day)
            .all()
        )

    @staticmethod
    def most_viewed(db: Session, start: datetime, limit: int = 10) -> list[Assessment]:
        return (
            db.query(Assessment)
            .filter(Assessment.created_at >= start)
            .order_by(Assessment.view_count.desc(), Assessment.id.desc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def recent(db: Session, start: datetime, limit: int = 20) -> list[Assessment]:
        return (
            db.query(Assessment)
            .filter(Assessment.created_at >= start)
            .order_by(Assessment.created_at.desc(), Assessment.id.desc())
            .limit(limit)
            .all()
        )
