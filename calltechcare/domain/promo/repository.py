"""Discount lead repository"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...models import DiscountLead


class DiscountLeadRepository:
    """Repository for discount lead database operations"""

    @staticmethod
    def get_by_email(db: Session, email_lower: str) -> Optional[DiscountLead]:
        return db.query(DiscountLead).filter(DiscountLead.email_lower == email_lower).first()

    @staticmethod
    def exists(db: Session, email_lower: str) -> bool:
        return db.query(DiscountLead.id).filter(DiscountLead.email_lower == email_lower).first() is not None

    @staticmethod
    def create(db: Session, **lead_data) -> DiscountLead:
        lead = DiscountLead(**lead_data)
        db.add(lead)
        db.commit()
        db.refresh(lead)
        return lead

    @staticmethod
    def mark_code_sent(db: Session, lead: DiscountLead) -> DiscountLead:
        lead.code_sent_at = datetime.utcnow()
        db.commit()
        return lead

    @staticmethod
    def redeem(db: Session, code: str, email_lower: Optional[str] = None) -> Optional[DiscountLead]:
        """
        Atomically mark one unredeemed lead for the code as redeemed.

        The conditional UPDATE only matches rows whose redeemed_at is still NULL,
        so two concurrent redemptions cannot both succeed.
        """
        query = db.query(DiscountLead).filter(
            DiscountLead.discount_code == code,
            DiscountLead.redeemed_at.is_(None),
        )
        if email_lower:
            query = query.filter(DiscountLead.email_lower == email_lower)

        candidate = query.order_by(DiscountLead.id).first()
        if not candidate:
            return None

        updated = (
            db.query(DiscountLead)
            .filter(DiscountLead.id == candidate.id, DiscountLead.redeemed_at.is_(None))
            .update({DiscountLead.redeemed_at: datetime.utcnow()}, synchronize_session=False)
        )
        db.commit()
        if not updated:
            return None
        db.refresh(candidate)
        return candidate

    @staticmethod
    def find_by_code(db: Session, code: str, limit: int = 2) -> list[DiscountLead]:
        return db.query(DiscountLead).filter(DiscountLead.discount_code == code).limit(limit).all()
