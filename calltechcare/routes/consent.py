"""Analytics / marketing consent stored in a versioned cookie"""

import json
import logging
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import quote, unquote

from fastapi import APIRouter, Request, Response
from pydantic import BaseModel

from ..config import COOKIE_SECURE

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/consent", tags=["Consent"])

CONSENT_COOKIE_NAME = "ctc_consent"
CONSENT_COOKIE_VERSION = 1
CONSENT_MAX_AGE = 60 * 60 * 24 * 365
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc).isoformat()


class ConsentUpdate(BaseModel):
    analytics: bool = False
    marketing: bool = False
    functional: bool = False


def default_consent() -> dict:
    return {
        "version": CONSENT_COOKIE_VERSION,
        "updatedAt": EPOCH,
        "analytics": False,
        "marketing": False,
        "functional": False,
    }


def parse_consent_cookie(raw: Optional[str]) -> Optional[dict]:
    """Decode the cookie value; None when it is missing or not a JSON object"""
    if not raw:
        return None
    try:
        parsed = json.loads(unquote(raw))
    except ValueError:
        return None
    if not isinstance(parsed, dict):
        return None

    version = parsed.get("version")
    updated_at = parsed.get("updatedAt")
    return {
        "version": version if isinstance(version, int) and not isinstance(version, bool) else CONSENT_COOKIE_VERSION,
        "updatedAt": updated_at if isinstance(updated_at, str) else datetime.now(timezone.utc).isoformat(),
        "analytics": bool(parsed.get("analytics")),
        "marketing": bool(parsed.get("marketing")),
        "functional": bool(parsed.get("functional")),
    }


@router.get("")
async def read_consent(request: Request):
    consent = parse_consent_cookie(request.cookies.get(CONSENT_COOKIE_NAME))
    return {"consent": consent or default_consent(), "stored": consent is not None}


@router.post("")
async def write_consent(data: ConsentUpdate, response: Response):
    consent = {
        "version": CONSENT_COOKIE_VERSION,
        "updatedAt": datetime.now(timezone.utc).isoformat(),
        **data.model_dump(),
    }
    response.set_cookie(
        CONSENT_COOKIE_NAME,
        quote(json.dumps(consent, separators=(",", ":"))),
        max_age=CONSENT_MAX_AGE,
        path="/",
        samesite="lax",
        secure=COOKIE_SECURE,
    )
    return {"consent": consent, "stored": True}
