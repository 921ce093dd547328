import base64
import binascii
import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from .. import config
from ..security_utils import constant_time_equals
from ..services.mailchimp_service import MailchimpCustomer, MailchimpError, MailchimpService, get_mailchimp_service
from ..shared.validators import is_valid_email

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/mailchimp", tags=["Mailchimp"])


def _error(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"ok": False, "error": message, **extra})


def check_basic_auth(authorization: str, expected: str) -> bool:
    """Compare the decoded Basic credentials with the configured "user:password" secret"""
    if not authorization.startswith("Basic "):
        return False
    encoded = authorization[len("Basic ") :].strip()
    try:
        decoded = base64.b64decode(encoded, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return False
    return constant_time_equals(decoded, expected)


def _text(body: dict, key: str):
    value = body.get(key)
    return value.strip() if isinstance(value, str) and value.strip() else None


def validate_sync_payload(body: Any) -> tuple[MailchimpCustomer | None, list[str]]:
    if not isinstance(body, dict):
        return None, ["Body must be a JSON object"]

    email = _text(body, "email")
    if not email or not is_valid_email(email):
        return None, ["email is required and must be a valid email address"]

    address = body.get("address")
    if address is not None and not isinstance(address, dict):
        return None, ["address must be an object"]

    return (
        MailchimpCustomer(
            email=email,
            first_name=_text(body, "firstName"),
            last_name=_text(body, "lastName"),
            phone=_text(body, "phone"),
            service_type=_text(body, "serviceType"),
            address=address or None,
        ),
        [],
    )


@router.post("/sync")
async def sync_customer(request: Request, mailchimp: MailchimpService = Depends(get_mailchimp_service)):
    """External hook adding a customer to the audience, guarded by a shared Basic-Auth secret"""
    expected = config.MAILCHIMP_SYNC_BASIC_AUTH
    if not expected:
        return _error(403, "Sync endpoint is disabled: set MAILCHIMP_SYNC_BASIC_AUTH to enable.")
    if not check_basic_auth(request.headers.get("authorization", ""), expected):
        logger.warning("🚫 Mailchimp sync rejected: bad credentials")
        return _error(401, "Unauthorized")

    try:
        body = await request.json()
    except ValueError:
        body = None

    customer, errors = validate_sync_payload(body)
    if errors:
        return _error(400, "Invalid input", details=errors)

    try:
        subscriber_hash = await mailchimp.sync_customer(customer)
    except MailchimpError as e:
        logger.error(f"❌ Mailchimp sync API failed for {customer.email}: {e}")
        return _error(500, str(e))

    return {"ok": True, "subscriberHash": subscriber_hash}


@router.get("/sync")
async def sync_method_not_allowed():
    return JSONResponse(
        status_code=405,
        content={"ok": False, "error": "Method Not Allowed"},
        headers={"Allow": "POST"},
    )
