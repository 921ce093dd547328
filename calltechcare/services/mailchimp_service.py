"""
Mailchimp audience sync
Upserts customers into the marketing audience through the Marketing API
"""

import hashlib
import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from ..config import MAILCHIMP_API_KEY, MAILCHIMP_AUDIENCE_ID, MAILCHIMP_SERVER_PREFIX

logger = logging.getLogger(__name__)


class MailchimpError(Exception):
    """Raised when the audience sync fails"""


@dataclass
class MailchimpCustomer:
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    service_type: Optional[str] = None
    # {addr1, addr2, city, state, zip, country}
    address: Optional[dict] = None


def get_subscriber_hash(email: str) -> str:
    """Mailchimp member id: md5 of the trimmed, lower-cased email"""
    return hashlib.md5(email.strip().lower().encode("utf-8")).hexdigest()  # noqa: S324


def _merge_value(value: Optional[str]) -> str:
    return str(value).strip() if value else ""


def build_address_merge_field(address: Optional[dict]) -> Optional[dict]:
    """Shape an address for the ADDRESS merge field; None when nothing usable was given"""
    if not address:
        return None

    addr1 = _merge_value(address.get("addr1"))
    addr2 = _merge_value(address.get("addr2"))
    city = _merge_value(address.get("city"))
    zip_code = _merge_value(address.get("zip"))
    if not (addr1 or addr2 or city or zip_code):
        return None

    fields = {
        "addr1": addr1,
        "addr2": addr2,
        "city": city,
        "state": _merge_value(address.get("state")) or "FL",
        "zip": zip_code,
        "country": _merge_value(address.get("country")) or "US",
    }
    return {key: value for key, value in fields.items() if value}


class MailchimpService:
    """Service for Mailchimp Marketing API operations"""

    def __init__(
        self,
        api_key: Optional[str] = MAILCHIMP_API_KEY,
        server_prefix: Optional[str] = MAILCHIMP_SERVER_PREFIX,
        audience_id: Optional[str] = MAILCHIMP_AUDIENCE_ID,
    ):
        self.api_key = api_key
        self.server_prefix = server_prefix
        self.audience_id = audience_id

    def is_configured(self) -> bool:
        return bool(self.api_key and self.server_prefix and self.audience_id)

    def missing_settings(self) -> list[str]:
        missing = []
        if not self.api_key:
            missing.append("MAILCHIMP_API_KEY")
        if not self.server_prefix:
            missing.append("MAILCHIMP_SERVER_PREFIX")
        if not self.audience_id:
            missing.append("MAILCHIMP_AUDIENCE_ID")
        return missing

    @property
    def member_url(self) -> str:
        return f"https://{self.server_prefix}.api.mailchimp.com/3.0/lists/{self.audience_id}/members"

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
            return body.get("detail") or body.get("title") or "Mailchimp API error"
        except ValueError:
            return response.text[:200] or "Mailchimp API error"

    async def sync_customer(self, customer: MailchimpCustomer) -> str:
        """
        Add or update a customer in the audience.

        Forces status "subscribed", applies FNAME/LNAME/PHONE merge fields,
        optionally the ADDRESS merge field (best effort) and a serviceType tag.

        Returns:
            The subscriber hash
        """
        if not self.is_configured():
            raise MailchimpError(f"Missing Mailchimp environment variables: {', '.join(self.missing_settings())}")

        email = (customer.email or "").strip()
        if not email:
            raise MailchimpError("Customer email is required")

        subscriber_hash = get_subscriber_hash(email)
        auth = ("anystring", self.api_key)
        member = {
            "email_address": email,
            "status_if_new": "subscribed",
            "status": "subscribed",
            "merge_fields": {
                "FNAME": _merge_value(customer.first_name),
                "LNAME": _merge_value(customer.last_name),
                "PHONE": _merge_value(customer.phone),
            },
        }

        async with httpx.AsyncClient(timeout=30.0, auth=auth) as http_client:
            try:
                response = await http_client.put(f"{self.member_url}/{subscriber_hash}", json=member)
            except httpx.HTTPError as e:
                logger.error(f"❌ Mailchimp sync failed for {email}: {e}")
                raise MailchimpError(f"Mailchimp sync failed: {e}") from e

            if response.status_code >= 400:
                message = self._error_message(response)
                logger.error(f"❌ Mailchimp sync failed for {email}: HTTP {response.status_code} {message}")
                raise MailchimpError(f"Mailchimp sync failed (HTTP {response.status_code}): {message}")

            # Lists without an ADDRESS merge field reject this update
            address_merge = build_address_merge_field(customer.address)
            if address_merge:
                try:
                    address_response = await http_client.patch(
                        f"{self.member_url}/{subscriber_hash}",
                        json={"merge_fields": {"ADDRESS": address_merge}},
                    )
                    if address_response.status_code >= 400:
                        logger.warning(
                            f"⚠️ Mailchimp address merge update failed for {email}: "
                            f"{self._error_message(address_response)}"
                        )
                except httpx.HTTPError as e:
                    logger.warning(f"⚠️ Mailchimp address merge update failed for {email}: {e}")

            tag_name = (customer.service_type or "").strip()
            if tag_name:
                try:
                    tag_response = await http_client.post(
                        f"{self.member_url}/{subscriber_hash}/tags",
                        json={"tags": [{"name": tag_name, "status": "active"}]},
                    )
                except httpx.HTTPError as e:
                    raise MailchimpError(f"Mailchimp tag update failed: {e}") from e
                if tag_response.status_code >= 400:
                    raise MailchimpError(
                        f"Mailchimp tag update failed (HTTP {tag_response.status_code}): "
                        f"{self._error_message(tag_response)}"
                    )

        logger.info(f"✅ Mailchimp customer synced: {email} (tagged={bool(tag_name)})")
        return subscriber_hash


_mailchimp_service: Optional[MailchimpService] = None


def get_mailchimp_service() -> MailchimpService:
    global _mailchimp_service
    if _mailchimp_service is None:
        _mailchimp_service = MailchimpService()
    return _mailchimp_service


async def sync_customer_best_effort(customer: MailchimpCustomer) -> Optional[str]:
    """Sync without ever failing the caller; returns the hash or None"""
    service = get_mailchimp_service()
    if not service.is_configured():
        logger.info("Mailchimp not configured, skipping audience sync")
        return None
    try:
        return await service.sync_customer(customer)
    except MailchimpError as e:
        logger.warning(f"⚠️ Mailchimp sync skipped for {customer.email}: {e}")
        return None
