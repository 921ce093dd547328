"""
Email Service using Resend
Provides email functionality using MJML templates for responsive design
"""

import logging
from typing import Optional, Union

import resend
from mjml import mjml_to_html

from .config import ADMIN_EMAIL, BASE_URL, BCC_EMAIL, EMAIL_FROM_ADDRESS, REPLY_TO_EMAIL, RESEND_API_KEY
from .email_templates import (
    contact_notification_template,
    discount_code_template,
    order_confirmation_template,
    password_reset_template,
)

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY


class EmailDeliveryError(Exception):
    """Raised when an email cannot be compiled or sent"""


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to production-ready HTML"""
    try:
        result = mjml_to_html(mjml_content)
    except Exception as e:
        logger.error(f"MJML compilation error: {e}")
        raise EmailDeliveryError(f"Failed to compile MJML template: {e}") from e

    # Depending on the mjml release the result is a dict or an object with .html/.errors
    if isinstance(result, dict):
        errors, html = result.get("errors"), result.get("html", "")
    else:
        errors, html = getattr(result, "errors", None), getattr(result, "html", str(result))
    if errors:
        logger.warning(f"MJML compilation warnings: {errors}")
    return html


async def send_email(
    to: Union[str, list[str]],
    subject: str,
    mjml_content: str,
    from_address: Optional[str] = None,
    reply_to: Optional[str] = None,
    bcc: Optional[str] = None,
) -> dict:
    """
    Send an email through Resend

    Args:
        to: Recipient email(s)
        subject: Email subject line
        mjml_content: MJML template content (will be compiled to HTML)
        from_address: Optional custom from address
        reply_to: Optional Reply-To address
        bcc: Optional blind copy address

    Returns:
        Send response dict
    """
    if not RESEND_API_KEY:
        logger.error("❌ No email service configured - RESEND_API_KEY missing")
        raise EmailDeliveryError("Email service not configured")

    html_content = compile_mjml_to_html(mjml_content)
    recipients = [to] if isinstance(to, str) else to

    email_data = {
        "from": from_address or EMAIL_FROM_ADDRESS,
        "to": recipients,
        "subject": subject,
        "html": html_content,
    }
    if reply_to:
        email_data["reply_to"] = reply_to
    if bcc:
        email_data["bcc"] = [bcc]

    try:
        logger.info(f"📧 Sending email via Resend to: {recipients}")
        response = resend.Emails.send(email_data)
        logger.info(f"✅ Email sent successfully via Resend: {response}")
        return response
    except Exception as e:
        logger.error(f"❌ Email send error to {recipients}: {e}")
        raise EmailDeliveryError(f"Failed to send email: {e}") from e


# ============================================
# Pre-built emails
# ============================================


async def send_order_confirmation_email(
    to: str, service_title: Optional[str], base_price, add_ons: list, total
) -> dict:
    mjml_content = order_confirmation_template(service_title, base_price, add_ons, total)
    return await send_email(
        to=to,
        subject=f"Your CallTechCare Order - {service_title or 'Confirmation'}",
        mjml_content=mjml_content,
        reply_to=REPLY_TO_EMAIL,
        bcc=BCC_EMAIL,
    )


async def send_password_reset_email(to: str, reset_link: str) -> dict:
    """Send password reset link"""
    return await send_email(
        to=to,
        subject="Reset your password",
        mjml_content=password_reset_template(reset_link),
    )


async def send_discount_code_email(to: str, code: str, percent: int) -> dict:
    safe_percent = min(100, max(0, int(percent)))
    return await send_email(
        to=to,
        subject=f"Your {safe_percent}% discount code",
        mjml_content=discount_code_template(code, safe_percent, BASE_URL),
    )


async def send_contact_notification(name: str, email: str, company: Optional[str], message: str) -> dict:
    """Notify the support mailbox about a contact form message"""
    return await send_email(
        to=ADMIN_EMAIL,
        subject="📩 New Contact Form Submission",
        mjml_content=contact_notification_template(name, email, company, message),
        reply_to=email,
    )
