"""
MJML Email Templates
All email templates use MJML for responsive, cross-client compatibility
"""

from html import escape
from typing import Optional

THEME = {
    "primary": "#0b1220",
    "accent": "#2563eb",
    "background": "#f8fafc",
    "panel": "#f1f5f9",
    "text_primary": "#0b1220",
    "text_secondary": "#334155",
    "text_muted": "#64748b",
    "border": "#e2e8f0",
}

BRAND_NAME = "CallTechCare"


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
) -> str:
    """Base MJML template wrapper for all emails"""

    cta_section = ""
    if cta_url and cta_label:
        cta_section = f"""
        <mj-section background-color="#ffffff" padding="8px 32px 32px 32px">
          <mj-column>
            <mj-button
              href="{cta_url}"
              background-color="{THEME['primary']}"
              color="#ffffff"
              font-weight="700"
              border-radius="10px"
              padding="0"
              inner-padding="12px 18px"
              align="left">
              {cta_label}
            </mj-button>
          </mj-column>
        </mj-section>
        """

    return f"""
    <mjml>
      <mj-head>
        <mj-title>{title}</mj-title>
        <mj-preview>{preview_text}</mj-preview>
        <mj-attributes>
          <mj-all font-family="Arial, Helvetica, sans-serif" />
          <mj-text font-size="14px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <mj-section background-color="{THEME['primary']}" padding="18px 32px">
          <mj-column>
            <mj-text font-size="12px" letter-spacing="1.2px" color="#ffffff" padding="0">
              {BRAND_NAME.upper()}
            </mj-text>
            <mj-text font-size="22px" font-weight="800" color="#ffffff" padding="8px 0 0 0">
              {title}
            </mj-text>
          </mj-column>
        </mj-section>

        {content_sections}

        {cta_section}

        <mj-section background-color="#ffffff" padding="0 32px 24px 32px">
          <mj-column>
            <mj-divider border-color="{THEME['border']}" border-width="1px" padding="0 0 12px 0" />
            <mj-text font-size="12px" color="{THEME['text_muted']}" padding="0">
              The {BRAND_NAME} Team
            </mj-text>
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def _money(value) -> str:
    try:
        return f"${float(value or 0):.2f}"
    except (TypeError, ValueError):
        return "$0.00"


def order_confirmation_template(
    service_title: Optional[str], base_price, add_ons: list, total
) -> str:
    """Order summary sent after checkout"""
    if add_ons:
        add_on_rows = "".join(
            f"<li>{escape(str(o.get('name') or 'Add-on'))}: {_money(o.get('price'))}</li>"
            for o in add_ons
            if isinstance(o, dict)
        )
    else:
        add_on_rows = "<li>No add-ons selected</li>"

    content = f"""
        <mj-section background-color="#ffffff" padding="24px 32px 8px 32px">
          <mj-column>
            <mj-text>Here's a summary of your booking with <strong>{BRAND_NAME}</strong>:</mj-text>
            <mj-text padding-top="0"><strong>Service:</strong> {escape(service_title or "-")}</mj-text>
            <mj-text padding-top="0"><strong>Base Price:</strong> {_money(base_price)}</mj-text>
            <mj-text padding-top="0"><strong>Add-ons:</strong><ul>{add_on_rows}</ul></mj-text>
            <mj-divider border-color="{THEME['border']}" border-width="1px" />
            <mj-text font-size="18px" font-weight="700" color="{THEME['text_primary']}">
              Total: {_money(total)}
            </mj-text>
            <mj-text>We'll contact you soon to confirm your appointment.</mj-text>
          </mj-column>
        </mj-section>
    """
    return get_base_template(
        title="Thank you for your order!",
        preview_text=f"Your {BRAND_NAME} order confirmation",
        content_sections=content,
    )


def password_reset_template(reset_link: str) -> str:
    content = """
        <mj-section background-color="#ffffff" padding="24px 32px 8px 32px">
          <mj-column>
            <mj-text>You requested a password reset.</mj-text>
            <mj-text>Click the button below to choose a new password. This link will expire in 15 minutes.</mj-text>
            <mj-text font-size="12px">If you didn't request this, you can safely ignore this email.</mj-text>
          </mj-column>
        </mj-section>
    """
    return get_base_template(
        title="Reset your password",
        preview_text=f"Reset your {BRAND_NAME} password",
        content_sections=content,
        cta_url=reset_link,
        cta_label="Reset Password",
    )


def discount_code_template(code: str, percent: int, site_url: str) -> str:
    """Discount popup code delivery"""
    content = f"""
        <mj-section background-color="#ffffff" padding="24px 32px 8px 32px">
          <mj-column>
            <mj-text>Use this code at checkout to save on your first service.</mj-text>
          </mj-column>
        </mj-section>
        <mj-section background-color="{THEME['panel']}" padding="14px 32px" border="1px solid {THEME['border']}">
          <mj-column>
            <mj-text align="center" font-size="11px" letter-spacing="1.4px" font-weight="700" padding="0">
              YOUR DISCOUNT CODE
            </mj-text>
            <mj-text align="center" font-size="22px" font-weight="900" color="{THEME['text_primary']}">
              {escape(code)}
            </mj-text>
            <mj-text align="center" font-size="12px" padding="0">
              Applies {percent}% off your first service.
            </mj-text>
          </mj-column>
        </mj-section>
        <mj-section background-color="#ffffff" padding="16px 32px 0 32px">
          <mj-column>
            <mj-text>Ready to book? Click below:</mj-text>
          </mj-column>
        </mj-section>
    """
    return get_base_template(
        title=f"Here's your {percent}% off code",
        preview_text=f"Your {percent}% discount code",
        content_sections=content,
        cta_url=site_url,
        cta_label="Book a service",
    )


def contact_notification_template(name: str, email: str, company: Optional[str], message: str) -> str:
    """Internal notification for a new contact form message"""
    company_row = f"<mj-text padding-top='0'><strong>Company:</strong> {escape(company)}</mj-text>" if company else ""
    content = f"""
        <mj-section background-color="#ffffff" padding="24px 32px 8px 32px">
          <mj-column>
            <mj-text><strong>Name:</strong> {escape(name)}</mj-text>
            <mj-text padding-top="0"><strong>Email:</strong> {escape(email)}</mj-text>
            {company_row}
            <mj-text><strong>Message:</strong><br />{escape(message)}</mj-text>
          </mj-column>
        </mj-section>
    """
    return get_base_template(
        title="New Contact Form Submission",
        preview_text=f"Message from {escape(name)}",
        content_sections=content,
    )
