"""
Email Service using Resend

Handles sending emails for the membership admission flow.
"""

import asyncio
import logging
from datetime import datetime
from html import escape

import resend

from progress_api.core.config import settings

logger = logging.getLogger(__name__)

resend.api_key = settings.resend_api_key or None

_BASE_STYLE = """
    body { font-family: system-ui, -apple-system, sans-serif; line-height: 1.6; color: #1f2937; }
    .container { max-width: 600px; margin: 0 auto; padding: 40px 20px; }
    .header { color: #6b21a8; margin-bottom: 24px; }
    .code { display: inline-block; font-family: monospace; font-size: 28px; letter-spacing: 4px; background-color: #f3e8ff; color: #6b21a8; padding: 12px 24px; border-radius: 8px; margin: 16px 0; }
    .button { display: inline-block; background-color: #6b21a8; color: white; padding: 14px 28px; text-decoration: none; border-radius: 8px; margin: 24px 0; }
    .footer { margin-top: 40px; padding-top: 20px; border-top: 1px solid #e5e7eb; color: #6b7280; font-size: 14px; }
"""


def _render(title: str, body: str) -> str:
    return f"""
    <!DOCTYPE html>
    <html>
    <head>
        <style>{_BASE_STYLE}</style>
    </head>
    <body>
        <div class="container">
            <h1 class="header">{title}</h1>
            {body}
            <div class="footer">
                <p>If you did not apply to join Progress, you can safely ignore this email.</p>
            </div>
        </div>
    </body>
    </html>
    """


async def send_email(
    to_email: str,
    subject: str,
    html_content: str,
) -> bool:
    """
    Send an email using Resend.

    Args:
        to_email: Recipient email address
        subject: Email subject line
        html_content: HTML content of the email

    Returns:
        True if email was sent (or logged when no API key is configured)
    """
    if not resend.api_key:
        logger.warning("RESEND_API_KEY not set - logging email instead of sending")
        logger.info(f"EMAIL TO: {to_email} | SUBJECT: {subject}")
        return True

    try:
        params: resend.Emails.SendParams = {
            "from": settings.email_from,
            "to": [to_email],
            "subject": subject,
            "html": html_content,
        }

        # Run sync Resend call in thread pool to avoid blocking event loop
        email = await asyncio.to_thread(resend.Emails.send, params)
        logger.info(f"Email sent successfully to {to_email}, id: {email['id']}")
        return True
    except Exception as e:
        logger.error(f"Failed to send email to {to_email}: {e}")
        return False


async def send_application_received(to_email: str, first_name: str) -> bool:
    """Acknowledge a new membership application."""
    safe_first_name = escape(first_name)

    body = f"""
            <p>Hello {safe_first_name},</p>

            <p>Thank you for applying to join Progress. We have received your application
            and a member of our team will review it shortly.</p>

            <p>Once your application is approved you will receive an access code by email,
            which you can use to create your account.</p>
    """
    return await send_email(
        to_email=to_email,
        subject="We have received your Progress application",
        html_content=_render("Application Received", body),
    )


async def send_application_approved(
    to_email: str,
    first_name: str,
    access_code: str,
    expires_at: datetime,
) -> bool:
    """Send the single-use access code minted on approval."""
    safe_first_name = escape(first_name)
    safe_code = escape(access_code)
    register_url = f"{settings.frontend_url}/register"
    expiry_text = expires_at.strftime("%d %B %Y")

    body = f"""
            <p>Hello {safe_first_name},</p>

            <p>Your application to join Progress has been <strong>approved</strong>.
            Use the access code below to create your account:</p>

            <div class="code">{safe_code}</div>

            <a href="{register_url}" class="button">Create your account</a>

            <p><strong>This code can be used once and expires on {expiry_text}.</strong>
            It only works with this email address.</p>
    """
    return await send_email(
        to_email=to_email,
        subject="Your Progress application has been approved",
        html_content=_render("Welcome to Progress", body),
    )
