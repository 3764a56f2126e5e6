"""
Transactional email through the SendGrid v3 mail API

Delivery is best-effort: every failure is logged and reported in the result,
never raised to the caller.
"""

from typing import Any, Dict, Optional

import requests
from fastapi.concurrency import run_in_threadpool

from farmkonnect.api.config import settings
from farmkonnect.utils.logger import get_logger

logger = get_logger(__name__)


class EmailService:
    """Client for the SendGrid mail send endpoint"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        from_email: Optional[str] = None,
        timeout: Optional[int] = None,
        session: Optional[requests.Session] = None
    ):
        self.api_key = api_key if api_key is not None else settings.SENDGRID_API_KEY
        self.from_email = from_email or settings.SENDGRID_FROM_EMAIL
        self.timeout = timeout or settings.EMAIL_TIMEOUT_SECONDS
        self.session = session or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def send_email(
        self,
        to: str,
        subject: str,
        html: str,
        text: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Send one email

        Returns:
            {"success": bool, "message_id": str | None, "error": str | None}
        """
        if not self.configured:
            logger.warning(f"Email not sent to {to}: SendGrid API key not configured")
            return {"success": False, "message_id": None, "error": "Email service not configured"}

        content = [{"type": "text/html", "value": html}]
        if text:
            content.insert(0, {"type": "text/plain", "value": text})

        body = {
            "personalizations": [{"to": [{"email": to}]}],
            "from": {"email": self.from_email},
            "subject": subject,
            "content": content,
        }

        try:
            response = self.session.post(
                settings.SENDGRID_API_URL,
                json=body,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                timeout=self.timeout
            )
            response.raise_for_status()

        except requests.exceptions.HTTPError as e:
            logger.error(f"SendGrid rejected email to {to}: {e} - {e.response.text if e.response is not None else ''}")
            return {"success": False, "message_id": None, "error": f"SendGrid error: {e}"}

        except requests.exceptions.RequestException as e:
            logger.error(f"Failed to send email to {to}: {e}")
            return {"success": False, "message_id": None, "error": str(e)}

        message_id = response.headers.get("X-Message-Id")
        logger.info(f"Email sent to {to} (message id {message_id})")
        return {"success": True, "message_id": message_id, "error": None}

    async def send_email_async(self, to: str, subject: str, html: str, text: Optional[str] = None) -> Dict[str, Any]:
        return await run_in_threadpool(self.send_email, to, subject, html, text)


def _layout(title: str, body: str) -> str:
    return (
        "<div style=\"font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;\">"
        f"<h2 style=\"color: #2e7d32;\">{title}</h2>"
        f"{body}"
        "<p style=\"color: #777; font-size: 12px;\">FarmKonnect</p>"
        "</div>"
    )


def registration_email(name: str) -> Dict[str, str]:
    return {
        "subject": "Welcome to FarmKonnect - Registration Received",
        "html": _layout(
            f"Welcome, {name}!",
            "<p>Thank you for registering with FarmKonnect. Your account is now "
            "awaiting review by an administrator.</p>"
            "<p>We will email you as soon as a decision has been made.</p>"
        ),
        "text": (
            f"Welcome, {name}! Thank you for registering with FarmKonnect. "
            "Your account is awaiting administrator review."
        ),
    }


def approval_email(name: str) -> Dict[str, str]:
    login_url = f"{settings.FRONTEND_URL}/login"
    return {
        "subject": "Your FarmKonnect Account Has Been Approved",
        "html": _layout(
            f"Good news, {name}!",
            "<p>Your FarmKonnect account has been approved. You can now sign in "
            "and start using the platform.</p>"
            f"<p><a href=\"{login_url}\">Sign in to FarmKonnect</a></p>"
        ),
        "text": f"Your FarmKonnect account has been approved. Sign in at {login_url}",
    }


def rejection_email(name: str, reason: str) -> Dict[str, str]:
    return {
        "subject": "FarmKonnect Registration Status",
        "html": _layout(
            f"Hello {name},",
            "<p>We are sorry, but your FarmKonnect registration was not approved.</p>"
            f"<p><strong>Reason:</strong> {reason}</p>"
            "<p>If you believe this is a mistake, please contact support.</p>"
        ),
        "text": f"Your FarmKonnect registration was not approved. Reason: {reason}",
    }


def account_status_email(name: str, status: str, reason: Optional[str] = None) -> Dict[str, str]:
    reason_html = f"<p><strong>Reason:</strong> {reason}</p>" if reason else ""
    return {
        "subject": f"Your FarmKonnect Account Is Now {status.capitalize()}",
        "html": _layout(
            f"Hello {name},",
            f"<p>The status of your FarmKonnect account has changed to <strong>{status}</strong>.</p>"
            f"{reason_html}"
        ),
        "text": f"Your FarmKonnect account status is now {status}." + (f" Reason: {reason}" if reason else ""),
    }


async def send_template(to: str, template: Dict[str, str]) -> Dict[str, Any]:
    """Send a rendered template without ever raising"""
    return await EmailService().send_email_async(
        to, template["subject"], template["html"], template.get("text")
    )
