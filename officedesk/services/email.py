"""
Email delivery through the Resend HTTP API, plus the HTML bodies used for
task e-mails.
"""
import html
import logging
from datetime import datetime
from typing import Optional

import httpx

from officedesk.core.config import settings

logger = logging.getLogger(__name__)

RESEND_SEND_URL = "https://api.resend.com/emails"


class EmailSender:
    """
    Sends one HTML e-mail per call. Returns True on success and never raises;
    delivery problems are logged.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        from_address: Optional[str] = None,
        enabled: Optional[bool] = None,
        timeout: Optional[float] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.RESEND_API_KEY
        self.from_address = from_address or settings.EMAIL_FROM
        self.enabled = settings.EMAIL_ENABLED if enabled is None else enabled
        self.timeout = timeout or settings.EMAIL_TIMEOUT_SECONDS

    def send(self, to: str, subject: str, html_body: str) -> bool:
        if not to:
            logger.warning("send_email: missing recipient")
            return False
        if not self.enabled or not self.api_key:
            logger.info("[EMAIL disabled] would send: %s | %s", to, subject)
            return True

        payload = {
            "from": self.from_address,
            "to": [to],
            "subject": subject,
            "html": html_body,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(RESEND_SEND_URL, headers=headers, json=payload)
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("send_email failed for %s | subject=%s: %s", to, subject, e)
            return False

        logger.info("Email sent to %s | subject=%s", to, subject)
        return True


def _wrap(title: str, rows: str, footer: str = "Log in to the system to view task details.") -> str:
    return (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">'
        f"<h2>{title}</h2>{rows}"
        f"<p>{footer}</p>"
        "<p>Thank you,<br>Office Management Team</p>"
        "</div>"
    )


def task_assignment_email(
    task_title: str,
    assigner_name: str,
    note: Optional[str] = None,
    due_date: Optional[datetime] = None,
) -> str:
    rows = (
        f"<p><strong>Task:</strong> {html.escape(task_title)}</p>"
        f"<p><strong>Assigned by:</strong> {html.escape(assigner_name)}</p>"
    )
    if note:
        rows += f"<p><strong>Note:</strong> {html.escape(note)}</p>"
    due = due_date.strftime("%d %b %Y") if due_date else "No due date"
    rows += f"<p><strong>Due date:</strong> {due}</p>"
    return _wrap("You've been assigned a new task", rows)


def task_event_email(heading: str, task_title: str, actor_label: str, actor_name: str, extra: str = "") -> str:
    """Generic body for status/update/comment/creation e-mails."""
    rows = (
        f"<p><strong>Task:</strong> {html.escape(task_title)}</p>"
        f"<p><strong>{actor_label}:</strong> {html.escape(actor_name)}</p>"
    )
    if extra:
        rows += f"<p>{html.escape(extra)}</p>"
    return _wrap(heading, rows)


def password_link_email(heading: str, user_name: str, link: str, intro: str, valid_hours: int) -> str:
    """Body for the account set-up and password reset e-mails."""
    url = html.escape(link, quote=True)
    rows = (
        f"<p>Hello {html.escape(user_name)},</p>"
        f"<p>{html.escape(intro)}</p>"
        f'<p><a href="{url}">{url}</a></p>'
    )
    return _wrap(heading, rows, footer=f"This link expires in {valid_hours} hours.")
