"""
Invite email delivery over SMTP (STARTTLS) or the Brevo transactional API.
"""
from __future__ import annotations

import logging
import smtplib
import ssl
from dataclasses import dataclass
from email.mime.text import MIMEText
from email.utils import formataddr

import requests

logger = logging.getLogger(__name__)

INVITE_SUBJECT = "Lucien Portal Invite"
BREVO_SEND_URL = "https://api.brevo.com/v3/smtp/email"


@dataclass(frozen=True)
class InviteEmail:
    to: str
    role: str
    engagement_ids: list[str]
    expires_at: str
    invite_link: str | None = None
    temporary_password: str | None = None

    def body(self) -> str:
        lines = [
            "You have been invited to the Lucien portal.",
            "",
            f"Role: {self.role}",
            f"Engagements: {', '.join(self.engagement_ids) or 'N/A'}",
            f"Invite expires: {self.expires_at}",
        ]
        if self.invite_link:
            lines += ["", f"Magic link: {self.invite_link}"]
        if self.temporary_password:
            lines += ["", f"Temporary password: {self.temporary_password}"]
        return "\n".join(lines)


def _send_smtp(config, msg: InviteEmail) -> bool:
    host, user, password = config.get("SMTP_HOST"), config.get("SMTP_USER"), config.get("SMTP_PASS")
    if not (host and user and password):
        logger.warning("SMTP not configured; invite email not sent.")
        return False

    sender = config.get("SMTP_FROM") or "no-reply@lucien.technology"
    mime = MIMEText(msg.body(), "plain", "utf-8")
    mime["From"] = formataddr((config.get("INVITE_EMAIL_FROM_NAME") or "Lucien", sender))
    mime["To"] = msg.to
    mime["Subject"] = INVITE_SUBJECT
    try:
        with smtplib.SMTP(host, int(config.get("SMTP_PORT") or 587), timeout=15) as server:
            server.starttls(context=ssl.create_default_context())
            server.login(user, password)
            server.sendmail(sender, [msg.to], mime.as_string())
    except (smtplib.SMTPException, OSError) as e:
        logger.error("SMTP invite delivery failed to=%s: %s", msg.to, e)
        return False
    logger.info("Invite email sent via SMTP to=%s", msg.to)
    return True


def _send_brevo(config, msg: InviteEmail) -> bool:
    api_key = config.get("BREVO_API_KEY")
    if not api_key:
        logger.warning("BREVO_API_KEY not configured; invite email not sent.")
        return False
    payload = {
        "sender": {
            "email": config.get("INVITE_EMAIL_FROM") or "no-reply@lucien.technology",
            "name": config.get("INVITE_EMAIL_FROM_NAME") or "Lucien",
        },
        "to": [{"email": msg.to}],
        "subject": INVITE_SUBJECT,
        "textContent": msg.body(),
    }
    try:
        resp = requests.post(
            BREVO_SEND_URL,
            json=payload,
            headers={"api-key": api_key, "accept": "application/json"},
            timeout=15,
        )
    except requests.RequestException as e:
        logger.error("Brevo invite delivery failed to=%s: %s", msg.to, e)
        return False
    if resp.status_code >= 400:
        logger.error("Brevo rejected invite email to=%s status=%s body=%s", msg.to, resp.status_code, resp.text[:500])
        return False
    logger.info("Invite email sent via Brevo to=%s", msg.to)
    return True


def send_invite_email(config, msg: InviteEmail) -> bool:
    """Returns True only when the provider accepted the message."""
    if (config.get("EMAIL_PROVIDER") or "smtp") == "brevo":
        return _send_brevo(config, msg)
    return _send_smtp(config, msg)
