import smtplib

import requests

from app.lucien import mailer
from app.lucien.mailer import InviteEmail, send_invite_email

MSG = InviteEmail(
    to="new@example.com",
    role="CLIENT",
    engagement_ids=["TIER-ARCHITECT"],
    expires_at="2026-03-01T00:00:00Z",
    invite_link="https://portal.example/invite?token=t",
)


class FakeSMTP:
    instances = []

    def __init__(self, host, port, timeout=None):
        self.host, self.port = host, port
        self.calls = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self, context=None):
        self.calls.append("starttls")

    def login(self, user, password):
        self.calls.append(("login", user))

    def sendmail(self, sender, recipients, body):
        self.calls.append(("sendmail", sender, tuple(recipients)))
        self.body = body


SMTP_CONFIG = {
    "EMAIL_PROVIDER": "smtp",
    "SMTP_HOST": "smtp.example",
    "SMTP_PORT": 2525,
    "SMTP_USER": "mailer",
    "SMTP_PASS": "secret",
    "SMTP_FROM": "portal@example.com",
}


def test_body_mentions_link_and_password():
    body = InviteEmail(to="x", role="OPERATOR", engagement_ids=[], expires_at="soon", temporary_password="pw1").body()
    assert "Role: OPERATOR" in body
    assert "Engagements: N/A" in body
    assert "Temporary password: pw1" in body
    assert "Magic link" not in body
    assert "Magic link: https://portal.example/invite?token=t" in MSG.body()


def test_smtp_not_configured_returns_false():
    assert send_invite_email({"EMAIL_PROVIDER": "smtp"}, MSG) is False


def test_smtp_delivery(monkeypatch):
    FakeSMTP.instances.clear()
    monkeypatch.setattr(mailer.smtplib, "SMTP", FakeSMTP)
    assert send_invite_email(SMTP_CONFIG, MSG) is True
    server = FakeSMTP.instances[0]
    assert (server.host, server.port) == ("smtp.example", 2525)
    assert server.calls == ["starttls", ("login", "mailer"), ("sendmail", "portal@example.com", ("new@example.com",))]
    assert "Subject: Lucien Portal Invite" in server.body


def test_smtp_failure_is_logged_not_raised(monkeypatch):
    class Broken(FakeSMTP):
        def login(self, user, password):
            raise smtplib.SMTPAuthenticationError(535, b"bad auth")

    monkeypatch.setattr(mailer.smtplib, "SMTP", Broken)
    assert send_invite_email(SMTP_CONFIG, MSG) is False


def test_brevo_failures(monkeypatch):
    config = {"EMAIL_PROVIDER": "brevo", "BREVO_API_KEY": "k"}

    class Rejected:
        status_code = 401
        text = "unauthorized"

    monkeypatch.setattr(mailer.requests, "post", lambda *a, **kw: Rejected())
    assert send_invite_email(config, MSG) is False

    def boom(*a, **kw):
        raise requests.ConnectionError("down")

    monkeypatch.setattr(mailer.requests, "post", boom)
    assert send_invite_email(config, MSG) is False

    assert send_invite_email({"EMAIL_PROVIDER": "brevo"}, MSG) is False
