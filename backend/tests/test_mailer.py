import smtplib

import pytest

from admin_panel.config import settings
from admin_panel.utils.mailer import send_email, send_otp_email


@pytest.fixture
def outbox():
    """Leave the real mailer functions in place for this module."""
    return None


class FakeSMTP:
    sent = []

    def __init__(self, host, port, timeout=None):
        self.host = host

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        pass

    def login(self, user, password):
        pass

    def send_message(self, message):
        FakeSMTP.sent.append(message)


def _configure_smtp(monkeypatch):
    monkeypatch.setattr(settings, 'SMTP_HOST', 'smtp.example.com')
    monkeypatch.setattr(settings, 'SMTP_USER', 'mailer@example.com')
    monkeypatch.setattr(settings, 'SMTP_PASSWORD', 'pw')
    monkeypatch.setattr(settings, 'SMTP_FROM', 'mailer@example.com')


def test_dev_fallback_logs_instead_of_sending(monkeypatch, caplog):
    monkeypatch.setattr(settings, 'SMTP_HOST', '')
    caplog.set_level('INFO', logger='admin_panel.mail')
    assert send_otp_email('a@example.com', '123456') is True
    assert '123456' in caplog.text
    assert send_email('a@example.com', 'Hi', 'body') is True


def test_smtp_delivery(monkeypatch):
    _configure_smtp(monkeypatch)
    FakeSMTP.sent = []
    monkeypatch.setattr(smtplib, 'SMTP', FakeSMTP)
    assert send_otp_email('a@example.com', '654321') is True
    assert len(FakeSMTP.sent) == 1
    message = FakeSMTP.sent[0]
    assert message['To'] == 'a@example.com'
    assert message['Subject'] == 'Your OTP for Admin Login'


def test_smtp_failure_reports_false(monkeypatch):
    _configure_smtp(monkeypatch)

    def broken(*args, **kwargs):
        raise OSError('connection refused')

    monkeypatch.setattr(smtplib, 'SMTP', broken)
    assert send_email('a@example.com', 'Hi', 'body') is False
