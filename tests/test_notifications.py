import notifications
from config import Config


class FakeSMTP:
    instances = []

    def __init__(self, host, port, timeout=None):
        self.host, self.port, self.timeout = host, port, timeout
        self.sent = []
        self.tls = False
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        self.tls = True

    def login(self, user, password):
        self.user = user

    def send_message(self, msg):
        self.sent.append(msg)


def test_render_email_escapes_content():
    body = notifications.render_email(
        title="You won <b>", message="Bid of $10.00", details="soon",
        action_url="https://pay.example.com/p/ABC?digital=1",
    )
    assert "You won &lt;b&gt;" in body
    assert 'href="https://pay.example.com/p/ABC?digital=1"' in body
    assert f"Sent by {Config.APP_NAME}" in body


def test_send_email_skips_without_smtp(monkeypatch):
    monkeypatch.setattr(Config, "SMTP_HOST", "")
    FakeSMTP.instances = []
    monkeypatch.setattr(notifications.smtplib, "SMTP", FakeSMTP)
    notifications.send_email("a@example.com", "hi", "<p>hi</p>")
    assert FakeSMTP.instances == []


def test_send_email_over_smtp(monkeypatch):
    monkeypatch.setattr(Config, "SMTP_HOST", "smtp.example.com")
    monkeypatch.setattr(Config, "SMTP_USERNAME", "mailer")
    monkeypatch.setattr(Config, "SMTP_TIMEOUT", 5.0)
    FakeSMTP.instances = []
    monkeypatch.setattr(notifications.smtplib, "SMTP", FakeSMTP)

    notifications.send_email("winner@example.com", "You won", "<p>won</p>", reply_to="seller@example.com")

    smtp = FakeSMTP.instances[0]
    assert smtp.host == "smtp.example.com"
    assert smtp.timeout == 5.0
    assert smtp.tls is True
    msg = smtp.sent[0]
    assert msg["To"] == "winner@example.com"
    assert msg["Reply-To"] == "seller@example.com"
    assert msg["Subject"] == "You won"
