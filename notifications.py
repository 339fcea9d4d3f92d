"""
Outbound email: HTML template rendering and SMTP delivery.

send_email raises on delivery failure; callers decide whether that matters.
When SMTP_HOST is not configured the message is only logged.
"""

import html
import logging
import smtplib
from email.message import EmailMessage
from typing import Optional

from config import Config

logger = logging.getLogger(__name__)

EMAIL_TEMPLATE = """<!DOCTYPE html>
<html>
  <head>
    <style>
      body {{ font-family: Arial, sans-serif; background-color: #f7fafc; color: #2d3748; margin: 0; padding: 0; }}
      .container {{ background: white; padding: 20px; border-radius: 8px; box-shadow: 0 4px 12px rgba(0, 0, 0, 0.1); max-width: 600px; margin: 24px auto; text-align: center; }}
      .title {{ font-size: 24px; font-weight: bold; margin-bottom: 16px; }}
      .message {{ font-size: 16px; margin-bottom: 16px; }}
      .details {{ font-size: 14px; color: #4a5568; margin-top: 16px; }}
      .button {{ display: inline-block; padding: 12px 20px; background: #2563eb; color: #ffffff; border-radius: 6px; text-decoration: none; }}
      .footer {{ margin-top: 24px; font-size: 12px; color: #a0aec0; }}
    </style>
  </head>
  <body>
    <div class="container">
      <div class="title">{title}</div>
      <div class="message">{message}</div>
      {action}
      <div class="details">{details}</div>
      <div class="footer">Sent by {app_name}</div>
    </div>
  </body>
</html>
"""


def render_email(title: str, message: str, details: str = "", action_url: Optional[str] = None, action_label: str = "Complete purchase") -> str:
    action = ""
    if action_url:
        action = f'<p><a class="button" href="{html.escape(action_url, quote=True)}">{html.escape(action_label)}</a></p>'
    return EMAIL_TEMPLATE.format(
        title=html.escape(title),
        message=html.escape(message),
        details=html.escape(details),
        action=action,
        app_name=html.escape(Config.APP_NAME),
    )


def send_email(to: str, subject: str, html_body: str, reply_to: Optional[str] = None) -> None:
    if not Config.SMTP_HOST:
        logger.info("SMTP not configured, skipping delivery to %s: %s", to, subject)
        return

    msg = EmailMessage()
    msg["From"] = Config.EMAIL_FROM
    msg["To"] = to
    msg["Subject"] = subject
    if reply_to:
        msg["Reply-To"] = reply_to
    msg.set_content("This message requires an HTML-capable email client.")
    msg.add_alternative(html_body, subtype="html")

    with smtplib.SMTP(Config.SMTP_HOST, Config.SMTP_PORT, timeout=Config.SMTP_TIMEOUT) as smtp:
        if Config.SMTP_USE_TLS:
            smtp.starttls()
        if Config.SMTP_USERNAME:
            smtp.login(Config.SMTP_USERNAME, Config.SMTP_PASSWORD)
        smtp.send_message(msg)
    logger.info("Email sent to %s: %s", to, subject)
