# Overview: Outbound transactional mail, used only for password reset notices.

"""
Mail delivery is a collaborator: anything with
``send(recipient, subject, body) -> bool`` can be installed on the app.

- LoggingMailSender (default when MAIL_SERVER is unset) writes the message
  to the application log instead of sending it.
- SmtpMailSender delivers through the configured SMTP relay.
"""

from __future__ import annotations

import smtplib
from email.message import EmailMessage

from flask import Flask, current_app

MAIL_SENDER_KEY = "stockroom.mail_sender"


class LoggingMailSender:
    def send(self, recipient: str, subject: str, body: str) -> bool:
        current_app.logger.info("Mail to %s: %s\n%s", recipient, subject, body)
        return True


class SmtpMailSender:
    def __init__(
        self,
        host: str,
        port: int,
        *,
        use_tls: bool = True,
        username: str | None = None,
        password: str | None = None,
        default_sender: str,
        timeout: float = 10.0,
    ):
        self.host = host
        self.port = port
        self.use_tls = use_tls
        self.username = username
        self.password = password
        self.default_sender = default_sender
        self.timeout = timeout

    def send(self, recipient: str, subject: str, body: str) -> bool:
        message = EmailMessage()
        message["From"] = self.default_sender
        message["To"] = recipient
        message["Subject"] = subject
        message.set_content(body)

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                if self.use_tls:
                    smtp.starttls()
                if self.username:
                    smtp.login(self.username, self.password or "")
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError):
            current_app.logger.exception("Failed to send mail to %s", recipient)
            return False
        return True


def init_mail(app: Flask) -> None:
    """Install the mail sender for this app based on its config."""
    if app.config.get("MAIL_SERVER"):
        sender = SmtpMailSender(
            app.config["MAIL_SERVER"],
            app.config["MAIL_PORT"],
            use_tls=app.config["MAIL_USE_TLS"],
            username=app.config.get("MAIL_USERNAME"),
            password=app.config.get("MAIL_PASSWORD"),
            default_sender=app.config["MAIL_DEFAULT_SENDER"],
        )
    else:
        sender = LoggingMailSender()
    app.extensions[MAIL_SENDER_KEY] = sender


def send_mail(recipient: str, subject: str, body: str) -> bool:
    return current_app.extensions[MAIL_SENDER_KEY].send(recipient, subject, body)
