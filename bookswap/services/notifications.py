"""
Email notifications.

`Mailer` renders HTML emails from ``templates/email`` and hands them to SMTP.
The sign-up code goes out synchronously (`Mailer.send`); request notifications
are fire-and-forget (`Mailer.dispatch`) on a small thread pool and every SMTP
call is bounded by ``MAIL_TIMEOUT``.

With ``MAIL_SUPPRESS_SEND`` messages are appended to the per-app outbox
instead of being delivered.
"""
from __future__ import annotations

import logging
import smtplib
from concurrent.futures import Future, ThreadPoolExecutor
from email.message import EmailMessage
from email.utils import make_msgid
from functools import partial

from flask import current_app, render_template

logger = logging.getLogger(__name__)


def _deliver(msg: EmailMessage, settings: dict) -> None:
    with smtplib.SMTP(settings["MAIL_SERVER"], settings["MAIL_PORT"], timeout=settings["MAIL_TIMEOUT"]) as smtp:
        if settings["MAIL_USE_TLS"]:
            smtp.starttls()
        if settings["MAIL_USERNAME"]:
            smtp.login(settings["MAIL_USERNAME"], settings["MAIL_PASSWORD"] or "")
        smtp.send_message(msg)


def _log_outcome(msg: EmailMessage, future: Future) -> None:
    exc = future.exception()
    if exc is not None:
        logger.error("MAIL FAILED: to=%s subject=%r error=%s", msg["To"], msg["Subject"], exc)
    else:
        logger.info("MAIL SENT: to=%s subject=%r", msg["To"], msg["Subject"])


class Mailer:
    _SETTINGS = (
        "MAIL_SERVER",
        "MAIL_PORT",
        "MAIL_USE_TLS",
        "MAIL_USERNAME",
        "MAIL_PASSWORD",
        "MAIL_TIMEOUT",
    )

    def __init__(self, app=None):
        self._executor: ThreadPoolExecutor | None = None
        if app is not None:
            self.init_app(app)

    def init_app(self, app) -> None:
        app.extensions["mailer"] = self
        app.extensions.setdefault("mail_outbox", [])
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=app.config.get("MAIL_MAX_WORKERS", 2),
                thread_name_prefix="bookswap-mail",
            )

    @property
    def outbox(self) -> list[EmailMessage]:
        return current_app.extensions.setdefault("mail_outbox", [])

    def build(self, *, to: str, subject: str, template: str, **context) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = current_app.config["MAIL_DEFAULT_SENDER"]
        msg["To"] = to
        msg["Subject"] = subject
        msg["Message-ID"] = make_msgid(domain="bookswap.local")
        msg.set_content(f"{subject}\n\nOpen this message in an HTML capable client.")
        msg.add_alternative(render_template(f"email/{template}", **context), subtype="html")
        return msg

    def _settings(self) -> dict:
        return {k: current_app.config[k] for k in self._SETTINGS}

    def send(self, msg: EmailMessage) -> None:
        """Deliver now. Raises on SMTP failure or timeout."""
        if current_app.config.get("MAIL_SUPPRESS_SEND"):
            self.outbox.append(msg)
            return
        _deliver(msg, self._settings())
        current_app.logger.info("MAIL SENT: to=%s subject=%r", msg["To"], msg["Subject"])

    def dispatch(self, msg: EmailMessage) -> Future | None:
        """Queue delivery and return immediately; the outcome is only logged."""
        if current_app.config.get("MAIL_SUPPRESS_SEND"):
            self.outbox.append(msg)
            return None
        if self._executor is None:
            raise RuntimeError("Mailer used before init_app()")
        future = self._executor.submit(_deliver, msg, self._settings())
        future.add_done_callback(partial(_log_outcome, msg))
        return future


def _mailer() -> Mailer:
    return current_app.extensions["mailer"]


def send_otp(email: str, code: str, name: str, ttl_minutes: int) -> None:
    msg = _mailer().build(
        to=email,
        subject="Your BookSwap Verification Code",
        template="otp.html",
        name=name,
        code=code,
        ttl_minutes=ttl_minutes,
    )
    _mailer().send(msg)


def _notify(*, to: str, subject: str, template: str, **context) -> bool:
    # best-effort: nunca debe romper la operación que lo llama
    try:
        _mailer().dispatch(_mailer().build(to=to, subject=subject, template=template, **context))
        return True
    except Exception:
        current_app.logger.exception("NOTIFY FAILED: to=%s template=%s", to, template)
        return False


def notify_new_request(owner_email: str, requester_name: str, book_title: str, message: str | None) -> bool:
    return _notify(
        to=owner_email,
        subject=f"New Book Request: {book_title}",
        template="new_request.html",
        requester_name=requester_name,
        book_title=book_title,
        message=message,
    )


def notify_accepted(
    requester_email: str,
    requester_name: str,
    book_title: str,
    owner_name: str,
    response_message: str | None,
) -> bool:
    return _notify(
        to=requester_email,
        subject=f"Great News! Your Book Request Was Accepted: {book_title}",
        template="request_accepted.html",
        requester_name=requester_name,
        book_title=book_title,
        owner_name=owner_name,
        response_message=response_message,
    )


def notify_declined(
    requester_email: str,
    requester_name: str,
    book_title: str,
    owner_name: str,
    response_message: str | None,
) -> bool:
    return _notify(
        to=requester_email,
        subject=f"Update on Your Book Request: {book_title}",
        template="request_declined.html",
        requester_name=requester_name,
        book_title=book_title,
        owner_name=owner_name,
        response_message=response_message,
    )
