from __future__ import annotations

import logging
import smtplib
import ssl
import threading
import time
from collections import deque
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Callable, Mapping, Protocol

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from ..records import Group, Participant
from .links import participant_url

log = logging.getLogger(__name__)


class NotificationError(RuntimeError):
    pass


@dataclass(frozen=True)
class OutgoingMessage:
    to: str
    subject: str
    body: str


@dataclass
class NotifyReport:
    sent: int = 0
    skipped: int = 0
    failed: int = 0

    def to_dict(self) -> dict:
        return {"sent": self.sent, "skipped": self.skipped, "failed": self.failed}


class Sender(Protocol):
    def send(self, message: OutgoingMessage) -> None:
        ...


class ConsoleSender:
    """Logs messages instead of sending them. Keeps the most recent ones in outbox."""

    def __init__(self, from_addr: str, keep: int = 100):
        self.from_addr = from_addr
        self.outbox: deque[OutgoingMessage] = deque(maxlen=keep)

    def send(self, message: OutgoingMessage) -> None:
        self.outbox.append(message)
        log.info("---- Email (SIMULATED SEND) ----\nFrom: %s\nTo: %s\nSubject: %s\n\n%s",
                 self.from_addr, message.to, message.subject, message.body)


class SmtpSender:
    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        from_addr: str,
        use_starttls: bool = True,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_addr = from_addr
        self.use_starttls = use_starttls

    def _message(self, message: OutgoingMessage) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = message.subject
        msg["From"] = self.from_addr
        msg["To"] = message.to
        msg.set_content(message.body)
        return msg

    def send(self, message: OutgoingMessage) -> None:
        context = ssl.create_default_context()
        if self.use_starttls:
            with smtplib.SMTP(self.host, self.port) as smtp:
                smtp.ehlo()
                smtp.starttls(context=context)
                smtp.ehlo()
                if self.username:
                    smtp.login(self.username, self.password)
                smtp.send_message(self._message(message))
        else:
            with smtplib.SMTP_SSL(self.host, self.port, context=context) as smtp:
                if self.username:
                    smtp.login(self.username, self.password)
                smtp.send_message(self._message(message))


class SendGridSender:
    def __init__(self, api_key: str, from_addr: str):
        if not api_key or not from_addr:
            raise NotificationError("SendGrid needs SENDGRID_API_KEY and SANTA_MAIL_FROM.")
        self.api_key = api_key
        self.from_addr = from_addr

    def send(self, message: OutgoingMessage) -> None:
        mail = Mail(
            from_email=self.from_addr,
            to_emails=message.to,
            subject=message.subject,
            plain_text_content=message.body,
        )
        response = SendGridAPIClient(self.api_key).send(mail)
        if response.status_code >= 400:
            raise NotificationError(f"SendGrid responded with {response.status_code}")


def build_sender(config: Mapping) -> Sender:
    backend = (config.get("SANTA_MAIL_BACKEND") or "console").strip().lower()
    from_addr = config.get("SANTA_MAIL_FROM") or ""

    if backend == "console":
        return ConsoleSender(from_addr)
    if backend == "smtp":
        host = config.get("SANTA_SMTP_HOST") or ""
        if not host:
            raise NotificationError("SMTP mail backend needs SANTA_SMTP_HOST.")
        port = int(config.get("SANTA_SMTP_PORT") or 587)
        starttls = config.get("SANTA_SMTP_USE_STARTTLS")
        if starttls is None:
            starttls = port == 587
        return SmtpSender(
            host=host,
            port=port,
            username=config.get("SANTA_SMTP_USERNAME") or "",
            password=config.get("SANTA_SMTP_PASSWORD") or "",
            from_addr=from_addr or (config.get("SANTA_SMTP_USERNAME") or ""),
            use_starttls=bool(starttls),
        )
    if backend == "sendgrid":
        return SendGridSender(config.get("SENDGRID_API_KEY") or "", from_addr)
    raise NotificationError(f"Unknown mail backend {backend!r}.")


def make_message(group: Group, participant: Participant, link: str) -> OutgoingMessage:
    name = participant.name or "there"
    body = (
        f"Hi {name},\n\n"
        f"{group.organizer_name} added you to the Secret Santa group \"{group.group_name}\".\n"
        f"Open your personal link to see who you are buying a gift for:\n\n"
        f"    {link}\n\n"
        f"Keep the link to yourself, and keep it a secret!\n"
    )
    return OutgoingMessage(
        to=participant.email,
        subject=f"[{group.group_name}] Your Secret Santa assignment",
        body=body,
    )


class NotificationDispatcher:
    """
    Sends each participant their personal link, at most one message per
    min_interval seconds. Participants without an e-mail are skipped.
    """

    def __init__(
        self,
        sender: Sender,
        min_interval: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.sender = sender
        self.min_interval = max(0.0, float(min_interval))
        self.clock = clock
        self.sleep = sleep
        self._last_sent: float | None = None
        self._lock = threading.Lock()

    def _throttle(self) -> None:
        if self._last_sent is None or not self.min_interval:
            return
        wait = self.min_interval - (self.clock() - self._last_sent)
        if wait > 0:
            self.sleep(wait)

    def notify_group(self, group: Group, base_url: str) -> NotifyReport:
        # one batch at a time so the interval holds across requests
        with self._lock:
            report = self._notify(group, base_url)

        log.info(
            "Notified group %s: %d sent, %d skipped, %d failed",
            group.code, report.sent, report.skipped, report.failed,
        )
        return report

    def _notify(self, group: Group, base_url: str) -> NotifyReport:
        report = NotifyReport()
        for p in group.participants:
            if not p.email:
                report.skipped += 1
                continue

            message = make_message(group, p, participant_url(base_url, group, p.id))
            self._throttle()
            try:
                self.sender.send(message)
            except Exception as exc:
                log.warning("Sending notification to participant %s of group %s failed: %s", p.id, group.code, exc)
                report.failed += 1
            else:
                report.sent += 1
            finally:
                self._last_sent = self.clock()

        return report
