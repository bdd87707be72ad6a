# contact_api/core/mailer.py
import asyncio
import logging
import re
import smtplib
import ssl
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Any, Dict, Optional, Protocol

import httpx

from contact_api.core.errors import DeliveryError
from contact_api.core.settings import Settings
from contact_api.lib.validation import Submission

log = logging.getLogger("uvicorn.error")

_BRACKETED = re.compile(r"<([^>]+)>")
_LINE_BREAKS = re.compile(r"\s*[\r\n]+\s*")


@dataclass(frozen=True)
class OutgoingMessage:
    sender: str
    to: str
    reply_to: str
    subject: str
    body: str


def extract_email(value: Optional[str]) -> Optional[str]:
    """'Name <addr@host>' -> 'addr@host'; bare addresses are returned unchanged."""
    m = _BRACKETED.search(value or "")
    return m.group(1) if m else value


def header_value(value: str) -> str:
    """Fold CR/LF runs into single spaces so user text is safe in a mail header."""
    return _LINE_BREAKS.sub(" ", value).strip()


def build_message(submission: Submission, settings: Settings) -> OutgoingMessage:
    body = (
        "New contact form submission\n"
        "\n"
        f"Name: {submission.name}\n"
        f"Email: {submission.email}\n"
        f"Subject: {submission.subject}\n"
        f"Source: {submission.source or 'form'}\n"
        "\n"
        "Message:\n"
        f"{submission.message}"
    )
    return OutgoingMessage(
        sender=settings.from_email,
        to=settings.to_email,
        reply_to=f"{header_value(submission.name)} <{submission.email}>",
        subject=header_value(f"{settings.subject_prefix} {submission.subject}"),
        body=body.strip(),
    )


class Mailer(Protocol):
    name: str

    async def send(self, message: OutgoingMessage) -> None: ...

    async def verify(self) -> Dict[str, Any]: ...

    async def close(self) -> None: ...


# -----------------------
# SMTP
# -----------------------
class SmtpMailer:
    """
    Sends through one pooled SMTP connection shared by the whole process.

    smtplib is blocking, so socket work runs in a worker thread; the asyncio
    lock keeps concurrent requests from interleaving on the single connection.
    The connection is recycled after `max_messages` sends.
    """

    name = "smtp"

    def __init__(
        self,
        host: str,
        port: int,
        user: str,
        password: str,
        require_tls: bool = True,
        timeout: float = 20.0,
        verify_timeout: float = 12.0,
        max_messages: int = 50,
    ):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.require_tls = require_tls
        self.timeout = timeout
        self.verify_timeout = verify_timeout
        self.max_messages = max_messages
        self._conn: Optional[smtplib.SMTP] = None
        self._sent_on_conn = 0
        self._lock = asyncio.Lock()

    @property
    def implicit_tls(self) -> bool:
        return self.port == 465

    def _tls_context(self) -> ssl.SSLContext:
        ctx = ssl.create_default_context()
        ctx.minimum_version = ssl.TLSVersion.TLSv1_2
        return ctx

    def _open(self) -> smtplib.SMTP:
        if self.implicit_tls:
            conn = smtplib.SMTP_SSL(
                self.host, self.port, timeout=self.timeout, context=self._tls_context()
            )
        else:
            conn = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
            try:
                conn.ehlo()
                if conn.has_extn("starttls"):
                    conn.starttls(context=self._tls_context())
                    conn.ehlo()
                elif self.require_tls:
                    raise smtplib.SMTPNotSupportedError(
                        f"{self.host}:{self.port} does not offer STARTTLS"
                    )
            except Exception:
                self._discard(conn)
                raise
        try:
            conn.login(self.user, self.password)
        except Exception:
            self._discard(conn)
            raise
        return conn

    @staticmethod
    def _discard(conn: Optional[smtplib.SMTP]) -> None:
        if conn is None:
            return
        try:
            conn.quit()
        except (smtplib.SMTPException, OSError):
            conn.close()

    def _reset(self) -> None:
        conn, self._conn = self._conn, None
        self._sent_on_conn = 0
        self._discard(conn)

    def _send_sync(self, message: OutgoingMessage) -> None:
        msg = EmailMessage()
        msg["From"] = message.sender
        msg["To"] = message.to
        msg["Reply-To"] = message.reply_to
        msg["Subject"] = message.subject
        msg.set_content(message.body)

        if self._conn is None:
            self._conn = self._open()
            self._sent_on_conn = 0
        try:
            self._conn.send_message(msg)
        except (smtplib.SMTPException, OSError):
            self._reset()
            raise
        self._sent_on_conn += 1
        if self._sent_on_conn >= self.max_messages:
            self._reset()

    def _verify_sync(self) -> None:
        self._discard(self._open())

    async def send(self, message: OutgoingMessage) -> None:
        async with self._lock:
            try:
                await asyncio.to_thread(self._send_sync, message)
            except (smtplib.SMTPException, OSError) as e:
                raise DeliveryError(f"SMTP error: {e}", backend=self.name) from e
            except ValueError as e:
                # EmailMessage refuses malformed header values
                raise DeliveryError(f"Invalid message header: {e}", backend=self.name) from e

    async def verify(self) -> Dict[str, Any]:
        try:
            await asyncio.wait_for(asyncio.to_thread(self._verify_sync), self.verify_timeout)
        except asyncio.TimeoutError as e:
            raise DeliveryError("SMTP verify timeout", backend=self.name) from e
        except (smtplib.SMTPException, OSError) as e:
            raise DeliveryError(f"SMTP error: {e}", backend=self.name) from e
        return {"result": True}

    async def close(self) -> None:
        async with self._lock:
            if self._conn is not None:
                await asyncio.to_thread(self._reset)


# -----------------------
# Brevo HTTP API
# -----------------------
class BrevoMailer:
    name = "brevo-api"

    def __init__(
        self,
        api_key: str,
        url: str = "https://api.brevo.com/v3/smtp/email",
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.url = url
        self.timeout = timeout
        self._transport = transport

    def _payload(self, message: OutgoingMessage) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "sender": {"email": extract_email(message.sender)},
            "to": [{"email": extract_email(message.to)}],
            "subject": message.subject,
            "textContent": message.body,
        }
        if message.reply_to:
            payload["replyTo"] = {"email": extract_email(message.reply_to)}
        return payload

    async def send(self, message: OutgoingMessage) -> None:
        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.post(
                    self.url,
                    headers={
                        "api-key": self.api_key,
                        "accept": "application/json",
                        "content-type": "application/json",
                    },
                    json=self._payload(message),
                    timeout=self.timeout,
                )
        except httpx.HTTPError as e:
            raise DeliveryError(f"Brevo API request failed: {e}", backend=self.name) from e

        if not response.is_success:
            raise DeliveryError(
                f"Brevo API {response.status_code}: {response.text}", backend=self.name
            )

    async def verify(self) -> Dict[str, Any]:
        # no send; a configured key is taken as good enough
        return {}

    async def close(self) -> None:
        return None


def build_mailer(settings: Settings) -> Mailer:
    if settings.uses_brevo:
        return BrevoMailer(
            api_key=settings.brevo_api_key,
            url=settings.brevo_api_url,
            timeout=settings.brevo_timeout,
        )
    settings.require_mail_backend()
    return SmtpMailer(
        host=settings.smtp_host,
        port=settings.smtp_port,
        user=settings.smtp_user,
        password=settings.smtp_pass,
        require_tls=settings.smtp_require_tls,
        timeout=settings.smtp_timeout,
        verify_timeout=settings.smtp_verify_timeout,
        max_messages=settings.smtp_max_messages,
    )


__all__ = [
    "OutgoingMessage",
    "Mailer",
    "SmtpMailer",
    "BrevoMailer",
    "build_message",
    "build_mailer",
    "extract_email",
    "header_value",
]
