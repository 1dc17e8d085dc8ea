"""
Supplier notifications for submitted orders.

Order lines are grouped into one bucket per supplier and each bucket is mailed
through the restaurant's own SMTP account. Sends run one supplier at a time;
a failure for one supplier is recorded and the next supplier is still tried.
"""
import logging
import smtplib
import threading
from dataclasses import dataclass, field
from datetime import datetime
from email.message import EmailMessage
from email.utils import formataddr, make_msgid
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Protocol, Tuple

from fastapi.concurrency import run_in_threadpool
from jinja2 import BaseLoader, Environment

from kitchen_orders.core import config
from kitchen_orders.core.errors import ConfigurationError, TransportError, ValidationError
from kitchen_orders.models.restaurant import default_email_config
from kitchen_orders.schemas.common import loaded

log = logging.getLogger(__name__)

REQUIRED_MAIL_FIELDS = ("sender_name", "sender_email", "smtp_user", "smtp_password")
UNEXPECTED_FAILURE_CODE = "notification_error"


# ========= Settings =========

@dataclass(frozen=True)
class MailSettings:
    sender_name: str
    sender_email: str
    smtp_host: str
    smtp_port: int
    smtp_user: str
    smtp_password: str
    use_ssl: bool = False

    @property
    def from_address(self) -> str:
        return formataddr((self.sender_name, self.sender_email))


def _fallback_settings() -> Optional[MailSettings]:
    if config.is_production() or not (config.FALLBACK_SMTP_USER and config.FALLBACK_SMTP_PASSWORD):
        return None
    return MailSettings(
        sender_name=config.FALLBACK_SENDER_NAME,
        sender_email=config.FALLBACK_SMTP_USER,
        smtp_host=config.FALLBACK_SMTP_HOST,
        smtp_port=config.FALLBACK_SMTP_PORT,
        smtp_user=config.FALLBACK_SMTP_USER,
        smtp_password=config.FALLBACK_SMTP_PASSWORD,
        use_ssl=config.FALLBACK_SMTP_PORT == 465,
    )


def mail_settings_for(restaurant) -> MailSettings:
    """
    Reads the restaurant's embedded mail settings.

    Raises ConfigurationError naming the missing fields. Outside production a
    fallback account from the process environment is used instead, if one is set.
    """
    settings = {**default_email_config(), **(restaurant.email_config or {})}
    missing = [name for name in REQUIRED_MAIL_FIELDS if not str(settings.get(name) or "").strip()]
    if not missing:
        return MailSettings(
            sender_name=settings["sender_name"],
            sender_email=settings["sender_email"],
            smtp_host=settings["smtp_host"],
            smtp_port=int(settings["smtp_port"]),
            smtp_user=settings["smtp_user"],
            smtp_password=settings["smtp_password"],
            use_ssl=bool(settings["use_ssl"]),
        )

    fallback = _fallback_settings()
    if fallback is not None:
        log.warning(f"Restaurant {restaurant.id} mail settings incomplete ({', '.join(missing)}); using fallback account")
        return fallback
    raise ConfigurationError(
        f"Incomplete email configuration for restaurant '{restaurant.name}': missing {', '.join(missing)}"
    )


# ========= Transports =========

class MailTransport(Protocol):
    def send(self, message: EmailMessage) -> str:
        """Delivers the message and returns its Message-ID."""


class SMTPTransport:
    """
    Keeps one authenticated SMTP connection and reopens it when it goes stale.

    Sends arrive from threadpool workers; one SMTP session cannot interleave
    commands, so every use of the connection holds the lock.
    """

    def __init__(self, settings: MailSettings, timeout: int = config.SMTP_TIMEOUT):
        self.settings = settings
        self.timeout = timeout
        self._smtp: Optional[smtplib.SMTP] = None
        self._lock = threading.Lock()

    def _connect(self) -> smtplib.SMTP:
        s = self.settings
        try:
            if s.use_ssl:
                smtp = smtplib.SMTP_SSL(s.smtp_host, s.smtp_port, timeout=self.timeout)
            else:
                smtp = smtplib.SMTP(s.smtp_host, s.smtp_port, timeout=self.timeout)
                smtp.ehlo()
                if smtp.has_extn("starttls"):
                    smtp.starttls()
                    smtp.ehlo()
        except (smtplib.SMTPException, OSError) as e:
            raise TransportError(f"Could not connect to {s.smtp_host}:{s.smtp_port}: {e}")

        try:
            smtp.login(s.smtp_user, s.smtp_password)
        except (smtplib.SMTPException, OSError) as e:
            smtp.close()
            raise TransportError(f"SMTP authentication failed for {s.smtp_user}: {e}")
        return smtp

    def _connection(self) -> smtplib.SMTP:
        if self._smtp is not None:
            try:
                status = self._smtp.noop()[0]
            except (smtplib.SMTPException, OSError):
                status = -1
            if status == 250:
                return self._smtp
            self._disconnect()
        self._smtp = self._connect()
        return self._smtp

    def send(self, message: EmailMessage) -> str:
        with self._lock:
            smtp = self._connection()
            try:
                smtp.send_message(message)
            except (smtplib.SMTPException, OSError) as e:
                self._disconnect()
                raise TransportError(f"Sending to {message['To']} failed: {e}")
        return message["Message-ID"]

    def close(self):
        with self._lock:
            self._disconnect()

    def _disconnect(self):
        if self._smtp is None:
            return
        try:
            self._smtp.quit()
        except (smtplib.SMTPException, OSError):
            self._smtp.close()
        self._smtp = None


class TransportRegistry:
    """
    Per-restaurant cache of transport handles, owned by the notifier.

    Handles live for the whole process; nothing invalidates them when the stored
    credentials change except an explicit evict().
    """

    def __init__(self, factory: Callable[[MailSettings], MailTransport] = SMTPTransport):
        self._factory = factory
        self._transports: Dict[str, MailTransport] = {}

    def get(self, restaurant_id, settings: MailSettings) -> MailTransport:
        key = str(restaurant_id)
        transport = self._transports.get(key)
        if transport is None:
            transport = self._factory(settings)
            self._transports[key] = transport
        return transport

    def register(self, restaurant_id, transport: MailTransport):
        self._transports[str(restaurant_id)] = transport

    def evict(self, restaurant_id):
        transport = self._transports.pop(str(restaurant_id), None)
        if transport is not None and hasattr(transport, "close"):
            transport.close()

    def clear(self):
        for key in list(self._transports):
            self.evict(key)

    def __contains__(self, restaurant_id) -> bool:
        return str(restaurant_id) in self._transports

    def __len__(self) -> int:
        return len(self._transports)


# ========= Grouping =========

@dataclass(frozen=True)
class BucketLine:
    name: str
    quantity: int
    unit: Optional[str] = None


@dataclass
class SupplierBucket:
    supplier: object
    lines: List[BucketLine] = field(default_factory=list)

    @property
    def supplier_id(self) -> str:
        return str(self.supplier.id)


@dataclass(frozen=True)
class UnresolvedLine:
    item_id: str
    reason: str


def group_lines_by_supplier(lines: Iterable, items_by_id: Mapping[str, object]) -> Tuple[Dict[str, SupplierBucket], List[UnresolvedLine]]:
    """
    Buckets order lines by the supplier of their item, keeping submission order.

    ``lines`` need ``item_id``, ``quantity`` and ``unit``; ``items_by_id`` maps
    str(item id) to items with their supplier already fetched.
    """
    buckets: Dict[str, SupplierBucket] = {}
    unresolved: List[UnresolvedLine] = []

    for line in lines:
        item_id = str(line.item_id)
        item = items_by_id.get(item_id)
        if item is None:
            unresolved.append(UnresolvedLine(item_id, "item not found"))
            continue
        supplier = loaded(item, "supplier")
        if supplier is None:
            unresolved.append(UnresolvedLine(item_id, f"no supplier for item {item.name}"))
            continue

        bucket = buckets.setdefault(str(supplier.id), SupplierBucket(supplier=supplier))
        bucket.lines.append(BucketLine(name=item.name, quantity=line.quantity, unit=line.unit or item.unit))

    return buckets, unresolved


# ========= Templates =========

_html_env = Environment(loader=BaseLoader(), autoescape=True, trim_blocks=True, lstrip_blocks=True)
_text_env = Environment(loader=BaseLoader(), autoescape=False)

ORDER_HTML = _html_env.from_string(
    "<h2>New order request from {{ restaurant.name }}</h2>\n"
    "<p>Dear {{ supplier.name }}, please supply the following items:</p>\n"
    "<table border=\"1\" cellpadding=\"5\" cellspacing=\"0\">\n"
    "<tr><th>Item</th><th>Quantity</th></tr>\n"
    "{% for line in lines %}"
    "<tr><td>{{ line.name }}</td><td>{{ line.quantity }}{% if line.unit %} {{ line.unit }}{% endif %}</td></tr>\n"
    "{% endfor %}"
    "</table>\n"
    "{% if note %}<p><strong>Notes:</strong> {{ note }}</p>\n{% endif %}"
    "<p>Thank you for your service.</p>\n"
    "<p>{{ sender_name }}{% if restaurant.phone %}<br>{{ restaurant.phone }}{% endif %}</p>\n"
)

ORDER_TEXT = _text_env.from_string(
    "New order request from {{ restaurant.name }}\n\n"
    "Dear {{ supplier.name }}, please supply the following items:\n\n"
    "{% for line in lines %}"
    "- {{ line.name }}: {{ line.quantity }}{% if line.unit %} {{ line.unit }}{% endif %}\n"
    "{% endfor %}"
    "{% if note %}\nNotes: {{ note }}\n{% endif %}"
    "\nThank you for your service.\n{{ sender_name }}\n"
)


def _check_headers(**headers):
    """Line breaks in a header value would end the header; such settings are unusable."""
    for name, value in headers.items():
        if value and ("\r" in value or "\n" in value):
            raise ConfigurationError(f"Line breaks are not allowed in the {name} of outgoing mail")


def _message(settings: MailSettings, recipient: str, subject: str, text: str, html: str) -> EmailMessage:
    _check_headers(sender=settings.sender_name, recipient=recipient, subject=subject)
    message = EmailMessage()
    message["From"] = settings.from_address
    message["To"] = recipient
    message["Subject"] = subject
    message["Message-ID"] = make_msgid(domain=settings.sender_email.rpartition("@")[2] or None)
    message.set_content(text)
    message.add_alternative(html, subtype="html")
    return message


def render_supplier_message(restaurant, settings: MailSettings, bucket: SupplierBucket, note: Optional[str] = None) -> EmailMessage:
    ctx = {
        "restaurant": restaurant,
        "supplier": bucket.supplier,
        "lines": bucket.lines,
        "note": (note or "").strip(),
        "sender_name": settings.sender_name,
    }
    return _message(
        settings,
        recipient=bucket.supplier.email,
        subject=f"New order - {restaurant.name}",
        text=ORDER_TEXT.render(**ctx),
        html=ORDER_HTML.render(**ctx),
    )


def render_test_message(restaurant, settings: MailSettings) -> EmailMessage:
    sent_at = datetime.now().strftime("%d/%m/%Y %H:%M")
    text = f"This is a test email for the mail configuration of {restaurant.name}.\nTime: {sent_at}\n"
    html = _html_env.from_string(
        "<h2>Test email</h2><p>Mail configuration of {{ name }} works.</p><p>Time: {{ sent_at }}</p>"
    ).render(name=restaurant.name, sent_at=sent_at)
    return _message(settings, settings.sender_email, "Test email - mail configuration", text, html)


# ========= Dispatch =========

@dataclass(frozen=True)
class SentNotification:
    supplier_id: str
    supplier_name: str
    recipient: str
    message_id: Optional[str]


@dataclass(frozen=True)
class NotificationFailure:
    supplier_id: Optional[str]
    supplier_name: Optional[str]
    code: str
    message: str


@dataclass
class DispatchReport:
    sent: List[SentNotification] = field(default_factory=list)
    failed: List[NotificationFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


class SupplierNotifier:
    def __init__(self, registry: TransportRegistry):
        self.registry = registry

    def _transport(self, restaurant) -> Tuple[MailSettings, MailTransport]:
        settings = mail_settings_for(restaurant)
        return settings, self.registry.get(restaurant.id, settings)

    async def _send_to_supplier(self, restaurant, bucket: SupplierBucket, note: Optional[str]) -> SentNotification:
        supplier = bucket.supplier
        if not supplier.email:
            raise ValidationError(f"No email configured for supplier {supplier.name}")

        settings, transport = self._transport(restaurant)
        message = render_supplier_message(restaurant, settings, bucket, note)
        message_id = await run_in_threadpool(transport.send, message)
        return SentNotification(bucket.supplier_id, supplier.name, supplier.email, message_id)

    async def notify_suppliers(
        self,
        restaurant,
        buckets: Mapping[str, SupplierBucket],
        notes: Optional[Mapping[str, str]] = None,
        unresolved: Iterable[UnresolvedLine] = (),
    ) -> DispatchReport:
        """Sends one message per supplier bucket, sequentially, continuing past failures."""
        notes = notes or {}
        report = DispatchReport()

        for line in unresolved:
            log.error(f"Order line for item {line.item_id} not notified: {line.reason}")
            report.failed.append(NotificationFailure(None, None, ValidationError.code, f"Item {line.item_id}: {line.reason}"))

        for supplier_id, bucket in buckets.items():
            try:
                sent = await self._send_to_supplier(restaurant, bucket, notes.get(supplier_id))
            except (ConfigurationError, TransportError, ValidationError) as exc:
                log.error(f"Notification to supplier {bucket.supplier.name} ({supplier_id}) for restaurant {restaurant.id} failed: {exc.message}")
                report.failed.append(NotificationFailure(supplier_id, bucket.supplier.name, exc.code, exc.message))
                continue
            except Exception as exc:
                log.exception(f"Unexpected error notifying supplier {bucket.supplier.name} ({supplier_id}) for restaurant {restaurant.id}")
                report.failed.append(NotificationFailure(supplier_id, bucket.supplier.name, UNEXPECTED_FAILURE_CODE, str(exc) or type(exc).__name__))
                continue
            log.info(f"Order notification sent to {sent.supplier_name} <{sent.recipient}> ({sent.message_id})")
            report.sent.append(sent)

        return report

    async def send_test_email(self, restaurant) -> str:
        settings, transport = self._transport(restaurant)
        return await run_in_threadpool(transport.send, render_test_message(restaurant, settings))
