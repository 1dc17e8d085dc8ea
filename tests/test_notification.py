import asyncio
import smtplib
import threading
import time
from types import SimpleNamespace
from unittest.mock import MagicMock, patch
from uuid import uuid4

import pytest

from kitchen_orders.core.errors import ConfigurationError, TransportError
from kitchen_orders.models import Item, Order
from kitchen_orders.services import notification
from kitchen_orders.services.notification import (
    MailSettings,
    SMTPTransport,
    SupplierNotifier,
    TransportRegistry,
    group_lines_by_supplier,
    mail_settings_for,
    render_supplier_message,
)
from kitchen_orders.services.order_service import place_order
from kitchen_orders.testing.factories import complete_mail_config, make_item, make_restaurant, make_supplier
from kitchen_orders.testing.fakes import FailingTransport, RecordingTransport, body_html, body_text

SETTINGS = MailSettings(
    sender_name="Trattoria Roma",
    sender_email="orders@roma.it",
    smtp_host="smtp.roma.test",
    smtp_port=587,
    smtp_user="orders@roma.it",
    smtp_password="pw",
)


def _line(item, quantity, unit=None):
    return SimpleNamespace(item_id=item.id, quantity=quantity, unit=unit)


async def _items_by_id(*items):
    fetched = await Item.filter(id__in=[i.id for i in items]).select_related("supplier")
    return {str(i.id): i for i in fetched}


# --- Mail settings ---

class TestMailSettings:
    def test_complete_config(self):
        restaurant = SimpleNamespace(id=uuid4(), name="Roma", email_config={
            "sender_name": "Roma", "sender_email": "a@roma.it", "smtp_host": "smtp.roma.test",
            "smtp_port": "465", "smtp_user": "a@roma.it", "smtp_password": "pw", "use_ssl": True,
        })
        settings = mail_settings_for(restaurant)
        assert settings.smtp_port == 465
        assert settings.use_ssl
        assert settings.from_address == "Roma <a@roma.it>"

    def test_missing_fields_are_named(self):
        restaurant = SimpleNamespace(id=uuid4(), name="Roma", email_config={"sender_name": "Roma", "smtp_password": "  "})
        with patch.object(notification.config, "FALLBACK_SMTP_USER", ""):
            with pytest.raises(ConfigurationError) as excinfo:
                mail_settings_for(restaurant)
        message = excinfo.value.message
        assert "sender_email" in message
        assert "smtp_user" in message
        assert "smtp_password" in message
        assert "sender_name" not in message

    def test_fallback_account_outside_production(self):
        restaurant = SimpleNamespace(id=uuid4(), name="Roma", email_config={})
        with patch.multiple(notification.config, APP_ENV="development",
                            FALLBACK_SMTP_USER="dev@mail.it", FALLBACK_SMTP_PASSWORD="devpw"):
            settings = mail_settings_for(restaurant)
        assert settings.smtp_user == "dev@mail.it"
        assert settings.sender_email == "dev@mail.it"

    def test_no_fallback_in_production(self):
        restaurant = SimpleNamespace(id=uuid4(), name="Roma", email_config={})
        with patch.multiple(notification.config, APP_ENV="production",
                            FALLBACK_SMTP_USER="dev@mail.it", FALLBACK_SMTP_PASSWORD="devpw"):
            with pytest.raises(ConfigurationError):
                mail_settings_for(restaurant)


# --- Transport registry ---

class TestTransportRegistry:
    def test_one_handle_per_restaurant(self):
        registry = TransportRegistry(factory=lambda settings: RecordingTransport())
        first, second = uuid4(), uuid4()

        a = registry.get(first, SETTINGS)
        assert registry.get(first, SETTINGS) is a
        assert registry.get(str(first), SETTINGS) is a
        assert registry.get(second, SETTINGS) is not a
        assert len(registry) == 2

    def test_evict_closes_and_forgets(self):
        registry = TransportRegistry(factory=lambda settings: RecordingTransport())
        rid = uuid4()
        transport = registry.get(rid, SETTINGS)

        registry.evict(rid)

        assert transport.closed
        assert rid not in registry
        assert registry.get(rid, SETTINGS) is not transport

    def test_clear(self):
        registry = TransportRegistry(factory=lambda settings: RecordingTransport())
        handles = [registry.get(uuid4(), SETTINGS) for _ in range(3)]
        registry.clear()
        assert len(registry) == 0
        assert all(t.closed for t in handles)


# --- SMTP transport ---

class TestSMTPTransport:
    def _message(self):
        message = MagicMock()
        message.__getitem__.side_effect = {"To": "farm@supplier.it", "Message-ID": "<abc@roma.it>"}.get
        return message

    @patch("kitchen_orders.services.notification.smtplib.SMTP")
    def test_starttls_login_and_reuse(self, mock_smtp):
        smtp = mock_smtp.return_value
        smtp.has_extn.return_value = True
        smtp.noop.return_value = (250, b"OK")
        transport = SMTPTransport(SETTINGS)

        assert transport.send(self._message()) == "<abc@roma.it>"
        transport.send(self._message())

        mock_smtp.assert_called_once_with("smtp.roma.test", 587, timeout=transport.timeout)
        smtp.starttls.assert_called_once()
        smtp.login.assert_called_once_with("orders@roma.it", "pw")
        assert smtp.send_message.call_count == 2

    @patch("kitchen_orders.services.notification.smtplib.SMTP_SSL")
    def test_ssl_connection(self, mock_ssl):
        settings = MailSettings(**{**vars(SETTINGS), "smtp_port": 465, "use_ssl": True})
        SMTPTransport(settings).send(self._message())
        mock_ssl.assert_called_once()
        mock_ssl.return_value.login.assert_called_once()

    @patch("kitchen_orders.services.notification.smtplib.SMTP")
    def test_login_failure_is_transport_error(self, mock_smtp):
        mock_smtp.return_value.login.side_effect = smtplib.SMTPAuthenticationError(535, b"bad credentials")
        with pytest.raises(TransportError) as excinfo:
            SMTPTransport(SETTINGS).send(self._message())
        assert "authentication failed" in excinfo.value.message

    @patch("kitchen_orders.services.notification.smtplib.SMTP")
    def test_connection_refused_is_transport_error(self, mock_smtp):
        mock_smtp.side_effect = ConnectionRefusedError("refused")
        with pytest.raises(TransportError):
            SMTPTransport(SETTINGS).send(self._message())

    @patch("kitchen_orders.services.notification.smtplib.SMTP")
    def test_stale_connection_is_reopened(self, mock_smtp):
        stale, fresh = MagicMock(), MagicMock()
        stale.noop.side_effect = smtplib.SMTPServerDisconnected()
        mock_smtp.side_effect = [stale, fresh]
        transport = SMTPTransport(SETTINGS)

        transport.send(self._message())
        transport.send(self._message())

        assert mock_smtp.call_count == 2
        fresh.send_message.assert_called_once()


# --- Grouping and rendering ---

@pytest.mark.asyncio
async def test_group_lines_by_supplier(db):
    restaurant = await make_restaurant()
    farm = await make_supplier(restaurant, "Fresh Farm")
    dairy = await make_supplier(restaurant, "Dairy Co")
    tomatoes = await make_item(restaurant, farm, "Tomatoes", "kg")
    milk = await make_item(restaurant, dairy, "Milk", "l")
    basil = await make_item(restaurant, farm, "Basil", "bunch")
    lines = [_line(tomatoes, 3), _line(milk, 6), _line(basil, 2, "box")]

    buckets, unresolved = group_lines_by_supplier(lines, await _items_by_id(tomatoes, milk, basil))

    assert unresolved == []
    assert list(buckets) == [str(farm.id), str(dairy.id)]
    farm_lines = buckets[str(farm.id)].lines
    assert [(l.name, l.quantity, l.unit) for l in farm_lines] == [("Tomatoes", 3, "kg"), ("Basil", 2, "box")]
    assert [l.name for l in buckets[str(dairy.id)].lines] == ["Milk"]


@pytest.mark.asyncio
async def test_group_reports_unknown_items(db):
    restaurant = await make_restaurant()
    tomatoes = await make_item(restaurant, await make_supplier(restaurant))
    missing = SimpleNamespace(item_id=uuid4(), quantity=1, unit=None)

    buckets, unresolved = group_lines_by_supplier([_line(tomatoes, 1), missing], await _items_by_id(tomatoes))

    assert len(buckets) == 1
    assert [u.item_id for u in unresolved] == [str(missing.item_id)]


@pytest.mark.asyncio
async def test_rendered_message_contains_lines_and_note(db):
    restaurant = await make_restaurant("Trattoria Roma", phone="+39 06 1234")
    farm = await make_supplier(restaurant, "Fresh Farm")
    tomatoes = await make_item(restaurant, farm, "Tomatoes", "kg")
    buckets, _ = group_lines_by_supplier([_line(tomatoes, 3)], await _items_by_id(tomatoes))

    message = render_supplier_message(restaurant, SETTINGS, buckets[str(farm.id)], "deliver before 9am")

    assert message["To"] == "freshfarm@supplier.it"
    assert message["Subject"] == "New order - Trattoria Roma"
    assert message["From"] == "Trattoria Roma <orders@roma.it>"
    assert message["Message-ID"]
    text = body_text(message)
    assert "Tomatoes: 3 kg" in text
    assert "Notes: deliver before 9am" in text
    html = body_html(message)
    assert "<td>Tomatoes</td>" in html
    assert "+39 06 1234" in html


@pytest.mark.asyncio
async def test_html_escapes_user_text(db):
    restaurant = await make_restaurant()
    farm = await make_supplier(restaurant)
    item = await make_item(restaurant, farm, "<b>Salt</b>")
    buckets, _ = group_lines_by_supplier([_line(item, 1)], await _items_by_id(item))

    message = render_supplier_message(restaurant, SETTINGS, buckets[str(farm.id)], "<script>")

    assert "&lt;b&gt;Salt&lt;/b&gt;" in body_html(message)
    assert "<script>" not in body_html(message)
    assert "Notes: <script>" in body_text(message)


# --- Dispatch ---

@pytest.mark.asyncio
async def test_notifier_continues_after_a_failed_supplier(db):
    restaurant = await make_restaurant()
    farm = await make_supplier(restaurant, "Fresh Farm")
    dairy = await make_supplier(restaurant, "Dairy Co")
    tomatoes = await make_item(restaurant, farm)
    milk = await make_item(restaurant, dairy, "Milk", "l")
    buckets, _ = group_lines_by_supplier([_line(tomatoes, 1), _line(milk, 2)], await _items_by_id(tomatoes, milk))

    registry = TransportRegistry()
    transport = FailingTransport(farm.email)
    registry.register(restaurant.id, transport)

    report = await SupplierNotifier(registry).notify_suppliers(restaurant, buckets)

    assert not report.ok
    assert [f.supplier_id for f in report.failed] == [str(farm.id)]
    assert report.failed[0].code == "transport_error"
    assert [s.supplier_id for s in report.sent] == [str(dairy.id)]
    assert len(transport.sent_to(dairy.email)) == 1


@pytest.mark.asyncio
async def test_notifier_reports_missing_mail_settings(db):
    restaurant = await make_restaurant(mail=False)
    farm = await make_supplier(restaurant)
    tomatoes = await make_item(restaurant, farm)
    buckets, _ = group_lines_by_supplier([_line(tomatoes, 1)], await _items_by_id(tomatoes))

    registry = TransportRegistry(factory=lambda settings: RecordingTransport())
    with patch.object(notification.config, "FALLBACK_SMTP_USER", ""):
        report = await SupplierNotifier(registry).notify_suppliers(restaurant, buckets)

    assert report.failed[0].code == "configuration_error"
    assert "sender_email" in report.failed[0].message
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_notifier_rejects_supplier_without_email(db):
    restaurant = await make_restaurant()
    farm = await make_supplier(restaurant, email="")
    tomatoes = await make_item(restaurant, farm)
    buckets, _ = group_lines_by_supplier([_line(tomatoes, 1)], await _items_by_id(tomatoes))

    report = await SupplierNotifier(TransportRegistry(factory=lambda s: RecordingTransport())).notify_suppliers(restaurant, buckets)

    assert report.failed[0].code == "validation_error"
    assert report.sent == []


@pytest.mark.asyncio
async def test_each_restaurant_uses_its_own_transport(db):
    roma = await make_restaurant("Roma")
    milano = await make_restaurant("Milano")
    registry = TransportRegistry()
    roma_transport, milano_transport = RecordingTransport(), RecordingTransport()
    registry.register(roma.id, roma_transport)
    registry.register(milano.id, milano_transport)
    notifier = SupplierNotifier(registry)

    for restaurant in (roma, milano):
        supplier = await make_supplier(restaurant)
        item = await make_item(restaurant, supplier)
        buckets, _ = group_lines_by_supplier([_line(item, 1)], await _items_by_id(item))
        await notifier.notify_suppliers(restaurant, buckets)

    assert len(roma_transport.messages) == 1
    assert len(milano_transport.messages) == 1
    assert roma_transport.messages[0]["Subject"] == "New order - Roma"
    assert milano_transport.messages[0]["Subject"] == "New order - Milano"


class BrokenForRecipientTransport(RecordingTransport):
    """Raises an unexpected error for one recipient."""

    def __init__(self, recipient):
        super().__init__()
        self.recipient = recipient

    def send(self, message):
        if message["To"] == self.recipient:
            raise RuntimeError("connection object in unexpected state")
        return super().send(message)


class OverlapCountingSMTP:
    """Stands in for an smtplib connection and records overlapping sends."""

    def __init__(self):
        self.active = 0
        self.peak = 0
        self.sent = 0
        self._guard = threading.Lock()

    def noop(self):
        return (250, b"OK")

    def send_message(self, message):
        with self._guard:
            self.active += 1
            self.peak = max(self.peak, self.active)
        time.sleep(0.05)
        with self._guard:
            self.active -= 1
            self.sent += 1

    def quit(self):
        pass


@pytest.mark.asyncio
async def test_line_break_in_restaurant_name_fails_each_supplier_but_keeps_order(db):
    restaurant = await make_restaurant("Trattoria\nRoma")
    farm = await make_supplier(restaurant, "Fresh Farm")
    dairy = await make_supplier(restaurant, "Dairy Co")
    tomatoes = await make_item(restaurant, farm)
    milk = await make_item(restaurant, dairy, "Milk", "l")
    registry = TransportRegistry()
    transport = RecordingTransport()
    registry.register(restaurant.id, transport)

    order, report = await place_order(
        restaurant.id, None, [_line(tomatoes, 1), _line(milk, 1)], {}, SupplierNotifier(registry),
    )

    assert await Order.filter(id=order.id).exists()
    assert transport.messages == []
    assert {f.supplier_id for f in report.failed} == {str(farm.id), str(dairy.id)}
    assert {f.code for f in report.failed} == {"configuration_error"}


@pytest.mark.asyncio
async def test_line_break_in_sender_name_is_a_configuration_error(db):
    config = {**complete_mail_config(), "sender_name": "Roma\r\nBcc: someone@else.it"}
    restaurant = await make_restaurant(email_config=config)
    farm = await make_supplier(restaurant)
    tomatoes = await make_item(restaurant, farm)
    buckets, _ = group_lines_by_supplier([_line(tomatoes, 1)], await _items_by_id(tomatoes))

    registry = TransportRegistry(factory=lambda settings: RecordingTransport())
    report = await SupplierNotifier(registry).notify_suppliers(restaurant, buckets)

    assert report.failed[0].code == "configuration_error"
    assert "sender" in report.failed[0].message


@pytest.mark.asyncio
async def test_unexpected_error_for_one_supplier_does_not_stop_the_others(db):
    restaurant = await make_restaurant()
    farm = await make_supplier(restaurant, "Fresh Farm")
    dairy = await make_supplier(restaurant, "Dairy Co")
    tomatoes = await make_item(restaurant, farm)
    milk = await make_item(restaurant, dairy, "Milk", "l")
    buckets, _ = group_lines_by_supplier([_line(tomatoes, 1), _line(milk, 1)], await _items_by_id(tomatoes, milk))
    registry = TransportRegistry()
    transport = BrokenForRecipientTransport(farm.email)
    registry.register(restaurant.id, transport)

    report = await SupplierNotifier(registry).notify_suppliers(restaurant, buckets)

    assert [(f.supplier_id, f.code) for f in report.failed] == [(str(farm.id), "notification_error")]
    assert "unexpected state" in report.failed[0].message
    assert [s.supplier_id for s in report.sent] == [str(dairy.id)]


@pytest.mark.asyncio
async def test_concurrent_orders_never_share_an_smtp_session(db):
    restaurant = await make_restaurant()
    farm = await make_supplier(restaurant)
    tomatoes = await make_item(restaurant, farm)
    items = await _items_by_id(tomatoes)
    connection = OverlapCountingSMTP()
    notifier = SupplierNotifier(TransportRegistry())

    with patch.object(SMTPTransport, "_connect", return_value=connection):
        reports = await asyncio.gather(*(
            notifier.notify_suppliers(restaurant, group_lines_by_supplier([_line(tomatoes, 1)], items)[0])
            for _ in range(4)
        ))

    assert all(r.ok for r in reports)
    assert connection.sent == 4
    assert connection.peak == 1
