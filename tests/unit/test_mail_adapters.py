"""Unit tests for the SMTP transport and the IMAP mailbox adapters."""

import imaplib
import smtplib
from unittest.mock import MagicMock, patch

import pytest

from helpdesk.core import MailboxException, NotificationException
from helpdesk.ingestion.infrastructure import IMAPMailboxSource
from helpdesk.tickets.domain import RenderedNotification
from helpdesk.tickets.infrastructure import SMTPMailTransport


NOTIFICATION = RenderedNotification(subject="Subject line", html="<p>hello</p>", text="hello")


def smtp_client(starttls: bool = True) -> MagicMock:
    client = MagicMock()
    client.__enter__.return_value = client
    client.has_extn.return_value = starttls
    return client


class TestSMTPMailTransport:
    def test_message_has_text_and_html_parts(self):
        transport = SMTPMailTransport("smtp.test", sender="helpdesk@may-baker.com")

        message = transport.build_message("a@gmail.com", NOTIFICATION)

        assert message["To"] == "a@gmail.com"
        assert message["From"] == "helpdesk@may-baker.com"
        assert message["Subject"] == "Subject line"
        assert message.get_body(("plain",)).get_content().strip() == "hello"
        assert message.get_body(("html",)).get_content().strip() == "<p>hello</p>"

    async def test_starttls_and_login(self):
        client = smtp_client()
        transport = SMTPMailTransport(
            "smtp.test", port=587, username="helpdesk@may-baker.com", password="secret"
        )

        with patch("smtplib.SMTP", return_value=client) as smtp_cls:
            await transport.send("a@gmail.com", NOTIFICATION)

        smtp_cls.assert_called_once_with("smtp.test", 587, timeout=10.0)
        client.starttls.assert_called_once()
        client.login.assert_called_once_with("helpdesk@may-baker.com", "secret")
        sent = client.send_message.call_args.args[0]
        assert sent["To"] == "a@gmail.com"

    async def test_implicit_tls_uses_smtp_ssl(self):
        client = smtp_client()
        transport = SMTPMailTransport("smtp.test", port=465, secure=True, sender="helpdesk@may-baker.com")

        with patch("smtplib.SMTP_SSL", return_value=client) as ssl_cls:
            await transport.send("a@gmail.com", NOTIFICATION)

        ssl_cls.assert_called_once()
        client.starttls.assert_not_called()
        client.login.assert_not_called()
        client.send_message.assert_called_once()

    async def test_smtp_error_becomes_notification_exception(self):
        client = smtp_client(starttls=False)
        client.send_message.side_effect = smtplib.SMTPRecipientsRefused({"a@gmail.com": (550, b"no")})
        transport = SMTPMailTransport("smtp.test", sender="helpdesk@may-baker.com")

        with patch("smtplib.SMTP", return_value=client):
            with pytest.raises(NotificationException):
                await transport.send("a@gmail.com", NOTIFICATION)

    async def test_unconfigured_transport_skips(self):
        transport = SMTPMailTransport(None)

        with patch("smtplib.SMTP") as smtp_cls:
            await transport.send("a@gmail.com", NOTIFICATION)

        assert transport.is_configured is False
        smtp_cls.assert_not_called()


def imap_client(numbers: bytes = b"1 2") -> MagicMock:
    client = MagicMock()
    client.select.return_value = ("OK", [b"2"])
    client.search.return_value = ("OK", [numbers])

    def fetch(number, parts):
        if number == b"1":
            return "OK", [(b"1 (BODY[] {5}", b"hello"), b")"]
        return "NO", [None]

    client.fetch.side_effect = fetch
    client.store.return_value = ("OK", [b"1 (FLAGS (\\Seen))"])
    return client


class TestIMAPMailboxSource:
    @pytest.fixture
    def source(self):
        return IMAPMailboxSource("imap.test", "helpdesk@may-baker.com", "secret", timeout_seconds=5)

    async def test_lists_unread_without_marking(self, source):
        client = imap_client()

        with patch("imaplib.IMAP4_SSL", return_value=client):
            await source.connect()
            messages = await source.list_unread()

        client.login.assert_called_once_with("helpdesk@may-baker.com", "secret")
        client.select.assert_called_once_with("INBOX")
        client.search.assert_called_once_with(None, "UNSEEN")
        assert client.fetch.call_args_list[0].args == (b"1", "(BODY.PEEK[])")
        # Message 2 failed to fetch and is left for the next cycle
        assert [m.sequence_number for m in messages] == ["1"]
        assert messages[0].content == b"hello"
        client.store.assert_not_called()

    async def test_mark_seen_sets_flag(self, source):
        client = imap_client()

        with patch("imaplib.IMAP4_SSL", return_value=client):
            await source.connect()
            await source.mark_seen("1")

        client.store.assert_called_once_with("1", "+FLAGS", "\\Seen")

    async def test_connect_failure_raises_mailbox_exception(self, source):
        with patch("imaplib.IMAP4_SSL", side_effect=OSError("connection refused")):
            with pytest.raises(MailboxException) as exc_info:
                await source.connect()

        assert exc_info.value.details["operation"] == "connect"

    async def test_login_failure_raises_mailbox_exception(self, source):
        client = imap_client()
        client.login.side_effect = imaplib.IMAP4.error("AUTHENTICATIONFAILED")

        with patch("imaplib.IMAP4_SSL", return_value=client):
            with pytest.raises(MailboxException):
                await source.connect()

    async def test_operations_require_connection(self, source):
        with pytest.raises(MailboxException):
            await source.list_unread()

    async def test_close_never_raises(self, source):
        client = imap_client()
        client.close.side_effect = imaplib.IMAP4.error("not selected")

        with patch("imaplib.IMAP4_SSL", return_value=client):
            await source.connect()
            await source.close()

        client.logout.assert_called_once()
        await source.close()

    async def test_plain_imap_when_tls_disabled(self):
        source = IMAPMailboxSource("imap.test", "u", "p", port=143, use_tls=False)
        client = imap_client(numbers=b"")

        with patch("imaplib.IMAP4", return_value=client) as imap_cls:
            await source.connect()
            assert await source.list_unread() == []

        imap_cls.assert_called_once_with("imap.test", 143, timeout=30.0)
