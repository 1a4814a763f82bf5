"""
IMAP Mailbox Source
===================

imaplib adapter for the helpdesk inbox. imaplib is blocking, so every call
runs in a worker thread under a timeout; library errors surface as
MailboxException.
"""

import asyncio
import imaplib
from typing import Any, Callable, List, Optional

from helpdesk.core import MailboxException
from helpdesk.ingestion.application import IMailboxSource
from helpdesk.ingestion.domain import RawMessage
from helpdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


def _extract_message_bytes(fetch_data: list) -> Optional[bytes]:
    """Pick the literal out of an imaplib FETCH response."""
    for item in fetch_data or []:
        if isinstance(item, tuple) and len(item) >= 2 and isinstance(item[1], (bytes, bytearray)):
            return bytes(item[1])
    return None


class IMAPMailboxSource(IMailboxSource):
    """
    Reads unread mail without marking it, then flags each message as
    seen once the ingestion loop acknowledges it.
    """

    def __init__(
        self,
        host: str,
        username: str,
        password: str,
        port: int = 993,
        use_tls: bool = True,
        mailbox: str = "INBOX",
        timeout_seconds: float = 30.0
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.mailbox = mailbox
        self.timeout_seconds = timeout_seconds
        self._client: Optional[imaplib.IMAP4] = None

    async def _call(self, operation: str, func: Callable[..., Any], *args: Any) -> Any:
        try:
            return await asyncio.wait_for(asyncio.to_thread(func, *args), self.timeout_seconds)
        except asyncio.TimeoutError as e:
            raise MailboxException(
                f"{operation} timed out after {self.timeout_seconds}s",
                {"host": self.host, "operation": operation}
            ) from e
        except (imaplib.IMAP4.error, OSError) as e:
            raise MailboxException(
                f"{operation} failed: {e}",
                {"host": self.host, "operation": operation}
            ) from e

    def _require_client(self) -> imaplib.IMAP4:
        if self._client is None:
            raise MailboxException("Not connected", {"host": self.host})
        return self._client

    # ========== Blocking operations (worker thread) ==========

    def _open(self) -> imaplib.IMAP4:
        if self.use_tls:
            client = imaplib.IMAP4_SSL(self.host, self.port, timeout=self.timeout_seconds)
        else:
            client = imaplib.IMAP4(self.host, self.port, timeout=self.timeout_seconds)

        client.login(self.username, self.password)
        status, _ = client.select(self.mailbox)
        if status != "OK":
            client.logout()
            raise imaplib.IMAP4.error(f"Cannot select mailbox {self.mailbox}")
        return client

    def _fetch_unread(self, client: imaplib.IMAP4) -> List[RawMessage]:
        status, data = client.search(None, "UNSEEN")
        if status != "OK":
            raise imaplib.IMAP4.error(f"SEARCH UNSEEN returned {status}")

        numbers = data[0].split() if data and data[0] else []
        messages = []
        for number in numbers:
            sequence_number = number.decode("ascii")
            # BODY.PEEK leaves the \Seen flag alone until the loop acknowledges
            status, fetch_data = client.fetch(number, "(BODY.PEEK[])")
            content = _extract_message_bytes(fetch_data) if status == "OK" else None
            if content is None:
                logger.warning(
                    "Unable to fetch message, leaving it for the next cycle",
                    extra={"sequence_number": sequence_number, "status": status}
                )
                continue
            messages.append(RawMessage(sequence_number=sequence_number, content=content))
        return messages

    def _store_seen(self, client: imaplib.IMAP4, sequence_number: str) -> None:
        status, _ = client.store(sequence_number, "+FLAGS", "\\Seen")
        if status != "OK":
            raise imaplib.IMAP4.error(f"STORE returned {status}")

    def _shutdown(self, client: imaplib.IMAP4) -> None:
        try:
            client.close()
        finally:
            client.logout()

    # ========== IMailboxSource ==========

    async def connect(self) -> None:
        if self._client is not None:
            return
        self._client = await self._call("connect", self._open)
        logger.debug("Mailbox connected", extra={"host": self.host, "mailbox": self.mailbox})

    async def list_unread(self) -> List[RawMessage]:
        client = self._require_client()
        messages = await self._call("list_unread", self._fetch_unread, client)
        logger.info("Unread messages listed", extra={"count": len(messages), "mailbox": self.mailbox})
        return messages

    async def mark_seen(self, sequence_number: str) -> None:
        client = self._require_client()
        await self._call("mark_seen", self._store_seen, client, sequence_number)

    async def close(self) -> None:
        client, self._client = self._client, None
        if client is None:
            return
        try:
            await self._call("close", self._shutdown, client)
        except MailboxException as e:
            logger.warning("Mailbox close failed", extra={"error": str(e)})
