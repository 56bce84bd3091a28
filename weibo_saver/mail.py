"""
Inbound mail handling.

Turns raw RFC 822 messages into MailMessage records, decides which source
family a mail belongs to, and polls an IMAP mailbox for new share mails.
"""

import asyncio
import email
import imaplib
import logging
from email.message import Message
from email.policy import default as default_policy
from email.utils import parseaddr, parsedate_to_datetime
from typing import Awaitable, Callable, List, Optional

from .config import SaverConfig, get_config
from .data_structures import MailMessage, PostSource
from .errors import ConfigurationError

logger = logging.getLogger(__name__)

# Some providers (163.com) reject SELECT until the client identifies itself
ID_REQUIRED_HOSTS = ('163.com', '126.com')
CLIENT_ID = '("name" "weibo-saver")'


def _body_text(message: Message) -> str:
    """HTML body when present, otherwise the plain-text body."""
    if hasattr(message, 'get_body'):
        part = message.get_body(preferencelist=('html', 'plain'))
        if part is not None:
            return part.get_content()

    for subtype in ('html', 'plain'):
        for part in message.walk():
            if part.get_content_type() == f'text/{subtype}':
                payload = part.get_payload(decode=True) or b''
                return payload.decode(part.get_content_charset() or 'utf-8', errors='replace')
    return ''


def mail_message_from_email(message: Message) -> MailMessage:
    """Extract sender, subject and body from a parsed email message."""
    _, sender = parseaddr(str(message.get('From', '')))
    received_at = None
    if message.get('Date'):
        try:
            received_at = parsedate_to_datetime(str(message['Date']))
        except (TypeError, ValueError):
            logger.debug(f"Unparsable Date header: {message['Date']}")

    return MailMessage(
        sender_address=sender.lower(),
        subject=str(message.get('Subject', '')),
        raw_html_body=_body_text(message),
        received_at=received_at
    )


def mail_message_from_bytes(raw: bytes) -> MailMessage:
    return mail_message_from_email(email.message_from_bytes(raw, policy=default_policy))


def classify_mail(message: MailMessage, config: Optional[SaverConfig] = None) -> Optional[PostSource]:
    """
    Decide which pipeline a mail belongs to.

    Returns:
        PostSource, or None when the sender is not allowed or the subject matches neither filter
    """
    config = config or get_config()

    allowed = config.allowed_senders
    if allowed and message.sender_address.lower() not in allowed:
        logger.info(f"Skipping email - not from allowed sender: {message.sender_address}")
        return None

    if config.rednote_subject_filter and config.rednote_subject_filter in message.subject:
        return PostSource.REDNOTE
    if config.weibo_subject_filter and config.weibo_subject_filter in message.subject:
        return PostSource.WEIBO

    logger.info(f"Skipping email - subject matches no filter: {message.subject!r}")
    return None


class ImapMailbox:
    """
    Blocking IMAP client for share mails.

    ``fetch_new`` talks to the server synchronously; ``poll`` runs it in a
    worker thread so the event loop stays free for the pipeline.
    """

    def __init__(self, config: Optional[SaverConfig] = None):
        self.config = config or get_config()
        self._conn: Optional[imaplib.IMAP4] = None

    def connect(self) -> imaplib.IMAP4:
        if self._conn is not None:
            return self._conn

        if not self.config.imap_configured:
            raise ConfigurationError("IMAP_USER, IMAP_PASSWORD and IMAP_HOST must be set to listen for mail")

        conn = imaplib.IMAP4_SSL(self.config.imap_host, self.config.imap_port)
        conn.login(self.config.imap_user, self.config.imap_password)
        if any(self.config.imap_host.endswith(host) for host in ID_REQUIRED_HOSTS):
            conn.xatom('ID', CLIENT_ID)
        status, _ = conn.select(self.config.imap_mailbox)
        if status != 'OK':
            conn.logout()
            raise ConfigurationError(f"Cannot open mailbox {self.config.imap_mailbox}")

        logger.info(f"Connected to mail server {self.config.imap_host}, mailbox {self.config.imap_mailbox}")
        self._conn = conn
        return conn

    def close(self):
        if self._conn is None:
            return
        try:
            self._conn.logout()
        except (imaplib.IMAP4.error, OSError) as e:
            logger.debug(f"Error during IMAP logout: {e}")
        finally:
            self._conn = None
            logger.info("Disconnected from mail server")

    def fetch_new(self) -> List[MailMessage]:
        """Fetch every message matching the search filter; fetching marks them seen."""
        conn = self.connect()
        status, data = conn.search(None, self.config.imap_search_filter)
        if status != 'OK' or not data or not data[0]:
            return []

        messages = []
        for message_id in data[0].split():
            status, parts = conn.fetch(message_id, '(RFC822)')
            if status != 'OK':
                logger.warning(f"Failed to fetch message {message_id!r}")
                continue
            for part in parts:
                if isinstance(part, tuple):
                    message = mail_message_from_bytes(part[1])
                    logger.info(f"Received new email: {message.subject!r}")
                    messages.append(message)
        return messages

    async def poll(self, handler: Callable[[MailMessage], Awaitable[None]],
                   stop_event: Optional[asyncio.Event] = None):
        """Fetch new mail every ``imap_poll_interval`` seconds and pass each message to ``handler``."""
        stop_event = stop_event or asyncio.Event()
        while not stop_event.is_set():
            try:
                messages = await asyncio.to_thread(self.fetch_new)
            except (imaplib.IMAP4.error, OSError) as e:
                logger.error(f"IMAP error, reconnecting on next poll: {e}")
                self.close()
                messages = []

            for message in messages:
                try:
                    await handler(message)
                except Exception as e:
                    logger.error(f"Error handling mail {message.subject!r}: {e}", exc_info=True)

            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.config.imap_poll_interval)
            except asyncio.TimeoutError:
                pass

        await asyncio.to_thread(self.close)
