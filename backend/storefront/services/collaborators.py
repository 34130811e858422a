"""
External collaborators: asset store and notifier.

Both are injected into the services that use them and are only called
after the owning transaction has committed (uploads for a new row are the
exception: the URL must exist before the row is written, so an upload
failure aborts that operation). Post-commit failures are wrapped as
CollaboratorFailure, logged, and never propagated.
"""

from __future__ import annotations

import logging
import os
import smtplib
import time
import uuid
from contextlib import contextmanager
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Iterable, Protocol

from ..errors import CollaboratorFailure

logger = logging.getLogger(__name__)


class AssetStore(Protocol):
    def upload(self, data: bytes, folder: str, filename: str | None = None) -> str: ...

    def delete(self, ref: str) -> None: ...


class Notifier(Protocol):
    def send(self, to_address: str, subject: str, html_body: str) -> None: ...


class LocalAssetStore:
    """Stores files under root/<folder>/ and returns base_url/<folder>/<name>."""

    def __init__(self, root: str, base_url: str = "/assets"):
        self.root = root
        self.base_url = base_url.rstrip("/")

    def upload(self, data: bytes, folder: str, filename: str | None = None) -> str:
        ext = os.path.splitext(filename or "")[1].lower() or ".bin"
        name = f"{uuid.uuid4().hex}{ext}"
        folder = folder.strip("/")
        target_dir = os.path.join(self.root, folder)
        os.makedirs(target_dir, exist_ok=True)
        with open(os.path.join(target_dir, name), "wb") as fh:
            fh.write(data)
        return f"{self.base_url}/{folder}/{name}"

    def _path_for(self, ref: str) -> str:
        relative = ref[len(self.base_url):] if ref.startswith(self.base_url) else ref
        relative = relative.lstrip("/")
        path = os.path.normpath(os.path.join(self.root, relative))
        if not path.startswith(os.path.normpath(self.root)):
            raise ValueError(f"Asset reference outside asset root: {ref}")
        return path

    def delete(self, ref: str) -> None:
        path = self._path_for(ref)
        if os.path.exists(path):
            os.remove(path)


class LoggingNotifier:
    """Default notifier: writes the message to the log instead of sending it."""

    def send(self, to_address: str, subject: str, html_body: str) -> None:
        logger.info("Notification to=%s subject=%r (%d chars)", to_address, subject, len(html_body))


class SmtpNotifier:
    """SMTP notifier with connection-per-message and bounded retries."""

    def __init__(
        self,
        smtp_host: str,
        smtp_port: int,
        username: str,
        password: str,
        sender: str,
        sender_name: str = "",
        use_ssl: bool = False,
        max_retries: int = 3,
        retry_delay: float = 3,
    ):
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.username = username
        self.password = password
        self.sender = sender
        self.sender_name = sender_name
        self.use_ssl = use_ssl
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    @contextmanager
    def _connection(self):
        server = None
        try:
            if self.use_ssl:
                server = smtplib.SMTP_SSL(self.smtp_host, self.smtp_port)
            else:
                server = smtplib.SMTP(self.smtp_host, self.smtp_port)
                server.starttls()
            if self.username:
                server.login(self.username, self.password)
            yield server
        finally:
            if server:
                try:
                    server.quit()
                except Exception as e:
                    logger.warning("Error closing SMTP connection: %s", e)

    def _build_message(self, to_address: str, subject: str, html_body: str) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["From"] = f"{self.sender_name} <{self.sender}>" if self.sender_name else self.sender
        msg["To"] = to_address
        msg["Subject"] = subject
        msg.attach(MIMEText(html_body, "html"))
        return msg

    def send(self, to_address: str, subject: str, html_body: str) -> None:
        msg = self._build_message(to_address, subject, html_body)
        for attempt in range(1, self.max_retries + 1):
            try:
                with self._connection() as server:
                    server.sendmail(self.sender, [to_address], msg.as_string())
                return
            except (smtplib.SMTPException, OSError) as e:
                logger.warning("SMTP send attempt %d/%d failed: %s", attempt, self.max_retries, e)
                if attempt == self.max_retries:
                    raise
                time.sleep(self.retry_delay)


def upload_asset(store: AssetStore | None, data: bytes, folder: str, filename: str | None = None) -> str:
    """Upload before the owning row is written; a failure aborts that operation."""
    if store is None:
        raise CollaboratorFailure("asset_store", "No asset store configured")
    try:
        return store.upload(data, folder, filename)
    except Exception as exc:
        logger.warning("Asset upload to %s failed: %s", folder, exc)
        raise CollaboratorFailure("asset_store", f"Upload failed: {exc}") from exc


def safe_notify(notifier: Notifier | None, to_address: str | None, subject: str, html_body: str) -> bool:
    """Send a notification; failures are logged and reported as False."""
    if notifier is None or not to_address:
        return False
    try:
        notifier.send(to_address, subject, html_body)
        return True
    except Exception as exc:
        failure = CollaboratorFailure("notifier", str(exc))
        logger.warning("Notification to %s failed: %s", to_address, failure.message)
        return False


def safe_delete_assets(store: AssetStore | None, refs: Iterable[str | None]) -> int:
    """Best-effort deletion of hosted assets after commit. Returns how many succeeded."""
    if store is None:
        return 0
    deleted = 0
    for ref in refs:
        if not ref:
            continue
        try:
            store.delete(ref)
            deleted += 1
        except Exception as exc:
            failure = CollaboratorFailure("asset_store", str(exc))
            logger.warning("Asset delete failed for %s: %s", ref, failure.message)
    return deleted


class Upload:
    """A file received by the HTTP layer, waiting to be pushed to the asset store."""

    __slots__ = ("filename", "data", "view_type")

    def __init__(self, filename: str | None, data: bytes, view_type: str = "front"):
        self.filename = filename
        self.data = data
        self.view_type = view_type

    def __repr__(self) -> str:
        return f"<Upload filename={self.filename!r} size={len(self.data)} view_type={self.view_type!r}>"
