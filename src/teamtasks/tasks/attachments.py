# src/teamtasks/tasks/attachments.py

from __future__ import annotations

"""
Attachment lifecycle.

Two creation paths converge on the same Attachment shape:
- file upload: size (and optionally MIME) checked before staging, then either
  embedded as a data URL (local store) or uploaded to the blob store (remote)
- external link: URL checked, stored as {url, name, external=True}

Staged items live in an EditSession working set and are only materialized
when the enclosing task save succeeds.
"""

import base64
import logging
import re
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Union
from urllib.parse import urlsplit

from ..core.ports import AttachmentMaterializer, BlobStore, TaskRepo
from ..errors import FileTooLarge, InvalidUrl, UnsupportedFileType
from .task_models import Attachment, new_id

if TYPE_CHECKING:
    from .edit_session import EditSession

logger = logging.getLogger(__name__)

LINK_MIME = "link"
LINK_NAME_MAX = 60
_HIERARCHICAL_SCHEMES = {"http", "https", "ftp", "ftps", "ws", "wss"}


@dataclass(frozen=True, slots=True)
class AttachmentPolicy:
    max_bytes: int
    restrict_types: bool = False
    allowed_prefixes: tuple[str, ...] = ("image/",)
    allowed_types: tuple[str, ...] = ()

    @classmethod
    def from_settings(cls, settings) -> AttachmentPolicy:
        return cls(
            max_bytes=int(settings.max_upload_bytes),
            restrict_types=bool(settings.restrict_mime_types),
            allowed_prefixes=tuple(settings.allowed_mime_prefixes),
            allowed_types=tuple(settings.allowed_mime_types),
        )

    def allows(self, mime: str) -> bool:
        if not self.restrict_types:
            return True
        m = (mime or "").lower()
        return m in self.allowed_types or any(m.startswith(p) for p in self.allowed_prefixes)


@dataclass(slots=True)
class StagedFile:
    id: str
    name: str
    mime: str
    content: bytes
    external: bool = False


@dataclass(slots=True)
class StagedLink:
    id: str
    name: str
    url: str
    external: bool = True


WorkingItem = Union[Attachment, StagedFile, StagedLink]


# ---- validation ----


def validate_upload(name: str, mime: str, size: int, policy: AttachmentPolicy) -> None:
    """Reject before staging; nothing is read or stored for a rejected file."""
    if not policy.allows(mime):
        raise UnsupportedFileType(name, mime)
    if size > policy.max_bytes:
        logger.warning("File too large name=%s size=%s limit=%s", name, size, policy.max_bytes)
        raise FileTooLarge(name, size, policy.max_bytes)


def validate_url(url: str) -> str:
    u = (url or "").strip()
    if not u or any(ch.isspace() for ch in u):
        raise InvalidUrl(f"Invalid URL: {url!r}")
    parts = urlsplit(u)
    if not parts.scheme or not re.fullmatch(r"[a-zA-Z][a-zA-Z0-9+.-]*", parts.scheme):
        raise InvalidUrl(f"Invalid URL: {url!r}")
    if parts.scheme.lower() in _HIERARCHICAL_SCHEMES:
        if not parts.hostname:
            raise InvalidUrl(f"Invalid URL: {url!r}")
    elif not (parts.netloc or parts.path):
        raise InvalidUrl(f"Invalid URL: {url!r}")
    return u


def link_display_name(url: str, label: str | None = None) -> str:
    lbl = (label or "").strip()
    if lbl:
        return lbl
    return re.sub(r"^https?://", "", url)[:LINK_NAME_MAX]


def sanitize_filename(name: str) -> str:
    base = re.split(r"[\\/]", name or "")[-1]
    return re.sub(r"\s+", "_", base.strip()) or "file"


def blob_path_for(task_id: str, filename: str, now_ms: int | None = None) -> str:
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"tasks/{task_id}/{now_ms}-{sanitize_filename(filename)}"


def to_data_url(mime: str, content: bytes) -> str:
    encoded = base64.b64encode(content).decode("ascii")
    return f"data:{mime or 'application/octet-stream'};base64,{encoded}"


# ---- staging (working set of an EditSession) ----


def stage_file(
        session: EditSession,
        policy: AttachmentPolicy,
        *,
        name: str,
        mime: str,
        content: bytes,
) -> StagedFile:
    validate_upload(name, mime, len(content), policy)
    staged = StagedFile(id=new_id("att"), name=name, mime=mime, content=content)
    session.attachments.append(staged)
    logger.debug("Staged file id=%s name=%s bytes=%s", staged.id, name, len(content))
    return staged


def stage_link(session: EditSession, url: str, label: str | None = None) -> StagedLink:
    u = validate_url(url)
    staged = StagedLink(id=new_id("att"), name=link_display_name(u, label), url=u)
    session.attachments.append(staged)
    logger.debug("Staged link id=%s url=%s", staged.id, u)
    return staged


def remove_staged(session: EditSession, attachment_id: str) -> bool:
    """Drop an item from the working set. No persistence side effect."""
    before = len(session.attachments)
    session.attachments = [a for a in session.attachments if a.id != attachment_id]
    return len(session.attachments) != before


# ---- materialization ----


def _link_attachment(staged: StagedLink) -> Attachment:
    return Attachment(id=staged.id, name=staged.name, mime=LINK_MIME, external=True, url=staged.url)


class InlineEncoder:
    """Local store: files are embedded in the task record as data URLs."""

    async def materialize(self, task_id: str, staged: StagedFile | StagedLink) -> Attachment:
        if isinstance(staged, StagedLink):
            return _link_attachment(staged)
        return Attachment(
            id=staged.id,
            name=staged.name,
            mime=staged.mime,
            external=False,
            data_url=to_data_url(staged.mime, staged.content),
        )


class BlobUploader:
    """Remote store: files go to tasks/{taskId}/{millis}-{filename} in the blob store."""

    def __init__(self, blobs: BlobStore, *, clock: Callable[[], float] = time.time) -> None:
        self._blobs = blobs
        self._clock = clock

    async def materialize(self, task_id: str, staged: StagedFile | StagedLink) -> Attachment:
        if isinstance(staged, StagedLink):
            return _link_attachment(staged)
        path = blob_path_for(task_id, staged.name, int(self._clock() * 1000))
        await self._blobs.upload(path, staged.content, staged.mime)
        url = await self._blobs.url_for(path)
        return Attachment(
            id=staged.id,
            name=staged.name,
            mime=staged.mime,
            external=False,
            url=url,
            storage_path=path,
        )


async def commit_working_set(
        session: EditSession,
        repo: TaskRepo,
        materializer: AttachmentMaterializer,
) -> list[Attachment]:
    """
    Persist the session's working set for session.task_id.

    - persisted attachments dropped from the working set are removed
    - staged files/links are materialized and added, in working-set order

    Progress is written back into the session as each step lands, so a retry
    after a storage failure neither re-uploads nor re-removes anything.
    """
    task_id = session.task_id
    if task_id is None:
        raise ValueError("commit_working_set requires a saved task id")

    keep = {a.id for a in session.attachments}
    for att in list(session.persisted):
        if att.id not in keep:
            await repo.remove_attachment(task_id, att.id)
            session.persisted = [p for p in session.persisted if p.id != att.id]

    for i, item in enumerate(list(session.attachments)):
        if isinstance(item, Attachment):
            continue
        att = await materializer.materialize(task_id, item)
        await repo.add_attachment(task_id, att)
        session.attachments[i] = att
        session.persisted.append(att)

    committed = [a for a in session.attachments if isinstance(a, Attachment)]
    logger.info("Committed %d attachment(s) for task=%s", len(committed), task_id)
    return committed
