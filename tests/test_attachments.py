# tests/test_attachments.py

from __future__ import annotations

import pytest

from teamtasks.errors import FileTooLarge, InvalidUrl, UnsupportedFileType
from teamtasks.tasks.attachments import (
    AttachmentPolicy,
    BlobUploader,
    InlineEncoder,
    StagedFile,
    StagedLink,
    blob_path_for,
    link_display_name,
    remove_staged,
    sanitize_filename,
    stage_file,
    stage_link,
    to_data_url,
    validate_upload,
    validate_url,
)
from teamtasks.tasks.edit_session import open_add_session

from .fakes import FlakyBlobStore

RESTRICTED = AttachmentPolicy(
    max_bytes=100,
    restrict_types=True,
    allowed_prefixes=("image/",),
    allowed_types=("application/pdf",),
)
OPEN_POLICY = AttachmentPolicy(max_bytes=100)


def test_oversized_file_is_rejected_and_never_staged() -> None:
    session = open_add_session(title="t")
    with pytest.raises(FileTooLarge):
        stage_file(session, OPEN_POLICY, name="big.bin", mime="application/octet-stream", content=b"x" * 101)
    assert session.attachments == []


def test_file_at_the_limit_is_accepted() -> None:
    session = open_add_session(title="t")
    staged = stage_file(session, OPEN_POLICY, name="ok.bin", mime="application/octet-stream", content=b"x" * 100)
    assert session.attachments == [staged]


def test_mime_allowlist_applies_only_when_restricted() -> None:
    validate_upload("a.png", "image/png", 10, RESTRICTED)
    validate_upload("a.pdf", "application/pdf", 10, RESTRICTED)
    with pytest.raises(UnsupportedFileType):
        validate_upload("a.txt", "text/plain", 10, RESTRICTED)

    validate_upload("a.txt", "text/plain", 10, OPEN_POLICY)


@pytest.mark.parametrize(
    "url",
    ["https://example.com/a?b=1", "http://localhost:8080", "mailto:someone@example.com", "ftp://files.example.com/x"],
)
def test_valid_urls(url: str) -> None:
    assert validate_url(f"  {url} ") == url


@pytest.mark.parametrize("url", ["", "not a url", "example.com", "http://", "https:///path"])
def test_invalid_urls(url: str) -> None:
    with pytest.raises(InvalidUrl):
        validate_url(url)


def test_invalid_link_is_not_staged() -> None:
    session = open_add_session(title="t")
    with pytest.raises(InvalidUrl):
        stage_link(session, "nope")
    assert session.attachments == []


def test_link_display_name() -> None:
    assert link_display_name("https://example.com/docs", "Design doc") == "Design doc"
    assert link_display_name("https://example.com/docs", "   ") == "example.com/docs"
    long_url = "https://example.com/" + "a" * 100
    assert len(link_display_name(long_url)) == 60
    assert link_display_name("mailto:x@example.com") == "mailto:x@example.com"


def test_sanitize_filename_and_blob_path() -> None:
    assert sanitize_filename("my report  v2.pdf") == "my_report_v2.pdf"
    assert sanitize_filename("../../etc/passwd") == "passwd"
    assert sanitize_filename("C:\\Users\\me\\photo.png") == "photo.png"
    assert blob_path_for("t1", "a b.png", 1700000000000) == "tasks/t1/1700000000000-a_b.png"


def test_remove_staged_reports_whether_anything_was_removed() -> None:
    session = open_add_session(title="t")
    link = stage_link(session, "https://example.com")
    assert remove_staged(session, link.id) is True
    assert remove_staged(session, link.id) is False
    assert session.attachments == []


@pytest.mark.asyncio
async def test_inline_encoder_embeds_files_and_keeps_links() -> None:
    enc = InlineEncoder()

    att = await enc.materialize("t1", StagedFile(id="a1", name="hi.txt", mime="text/plain", content=b"hi"))
    assert att.data_url == to_data_url("text/plain", b"hi") == "data:text/plain;base64,aGk="
    assert att.is_embedded and not att.external and att.storage_path is None

    link = await enc.materialize("t1", StagedLink(id="a2", name="docs", url="https://example.com"))
    assert link.external and link.url == "https://example.com" and link.data_url is None


@pytest.mark.asyncio
async def test_blob_uploader_stores_under_task_prefix() -> None:
    blobs = FlakyBlobStore()
    uploader = BlobUploader(blobs, clock=lambda: 1700000000.0)

    att = await uploader.materialize("t1", StagedFile(id="a1", name="logo final.png", mime="image/png", content=b"png"))

    assert att.storage_path == "tasks/t1/1700000000000-logo_final.png"
    assert att.url == "mem://tasks/t1/1700000000000-logo_final.png"
    assert att.id == "a1" and att.name == "logo final.png" and att.mime == "image/png"
    assert blobs.objects[att.storage_path] == b"png"
