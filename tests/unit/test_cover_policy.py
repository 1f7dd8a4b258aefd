"""Tests for the cover resolution policy."""

from unittest.mock import AsyncMock

import pytest

from reading_tracker.domain.entities.cover import CoverUpload
from reading_tracker.domain.entities.errors import CleanupWarning, PolicyError, StoreUnavailableError
from reading_tracker.domain.services.cover_policy import CoverPolicy, is_valid_http_url, placeholder_cover_url
from reading_tracker.infrastructure.local_cover_storage import LocalCoverStorage

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


@pytest.fixture
def storage():
    return LocalCoverStorage(base_url="http://testserver")


@pytest.fixture
def policy(storage):
    return CoverPolicy(storage=storage, placeholder_base_url="https://picsum.photos", max_cover_bytes=1024)


def test_placeholder_is_deterministic():
    assert placeholder_cover_url("Dune") == "https://picsum.photos/seed/Dune/300/450"
    assert placeholder_cover_url("Dune") == placeholder_cover_url("Dune")
    assert placeholder_cover_url("Dune") != placeholder_cover_url("Emma")


def test_placeholder_seed_is_url_encoded():
    assert placeholder_cover_url("War & Peace/Vol 1") == "https://picsum.photos/seed/War%20%26%20Peace%2FVol%201/300/450"


@pytest.mark.parametrize(
    "value, expected",
    [
        ("https://example.com/cover.jpg", True),
        ("http://localhost:8000/covers/a.png", True),
        ("ftp://example.com/cover.jpg", False),
        ("not a url", False),
        ("", False),
        (None, False),
    ],
)
def test_is_valid_http_url(value, expected):
    assert is_valid_http_url(value) is expected


@pytest.mark.asyncio
async def test_new_book_without_cover_gets_title_placeholder(policy):
    resolution = await policy.resolve(owner_id="uid-1", title="Dune")

    assert resolution.url == "https://picsum.photos/seed/Dune/300/450"
    assert resolution.stale_url is None
    assert resolution.uploaded is False


@pytest.mark.asyncio
async def test_placeholder_falls_back_to_seed_then_default(policy):
    assert (await policy.resolve(owner_id="uid-1", title="  ", fallback_seed="book-1")).url.endswith("/seed/book-1/300/450")
    assert (await policy.resolve(owner_id="uid-1", title=None)).url.endswith("/seed/default-book/300/450")


@pytest.mark.asyncio
async def test_upload_takes_precedence_over_url(policy, storage):
    resolution = await policy.resolve(
        owner_id="uid-1",
        title="Dune",
        upload=CoverUpload(data=PNG, filename="dune.png", content_type="image/png"),
        url_input="https://example.com/cover.jpg",
    )

    assert resolution.uploaded is True
    assert resolution.url.startswith("http://testserver/covers/uid-1/")
    assert storage.owns(resolution.url)
    assert len(storage.keys()) == 1


@pytest.mark.asyncio
async def test_supplied_url_is_used(policy):
    resolution = await policy.resolve(owner_id="uid-1", title="Dune", url_input=" https://example.com/cover.jpg ")
    assert resolution.url == "https://example.com/cover.jpg"


@pytest.mark.asyncio
async def test_invalid_url_is_rejected(policy):
    with pytest.raises(PolicyError, match="valid http or https URL"):
        await policy.resolve(owner_id="uid-1", title="Dune", url_input="javascript:alert(1)")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "upload, message",
    [
        (CoverUpload(data=b"%PDF", filename="doc.pdf", content_type="application/pdf"), "must be an image"),
        (CoverUpload(data=b"", filename="empty.png", content_type="image/png"), "is empty"),
        (CoverUpload(data=b"x" * 2048, filename="big.png", content_type="image/png"), "the limit is 1024 bytes"),
    ],
)
async def test_unacceptable_uploads_are_rejected(policy, storage, upload, message):
    with pytest.raises(PolicyError, match=message):
        await policy.resolve(owner_id="uid-1", title="Dune", upload=upload)
    assert storage.keys() == []


@pytest.mark.asyncio
async def test_edit_keeps_existing_cover_when_untouched(policy):
    resolution = await policy.resolve(
        owner_id="uid-1",
        title="Dune",
        current_url="https://example.com/old.jpg",
    )
    assert resolution.url == "https://example.com/old.jpg"
    assert resolution.stale_url is None


@pytest.mark.asyncio
async def test_clearing_an_uploaded_cover_marks_it_stale(policy, storage):
    uploaded = await storage.upload("uid-1", PNG, "old.png", "image/png")

    resolution = await policy.resolve(owner_id="uid-1", title="Dune", current_url=uploaded, url_input="")

    assert resolution.url == "https://picsum.photos/seed/Dune/300/450"
    assert resolution.stale_url == uploaded


@pytest.mark.asyncio
async def test_replacing_an_external_cover_leaves_nothing_stale(policy):
    resolution = await policy.resolve(
        owner_id="uid-1",
        title="Dune",
        current_url="https://example.com/old.jpg",
        url_input="https://example.com/new.jpg",
    )
    assert resolution.url == "https://example.com/new.jpg"
    assert resolution.stale_url is None


@pytest.mark.asyncio
async def test_same_url_is_not_stale(policy, storage):
    uploaded = await storage.upload("uid-1", PNG, "old.png", "image/png")

    resolution = await policy.resolve(owner_id="uid-1", title="Dune", current_url=uploaded, url_input=uploaded)

    assert resolution.url == uploaded
    assert resolution.stale_url is None


@pytest.mark.asyncio
async def test_cleanup_deletes_owned_asset(policy, storage):
    uploaded = await storage.upload("uid-1", PNG, "old.png", "image/png")

    assert await policy.cleanup(uploaded) is None
    assert storage.keys() == []


@pytest.mark.asyncio
async def test_cleanup_ignores_foreign_urls():
    storage = AsyncMock()
    storage.owns = lambda url: False
    policy = CoverPolicy(storage=storage)

    assert await policy.cleanup("https://example.com/cover.jpg") is None
    storage.delete.assert_not_called()


@pytest.mark.asyncio
async def test_cleanup_failure_is_reported_not_raised():
    storage = AsyncMock()
    storage.owns = lambda url: True
    storage.delete.side_effect = StoreUnavailableError("bucket offline")
    policy = CoverPolicy(storage=storage)

    warning = await policy.cleanup("https://bucket.s3.us-east-1.amazonaws.com/covers/uid-1/a.png")

    assert isinstance(warning, CleanupWarning)
    assert warning.url == "https://bucket.s3.us-east-1.amazonaws.com/covers/uid-1/a.png"
    assert "bucket offline" in str(warning)
