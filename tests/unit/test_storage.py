"""Local storage provider tests."""

from __future__ import annotations

import pytest

from psyd.storage.service import LocalStorageProvider, S3StorageProvider


@pytest.fixture
def storage(tmp_path) -> LocalStorageProvider:
    return LocalStorageProvider(str(tmp_path / "media"), public_base_url="https://cdn.example.test/")


async def test_upload_writes_file(storage, tmp_path):
    path = await storage.upload("houses/abc/1.webp", b"data", "image/webp")
    assert path == "houses/abc/1.webp"
    assert (tmp_path / "media" / "houses" / "abc" / "1.webp").read_bytes() == b"data"


async def test_remove_deletes_and_ignores_missing(storage, tmp_path):
    await storage.upload("houses/abc/1.webp", b"data", "image/webp")
    await storage.remove(["houses/abc/1.webp", "houses/abc/missing.webp", ""])
    assert not (tmp_path / "media" / "houses" / "abc" / "1.webp").exists()


async def test_upload_outside_root_refused(storage):
    with pytest.raises(ValueError, match="escapes"):
        await storage.upload("../outside.webp", b"data", "image/webp")


async def test_remove_outside_root_never_raises(storage):
    await storage.remove(["../../etc/passwd"])


def test_public_url(storage):
    assert storage.public_url("/houses/abc/1.webp") == "https://cdn.example.test/houses/abc/1.webp"


def test_s3_default_public_url():
    s3 = S3StorageProvider(bucket="house-images", region="ap-southeast-2")
    assert s3.public_url("houses/a.webp") == "https://house-images.s3.ap-southeast-2.amazonaws.com/houses/a.webp"
