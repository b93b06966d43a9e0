import pytest

from backoffice.adapters.blob_storage import BlobStorageError, LocalBlobStorage


def test_upload_metadata_and_url(tmp_path):
    storage = LocalBlobStorage(root_dir=str(tmp_path), public_base_url="http://cdn.test/blobs/")
    storage.upload("menuImages/Iced Tea", b"img-bytes", content_type="image/png")

    assert (tmp_path / "menuImages" / "Iced Tea").read_bytes() == b"img-bytes"
    meta = storage.set_metadata("menuImages/Iced Tea", cache_control="public,max-age=60")
    assert meta == {"contentType": "image/png", "cacheControl": "public,max-age=60"}
    assert storage.get_download_url("menuImages/Iced Tea") == "http://cdn.test/blobs/menuImages/Iced%20Tea"


def test_reupload_replaces_content(tmp_path):
    storage = LocalBlobStorage(root_dir=str(tmp_path))
    storage.upload("menuImages/Pie", b"v1")
    storage.upload("menuImages/Pie", b"v2")
    assert (tmp_path / "menuImages" / "Pie").read_bytes() == b"v2"


def test_rejects_bad_keys_and_missing_blobs(tmp_path):
    storage = LocalBlobStorage(root_dir=str(tmp_path))
    for key in ("", "../escape", "menuImages/../../etc"):
        with pytest.raises(BlobStorageError):
            storage.upload(key, b"x")
    with pytest.raises(BlobStorageError):
        storage.get_download_url("menuImages/missing")
    with pytest.raises(BlobStorageError):
        storage.set_metadata("menuImages/missing", cache_control="no-cache")
