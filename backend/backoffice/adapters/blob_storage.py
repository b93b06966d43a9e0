import json
import os
from typing import Dict, Optional
from urllib.parse import quote

from backoffice.config import settings


class BlobStorageError(Exception):
    pass


class LocalBlobStorage:
    """
    Blob storage on the local filesystem.

    upload / set_metadata / get_download_url mirror the hosted object store
    the dashboard talks to. Metadata (content type, cache control) lives in a
    ``<blob>.meta.json`` sidecar next to each blob.
    """

    def __init__(self, root_dir: Optional[str] = None, public_base_url: Optional[str] = None):
        self.root_dir = os.path.abspath(root_dir or settings.BLOB_STORAGE_DIR)
        self.public_base_url = (public_base_url or settings.BLOB_PUBLIC_BASE_URL).rstrip("/")

    def _path(self, key: str) -> str:
        parts = [p for p in key.replace("\\", "/").split("/") if p]
        if not parts or any(p in (".", "..") for p in parts):
            raise BlobStorageError(f"Invalid blob key: {key!r}")
        return os.path.join(self.root_dir, *parts)

    def _meta_path(self, key: str) -> str:
        return self._path(key) + ".meta.json"

    def exists(self, key: str) -> bool:
        return os.path.isfile(self._path(key))

    def upload(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        path = self._path(key)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "wb") as f:
            f.write(data)
        self._write_meta(key, {"contentType": content_type})
        return key

    def get_metadata(self, key: str) -> Dict:
        if not self.exists(key):
            raise BlobStorageError(f"Blob not found: {key}")
        try:
            with open(self._meta_path(key), "r", encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            return {}

    def set_metadata(self, key: str, cache_control: Optional[str] = None, **extra) -> Dict:
        meta = self.get_metadata(key)
        if cache_control is not None:
            meta["cacheControl"] = cache_control
        meta.update(extra)
        self._write_meta(key, meta)
        return meta

    def get_download_url(self, key: str) -> str:
        if not self.exists(key):
            raise BlobStorageError(f"Blob not found: {key}")
        return f"{self.public_base_url}/{quote(key.strip('/'))}"

    def _write_meta(self, key: str, meta: Dict):
        with open(self._meta_path(key), "w", encoding="utf-8") as f:
            json.dump(meta, f)
