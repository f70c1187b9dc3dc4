# financial_service/services/storage.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from flask import current_app
from supabase import Client, create_client

logger = logging.getLogger(__name__)

MAX_PDF_BYTES = 50 * 1024 * 1024


class StorageNotConfigured(RuntimeError):
    pass


class InvoiceStorage:
    """
    Thin wrapper over one Supabase Storage bucket.
    The client is created on first use so the app boots without credentials.
    """

    def __init__(self, url: Optional[str], key: Optional[str], bucket: str = "invoices"):
        self.url = url
        self.key = key
        self.bucket = bucket
        self._client: Optional[Client] = None

    @property
    def client(self) -> Client:
        if self._client is None:
            if not self.url or not self.key:
                raise StorageNotConfigured("SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY not set")
            self._client = create_client(self.url, self.key)
        return self._client

    def _bucket(self):
        return self.client.storage.from_(self.bucket)

    def upload(self, path: str, data: bytes, content_type: str = "application/pdf") -> None:
        self._bucket().upload(
            path,
            data,
            file_options={
                "content-type": content_type,
                "cache-control": "no-cache, no-store, must-revalidate",
                "upsert": "true",
            },
        )

    def download(self, path: str) -> bytes:
        return self._bucket().download(path)

    def remove(self, paths: List[str]) -> None:
        self._bucket().remove(paths)

    def list(self, folder: str = "", search: Optional[str] = None) -> List[Dict[str, Any]]:
        options = {"search": search} if search else None
        return self._bucket().list(folder, options) or []

    def public_url(self, path: str) -> str:
        return self._bucket().get_public_url(path)

    def ensure_bucket(self) -> bool:
        """Create the bucket if missing. Returns True when it was created."""
        existing = {b.name for b in self.client.storage.list_buckets()}
        if self.bucket in existing:
            logger.info("Storage bucket %r already exists", self.bucket)
            return False
        self.client.storage.create_bucket(
            self.bucket,
            options={
                "public": True,
                "file_size_limit": MAX_PDF_BYTES,
                "allowed_mime_types": ["application/pdf"],
            },
        )
        logger.info("Created storage bucket %r", self.bucket)
        return True


def init_storage(app) -> InvoiceStorage:
    storage = InvoiceStorage(
        app.config.get("SUPABASE_URL"),
        app.config.get("SUPABASE_SERVICE_ROLE_KEY"),
        app.config.get("INVOICE_BUCKET", "invoices"),
    )
    app.extensions["invoice_storage"] = storage
    return storage


def get_invoice_storage() -> InvoiceStorage:
    return current_app.extensions["invoice_storage"]
