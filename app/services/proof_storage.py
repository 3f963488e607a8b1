"""Storage for payment-proof uploads.

Proofs are kept outside the database; the order only records the
reference returned by the storage backend.
"""
import logging
import re
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urlparse

from google.cloud import storage

from app.config import get_settings

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = {
    "application/pdf",
    "image/png",
    "image/jpeg",
    "image/gif",
    "image/webp",
}


def build_proof_path(order_id, filename: str) -> str:
    """Storage key: payment-proofs/YYYY/MM/<order>_<random>_<safe filename>."""
    safe_filename = re.sub(r"[^A-Za-z0-9._-]", "_", filename or "proof")
    date_prefix = datetime.utcnow().strftime("%Y/%m")
    return f"payment-proofs/{date_prefix}/{order_id}_{uuid.uuid4().hex[:8]}_{safe_filename}"


class ProofStorage(ABC):
    """Stores proof bytes and returns an opaque reference."""

    @abstractmethod
    def store(self, order_id, content: bytes, filename: str, content_type: str) -> str:
        ...

    @abstractmethod
    def delete(self, ref: str) -> None:
        """Remove a stored proof; used when the order write that recorded it fails."""


class GCSProofStorage(ProofStorage):
    """Cloud Storage backend; references look like gs://bucket/path."""

    def __init__(self, bucket_name: str, project_id: str = ""):
        self.bucket_name = bucket_name
        self.project_id = project_id
        self._storage_client: Optional[storage.Client] = None

    @property
    def storage_client(self) -> storage.Client:
        """Lazy-load storage client."""
        if self._storage_client is None:
            self._storage_client = storage.Client(project=self.project_id or None)
        return self._storage_client

    def store(self, order_id, content: bytes, filename: str, content_type: str) -> str:
        path = build_proof_path(order_id, filename)
        try:
            bucket = self.storage_client.bucket(self.bucket_name)
            blob = bucket.blob(path)
            blob.upload_from_string(content, content_type=content_type)
        except Exception as e:
            logger.error(f"Error uploading payment proof for order {order_id}: {e}")
            raise
        logger.info(f"Uploaded payment proof to gs://{self.bucket_name}/{path}")
        return f"gs://{self.bucket_name}/{path}"

    def delete(self, ref: str) -> None:
        path = ref[len(f"gs://{self.bucket_name}/"):]
        try:
            self.storage_client.bucket(self.bucket_name).blob(path).delete()
        except Exception as e:
            logger.error(f"Error deleting payment proof {ref}: {e}")
            raise
        logger.info(f"Deleted payment proof {ref}")


class LocalProofStorage(ProofStorage):
    """Filesystem backend for local development; references are file:// URIs."""

    def __init__(self, root: str):
        self.root = Path(root)

    def store(self, order_id, content: bytes, filename: str, content_type: str) -> str:
        target = self.root / build_proof_path(order_id, filename)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)
        logger.info(f"Saved payment proof to {target}")
        return target.resolve().as_uri()

    def delete(self, ref: str) -> None:
        Path(unquote(urlparse(ref).path)).unlink(missing_ok=True)
        logger.info(f"Deleted payment proof {ref}")


def get_proof_storage() -> ProofStorage:
    """Storage backend selected by PROOF_STORAGE_BACKEND."""
    settings = get_settings()
    if settings.PROOF_STORAGE_BACKEND == "gcs":
        return GCSProofStorage(settings.GCS_BUCKET_NAME, settings.GCP_PROJECT_ID)
    return LocalProofStorage(settings.PROOF_LOCAL_DIR)
