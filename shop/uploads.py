# shop/uploads.py — proof-of-payment and product photo intake
"""
Uploaded files are only checked (declared type, extension, size) and written to disk.
Nothing here opens or decodes the content.

Layout under MEDIA_ROOT:
    uploads/products/<timestamp>-<token><ext>
    uploads/payment_proofs/<timestamp>-<token><ext>
"""
import logging
import os
import secrets
from datetime import datetime, timezone

from django.conf import settings
from django.core.files.storage import default_storage

from .exceptions import UploadRejectedError, UploadTooLargeError

logger = logging.getLogger(__name__)

PRODUCT_IMAGES = "products"
PAYMENT_PROOFS = "payment_proofs"

IMAGE_TYPES = {
    "image/jpeg": (".jpg", ".jpeg"),
    "image/png": (".png",),
    "image/gif": (".gif",),
    "image/webp": (".webp",),
}

ALLOWED_TYPES = {
    PRODUCT_IMAGES: IMAGE_TYPES,
    PAYMENT_PROOFS: {**IMAGE_TYPES, "application/pdf": (".pdf",)},
}

BASE_DIR = "uploads"


def _max_bytes() -> int:
    return int(getattr(settings, "UPLOAD_MAX_BYTES", 5 * 1024 * 1024))


def stored_name(original_name: str) -> str:
    ext = os.path.splitext(original_name or "")[1].lower()
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S")
    return f"{stamp}-{secrets.token_hex(8)}{ext}"


def validate(uploaded, purpose: str) -> None:
    if purpose not in ALLOWED_TYPES:
        raise ValueError(f"Unknown upload purpose: {purpose}")

    size = getattr(uploaded, "size", None) or 0
    if size <= 0:
        raise UploadRejectedError("Uploaded file is empty.")
    limit = _max_bytes()
    if size > limit:
        raise UploadTooLargeError(
            f"File is {size} bytes, the limit is {limit} bytes.", max_bytes=limit
        )

    allowed = ALLOWED_TYPES[purpose]
    content_type = (getattr(uploaded, "content_type", "") or "").split(";")[0].strip().lower()
    if content_type not in allowed:
        raise UploadRejectedError(
            f"Type {content_type or 'unknown'} not allowed, use one of: {', '.join(sorted(allowed))}."
        )
    ext = os.path.splitext(getattr(uploaded, "name", "") or "")[1].lower()
    if ext not in allowed[content_type]:
        raise UploadRejectedError(f"Extension {ext or '(none)'} does not match {content_type}.")


def store(uploaded, purpose: str) -> str:
    """Validates and saves the file; returns the reference path kept in the database."""
    validate(uploaded, purpose)
    path = f"{BASE_DIR}/{purpose}/{stored_name(uploaded.name)}"
    reference = default_storage.save(path, uploaded)
    logger.info("Stored %s upload %s (%s bytes)", purpose, reference, uploaded.size)
    return reference


def discard(reference: str) -> None:
    """Removes a stored upload whose order attempt failed."""
    if not reference:
        return
    try:
        default_storage.delete(reference)
    except OSError:
        logger.warning("Could not remove orphan upload %s", reference)


def url_for(reference: str) -> str:
    if not reference:
        return ""
    if reference.startswith(("http://", "https://", "/")):
        return reference
    return default_storage.url(reference)
