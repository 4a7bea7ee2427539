# Overview: Bill artifact storage (opaque blobs) plus the metadata rows that reference them.

"""
Bill Artifact Store

The core never interprets bill bytes. It hands an upload to a BillStore,
gets back an identifier, content type, size and locator, and records those
in a BillFile row.

LocalBillStore keeps blobs on disk under UPLOAD_FOLDER with random names;
any object exposing the same three methods can be installed on
app.extensions["bill_store"] instead.
"""

from __future__ import annotations

import os
import uuid
from dataclasses import dataclass
from typing import Protocol

from flask import current_app
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from ..extensions import db
from ..errors import InternalError, ValidationError
from ..models import BillFile
from .concurrency import commit_or_raise
from disktrack.time_utils import utcnow


@dataclass(frozen=True)
class StoredBlob:
    identifier: str
    content_type: str
    size: int
    locator: str
    original_name: str


class BillStore(Protocol):
    def save(self, upload: FileStorage) -> StoredBlob: ...

    def open(self, locator: str): ...

    def delete(self, locator: str) -> None: ...


def _checked_name(filename: str | None, allowed_extensions: set[str]) -> tuple[str, str]:
    original = secure_filename(filename or "")
    if not original:
        raise ValidationError("Bill file is required")

    _, ext = os.path.splitext(original)
    ext = ext.lower().lstrip(".")
    if ext not in allowed_extensions:
        raise ValidationError(
            f"Unsupported bill file type: .{ext}",
            details={"allowed": sorted(allowed_extensions)},
        )
    return original, ext


def check_upload(upload: FileStorage) -> None:
    """Reject a missing or disallowed bill before anything is persisted."""
    _checked_name(upload.filename, current_app.config["ALLOWED_BILL_EXTENSIONS"])


class LocalBillStore:
    def __init__(self, root: str, allowed_extensions: set[str]):
        self.root = root
        self.allowed_extensions = allowed_extensions

    def save(self, upload: FileStorage) -> StoredBlob:
        original, ext = _checked_name(upload.filename, self.allowed_extensions)

        identifier = f"{uuid.uuid4().hex}.{ext}"
        locator = os.path.join(self.root, identifier)
        try:
            os.makedirs(self.root, exist_ok=True)
            upload.save(locator)
            size = os.path.getsize(locator)
        except OSError as exc:
            raise InternalError("Failed to store bill file") from exc

        return StoredBlob(
            identifier=identifier,
            content_type=upload.mimetype or "application/octet-stream",
            size=size,
            locator=locator,
            original_name=upload.filename or original,
        )

    def open(self, locator: str):
        if not os.path.isfile(locator):
            return None
        return open(locator, "rb")

    def delete(self, locator: str) -> None:
        try:
            os.remove(locator)
        except FileNotFoundError:
            pass


def get_bill_store() -> BillStore:
    store = current_app.extensions.get("bill_store")
    if store is None:
        store = LocalBillStore(
            current_app.config["UPLOAD_FOLDER"],
            current_app.config["ALLOWED_BILL_EXTENSIONS"],
        )
        current_app.extensions["bill_store"] = store
    return store


def store_bill(
    upload: FileStorage,
    *,
    unit_id: int,
    uploaded_by: str,
    source: str,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> BillFile:
    """
    Store the bytes and persist the metadata row, tagged with the unit,
    the uploader and the calling channel.

    If the metadata row cannot be written, the blob is removed again.
    """
    store = get_bill_store()
    blob = store.save(upload)

    bill = BillFile(
        filename=blob.identifier,
        original_name=blob.original_name,
        mimetype=blob.content_type,
        size=blob.size,
        path=blob.locator,
        file_type="warranty_bill",
        uploaded_by=uploaded_by,
        uploaded_at=utcnow(),
        unit_id=unit_id,
        ip_address=ip_address,
        user_agent=(user_agent or "")[:512] or None,
        source=source,
    )
    db.session.add(bill)
    try:
        commit_or_raise(conflict_message="Bill file metadata conflict")
    except Exception:
        store.delete(blob.locator)
        raise
    return bill


def discard_bill(bill: BillFile) -> None:
    """Remove a bill's metadata row and its blob (saga compensation)."""
    locator = bill.path
    db.session.delete(bill)
    commit_or_raise()
    get_bill_store().delete(locator)


def open_bill(bill_file_id: int):
    """Return (BillFile, binary file object) or (BillFile|None, None)."""
    bill = db.session.get(BillFile, bill_file_id)
    if bill is None:
        return None, None
    return bill, get_bill_store().open(bill.path)
