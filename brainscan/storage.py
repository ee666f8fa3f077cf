"""
Persistence collaborators: an object store for uploaded images and a metadata
store for scan results, plus ScanArchive which ties the two together.
"""

import logging
import time
import uuid
from pathlib import Path

from sqlalchemy.exc import SQLAlchemyError

from brainscan import config
from brainscan.database import ScanHistory
from brainscan.exceptions import PersistenceError, RecordNotFoundError, StorageError

logger = logging.getLogger(__name__)


def safe_filename(name):
    name = Path(name or "scan").name
    return "".join(c if c.isalnum() or c in "._-" else "_" for c in name) or "scan"


class LocalObjectStore:
    """Images on disk, namespaced by owner: <root>/<owner>/<millis>_<rand>_<name>."""

    def __init__(self, root=None):
        self.root = Path(root or config.UPLOAD_DIR).resolve()

    def _path(self, location):
        path = (self.root / location).resolve()
        if self.root not in path.parents:
            raise StorageError(f"Invalid storage location: {location}")
        return path

    def store(self, data, owner_key, filename):
        location = (
            f"{safe_filename(str(owner_key))}/"
            f"{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}_{safe_filename(filename)}"
        )
        path = self._path(location)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            # exclusive create, no overwrites
            with open(path, "xb") as f:
                f.write(data)
        except OSError as e:
            logger.error("Upload error: %s", e)
            raise StorageError(f"Failed to upload image: {e}") from e
        return location

    def open(self, location):
        try:
            return self._path(location).read_bytes()
        except OSError as e:
            raise StorageError(f"Failed to read image: {e}") from e

    def delete(self, location):
        try:
            self._path(location).unlink()
        except OSError as e:
            raise StorageError(f"Failed to delete image: {e}") from e


class ScanHistoryStore:
    """scan_history rows, always filtered by owner."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def insert(self, owner_id, location, result, file_name=None, file_size=None):
        record = ScanHistory(
            user_id=owner_id,
            image_url=location,
            file_name=file_name,
            file_size=file_size,
            tumor_detected=result.tumor_detected,
            confidence=result.confidence,
            tumor_level=result.tumor_level,
            tumor_type=result.tumor_type,
            recommendations=list(result.recommendations),
            processing_time=result.processing_time,
            all_predictions=[
                {"class": name, "confidence": pct} for name, pct in result.all_predictions
            ],
            fallback_used=result.fallback_used,
        )
        with self.session_factory() as db:
            try:
                db.add(record)
                db.commit()
                db.refresh(record)
            except SQLAlchemyError as e:
                db.rollback()
                logger.error("Database save error: %s", e)
                raise PersistenceError(f"Failed to save scan: {e}") from e
            return record.id

    def query(self, owner_id, limit=None):
        if limit is None:
            limit = config.HISTORY_LIMIT
        if limit < 1:
            raise ValueError(f"limit must be at least 1, got {limit}")
        with self.session_factory() as db:
            try:
                return (
                    db.query(ScanHistory)
                    .filter(ScanHistory.user_id == owner_id)
                    .order_by(ScanHistory.created_at.desc(), ScanHistory.id.desc())
                    .limit(limit)
                    .all()
                )
            except SQLAlchemyError as e:
                logger.error("Fetch history error: %s", e)
                raise PersistenceError(f"Failed to fetch history: {e}") from e

    def get(self, record_id, owner_id):
        with self.session_factory() as db:
            record = (
                db.query(ScanHistory)
                .filter(ScanHistory.id == record_id, ScanHistory.user_id == owner_id)
                .first()
            )
        if record is None:
            raise RecordNotFoundError(f"Scan {record_id} not found")
        return record

    def delete(self, record_id, owner_id):
        with self.session_factory() as db:
            try:
                deleted = (
                    db.query(ScanHistory)
                    .filter(ScanHistory.id == record_id, ScanHistory.user_id == owner_id)
                    .delete()
                )
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                logger.error("Database delete error: %s", e)
                raise PersistenceError(f"Failed to delete scan: {e}") from e
        if not deleted:
            raise RecordNotFoundError(f"Scan {record_id} not found")


class ScanArchive:
    def __init__(self, objects, records):
        self.objects = objects
        self.records = records

    def save(self, owner_id, image_bytes, file_name, result):
        location = self.objects.store(image_bytes, owner_id, file_name)
        try:
            record_id = self.records.insert(
                owner_id, location, result, file_name=file_name, file_size=len(image_bytes)
            )
        except PersistenceError:
            try:
                self.objects.delete(location)
            except StorageError as e:
                logger.warning("Could not remove image %s after failed save: %s", location, e)
            raise
        logger.info("Saved scan %s for user %s", record_id, owner_id)
        return record_id, location

    def history(self, owner_id, limit=None):
        return self.records.query(owner_id, limit)

    def delete(self, owner_id, record_id):
        record = self.records.get(record_id, owner_id)
        self.records.delete(record_id, owner_id)

        try:
            self.objects.delete(record.image_url)
        except StorageError as e:
            # Row is already gone; the orphaned blob is left behind
            logger.warning("Storage delete error for scan %s: %s", record_id, e)
