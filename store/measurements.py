import logging
from datetime import datetime
from typing import List, Optional, Type, TypeVar

from firebase_admin import firestore
from google.api_core import exceptions as gexc
from google.cloud.firestore_v1 import FieldFilter

from records.codec import EyeType, as_utc
from records.errors import MalformedRecord, NotAuthenticated, OperationFailed
from records.measurements import Measurement

logger = logging.getLogger("store")

M = TypeVar("M", bound=Measurement)


class MeasurementStore:
    """Reads and writes measurement records under ``users/{userId}/<collection>``."""

    def __init__(self, db: firestore.Client):
        self.db = db

    def _collection(self, user_id: str, record_type: Type[Measurement]) -> firestore.CollectionReference:
        if not user_id:
            raise NotAuthenticated("You must be logged in to access measurements")
        return self.db.collection("users").document(user_id).collection(record_type.COLLECTION)

    def add(self, record: M) -> M:
        """Writes a new record and returns it with the document id the store assigned."""
        col = self._collection(record.userId, type(record))
        try:
            ref = col.document()
            ref.set(record.to_dict())
        except gexc.GoogleAPIError as e:
            logger.exception("add_failed collection=%s userId=%s", col.id, record.userId)
            raise OperationFailed(f"Failed to add measurement: {e}") from e
        logger.info("measurement_added collection=%s userId=%s doc_id=%s", col.id, record.userId, ref.id)
        return record.with_id(ref.id)

    def update(self, record: M) -> M:
        if not record.id:
            raise OperationFailed("Invalid measurement ID")
        col = self._collection(record.userId, type(record))
        updated = record.mark_edited()
        try:
            col.document(updated.id).set(updated.to_dict())
        except gexc.GoogleAPIError as e:
            logger.exception("update_failed collection=%s doc_id=%s", col.id, record.id)
            raise OperationFailed(f"Failed to update measurement: {e}") from e
        logger.info("measurement_updated collection=%s userId=%s doc_id=%s", col.id, record.userId, record.id)
        return updated

    def delete(self, record: Measurement) -> None:
        if not record.id:
            raise OperationFailed("Invalid measurement ID")
        col = self._collection(record.userId, type(record))
        try:
            col.document(record.id).delete()
        except gexc.GoogleAPIError as e:
            logger.exception("delete_failed collection=%s doc_id=%s", col.id, record.id)
            raise OperationFailed(f"Failed to delete measurement: {e}") from e
        logger.info("measurement_deleted collection=%s userId=%s doc_id=%s", col.id, record.userId, record.id)

    def get(self, record_type: Type[M], user_id: str, doc_id: str) -> Optional[M]:
        col = self._collection(user_id, record_type)
        try:
            snap = col.document(doc_id).get()
        except gexc.GoogleAPIError as e:
            logger.exception("get_failed collection=%s doc_id=%s", col.id, doc_id)
            raise OperationFailed(f"Failed to fetch measurement: {e}") from e
        if not snap.exists:
            return None
        return record_type.from_snapshot(snap)

    def list(
        self,
        record_type: Type[M],
        user_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        eye: Optional[EyeType] = None,
        descending: bool = False,
    ) -> List[M]:
        """
        Records for one user ordered by visit date.

        ``start``/``end`` bound the visit date inclusively. Documents that fail
        to decode are logged and left out.
        """
        col = self._collection(user_id, record_type)
        query = col
        if start is not None:
            query = query.where(filter=FieldFilter("date", ">=", as_utc(start)))
        if end is not None:
            query = query.where(filter=FieldFilter("date", "<=", as_utc(end)))
        direction = firestore.Query.DESCENDING if descending else firestore.Query.ASCENDING
        query = query.order_by("date", direction=direction)

        out: List[M] = []
        skipped = 0
        try:
            for snap in query.stream():
                try:
                    record = record_type.from_snapshot(snap)
                except MalformedRecord as e:
                    skipped += 1
                    logger.warning("decode_skipped collection=%s doc_id=%s error=%s", col.id, snap.id, e)
                    continue
                if eye is not None and record.eye != eye:
                    continue
                out.append(record)
        except gexc.GoogleAPIError as e:
            logger.exception("list_failed collection=%s userId=%s", col.id, user_id)
            raise OperationFailed(f"Failed to fetch measurements: {e}") from e

        logger.info(
            "measurements_loaded collection=%s userId=%s count=%s skipped=%s", col.id, user_id, len(out), skipped
        )
        return out

    def delete_all(self, record_type: Type[Measurement], user_id: str, batch_size: int = 500) -> int:
        col = self._collection(user_id, record_type)
        deleted = 0
        try:
            while True:
                docs = list(col.limit(batch_size).stream())
                if not docs:
                    break
                batch = self.db.batch()
                for d in docs:
                    batch.delete(d.reference)
                batch.commit()
                deleted += len(docs)
        except gexc.GoogleAPIError as e:
            logger.exception("delete_all_failed collection=%s userId=%s", col.id, user_id)
            raise OperationFailed(f"Failed to delete measurements: {e}") from e
        logger.info("collection_cleared collection=%s userId=%s deleted=%s", col.id, user_id, deleted)
        return deleted
