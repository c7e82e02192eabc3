"""
Document Store

Keyed JSON records grouped by collection, with merge-on-save semantics.
There are no multi-document transactions: every call commits on its own.
"""
import copy
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified

from snazzpay.models.document import Document
from snazzpay.utils.cache import clear_for_collection
from snazzpay.utils.logger import log


class DocumentStore:
    """get/save/delete records addressed by (collection, id)"""

    def __init__(self, db: Session):
        self.db = db

    def _get_row(self, collection: str, doc_id: str) -> Optional[Document]:
        return self.db.query(Document).filter(
            Document.collection == collection,
            Document.doc_id == doc_id
        ).first()

    def get_collection(self, collection: str) -> List[Dict[str, Any]]:
        """All records in a collection, oldest first"""
        rows = self.db.query(Document).filter(
            Document.collection == collection
        ).order_by(Document.id).all()
        return [copy.deepcopy(row.data) for row in rows]

    def get_document(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        row = self._get_row(collection, doc_id)
        return copy.deepcopy(row.data) if row else None

    def find_by_field(self, collection: str, field: str, value: Any) -> List[Dict[str, Any]]:
        """Records whose top-level `field` equals `value`"""
        return [
            record for record in self.get_collection(collection)
            if record.get(field) == value
        ]

    def save_document(self, collection: str, data: Dict[str, Any], doc_id: Optional[str] = None) -> str:
        """
        Upsert a record, merging top-level keys into any existing one.

        Returns the record id. A new id is generated when none is given, and
        the id is always written back into the record.
        """
        doc_id = doc_id or data.get("id") or uuid.uuid4().hex

        row = self._get_row(collection, doc_id)
        if row:
            merged = dict(row.data or {})
            merged.update(data)
            merged["id"] = doc_id
            row.data = merged
            flag_modified(row, "data")
        else:
            record = dict(data)
            record["id"] = doc_id
            row = Document(collection=collection, doc_id=doc_id, data=record)
            self.db.add(row)

        try:
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            log.error(f"Failed to save {collection}/{doc_id}: {str(e)}")
            raise

        clear_for_collection(collection)
        return doc_id

    def delete_document(self, collection: str, doc_id: str) -> None:
        row = self._get_row(collection, doc_id)
        if not row:
            return
        self.db.delete(row)
        try:
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            log.error(f"Failed to delete {collection}/{doc_id}: {str(e)}")
            raise
        clear_for_collection(collection)
