"""
Snapshot Storage Service
Whole-document JSON snapshots keyed by logical name
"""

import json
import logging
from typing import Any, Optional

from sqlalchemy.orm import sessionmaker

from database import get_db_context
from models import StoredDocument


logger = logging.getLogger(__name__)


class SnapshotStore:
    """
    Key-value store of JSON documents.

    Reads never raise: a missing or malformed document yields the caller's
    default. Each save replaces the whole document.
    """

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self.session_factory = session_factory

    def load(self, key: str, default: Any = None) -> Any:
        """
        Load a document

        Args:
            key: Logical document name
            default: Value returned when the document is absent or unreadable

        Returns:
            Decoded JSON value or default
        """
        try:
            with get_db_context(self.session_factory) as session:
                doc = session.query(StoredDocument).filter(
                    StoredDocument.key == key
                ).first()
                raw = doc.payload if doc else None
        except Exception as e:
            logger.error(f"Failed to read snapshot '{key}': {e}")
            return default

        if raw is None:
            return default

        try:
            value = json.loads(raw)
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning(f"Malformed snapshot '{key}', using default: {e}")
            return default

        return default if value is None else value

    def save(self, key: str, value: Any) -> None:
        """Replace a document with a new snapshot"""
        payload = json.dumps(value, default=str)
        with get_db_context(self.session_factory) as session:
            doc = session.query(StoredDocument).filter(
                StoredDocument.key == key
            ).first()
            if doc:
                doc.payload = payload
            else:
                session.add(StoredDocument(key=key, payload=payload))
        logger.debug(f"Saved snapshot '{key}' ({len(payload)} bytes)")

    def delete(self, key: str) -> None:
        with get_db_context(self.session_factory) as session:
            session.query(StoredDocument).filter(
                StoredDocument.key == key
            ).delete()


# Singleton instance
snapshot_store = SnapshotStore()
