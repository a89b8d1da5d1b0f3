# Copyright (c) EGOGE - All Rights Reserved.
# This software may be used and distributed according to the terms of the MIT license.

"""File metadata CRUD operations. File contents are stored elsewhere."""

import logging
from datetime import datetime
from typing import List, Optional

from chatstore.domain.entities import FileMeta
from chatstore.domain.exceptions import ConstraintError
from .database import Database, chunked, in_placeholders
from .records import row_to_file, to_millis

logger = logging.getLogger(__name__)


class FileStore:
    """CRUD operations for file metadata."""

    def __init__(self, db: Database):
        self.db = db

    def add_file(self, meta: FileMeta) -> None:
        """Insert file metadata. Raises ConstraintError on a duplicate id or bad size."""
        if not isinstance(meta.size, int) or isinstance(meta.size, bool) or meta.size < 0:
            raise ConstraintError(
                f"File size must be a non-negative integer, got {meta.size!r} for {meta.id!r}"
            )
        self.db.execute(
            self.db.statements.add_file,
            (meta.id, meta.name, meta.size, meta.mime_type, to_millis(meta.created_at)),
        )

    def get_file_by_id(self, file_id: str) -> Optional[FileMeta]:
        row = self.db.fetchone(self.db.statements.get_file_by_id, (file_id,))
        return row_to_file(row) if row else None

    def get_files_by_ids(self, file_ids: List[str]) -> List[FileMeta]:
        """Fetch several files at once, in no particular order."""
        if not file_ids:
            return []
        unique_ids = list(dict.fromkeys(file_ids))
        files = []
        for batch in chunked(unique_ids):
            rows = self.db.fetchall(
                f"SELECT * FROM files WHERE id IN ({in_placeholders(len(batch))})",
                tuple(batch),
            )
            files.extend(row_to_file(r) for r in rows)
        return files

    def delete_file_by_id(self, file_id: str) -> Optional[FileMeta]:
        """Delete file metadata and return it as it was before deletion."""
        stmts = self.db.statements
        if stmts.delete_file_returning is not None:
            with self.db.transaction():
                rows = self.db.fetchall(stmts.delete_file_returning, (file_id,))
                return row_to_file(rows[0]) if rows else None

        logger.debug("Deleting file %s without RETURNING", file_id)
        with self.db.transaction():
            row = self.db.fetchone(stmts.get_file_by_id, (file_id,))
            if row is None:
                return None
            meta = row_to_file(row)
            self.db.execute(stmts.delete_file_by_id, (file_id,))
        return meta

    def delete_old_files(self, max_date: datetime) -> List[str]:
        """Delete metadata created before *max_date* and return the deleted ids.

        A single DELETE ... RETURNING when the engine supports it; otherwise
        the select and the delete share one transaction.
        """
        stmts = self.db.statements
        cutoff = to_millis(max_date)
        if stmts.delete_old_files_returning is not None:
            rows = self.db.fetchall(stmts.delete_old_files_returning, (cutoff,))
            ids = [r["id"] for r in rows]
        else:
            with self.db.transaction():
                ids = [r["id"] for r in self.db.fetchall(stmts.select_old_file_ids, (cutoff,))]
                for batch in chunked(ids):
                    self.db.execute(
                        f"DELETE FROM files WHERE id IN ({in_placeholders(len(batch))})",
                        tuple(batch),
                    )
        logger.debug("Purged %d files older than %s", len(ids), max_date)
        return ids
