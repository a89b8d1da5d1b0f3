# Copyright (c) EGOGE - All Rights Reserved.
# This software may be used and distributed according to the terms of the MIT license.

"""Append-only log of confirmed workflow steps."""

import logging
from datetime import datetime
from typing import List

from chatstore.domain.entities import ConfirmedStep
from .database import Database
from .records import row_to_confirmed_step, to_millis

logger = logging.getLogger(__name__)


class ConfirmedStepStore:
    """Insert, list and purge confirmed steps. Rows are never updated."""

    def __init__(self, db: Database):
        self.db = db

    def add_confirmed_step(self, step: ConfirmedStep) -> None:
        self.db.execute(
            self.db.statements.add_confirmed_step,
            (
                step.id,
                step.thread_id,
                step.message_id,
                step.scene,
                step.step,
                to_millis(step.created_at),
            ),
        )

    def get_confirmed_steps_by_thread_id(self, thread_id: str) -> List[ConfirmedStep]:
        rows = self.db.fetchall(
            self.db.statements.get_confirmed_steps_by_thread_id, (thread_id,),
        )
        return [row_to_confirmed_step(r) for r in rows]

    def delete_old_confirmed_steps(self, max_date: datetime) -> int:
        cursor = self.db.execute(
            self.db.statements.delete_old_confirmed_steps, (to_millis(max_date),),
        )
        logger.debug("Purged %d confirmed steps older than %s", cursor.rowcount, max_date)
        return cursor.rowcount
