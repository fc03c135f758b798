import logging
from typing import Iterable, Optional

from .errors import BulkUpdateFailed, NotFoundError, StoreError
from .gateway import TriageStore
from .statuses import REPORT, REVIEW

logger = logging.getLogger(__name__)


def snapshot_statuses(rows: list, ids: set) -> dict:
    return {row.id: row.status for row in rows if row.id in ids}


def apply_status(rows: list, ids: set, status) -> list:
    return [row.changed(status=status) if row.id in ids else row for row in rows]


def restore_statuses(rows: list, snapshot: dict) -> list:
    return [row.changed(status=snapshot[row.id]) if row.id in snapshot else row for row in rows]


class BulkStatusCoordinator:
    lifecycle = REPORT
    failure_message = "Could not update selected reports. Changes reverted."

    def __init__(self, store: TriageStore, rows: Optional[list] = None):
        self.store = store
        self.rows = list(rows or [])
        self.selection: set = set()
        self.error: Optional[str] = None

    def _current_statuses(self, ids: list) -> dict:
        return self.store.report_statuses(ids)

    def _persist(self, ids: list, status) -> int:
        return self.store.bulk_update_report_status(ids, status)

    def select(self, *ids: int):
        self.selection.update(ids)

    def _check(self, ids: list, target):
        # the view may hold one page only, so stored statuses are authoritative
        current = self._current_statuses(ids)
        missing = [row_id for row_id in ids if row_id not in current]
        if missing:
            logger.warning("Bulk %s status update: ids %s no longer exist", self.lifecycle.kind, missing)
            raise NotFoundError()
        for row_id in ids:
            self.lifecycle.check(current[row_id], target)

    def apply_bulk_status(self, ids: Optional[Iterable[int]] = None, status=None) -> bool:
        ids = set(self.selection if ids is None else ids)
        if not ids:
            return False

        target = self.lifecycle.parse(status)
        self._check(sorted(ids), target)

        snapshot = snapshot_statuses(self.rows, ids)
        self.error = None
        self.rows = apply_status(self.rows, ids, target)

        try:
            self._persist(sorted(ids), target)
        except StoreError as e:
            self.rows = restore_statuses(self.rows, snapshot)
            self.error = self.failure_message
            logger.error("Bulk %s status update of %d rows failed", self.lifecycle.kind, len(ids))
            raise BulkUpdateFailed(self.failure_message) from e

        self.selection.clear()
        logger.info("Bulk %s status update: %d rows -> %s", self.lifecycle.kind, len(ids), getattr(target, "value", target))
        return True

    def apply_status_to_one(self, row_id: int, status) -> bool:
        # single-row edit; whatever was selected stays selected
        selection = set(self.selection)
        try:
            return self.apply_bulk_status({row_id}, status)
        finally:
            self.selection = selection


class ReviewBulkCoordinator(BulkStatusCoordinator):
    lifecycle = REVIEW
    failure_message = "Could not update selected reviews. Changes reverted."

    def _current_statuses(self, ids: list) -> dict:
        return self.store.review_statuses(ids)

    def _persist(self, ids: list, status) -> int:
        return self.store.bulk_update_review_status(ids, status)
