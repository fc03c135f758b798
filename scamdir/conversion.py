import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from .dedup import normalize_phone
from .errors import (
    AlreadyConverted,
    MissingPhone,
    NoBusinessSelected,
    ReportUpdateFailed,
    ReviewInsertFailed,
    StoreError,
    UpsertFailed,
)
from .gateway import TriageStore
from .schemas import FlaggedNumberRecord, ScamReportRecord
from .settings import DEFAULT_CALLING_CODE
from .statuses import REPORT, FlaggedNumberStatus, ReportStatus, is_terminal

logger = logging.getLogger(__name__)

REVIEW_HEADER = "Converted from report submission"
CONVERTED_RATING = 1


@dataclass(frozen=True)
class ConversionPlan:
    target: dict
    report_changes: dict


@dataclass
class Conversion:
    report: ScamReportRecord
    target_id: int
    replaced: bool = False


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _text(value) -> Optional[str]:
    if value is None:
        return None
    value = str(getattr(value, "value", value)).strip()
    return value or None


def synthesize_review_body(report: ScamReportRecord) -> str:
    fields = [
        ("Report type", report.report_type),
        ("Platform", report.platform),
        ("Connected page", report.connected_page),
        ("Description", report.description),
        ("Evidence", report.evidence_url),
    ]
    lines = [REVIEW_HEADER]
    lines.extend(f"{label}: {_text(value)}" for label, value in fields if _text(value))
    return "\n".join(lines)


def resolved_changes(now: datetime, business_id: Optional[int] = None, review_id: Optional[int] = None) -> dict:
    changes = {"status": ReportStatus.RESOLVED, "converted_at": now}
    if business_id is not None:
        changes["business_id"] = business_id
    if review_id is not None:
        changes["converted_review_id"] = review_id
    return changes


def plan_flagged_number(report: ScamReportRecord, now: datetime, calling_code=DEFAULT_CALLING_CODE) -> ConversionPlan:
    phone = normalize_phone(report.phone, calling_code)
    if not phone:
        raise MissingPhone()
    REPORT.check(report.status, ReportStatus.RESOLVED)
    target = {
        "phone": phone,
        "name_on_number": _text(report.name_on_number),
        "connected_page": _text(report.connected_page),
        "admin_note": _text(report.description),
        "status": FlaggedNumberStatus.UNDER_REVIEW,
        "verified": True,
    }
    return ConversionPlan(target=target, report_changes=resolved_changes(now))


def check_review_conversion(report: ScamReportRecord):
    if report.converted_review_id is not None:
        raise AlreadyConverted()
    REPORT.check(report.status, ReportStatus.RESOLVED)


def plan_review(report: ScamReportRecord, business_id: Optional[int], now: datetime) -> ConversionPlan:
    if not business_id:
        raise NoBusinessSelected()
    check_review_conversion(report)
    target = {
        "business_id": business_id,
        "reviewer_name": report.submitter_name,
        "reviewer_phone": report.submitter_phone,
        "rating": CONVERTED_RATING,
        "body": synthesize_review_body(report),
    }
    # review id is filled in once the insert returns it
    return ConversionPlan(target=target, report_changes=resolved_changes(now, business_id=business_id))


class ConversionEngine:
    def __init__(
        self,
        store: TriageStore,
        clock: Callable[[], datetime] = utcnow,
        calling_code: Optional[str] = DEFAULT_CALLING_CODE,
    ):
        self.store = store
        self.clock = clock
        self.calling_code = calling_code

    def _warn_if_terminal(self, report: ScamReportRecord, action: str):
        if is_terminal(report.status):
            logger.warning("Report %s is already %s; running %s again", report.id, report.status.value, action)

    def convert_to_flagged_number(self, report: ScamReportRecord) -> Conversion:
        plan = plan_flagged_number(report, self.clock(), self.calling_code)
        self._warn_if_terminal(report, "flagged number conversion")

        try:
            flagged, previous = self.store.upsert_flagged_number(plan.target)
        except StoreError as e:
            raise UpsertFailed() from e

        try:
            updated = self.store.update_report(report.id, plan.report_changes)
        except StoreError as e:
            orphaned = not self._undo_flagged_number(flagged, previous)
            raise ReportUpdateFailed(
                "Number flagged, but failed to update report status."
                if orphaned
                else "Failed to update report status. The flagged number was not changed.",
                orphaned=orphaned,
            ) from e

        logger.info("Report %s converted to flagged number %s", report.id, flagged.id)
        return Conversion(report=updated, target_id=flagged.id, replaced=previous is not None)

    def check_review(self, report: ScamReportRecord):
        check_review_conversion(report)

    def convert_to_review(self, report: ScamReportRecord, business_id: Optional[int]) -> Conversion:
        plan = plan_review(report, business_id, self.clock())
        self._warn_if_terminal(report, "review conversion")

        try:
            review = self.store.insert_review(plan.target)
        except StoreError as e:
            raise ReviewInsertFailed() from e

        changes = dict(plan.report_changes, converted_review_id=review.id)
        try:
            updated = self.store.update_report(report.id, changes)
        except StoreError as e:
            orphaned = not self._undo_review(review.id)
            raise ReportUpdateFailed(
                "Review created, but failed to update report status."
                if orphaned
                else "Failed to update report status. The review was removed.",
                orphaned=orphaned,
            ) from e

        logger.info("Report %s converted to review %s on business %s", report.id, review.id, business_id)
        return Conversion(report=updated, target_id=review.id)

    # -- compensation -----------------------------------------------------

    def _undo_flagged_number(self, flagged: FlaggedNumberRecord, previous: Optional[FlaggedNumberRecord]) -> bool:
        try:
            if previous is None:
                self.store.delete_flagged_number(flagged.id)
            else:
                self.store.restore_flagged_number(previous)
        except StoreError:
            logger.error("Flagged number %s left orphaned after failed report update", flagged.id)
            return False
        return True

    def _undo_review(self, review_id: int) -> bool:
        try:
            self.store.delete_review(review_id)
        except StoreError:
            logger.error("Review %s left orphaned after failed report update", review_id)
            return False
        return True
