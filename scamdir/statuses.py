from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .errors import InvalidTransition, ValidationError


class ReportType(str, Enum):
    PHONE = "PHONE"
    BUSINESS = "BUSINESS"


class ReportStatus(str, Enum):
    NEW = "NEW"
    REVIEWING = "REVIEWING"
    RESOLVED = "RESOLVED"
    REJECTED = "REJECTED"


class FlaggedNumberStatus(str, Enum):
    UNDER_REVIEW = "UNDER_REVIEW"
    MULTIPLE_REPORTS = "MULTIPLE_REPORTS"
    PATTERN_MATCH_SCAM = "PATTERN_MATCH_SCAM"
    VERIFIED = "VERIFIED"


class BusinessStatus(str, Enum):
    UNDER_REVIEW = "UNDER_REVIEW"
    MULTIPLE_REPORTS = "MULTIPLE_REPORTS"
    PATTERN_MATCH_SCAM = "PATTERN_MATCH_SCAM"
    VERIFIED = "VERIFIED"
    SCAM = "SCAM"


class ReviewStatus(str, Enum):
    UNDER_REVIEW = "UNDER_REVIEW"
    VERIFIED = "VERIFIED"
    SPAM = "SPAM"


@dataclass(frozen=True)
class StatusInfo:
    label: str
    description: str
    tone: str  # badge colour: neutral | info | warning | danger | success


class Lifecycle:
    def __init__(self, kind: str, enum: type[Enum], info: dict, transitions: dict, nullable: bool = False):
        self.kind = kind
        self.enum = enum
        self.info = info
        self.transitions = transitions
        self.nullable = nullable

    def parse(self, value) -> Optional[Enum]:
        if value is None or value == "":
            if self.nullable:
                return None
            raise ValidationError(f"A {self.kind} status is required.")
        if isinstance(value, self.enum):
            return value
        try:
            return self.enum(str(getattr(value, "value", value)).strip().upper())
        except ValueError:
            raise ValidationError(f"Unknown {self.kind} status: {value}.") from None

    def can_move(self, current, target) -> bool:
        current, target = self.parse(current), self.parse(target)
        if current == target:
            return True
        return target in self.transitions.get(current, frozenset())

    def check(self, current, target):
        if not self.can_move(current, target):
            raise InvalidTransition(self.kind, self.parse(current), self.parse(target))
        return self.parse(target)

    def label(self, value) -> str:
        return self.info[self.parse(value)].label

    def options(self) -> list[dict]:
        return [
            {"value": key.value if key is not None else None, "label": meta.label, "tone": meta.tone}
            for key, meta in self.info.items()
        ]


def _free(values) -> dict:
    return {src: frozenset(dst for dst in values if dst != src) for src in values}


REPORT_INFO = {
    ReportStatus.NEW: StatusInfo("New", "Submitted and waiting for triage.", "info"),
    ReportStatus.REVIEWING: StatusInfo("Reviewing", "An admin is looking into this report.", "warning"),
    ReportStatus.RESOLVED: StatusInfo("Resolved", "Converted or otherwise actioned.", "success"),
    ReportStatus.REJECTED: StatusInfo("Rejected", "Dismissed without action.", "neutral"),
}

# a resolved report can only be reopened
REPORT_TRANSITIONS = {
    ReportStatus.NEW: frozenset({ReportStatus.REVIEWING, ReportStatus.RESOLVED, ReportStatus.REJECTED}),
    ReportStatus.REVIEWING: frozenset({ReportStatus.NEW, ReportStatus.RESOLVED, ReportStatus.REJECTED}),
    ReportStatus.RESOLVED: frozenset({ReportStatus.REVIEWING}),
    ReportStatus.REJECTED: frozenset({ReportStatus.NEW, ReportStatus.REVIEWING, ReportStatus.RESOLVED}),
}

TERMINAL_REPORT_STATUSES = frozenset({ReportStatus.RESOLVED, ReportStatus.REJECTED})

FLAGGED_NUMBER_INFO = {
    FlaggedNumberStatus.UNDER_REVIEW: StatusInfo(
        "Under Review", "Information about this number is being reviewed.", "warning"
    ),
    FlaggedNumberStatus.MULTIPLE_REPORTS: StatusInfo(
        "Multiple Reports", "Several reports connect this number to potential risk.", "danger"
    ),
    FlaggedNumberStatus.PATTERN_MATCH_SCAM: StatusInfo(
        "Pattern Match: Known Scam Method", "Activity matches known scam patterns.", "danger"
    ),
    FlaggedNumberStatus.VERIFIED: StatusInfo(
        "Confirmed Scam", "Strong evidence links this number to fraudulent activity.", "danger"
    ),
}

BUSINESS_INFO = {
    None: StatusInfo("No status", "No risk flag has been set.", "neutral"),
    BusinessStatus.UNDER_REVIEW: StatusInfo("Under Review", "Reports are being reviewed.", "warning"),
    BusinessStatus.MULTIPLE_REPORTS: StatusInfo(
        "Multiple Independent Reports", "Several unrelated reports indicate potential risk.", "danger"
    ),
    BusinessStatus.PATTERN_MATCH_SCAM: StatusInfo(
        "Pattern Match: Known Scam Method", "Activity matches known scam patterns.", "danger"
    ),
    BusinessStatus.VERIFIED: StatusInfo(
        "Verified", "This business record has been confirmed as authentic.", "success"
    ),
    BusinessStatus.SCAM: StatusInfo("Confirmed Scam", "Strong evidence of fraudulent activity.", "danger"),
}

REVIEW_INFO = {
    None: StatusInfo("No status", "Not checked yet.", "neutral"),
    ReviewStatus.UNDER_REVIEW: StatusInfo("Under Review", "Review is being checked for accuracy.", "warning"),
    ReviewStatus.VERIFIED: StatusInfo("Verified Review", "Reviewer identity has been validated.", "success"),
    ReviewStatus.SPAM: StatusInfo("Marked as Spam", "Review violated platform rules or was misleading.", "danger"),
}

REPORT = Lifecycle("report", ReportStatus, REPORT_INFO, REPORT_TRANSITIONS)
FLAGGED_NUMBER = Lifecycle("flagged number", FlaggedNumberStatus, FLAGGED_NUMBER_INFO, _free(list(FlaggedNumberStatus)))
BUSINESS = Lifecycle("business", BusinessStatus, BUSINESS_INFO, _free([None, *BusinessStatus]), nullable=True)
REVIEW = Lifecycle("review", ReviewStatus, REVIEW_INFO, _free([None, *ReviewStatus]), nullable=True)


def is_terminal(status) -> bool:
    return REPORT.parse(status) in TERMINAL_REPORT_STATUSES

