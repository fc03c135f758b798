import logging
from typing import Optional

from .dedup import DedupResolver
from .errors import InvalidRating, MissingField, MissingPhone, ValidationError
from .gateway import TriageStore
from .schemas import BusinessRecord, FlaggedNumberRecord, ReviewRecord, ScamReportRecord
from .statuses import BUSINESS, FLAGGED_NUMBER, ReportStatus, ReportType

logger = logging.getLogger(__name__)

UNCATEGORIZED = "Uncategorized"
MAX_CATEGORY_LENGTH = 50


def clean(value) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def require(form: dict, field: str) -> str:
    value = clean(form.get(field))
    if value is None:
        raise MissingField(field)
    return value


def parse_branches(value) -> Optional[int]:
    value = clean(value)
    if value is None:
        return None
    try:
        count = int(value)
    except ValueError:
        raise ValidationError("Number of branches must be a whole number.") from None
    if count < 1:
        raise ValidationError("Number of branches must be at least 1.")
    return count


def parse_rating(value) -> int:
    try:
        rating = int(str(value).strip())
    except (TypeError, ValueError):
        raise InvalidRating() from None
    if not 1 <= rating <= 5:
        raise InvalidRating()
    return rating


class Directory:
    """Public submissions and admin record forms for the directory."""

    def __init__(self, store: TriageStore, resolver: Optional[DedupResolver] = None):
        self.store = store
        self.resolver = resolver or DedupResolver(store)

    # -- reports ----------------------------------------------------------

    def submit_report(self, form: dict) -> ScamReportRecord:
        raw_type = clean(form.get("report_type")) or ""
        try:
            report_type = ReportType(raw_type.upper())
        except ValueError:
            raise ValidationError("Report type must be PHONE or BUSINESS.") from None

        phone = clean(form.get("phone"))
        if report_type is ReportType.PHONE and not phone:
            raise MissingPhone("Phone number is required for phone reports.")

        values = {
            "report_type": report_type,
            "phone": phone,
            "name_on_number": clean(form.get("name_on_number")),
            "connected_page": clean(form.get("connected_page")),
            "platform": clean(form.get("platform")),
            "description": require(form, "description"),
            "evidence_url": clean(form.get("evidence_url")),
            "business_category": clean(form.get("business_category")),
            "business_location": clean(form.get("business_location")),
            "submitter_name": require(form, "submitter_name"),
            "submitter_phone": require(form, "submitter_phone"),
            "status": ReportStatus.NEW,
        }
        report = self.store.insert_report(values)
        logger.info("Report %s submitted (%s)", report.id, report_type.value)
        return report

    # -- businesses -------------------------------------------------------

    def _business_values(self, form: dict) -> dict:
        name = require(form, "name")
        phone = self.resolver.normalize(form.get("phone"))
        if not phone:
            raise MissingPhone("Phone number is required.")
        category = require(form, "category")[:MAX_CATEGORY_LENGTH]
        return {
            "name": name,
            "phone": phone,
            "phone_normalized": phone,
            "location": clean(form.get("location")),
            "branches_count": parse_branches(form.get("branches_count")),
            "category": category,
        }

    def add_business(self, form: dict, by_admin: bool = False) -> tuple[int, bool]:
        values = self._business_values(form)
        existing = self.resolver.find_business_by_phone(values["phone"])
        if existing is not None:
            logger.info("Business with phone %s already exists as %s", values["phone"], existing)
            return existing, False

        if by_admin:
            values.update(
                status=BUSINESS.parse(form.get("status")),
                verified=True,
                created_by_admin=True,
            )
        else:
            values.update(status=None, verified=False, created_by_admin=False)
        business = self.store.insert_business(values)
        logger.info("Business %s created (admin=%s)", business.id, by_admin)
        return business.id, True

    def save_business(self, business_id: int, form: dict) -> BusinessRecord:
        values = self._business_values(form)
        existing = self.resolver.find_business_by_phone(values["phone"])
        if existing is not None and existing != business_id:
            raise ValidationError("Another business already uses this phone number.")
        current = self.store.get_business(business_id)
        values.update(
            status=BUSINESS.check(current.status, form.get("status")),
            verified=True,
            created_by_admin=True,
        )
        return self.store.update_business(business_id, values)

    def business_for_report(self, report: ScamReportRecord) -> tuple[int, bool]:
        # admin-created but unverified while the report is investigated
        phone = self.resolver.normalize(report.phone)
        if not phone:
            raise MissingPhone("Cannot create business: Phone number is missing.")
        existing = self.resolver.find_business_by_phone(phone)
        if existing is not None:
            return existing, False

        name = clean(report.connected_page) or clean(report.name_on_number) or "Unnamed business from report"
        business = self.store.insert_business(
            {
                "name": name,
                "phone": phone,
                "phone_normalized": phone,
                "category": (clean(report.business_category) or UNCATEGORIZED)[:MAX_CATEGORY_LENGTH],
                "location": clean(report.business_location),
                "status": BUSINESS.parse("UNDER_REVIEW"),
                "verified": False,
                "created_by_admin": True,
            }
        )
        logger.info("Business %s created from report %s", business.id, report.id)
        return business.id, True

    # -- reviews ----------------------------------------------------------

    def submit_review(self, business_id: int, form: dict) -> ReviewRecord:
        name = require(form, "reviewer_name")
        rating = parse_rating(form.get("rating"))
        phone = self.resolver.normalize(form.get("reviewer_phone"))
        if not phone:
            raise MissingPhone("Phone number is required.")
        self.store.get_business(business_id)

        # a phone keeps the first name it reviewed under
        name = self.store.earliest_reviewer_name(phone) or name
        return self.store.insert_review(
            {
                "business_id": business_id,
                "reviewer_name": name,
                "reviewer_phone": phone,
                "rating": rating,
                "body": clean(form.get("body")) or "",
            }
        )

    # -- flagged numbers --------------------------------------------------

    def save_flagged_number(self, form: dict, flagged_id: Optional[int] = None) -> FlaggedNumberRecord:
        phone = self.resolver.normalize(form.get("phone"))
        if not phone:
            raise MissingPhone("Phone number is required.")
        values = {
            "phone": phone,
            "name_on_number": clean(form.get("name_on_number")),
            "connected_page": clean(form.get("connected_page")),
            "admin_note": clean(form.get("admin_note")),
            "status": FLAGGED_NUMBER.parse(form.get("status") or "UNDER_REVIEW"),
            "verified": True,
        }
        if flagged_id is None:
            flagged, _ = self.store.upsert_flagged_number(values)
            return flagged
        return self.store.update_flagged_number(flagged_id, values)
