import logging
from contextlib import contextmanager
from typing import Callable, Iterable, Optional

from sqlalchemy import select, update, delete
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .db import SessionLocal
from .errors import NotFoundError, StoreError
from .models import Business, FlaggedNumber, Review, ScamReport
from .pagination import Page, page_window
from .schemas import BusinessRecord, FlaggedNumberRecord, ReviewRecord, ScamReportRecord
from .settings import PAGE_SIZE

logger = logging.getLogger(__name__)

# dialects that support INSERT .. ON CONFLICT
UPSERT_INSERTS = {"sqlite": sqlite.insert, "postgresql": postgresql.insert}

RECORDS = {
    ScamReport: ScamReportRecord,
    FlaggedNumber: FlaggedNumberRecord,
    Business: BusinessRecord,
    Review: ReviewRecord,
}


def _plain(values: dict) -> dict:
    return {k: getattr(v, "value", v) for k, v in values.items()}


class TriageStore:
    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self._session_factory = session_factory

    @contextmanager
    def _session(self, action: str):
        db = self._session_factory()
        try:
            yield db
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Store error during %s: %s", action, e)
            raise StoreError() from e
        finally:
            db.close()

    @staticmethod
    def _record(obj):
        return RECORDS[type(obj)].model_validate(obj)

    def _get(self, db: Session, model, row_id: int):
        obj = db.get(model, row_id)
        if obj is None:
            raise NotFoundError()
        return obj

    # -- reads ------------------------------------------------------------

    def _list(self, model, page, page_size: int, *filters) -> Page:
        offset, limit = page_window(page, page_size)
        with self._session(f"list {model.__tablename__}") as db:
            stmt = select(model)
            if filters:
                stmt = stmt.where(*filters)
            stmt = stmt.order_by(model.created_at.desc(), model.id.desc()).limit(limit).offset(offset)
            rows = [self._record(obj) for obj in db.execute(stmt).scalars().all()]
        return Page(rows=rows, page=offset // page_size + 1, page_size=page_size)

    def list_reports(self, page=1, page_size: int = PAGE_SIZE) -> Page:
        return self._list(ScamReport, page, page_size)

    def list_flagged_numbers(self, page=1, page_size: int = PAGE_SIZE) -> Page:
        return self._list(FlaggedNumber, page, page_size)

    def list_businesses(self, page=1, page_size: int = PAGE_SIZE) -> Page:
        return self._list(Business, page, page_size)

    def list_reviews(self, page=1, page_size: int = PAGE_SIZE, business_id: Optional[int] = None) -> Page:
        filters = [Review.business_id == business_id] if business_id is not None else []
        return self._list(Review, page, page_size, *filters)

    def get_report(self, report_id: int) -> ScamReportRecord:
        with self._session("get report") as db:
            return self._record(self._get(db, ScamReport, report_id))

    def get_business(self, business_id: int) -> BusinessRecord:
        with self._session("get business") as db:
            return self._record(self._get(db, Business, business_id))

    def get_review(self, review_id: int) -> ReviewRecord:
        with self._session("get review") as db:
            return self._record(self._get(db, Review, review_id))

    def get_flagged_number(self, phone: str) -> Optional[FlaggedNumberRecord]:
        with self._session("get flagged number") as db:
            obj = db.execute(select(FlaggedNumber).where(FlaggedNumber.phone == phone)).scalars().first()
            return self._record(obj) if obj else None

    def find_business_id_by_phone(self, phone_normalized: str) -> Optional[int]:
        with self._session("find business by phone") as db:
            stmt = select(Business.id).where(Business.phone_normalized == phone_normalized).limit(1)
            return db.execute(stmt).scalars().first()

    def earliest_reviewer_name(self, reviewer_phone: str) -> Optional[str]:
        with self._session("find reviewer name") as db:
            stmt = (
                select(Review.reviewer_name)
                .where(
                    Review.reviewer_phone == reviewer_phone,
                    Review.reviewer_name.is_not(None),
                    Review.reviewer_name != "",
                )
                .order_by(Review.created_at.asc(), Review.id.asc())
                .limit(1)
            )
            return db.execute(stmt).scalars().first()

    # -- writes -----------------------------------------------------------

    def _insert(self, model, values: dict):
        with self._session(f"insert {model.__tablename__}") as db:
            obj = model(**_plain(values))
            db.add(obj)
            db.commit()
            db.refresh(obj)
            return self._record(obj)

    def _update(self, model, row_id: int, values: dict):
        with self._session(f"update {model.__tablename__}") as db:
            obj = self._get(db, model, row_id)
            for key, value in _plain(values).items():
                setattr(obj, key, value)
            db.commit()
            db.refresh(obj)
            return self._record(obj)

    def _delete(self, model, row_id: int) -> None:
        with self._session(f"delete {model.__tablename__}") as db:
            result = db.execute(delete(model).where(model.id == row_id))
            db.commit()
            if result.rowcount == 0:
                raise NotFoundError()

    def insert_report(self, values: dict) -> ScamReportRecord:
        return self._insert(ScamReport, values)

    def update_report(self, report_id: int, values: dict) -> ScamReportRecord:
        return self._update(ScamReport, report_id, values)

    def bulk_update_report_status(self, ids: Iterable[int], status) -> int:
        return self._bulk_status(ScamReport, ids, status)

    def bulk_update_review_status(self, ids: Iterable[int], status) -> int:
        return self._bulk_status(Review, ids, status)

    def report_statuses(self, ids: Iterable[int]) -> dict:
        return self._statuses(ScamReport, ids)

    def review_statuses(self, ids: Iterable[int]) -> dict:
        return self._statuses(Review, ids)

    def _statuses(self, model, ids) -> dict:
        with self._session(f"read {model.__tablename__} statuses") as db:
            rows = db.execute(select(model.id, model.status).where(model.id.in_(list(ids)))).all()
        return {row_id: status for row_id, status in rows}

    def _bulk_status(self, model, ids, status) -> int:
        ids = list(ids)
        with self._session(f"bulk update {model.__tablename__}") as db:
            stmt = (
                update(model)
                .where(model.id.in_(ids))
                .values(status=getattr(status, "value", status))
                .execution_options(synchronize_session=False)
            )
            result = db.execute(stmt)
            db.commit()
            return result.rowcount

    @staticmethod
    def _flagged_by_phone(db: Session, phone: str):
        return db.execute(select(FlaggedNumber).where(FlaggedNumber.phone == phone)).scalars().first()

    def upsert_flagged_number(self, values: dict) -> tuple[FlaggedNumberRecord, Optional[FlaggedNumberRecord]]:
        # previous state comes back so a failed conversion can put it back
        values = _plain(values)
        with self._session("upsert flagged number") as db:
            obj = self._flagged_by_phone(db, values["phone"])
            previous = self._record(obj) if obj else None
            insert = UPSERT_INSERTS[db.get_bind().dialect.name]
            stmt = insert(FlaggedNumber).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=[FlaggedNumber.phone],
                set_={key: stmt.excluded[key] for key in values},
            )
            db.execute(stmt)
            db.commit()
            stored = db.execute(
                select(FlaggedNumber)
                .where(FlaggedNumber.phone == values["phone"])
                .execution_options(populate_existing=True)
            ).scalars().one()
            return self._record(stored), previous

    def update_flagged_number(self, flagged_id: int, values: dict) -> FlaggedNumberRecord:
        return self._update(FlaggedNumber, flagged_id, values)

    def restore_flagged_number(self, previous: FlaggedNumberRecord) -> FlaggedNumberRecord:
        values = previous.model_dump(exclude={"id", "created_at"})
        return self._update(FlaggedNumber, previous.id, values)

    def delete_flagged_number(self, flagged_id: int) -> None:
        self._delete(FlaggedNumber, flagged_id)

    def insert_business(self, values: dict) -> BusinessRecord:
        return self._insert(Business, values)

    def update_business(self, business_id: int, values: dict) -> BusinessRecord:
        return self._update(Business, business_id, values)

    def delete_business(self, business_id: int) -> None:
        self._delete(Business, business_id)

    def backfill_business_phones(self, normalize: Callable[[str], str]) -> int:
        # rows written before phone_normalized existed
        with self._session("backfill business phones") as db:
            rows = db.execute(select(Business).where(Business.phone_normalized.is_(None))).scalars().all()
            for obj in rows:
                obj.phone_normalized = normalize(obj.phone or "") or None
            db.commit()
            if rows:
                logger.info("Backfilled normalized phone on %d businesses", len(rows))
            return len(rows)

    def insert_review(self, values: dict) -> ReviewRecord:
        return self._insert(Review, values)

    def update_review(self, review_id: int, values: dict) -> ReviewRecord:
        return self._update(Review, review_id, values)

    def delete_review(self, review_id: int) -> None:
        self._delete(Review, review_id)
