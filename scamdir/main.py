import logging
import secrets
from typing import Optional

from fastapi import FastAPI, Request, Form, Depends, HTTPException
from fastapi.responses import JSONResponse
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from .bulk import BulkStatusCoordinator, ReviewBulkCoordinator
from .conversion import ConversionEngine
from .db import SessionLocal, engine
from .dedup import DedupResolver, normalize_phone
from .directory import Directory
from .errors import BulkUpdateFailed, NotFoundError, TriageError, ValidationError
from .gateway import TriageStore
from .models import Base
from .schemas import (
    BulkStatusIn,
    BulkStatusOut,
    BusinessCreated,
    BusinessProfile,
    PageOut,
    PublicFlaggedNumber,
    PublicReview,
)
from .settings import ADMIN_PASSWORD, ADMIN_USER, LOG_LEVEL
from .statuses import BUSINESS, FLAGGED_NUMBER, REPORT, REVIEW

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="Scam Directory")

security = HTTPBasic()

if not ADMIN_USER or not ADMIN_PASSWORD:
    raise RuntimeError("ADMIN_USER and ADMIN_PASSWORD must be set in the environment.")

Base.metadata.create_all(bind=engine)
TriageStore(SessionLocal).backfill_business_phones(normalize_phone)


def get_store() -> TriageStore:
    return TriageStore(SessionLocal)


def get_directory(store: TriageStore = Depends(get_store)) -> Directory:
    return Directory(store, DedupResolver(store))


def get_engine(store: TriageStore = Depends(get_store)) -> ConversionEngine:
    return ConversionEngine(store)


def dump(record) -> dict:
    return record.model_dump(mode="json")


@app.exception_handler(TriageError)
async def triage_error_handler(request: Request, exc: TriageError):
    if isinstance(exc, ValidationError):
        status_code = 400
    elif isinstance(exc, NotFoundError):
        status_code = 404
    else:
        status_code = 503
    content = {"detail": exc.message}
    if getattr(exc, "orphaned", False):
        content["orphaned"] = True
    return JSONResponse(status_code=status_code, content=content)


def business_form(
    name: str = Form(...),
    phone: str = Form(...),
    category: str = Form(...),
    location: str = Form(""),
    branches_count: str = Form(""),
    status: str = Form(""),
) -> dict:
    return {
        "name": name,
        "phone": phone,
        "category": category,
        "location": location,
        "branches_count": branches_count,
        "status": status,
    }


def flagged_number_form(
    phone: str = Form(...),
    name_on_number: str = Form(""),
    connected_page: str = Form(""),
    admin_note: str = Form(""),
    status: str = Form("UNDER_REVIEW"),
) -> dict:
    return {
        "phone": phone,
        "name_on_number": name_on_number,
        "connected_page": connected_page,
        "admin_note": admin_note,
        "status": status,
    }


# -- public ---------------------------------------------------------------


@app.get("/businesses", response_model=PageOut)
def list_businesses(page: int = 1, store: TriageStore = Depends(get_store)):
    return store.list_businesses(page).as_dict(dump)


@app.get("/businesses/{business_id}", response_model=BusinessProfile)
def business_profile(business_id: int, store: TriageStore = Depends(get_store)):
    business = store.get_business(business_id)
    reviews = store.list_reviews(1, business_id=business_id).rows
    return BusinessProfile(
        business=business,
        reviews=[PublicReview.model_validate(r.model_dump()) for r in reviews],
    )


@app.post("/businesses", response_model=BusinessCreated)
def add_business(form: dict = Depends(business_form), directory: Directory = Depends(get_directory)):
    business_id, created = directory.add_business(form)
    return BusinessCreated(id=business_id, created=created)


@app.post("/businesses/{business_id}/reviews", response_model=PublicReview)
def submit_review(
    business_id: int,
    reviewer_name: str = Form(...),
    reviewer_phone: str = Form(...),
    rating: str = Form("5"),
    body: str = Form(""),
    directory: Directory = Depends(get_directory),
):
    review = directory.submit_review(
        business_id,
        {"reviewer_name": reviewer_name, "reviewer_phone": reviewer_phone, "rating": rating, "body": body},
    )
    return PublicReview.model_validate(review.model_dump())


@app.get("/flagged-numbers", response_model=PageOut)
def list_flagged_numbers(page: int = 1, store: TriageStore = Depends(get_store)):
    return store.list_flagged_numbers(page).as_dict(
        lambda r: PublicFlaggedNumber.model_validate(r.model_dump()).model_dump(mode="json")
    )


@app.post("/reports", status_code=201)
def submit_report(
    report_type: str = Form(...),
    description: str = Form(""),
    submitter_name: str = Form(""),
    submitter_phone: str = Form(""),
    phone: str = Form(""),
    name_on_number: str = Form(""),
    connected_page: str = Form(""),
    platform: str = Form(""),
    evidence_url: str = Form(""),
    business_category: str = Form(""),
    business_location: str = Form(""),
    directory: Directory = Depends(get_directory),
):
    report = directory.submit_report(
        {
            "report_type": report_type,
            "description": description,
            "submitter_name": submitter_name,
            "submitter_phone": submitter_phone,
            "phone": phone,
            "name_on_number": name_on_number,
            "connected_page": connected_page,
            "platform": platform,
            "evidence_url": evidence_url,
            "business_category": business_category,
            "business_location": business_location,
        }
    )
    return {"id": report.id, "status": report.status.value}


# -- admin ----------------------------------------------------------------


def require_admin(credentials: HTTPBasicCredentials = Depends(security)) -> str:
    user_ok = secrets.compare_digest(credentials.username, ADMIN_USER)
    pass_ok = secrets.compare_digest(credentials.password, ADMIN_PASSWORD)
    if not (user_ok and pass_ok):
        raise HTTPException(status_code=401, detail="Unauthorized", headers={"WWW-Authenticate": "Basic"})
    return credentials.username


@app.get("/admin/statuses")
def admin_statuses(admin_user: str = Depends(require_admin)):
    return {
        "reports": REPORT.options(),
        "flagged_numbers": FLAGGED_NUMBER.options(),
        "businesses": BUSINESS.options(),
        "reviews": REVIEW.options(),
    }


@app.get("/admin/reports", response_model=PageOut)
def admin_reports(page: int = 1, admin_user: str = Depends(require_admin), store: TriageStore = Depends(get_store)):
    return store.list_reports(page).as_dict(dump)


@app.post("/admin/reports/{report_id}/status")
def admin_report_status(
    report_id: int,
    status: str = Form(...),
    admin_user: str = Depends(require_admin),
    store: TriageStore = Depends(get_store),
):
    BulkStatusCoordinator(store).apply_status_to_one(report_id, status)
    logger.info("%s set report %s to %s", admin_user, report_id, REPORT.label(status))
    return dump(store.get_report(report_id))


def _bulk_status(coordinator: BulkStatusCoordinator, payload: BulkStatusIn):
    coordinator.select(*payload.ids)
    try:
        coordinator.apply_bulk_status(status=payload.status)
    except BulkUpdateFailed:
        content = BulkStatusOut(
            rows=[dump(r) for r in coordinator.rows],
            selection=sorted(coordinator.selection),
            error=coordinator.error,
        )
        return JSONResponse(status_code=503, content=content.model_dump(mode="json"))
    return BulkStatusOut(rows=[dump(r) for r in coordinator.rows], selection=sorted(coordinator.selection))


@app.post("/admin/reports/bulk-status", response_model=BulkStatusOut)
def admin_reports_bulk_status(
    payload: BulkStatusIn,
    admin_user: str = Depends(require_admin),
    store: TriageStore = Depends(get_store),
):
    coordinator = BulkStatusCoordinator(store, store.list_reports(payload.page).rows)
    return _bulk_status(coordinator, payload)


@app.post("/admin/reports/{report_id}/flag-number")
def admin_flag_number(
    report_id: int,
    admin_user: str = Depends(require_admin),
    store: TriageStore = Depends(get_store),
    conversions: ConversionEngine = Depends(get_engine),
):
    result = conversions.convert_to_flagged_number(store.get_report(report_id))
    return {"report": dump(result.report), "flagged_number_id": result.target_id, "replaced": result.replaced}


@app.post("/admin/reports/{report_id}/convert-review")
def admin_convert_review(
    report_id: int,
    business_id: Optional[int] = Form(None),
    create_business: bool = Form(False),
    admin_user: str = Depends(require_admin),
    store: TriageStore = Depends(get_store),
    directory: Directory = Depends(get_directory),
    conversions: ConversionEngine = Depends(get_engine),
):
    report = store.get_report(report_id)
    business_created = False
    if business_id is None and create_business:
        conversions.check_review(report)
        business_id, business_created = directory.business_for_report(report)
    result = conversions.convert_to_review(report, business_id)
    return {
        "report": dump(result.report),
        "review_id": result.target_id,
        "business_id": business_id,
        "business_created": business_created,
    }


@app.get("/admin/businesses", response_model=PageOut)
def admin_businesses(page: int = 1, admin_user: str = Depends(require_admin), store: TriageStore = Depends(get_store)):
    return store.list_businesses(page).as_dict(dump)


@app.post("/admin/businesses", response_model=BusinessCreated)
def admin_create_business(
    form: dict = Depends(business_form),
    admin_user: str = Depends(require_admin),
    directory: Directory = Depends(get_directory),
):
    business_id, created = directory.add_business(form, by_admin=True)
    return BusinessCreated(id=business_id, created=created)


@app.post("/admin/businesses/{business_id}")
def admin_edit_business(
    business_id: int,
    form: dict = Depends(business_form),
    admin_user: str = Depends(require_admin),
    directory: Directory = Depends(get_directory),
):
    return dump(directory.save_business(business_id, form))


@app.delete("/admin/businesses/{business_id}", status_code=204)
def admin_delete_business(business_id: int, admin_user: str = Depends(require_admin), store: TriageStore = Depends(get_store)):
    store.delete_business(business_id)


@app.get("/admin/flagged-numbers", response_model=PageOut)
def admin_flagged_numbers(page: int = 1, admin_user: str = Depends(require_admin), store: TriageStore = Depends(get_store)):
    return store.list_flagged_numbers(page).as_dict(dump)


@app.post("/admin/flagged-numbers")
def admin_create_flagged_number(
    form: dict = Depends(flagged_number_form),
    admin_user: str = Depends(require_admin),
    directory: Directory = Depends(get_directory),
):
    return dump(directory.save_flagged_number(form))


@app.post("/admin/flagged-numbers/{flagged_id}")
def admin_edit_flagged_number(
    flagged_id: int,
    form: dict = Depends(flagged_number_form),
    admin_user: str = Depends(require_admin),
    directory: Directory = Depends(get_directory),
):
    return dump(directory.save_flagged_number(form, flagged_id))


@app.delete("/admin/flagged-numbers/{flagged_id}", status_code=204)
def admin_delete_flagged_number(flagged_id: int, admin_user: str = Depends(require_admin), store: TriageStore = Depends(get_store)):
    store.delete_flagged_number(flagged_id)


@app.get("/admin/reviews", response_model=PageOut)
def admin_reviews(page: int = 1, admin_user: str = Depends(require_admin), store: TriageStore = Depends(get_store)):
    return store.list_reviews(page).as_dict(dump)


@app.post("/admin/reviews/{review_id}/status")
def admin_review_status(
    review_id: int,
    status: str = Form(""),
    admin_user: str = Depends(require_admin),
    store: TriageStore = Depends(get_store),
):
    ReviewBulkCoordinator(store).apply_status_to_one(review_id, status)
    return dump(store.get_review(review_id))


@app.post("/admin/reviews/bulk-status", response_model=BulkStatusOut)
def admin_reviews_bulk_status(
    payload: BulkStatusIn,
    admin_user: str = Depends(require_admin),
    store: TriageStore = Depends(get_store),
):
    coordinator = ReviewBulkCoordinator(store, store.list_reviews(payload.page).rows)
    return _bulk_status(coordinator, payload)


@app.delete("/admin/reviews/{review_id}", status_code=204)
def admin_delete_review(review_id: int, admin_user: str = Depends(require_admin), store: TriageStore = Depends(get_store)):
    store.delete_review(review_id)
