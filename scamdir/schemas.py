from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from .statuses import BusinessStatus, FlaggedNumberStatus, ReportStatus, ReportType, ReviewStatus


class Record(BaseModel):
    model_config = ConfigDict(from_attributes=True, use_enum_values=False)

    def changed(self, **changes):
        return self.model_copy(update=changes)


class ScamReportRecord(Record):
    id: int
    report_type: ReportType
    phone: Optional[str] = None
    name_on_number: Optional[str] = None
    connected_page: Optional[str] = None
    platform: Optional[str] = None
    description: str
    evidence_url: Optional[str] = None
    business_category: Optional[str] = None
    business_location: Optional[str] = None
    submitter_name: str
    submitter_phone: str
    status: ReportStatus = ReportStatus.NEW
    business_id: Optional[int] = None
    converted_review_id: Optional[int] = None
    converted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class FlaggedNumberRecord(Record):
    id: int
    phone: str
    name_on_number: Optional[str] = None
    connected_page: Optional[str] = None
    admin_note: Optional[str] = None
    status: FlaggedNumberStatus = FlaggedNumberStatus.UNDER_REVIEW
    verified: bool = True
    created_at: Optional[datetime] = None


class BusinessRecord(Record):
    id: int
    name: str
    phone: str
    location: Optional[str] = None
    branches_count: Optional[int] = None
    category: str
    status: Optional[BusinessStatus] = None
    verified: bool = False
    created_by_admin: bool = False
    created_at: Optional[datetime] = None


class ReviewRecord(Record):
    id: int
    business_id: int
    reviewer_name: Optional[str] = None
    reviewer_phone: Optional[str] = None
    rating: int
    body: str = ""
    status: Optional[ReviewStatus] = None
    created_at: Optional[datetime] = None


# public views never carry submitter or reviewer contact details

class PublicReview(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    business_id: int
    reviewer_name: Optional[str] = None
    rating: int
    body: str = ""
    status: Optional[ReviewStatus] = None
    created_at: Optional[datetime] = None


class PublicFlaggedNumber(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    phone: str
    name_on_number: Optional[str] = None
    connected_page: Optional[str] = None
    status: FlaggedNumberStatus
    created_at: Optional[datetime] = None


class BusinessProfile(BaseModel):
    business: BusinessRecord
    reviews: list[PublicReview]


class BusinessCreated(BaseModel):
    id: int
    created: bool


class PageOut(BaseModel):
    rows: list
    page: int
    page_size: int
    has_more: bool


class BulkStatusIn(BaseModel):
    ids: list[int]
    status: Optional[str] = None
    page: int = 1


class BulkStatusOut(BaseModel):
    rows: list
    selection: list[int]
    error: Optional[str] = None
