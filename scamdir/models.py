from sqlalchemy import Column, Integer, Text, DateTime, Boolean, ForeignKey, SmallInteger, CheckConstraint, true, false
from sqlalchemy.sql import func

from .db import Base


class ScamReport(Base):
    __tablename__ = "scam_reports"

    id = Column(Integer, primary_key=True, autoincrement=True)
    report_type = Column(Text, nullable=False)  # PHONE | BUSINESS
    phone = Column(Text)
    name_on_number = Column(Text)
    connected_page = Column(Text)
    platform = Column(Text)
    description = Column(Text, nullable=False)
    evidence_url = Column(Text)
    business_category = Column(Text)
    business_location = Column(Text)

    # never shown publicly
    submitter_name = Column(Text, nullable=False)
    submitter_phone = Column(Text, nullable=False)

    status = Column(Text, nullable=False, server_default="NEW")

    business_id = Column(Integer, ForeignKey("businesses.id", ondelete="SET NULL"))
    converted_review_id = Column(Integer, ForeignKey("reviews.id", ondelete="SET NULL"))
    converted_at = Column(DateTime(timezone=True))

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class FlaggedNumber(Base):
    __tablename__ = "flagged_numbers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    phone = Column(Text, nullable=False, unique=True)
    name_on_number = Column(Text)
    connected_page = Column(Text)
    admin_note = Column(Text)
    status = Column(Text, nullable=False, server_default="UNDER_REVIEW")
    verified = Column(Boolean, server_default=true(), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class Business(Base):
    __tablename__ = "businesses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(Text, nullable=False)
    phone = Column(Text, nullable=False)
    phone_normalized = Column(Text, index=True)
    location = Column(Text)
    branches_count = Column(Integer)
    category = Column(Text, nullable=False)
    status = Column(Text)  # null means no risk flag
    verified = Column(Boolean, server_default=false(), nullable=False)
    created_by_admin = Column(Boolean, server_default=false(), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class Review(Base):
    __tablename__ = "reviews"
    __table_args__ = (CheckConstraint("rating BETWEEN 1 AND 5", name="ck_reviews_rating"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    business_id = Column(Integer, ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False)
    reviewer_name = Column(Text)
    reviewer_phone = Column(Text)
    rating = Column(SmallInteger, nullable=False)
    body = Column(Text, nullable=False, server_default="")
    status = Column(Text)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
