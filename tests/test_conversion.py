from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from scamdir.conversion import (
    REVIEW_HEADER,
    ConversionEngine,
    plan_flagged_number,
    plan_review,
    synthesize_review_body,
)
from scamdir.errors import (
    AlreadyConverted,
    MissingPhone,
    NoBusinessSelected,
    ReportUpdateFailed,
    ReviewInsertFailed,
    StoreError,
    UpsertFailed,
)
from scamdir.statuses import FlaggedNumberStatus, ReportStatus

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def engine(store) -> ConversionEngine:
    return ConversionEngine(store, clock=lambda: NOW, calling_code="233")


def flagged_rows(store):
    return store.list_flagged_numbers().rows


class TestFlaggedNumberConversion:
    def test_converting_twice_keeps_one_row(self, engine, store, make_report):
        report = make_report()

        first = engine.convert_to_flagged_number(report)
        assert first.report.status is ReportStatus.RESOLVED
        assert first.report.converted_at is not None
        assert first.report.converted_review_id is None
        assert first.replaced is False

        second = engine.convert_to_flagged_number(store.get_report(report.id))
        assert second.target_id == first.target_id
        assert second.replaced is True

        rows = flagged_rows(store)
        assert len(rows) == 1
        assert rows[0].phone == "+233501234567"

    def test_payload_copies_report_fields(self, engine, store, make_report):
        report = make_report(name_on_number="  Kojo ", connected_page="Kojo Deals")

        engine.convert_to_flagged_number(report)

        flagged = store.get_flagged_number("+233501234567")
        assert flagged.name_on_number == "Kojo"
        assert flagged.connected_page == "Kojo Deals"
        assert flagged.admin_note == report.description
        assert flagged.status is FlaggedNumberStatus.UNDER_REVIEW
        assert flagged.verified is True

    def test_last_writer_wins(self, engine, store, make_report):
        store.upsert_flagged_number(
            {"phone": "+233501234567", "name_on_number": "Old", "admin_note": "old note", "status": "VERIFIED"}
        )

        engine.convert_to_flagged_number(make_report(name_on_number="New"))

        flagged = store.get_flagged_number("+233501234567")
        assert flagged.name_on_number == "New"
        assert flagged.status is FlaggedNumberStatus.UNDER_REVIEW

    @pytest.mark.parametrize("phone", [None, "", "   "])
    def test_missing_phone(self, engine, store, make_report, phone):
        report = make_report(report_type="BUSINESS", phone=phone, status="REVIEWING")

        with pytest.raises(MissingPhone):
            engine.convert_to_flagged_number(report)

        assert store.get_report(report.id).status is ReportStatus.REVIEWING
        assert flagged_rows(store) == []

    def test_upsert_failure_leaves_report(self, engine, store, make_report):
        report = make_report()
        with patch.object(store, "upsert_flagged_number", side_effect=StoreError()):
            with pytest.raises(UpsertFailed):
                engine.convert_to_flagged_number(report)
        assert store.get_report(report.id).status is ReportStatus.NEW

    def test_report_update_failure_removes_new_flagged_number(self, engine, store, make_report):
        report = make_report()
        with patch.object(store, "update_report", side_effect=StoreError()):
            with pytest.raises(ReportUpdateFailed) as exc:
                engine.convert_to_flagged_number(report)
        assert exc.value.orphaned is False
        assert flagged_rows(store) == []

    def test_report_update_failure_restores_overwritten_row(self, engine, store, make_report):
        store.upsert_flagged_number({"phone": "+233501234567", "name_on_number": "Old", "status": "VERIFIED"})

        with patch.object(store, "update_report", side_effect=StoreError()):
            with pytest.raises(ReportUpdateFailed):
                engine.convert_to_flagged_number(make_report(name_on_number="New"))

        flagged = store.get_flagged_number("+233501234567")
        assert flagged.name_on_number == "Old"
        assert flagged.status is FlaggedNumberStatus.VERIFIED

    def test_failed_compensation_reports_orphan(self, engine, store, make_report):
        with patch.object(store, "update_report", side_effect=StoreError()), patch.object(
            store, "delete_flagged_number", side_effect=StoreError()
        ):
            with pytest.raises(ReportUpdateFailed) as exc:
                engine.convert_to_flagged_number(make_report())
        assert exc.value.orphaned is True
        assert len(flagged_rows(store)) == 1

    def test_terminal_report_warns_but_converts(self, engine, make_report, caplog):
        result = engine.convert_to_flagged_number(make_report(status="REJECTED"))
        assert result.report.status is ReportStatus.RESOLVED
        assert "already REJECTED" in caplog.text


class TestReviewConversion:
    def test_review_conversion_links_report(self, engine, store, make_report, make_business):
        business = make_business()
        report = make_report()

        result = engine.convert_to_review(report, business.id)

        updated = result.report
        assert updated.business_id == business.id
        assert updated.converted_review_id == result.target_id
        assert updated.converted_at is not None
        assert updated.status is ReportStatus.RESOLVED

        review = store.get_review(result.target_id)
        assert review.rating == 1
        assert review.business_id == business.id
        assert review.reviewer_name == report.submitter_name
        assert review.reviewer_phone == report.submitter_phone
        assert review.body.startswith(REVIEW_HEADER)

    @pytest.mark.parametrize("business_id", [None, 0])
    def test_business_required(self, engine, store, make_report, business_id):
        report = make_report()
        with pytest.raises(NoBusinessSelected):
            engine.convert_to_review(report, business_id)
        assert store.list_reviews().rows == []

    def test_second_conversion_is_rejected(self, engine, store, make_report, make_business):
        business = make_business()
        report = make_report()
        engine.convert_to_review(report, business.id)

        with pytest.raises(AlreadyConverted):
            engine.convert_to_review(store.get_report(report.id), business.id)
        assert len(store.list_reviews().rows) == 1

    def test_insert_failure_leaves_report(self, engine, store, make_report, make_business):
        business = make_business()
        report = make_report()
        with patch.object(store, "insert_review", side_effect=StoreError()):
            with pytest.raises(ReviewInsertFailed):
                engine.convert_to_review(report, business.id)

        untouched = store.get_report(report.id)
        assert untouched.status is ReportStatus.NEW
        assert untouched.converted_review_id is None
        assert untouched.converted_at is None

    def test_report_update_failure_deletes_review(self, engine, store, make_report, make_business):
        business = make_business()
        report = make_report()
        with patch.object(store, "update_report", side_effect=StoreError()):
            with pytest.raises(ReportUpdateFailed) as exc:
                engine.convert_to_review(report, business.id)

        assert exc.value.orphaned is False
        assert store.list_reviews().rows == []
        assert store.get_report(report.id).converted_review_id is None

    def test_unknown_business_is_a_store_failure(self, engine, store, make_report):
        report = make_report()

        with pytest.raises(ReviewInsertFailed):
            engine.convert_to_review(report, 9999)

        assert store.list_reviews().rows == []
        untouched = store.get_report(report.id)
        assert untouched.status is ReportStatus.NEW
        assert untouched.business_id is None

    def test_check_review_runs_before_any_write(self, engine, store, make_report, make_business):
        report = make_report()
        engine.convert_to_review(report, make_business().id)

        with pytest.raises(AlreadyConverted):
            engine.check_review(store.get_report(report.id))


class TestReviewBody:
    def test_omitted_fields_leave_no_blank_lines(self, make_report):
        report = make_report(platform=None, connected_page="ScamPage", evidence_url=None, description="Fake invoice")

        body = synthesize_review_body(report)

        assert body.split("\n") == [
            "Converted from report submission",
            "Report type: PHONE",
            "Connected page: ScamPage",
            "Description: Fake invoice",
        ]

    def test_all_fields(self, make_report):
        report = make_report(
            platform="WhatsApp",
            connected_page="ScamPage",
            evidence_url="https://example.com/shot.png",
            description="Fake invoice",
        )

        lines = synthesize_review_body(report).split("\n")

        assert lines[2] == "Platform: WhatsApp"
        assert lines[-1] == "Evidence: https://example.com/shot.png"
        assert len(lines) == 6

    def test_blank_strings_are_omitted(self, make_report):
        report = make_report(platform="  ", connected_page="", description="Fake invoice")
        assert "\n\n" not in synthesize_review_body(report)
        assert len(synthesize_review_body(report).split("\n")) == 3


def test_plans_are_pure(make_report):
    report = make_report()

    flagged = plan_flagged_number(report, NOW, calling_code="233")
    review = plan_review(report, 7, NOW)

    assert flagged.target["phone"] == "+233501234567"
    assert flagged.report_changes == {"status": ReportStatus.RESOLVED, "converted_at": NOW}
    assert review.target["rating"] == 1
    assert review.report_changes["business_id"] == 7
    assert report.status is ReportStatus.NEW
