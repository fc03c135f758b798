from unittest.mock import patch

from scamdir.gateway import TriageStore
from scamdir.statuses import FlaggedNumberStatus, ReportStatus


def test_upsert_returns_previous_row(store):
    first, previous = store.upsert_flagged_number({"phone": "+233501234567", "name_on_number": "Old"})
    assert previous is None

    second, previous = store.upsert_flagged_number(
        {"phone": "+233501234567", "name_on_number": "New", "status": "VERIFIED"}
    )

    assert second.id == first.id
    assert second.name_on_number == "New"
    assert second.status is FlaggedNumberStatus.VERIFIED
    assert previous.name_on_number == "Old"


def test_upsert_overwrites_row_created_after_lookup(store):
    store.upsert_flagged_number({"phone": "+233501234567", "name_on_number": "First admin"})

    # another writer inserted the phone between our lookup and our write
    with patch.object(TriageStore, "_flagged_by_phone", return_value=None):
        stored, previous = store.upsert_flagged_number(
            {"phone": "+233501234567", "name_on_number": "Second admin"}
        )

    assert previous is None
    assert stored.name_on_number == "Second admin"
    assert len(store.list_flagged_numbers().rows) == 1


def test_report_statuses_skip_missing_ids(store, make_report):
    report = make_report(status="REVIEWING")

    statuses = store.report_statuses([report.id, 9999])

    assert list(statuses) == [report.id]
    assert ReportStatus(statuses[report.id]) is ReportStatus.REVIEWING


def test_deleting_business_removes_its_reviews(store, make_business, make_report):
    business = make_business()
    store.insert_review({"business_id": business.id, "rating": 2})
    report = store.update_report(make_report().id, {"business_id": business.id})

    store.delete_business(business.id)

    assert store.list_reviews().rows == []
    assert store.get_report(report.id).business_id is None
