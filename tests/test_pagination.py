import pytest

from scamdir.pagination import Page, clamp_page, page_window
from scamdir.settings import PAGE_SIZE


def test_page_size_is_fixed():
    assert PAGE_SIZE == 25


@pytest.mark.parametrize("page,expected", [(1, (0, 25)), (2, (25, 25)), (0, (0, 25)), (-3, (0, 25)), ("4", (75, 25))])
def test_page_window(page, expected):
    assert page_window(page) == expected


def test_clamp_page_rejects_garbage():
    assert clamp_page("abc") == 1
    assert clamp_page(None) == 1


def test_full_page_has_more():
    assert Page(rows=list(range(25))).has_more is True


def test_short_page_is_last():
    assert Page(rows=list(range(24))).has_more is False
    assert Page(rows=[]).has_more is False


def test_exact_multiple_needs_one_empty_page(make_business, store):
    for i in range(PAGE_SIZE):
        make_business(name=f"Business {i}", phone=f"+23320000{i:04d}", phone_normalized=f"+23320000{i:04d}")

    first = store.list_businesses(1)
    assert len(first.rows) == 25
    assert first.has_more is True

    second = store.list_businesses(2)
    assert second.rows == []
    assert second.has_more is False


def test_lists_are_newest_first(make_report, store):
    ids = [make_report(description=f"report {i}").id for i in range(3)]

    page = store.list_reports(1)

    assert [r.id for r in page.rows] == list(reversed(ids))
    assert page.as_dict()["has_more"] is False
