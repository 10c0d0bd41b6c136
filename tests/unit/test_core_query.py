import pytest

from identity_manager.core.query import UNBOUNDED, normalize_page, query

NAMES = ["carol", "Alice", "bob", "alicia", "dave", "Bobby"]


def run(filter=None, start=0, count=-1, case_sensitive=False):
    return query(NAMES, key=lambda name: name, filter=filter, start=start, count=count, case_sensitive=case_sensitive)


def test_orders_by_name_case_insensitively():
    assert run().items == ["Alice", "alicia", "bob", "Bobby", "carol", "dave"]


@pytest.mark.parametrize("blank", [None, "", "   "])
def test_blank_filter_matches_everything(blank):
    result = run(filter=blank)
    assert result.total == len(NAMES)


def test_filter_is_substring_and_case_insensitive_by_default():
    result = run(filter="ALI")
    assert result.items == ["Alice", "alicia"]
    assert result.total == 2
    assert result.filter == "ALI"


def test_case_sensitive_filter():
    assert run(filter="Bob", case_sensitive=True).items == ["Bobby"]


def test_total_counts_matches_before_paging():
    result = run(filter="b", start=1, count=1)
    assert result.total == 2
    assert result.items == ["Bobby"]


@pytest.mark.parametrize("start, count", [(0, 2), (1, 3), (4, 10), (5, 1), (6, 2), (10, 3)])
def test_page_is_contiguous_slice_of_full_result(start, count):
    full = run().items
    page = run(start=start, count=count)

    assert page.items == full[start:start + count]
    assert len(page.items) == max(0, min(count, len(full) - start))


def test_negative_start_behaves_like_zero():
    assert run(start=-5, count=2).items == run(start=0, count=2).items
    assert run(start=-5).start == 0


def test_negative_count_means_unbounded():
    result = run(start=2, count=-1)
    assert result.items == run().items[2:]
    assert result.count == UNBOUNDED


def test_normalize_page():
    assert normalize_page(-1, -1) == (0, UNBOUNDED)
    assert normalize_page(3, 7) == (3, 7)


def test_missing_names_sort_first():
    result = query(["b", None, "a"], key=lambda name: name)
    assert result.items == [None, "a", "b"]
