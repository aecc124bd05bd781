"""Version label ordering and normalization."""

from types import SimpleNamespace

from apps.catalog.services.versioning import normalize_version, pick_latest, version_sort_key


def test_numeric_components_compare_as_numbers() -> None:
    assert version_sort_key("1.10") > version_sort_key("1.9")
    assert version_sort_key("2.0") > version_sort_key("1.99.99")
    assert version_sort_key("10") > version_sort_key("9")


def test_prefix_sorts_first() -> None:
    assert version_sort_key("1.0") < version_sort_key("1.0.1")


def test_numbers_sort_after_letters_at_same_position() -> None:
    assert version_sort_key("1.0.1") > version_sort_key("1.0.beta")


def test_normalize_ignores_whitespace_separators_and_trailing_zeros() -> None:
    assert normalize_version("1.0") == "1"
    assert normalize_version(" 1.0.0 ") == "1"
    assert normalize_version("1-0") == "1"
    assert normalize_version("01.02") == "1.2"
    assert normalize_version("2.0 Beta") == "2.0.beta"


def test_normalize_keeps_distinct_versions_distinct() -> None:
    assert normalize_version("1.0") != normalize_version("1.0.1")
    assert normalize_version("") == ""
    assert normalize_version(None) == ""


def test_pick_latest_prefers_greatest_label_then_highest_id() -> None:
    versions = [
        SimpleNamespace(id=1, version="1.9"),
        SimpleNamespace(id=2, version="1.10"),
        SimpleNamespace(id=3, version="1.2"),
    ]
    assert pick_latest(versions).id == 2

    tied = [SimpleNamespace(id=5, version="1.0"), SimpleNamespace(id=7, version="1.0"), SimpleNamespace(id=6, version="1.0")]
    assert pick_latest(tied).id == 7


def test_pick_latest_empty() -> None:
    assert pick_latest([]) is None
