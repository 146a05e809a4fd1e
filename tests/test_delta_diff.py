from delta.diff import diff_tables
from delta.types import DiffResult


def test_diff_classifies_every_path():
    baseline = {"a": "1", "b": "2", "c": "3"}
    current = {"a": "1", "b": "9", "d": "4"}

    diff = diff_tables(baseline, current)

    assert diff.changed == {"b"}
    assert diff.added == {"d"}
    assert diff.removed == {"c"}
    assert diff.unchanged_count == 1
    assert diff.changed_or_added == {"b", "d"}
    assert diff.status_line() == "2 files changed/added, 1 removed."


def test_identical_tables_produce_empty_diff():
    table = {"a": "1", "b": "2"}

    diff = diff_tables(table, dict(table))

    assert diff.is_empty
    assert diff.unchanged_count == 2
    assert diff.status_line() == "No changes"


def test_empty_baseline_marks_everything_added():
    diff = diff_tables({}, {"a": "1", "b": "2"})

    assert diff.added == {"a", "b"}
    assert not diff.changed and not diff.removed


def test_empty_current_marks_everything_removed():
    diff = diff_tables({"a": "1"}, {})

    assert diff.removed == {"a"}
    assert diff.status_line() == "0 files changed/added, 1 removed."


def test_partitions_are_disjoint_and_complete():
    baseline = {f"f{i}": str(i) for i in range(0, 40)}
    current = {f"f{i}": str(i if i % 3 else i + 100) for i in range(20, 60)}

    diff = diff_tables(baseline, current)

    assert not (diff.changed & diff.added)
    assert not (diff.changed_or_added & diff.removed)
    everything = set(baseline) | set(current)
    assert len(diff.changed_or_added) + len(diff.removed) + diff.unchanged_count == len(everything)


def test_default_diff_is_empty():
    assert DiffResult().is_empty
