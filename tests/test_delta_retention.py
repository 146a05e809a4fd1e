from datetime import date, datetime

import pytest

from delta.retention import (
    RetentionPolicy,
    delta_buckets,
    evict_buckets,
    plan_rotation,
    quarter_bucket,
    slot_artifacts,
)


class StubLogger:
    def __init__(self) -> None:
        self.events = []

    def warning(self, event: str, **extra):  # pragma: no cover - simple recorder
        self.events.append(("warning", event, extra))


def _keys(buckets):
    return [bucket.key for bucket in buckets]


@pytest.mark.parametrize(
    "day, quarter",
    [
        (date(2024, 1, 1), "Q20241"),
        (date(2024, 3, 31), "Q20241"),
        (date(2024, 4, 1), "Q20242"),
        (date(2024, 9, 30), "Q20243"),
        (date(2024, 12, 31), "Q20244"),
    ],
)
def test_quarter_bucket_uses_calendar_quarters(day, quarter):
    assert quarter_bucket(day).key == quarter


def test_delta_buckets_for_a_wednesday():
    # 2024-05-15 is a Wednesday in ISO week 20.
    assert _keys(delta_buckets(date(2024, 5, 15))) == ["M5", "WN0", "WD2"]


def test_plain_weekday_only_clears_day_slot():
    plan = plan_rotation(datetime(2024, 5, 15, 2, 30))

    assert plan.quarter.key == "Q20242"
    assert _keys(plan.deltas) == ["M5", "WN0", "WD2"]
    assert _keys(plan.evict) == ["WD2"]


def test_rollover_weekday_clears_week_slot():
    plan = plan_rotation(date(2024, 5, 13))

    assert _keys(plan.evict) == ["WN0", "WD0"]


def test_first_of_month_clears_month_slot():
    # 2024-04-01 is also a Monday.
    plan = plan_rotation(date(2024, 4, 1))

    assert plan.quarter.key == "Q20242"
    assert _keys(plan.evict) == ["M4", "WN2", "WD0"]


def test_first_of_month_midweek():
    plan = plan_rotation(date(2024, 5, 1))

    assert _keys(plan.evict) == ["M5", "WD2"]


def test_custom_rollover_weekday():
    policy = RetentionPolicy(rollover_weekday=6)

    assert _keys(plan_rotation(date(2024, 5, 19), policy).evict) == ["WN0", "WD6"]
    assert _keys(plan_rotation(date(2024, 5, 13), policy).evict) == ["WD0"]


def test_slot_file_names():
    plan = plan_rotation(date(2024, 5, 15))

    assert plan.quarter.filename("lxd-backup-", "web", ".tar.zst") == "lxd-backup-web-Q20242.tar.zst"
    assert plan.deltas[0].filename("lxd-backup-", "web", ".tar.zst") == "lxd-backup-web-M5-delta.tar.zst"


def test_evict_removes_archive_and_sidecars(tmp_path):
    slot = tmp_path / "lxd-backup-web-WD0-delta.tar.zst"
    neighbour = tmp_path / "lxd-backup-web-WD1-delta.tar.zst"
    for path in (
        slot,
        tmp_path / "lxd-backup-web-WD0-delta.tar.zst.removed",
        tmp_path / "lxd-backup-web-WD0-delta.tar.zst.default.profile",
        tmp_path / "lxd-backup-web-WD0-delta.tar.zst.web.profile",
        neighbour,
    ):
        path.write_text("x", encoding="utf-8")

    logger = StubLogger()
    removed = evict_buckets([slot], logger=logger)

    assert len(removed) == 4
    assert sorted(p.name for p in tmp_path.iterdir()) == [neighbour.name]
    assert logger.events and logger.events[0][1] == "delta_evicted"


def test_evict_missing_slot_is_a_no_op(tmp_path):
    logger = StubLogger()

    assert evict_buckets([tmp_path / "absent.tar.zst"], logger=logger) == []
    assert logger.events == []


def test_slot_artifacts_lists_manifest_even_when_absent(tmp_path):
    archive = tmp_path / "a.tar.zst"

    assert slot_artifacts(archive) == [archive, tmp_path / "a.tar.zst.removed"]
