"""Tests for record aggregation helpers."""

from multas.storage.stats import category_counts, paginate, sort_by_timestamp, student_stats
from multas.types import Record


def _rec(record_id, user, timestamp, category=0):
    return Record(id=record_id, timestamp=timestamp, user_name=user, text="t", category=category)


def test_sort_newest_first_numerically():
    records = [
        _rec("a", "u", "2024/4/5 9:03:07"),
        _rec("b", "u", "2024/12/1 0:00:00"),
        _rec("c", "u", "2024/4/10 8:00:00"),
    ]
    assert [r.id for r in sort_by_timestamp(records)] == ["b", "c", "a"]
    assert [r.id for r in sort_by_timestamp(records, newest_first=False)] == ["a", "c", "b"]


def test_unparseable_timestamps_sort_last():
    records = [_rec("bad", "u", "not a date"), _rec("ok", "u", "2024-04-05T09:00:00Z")]
    assert [r.id for r in sort_by_timestamp(records)] == ["ok", "bad"]


def test_paginate():
    records = [_rec(str(i), "u", "") for i in range(10)]
    assert [r.id for r in paginate(records, 2, 3)] == ["2", "3", "4"]
    assert len(paginate(records, 8)) == 2
    assert paginate(records, 20, 5) == []


def test_student_stats():
    records = [
        _rec("1", "山田", "2024/4/5 9:00:00"),
        _rec("2", "佐藤", "2024/4/6 9:00:00"),
        _rec("3", "山田", "2024/4/10 9:00:00"),
        _rec("4", "山田", "garbage"),
    ]
    stats = student_stats(records)
    assert stats[0] == {
        "user_name": "山田",
        "post_count": 3,
        "first_post_date": "2024/4/5 9:00:00",
        "last_post_date": "2024/4/10 9:00:00",
    }
    assert stats[1]["post_count"] == 1


def test_category_counts_include_zeros():
    counts = category_counts([_rec("1", "u", "", 3), _rec("2", "u", "", 3), _rec("3", "u", "", 0)])
    assert counts[3] == 2
    assert counts[0] == 1
    assert counts[12] == 0
    assert len(counts) == 13
