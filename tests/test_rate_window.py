import pytest

from detectors.rate_window import (
    AlertRecord,
    RateWindowConfig,
    RestoreError,
    WindowAggregator,
)


@pytest.fixture()
def agg() -> WindowAggregator:
    return WindowAggregator(
        RateWindowConfig(window_seconds=300, recipient_limit=10, alert_interval_seconds=60)
    )


def test_alert_when_limit_exceeded(agg):
    decision = agg.ingest("a@x", 11, now=1000)

    assert decision.evaluated is True
    assert decision.alerts == [
        AlertRecord(sender="a@x", count=11, window_seconds=300, limit=10)
    ]
    assert agg.last_alert_ts == 1000


def test_count_equal_to_limit_does_not_alert(agg):
    agg.ingest("a@x", 5, now=1000)
    decision = agg.ingest("a@x", 5, now=1060)

    assert decision.evaluated is True
    assert decision.sender_counts == {"a@x": 10}
    assert decision.alerts == []


def test_sub_threshold_bursts_inside_gate(agg):
    agg.ingest("a@x", 5, now=1000)
    decision = agg.ingest("a@x", 5, now=1050)

    assert decision.sender_counts["a@x"] == 10
    assert decision.alerts == []


def test_old_bucket_expires(agg):
    agg.ingest("a@x", 11, now=1000)
    decision = agg.ingest("b@x", 1, now=1400)

    assert agg.bucket_keys() == [1400]
    assert decision.sender_counts == {"b@x": 1}


def test_bucket_exactly_at_window_edge_survives(agg):
    agg.ingest("a@x", 3, now=1000)
    decision = agg.ingest("a@x", 1, now=1300)

    assert agg.bucket_keys() == [1000, 1300]
    assert decision.sender_counts == {"a@x": 4}


def test_no_surviving_key_older_than_window(agg):
    for now in range(1000, 2000, 37):
        agg.ingest("a@x", 1, now=now)
        assert all(now - t <= 300 for t in agg.bucket_keys())


def test_counts_sum_over_window(agg):
    agg.ingest("a@x", 2, now=1000)
    agg.ingest("b@x", 4, now=1010)
    agg.ingest("a@x", 3, now=1100)
    decision = agg.ingest("a@x", 1, now=1200)

    assert decision.sender_counts == {"a@x": 6, "b@x": 4}


def test_gate_skips_evaluation_and_keeps_timestamp(agg):
    agg.ingest("a@x", 11, now=1000)
    decision = agg.ingest("a@x", 20, now=1030)

    assert decision.evaluated is False
    assert decision.alerts == []
    assert decision.sender_counts == {"a@x": 31}
    assert agg.last_alert_ts == 1000


def test_gate_reopens_after_interval(agg):
    agg.ingest("a@x", 11, now=1000)
    agg.ingest("a@x", 1, now=1030)
    decision = agg.ingest("a@x", 1, now=1060)

    assert decision.evaluated is True
    assert [a.count for a in decision.alerts] == [13]
    assert agg.last_alert_ts == 1060


def test_quiet_evaluation_still_moves_gate(agg):
    agg.ingest("a@x", 1, now=1000)
    assert agg.last_alert_ts == 1000

    decision = agg.ingest("a@x", 20, now=1010)
    assert decision.alerts == []


def test_alerts_follow_first_seen_order(agg):
    agg.throttle.last_alert_ts = 0
    agg._buckets = {900: ["z@x"] * 11, 950: ["b@x"] * 12}
    decision = agg.ingest("a@x", 15, now=1000)

    assert [a.sender for a in decision.alerts] == ["z@x", "b@x", "a@x"]


@pytest.mark.parametrize("sender, count", [("", 1), ("a@x", 0), ("a@x", -2)])
def test_ingest_rejects_invalid_arguments(agg, sender, count):
    with pytest.raises(ValueError):
        agg.ingest(sender, count, now=1000)


def test_snapshot_format(agg):
    agg.ingest("alice@example.com", 2, now=1699999000)
    agg.ingest("bob@example.com", 1, now=1699999005)

    assert agg.snapshot() == {
        "1699999000": ["alice@example.com", "alice@example.com"],
        "1699999005": ["bob@example.com"],
    }


def test_snapshot_does_not_share_state(agg):
    agg.ingest("a@x", 1, now=1000)
    snap = agg.snapshot()
    snap["1000"].append("intruder@x")

    assert agg.snapshot() == {"1000": ["a@x"]}


def test_restore_roundtrip(agg):
    agg.ingest("a@x", 3, now=1000)
    agg.ingest("b@x", 2, now=1100)
    agg.ingest("a@x", 1, now=1100)

    other = WindowAggregator(agg.cfg)
    other.restore(agg.snapshot())

    assert other.bucket_keys() == agg.bucket_keys()
    assert other.snapshot() == agg.snapshot()
    assert len(other) == 6
    assert other.ingest("c@x", 1, now=1100).sender_counts == {"a@x": 4, "b@x": 2, "c@x": 1}


def test_restore_keeps_stale_until_next_ingest(agg):
    agg.restore({"10": ["old@x"], "1000": ["a@x"]})
    assert agg.bucket_keys() == [10, 1000]

    decision = agg.ingest("a@x", 1, now=1001)
    assert agg.bucket_keys() == [1000, 1001]
    assert decision.sender_counts == {"a@x": 2}


def test_restore_does_not_touch_throttle(agg):
    agg.ingest("a@x", 1, now=1000)
    agg.restore({})
    assert agg.last_alert_ts == 1000
    assert len(agg) == 0


@pytest.mark.parametrize(
    "state",
    [
        ["a@x"],
        "not a mapping",
        {"abc": ["a@x"]},
        {"1.5": ["a@x"]},
        {"1000": "a@x"},
        {"1000": ["a@x", 3]},
        {"1000": None},
    ],
)
def test_restore_rejects_invalid_structure(agg, state):
    agg.ingest("keep@x", 1, now=1000)

    with pytest.raises(RestoreError):
        agg.restore(state)

    assert agg.snapshot() == {"1000": ["keep@x"]}
