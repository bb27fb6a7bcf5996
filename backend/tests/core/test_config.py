import pytest

from status_monitor.core.config import Settings


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


@pytest.mark.parametrize(
    ("field", "given", "expected"),
    [
        ("CHECK_POLL_INTERVAL_SECONDS", 5, 15),
        ("CHECK_POLL_INTERVAL_SECONDS", 10000, 600),
        ("CHECK_POLL_INTERVAL_SECONDS", 90, 90),
        ("CHECK_CONCURRENCY", 0, 1),
        ("CHECK_CONCURRENCY", 50, 20),
        ("OFFICIAL_STATUS_CHECK_INTERVAL_SECONDS", 10, 60),
        ("HISTORY_RETENTION_DAYS", 1, 7),
        ("HISTORY_RETENTION_DAYS", 1000, 365),
    ],
)
def test_numeric_knobs_are_clamped(field, given, expected):
    assert getattr(_settings(**{field: given}), field) == expected


def test_lease_duration_defaults_to_three_intervals():
    assert _settings(CHECK_POLL_INTERVAL_SECONDS=60).lease_duration_seconds == 180


def test_lease_duration_never_below_two_intervals():
    cfg = _settings(CHECK_POLL_INTERVAL_SECONDS=60, LEADER_LEASE_DURATION_SECONDS=30)
    assert cfg.lease_duration_seconds == 120


def test_poll_interval_label_and_ms():
    cfg = _settings(CHECK_POLL_INTERVAL_SECONDS=60)
    assert cfg.poll_interval_label == "60 秒"
    assert cfg.poll_interval_ms == 60000
    assert _settings(CHECK_POLL_INTERVAL_SECONDS=300).poll_interval_label == "5 分钟"


def test_blank_node_id_is_treated_as_missing():
    assert _settings(CHECK_NODE_ID="   ").CHECK_NODE_ID is None
    assert _settings(CHECK_NODE_ID=" node-1 ").CHECK_NODE_ID == "node-1"
