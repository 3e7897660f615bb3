"""
Tests for RelayConfig parsing and validation.
"""

import pytest
from pydantic import ValidationError

from shared.config import RelayConfig


def test_defaults(monkeypatch):
    for name in ("CHECK_INTERVAL_SECONDS", "MESSAGE_LOOKBACK_MINUTES", "MAX_MESSAGES_PER_CHECK", "TIMEZONE"):
        monkeypatch.delenv(name, raising=False)
    cfg = RelayConfig(_env_file=None)
    assert cfg.check_interval_seconds == 300
    assert cfg.message_lookback_minutes == 15
    assert cfg.max_messages_per_check == 10
    assert cfg.delay_between_forwards_ms == 1000
    assert cfg.active_start_time == "00:00"
    assert cfg.active_end_time == "24:00"
    assert cfg.timezone == "Asia/Kolkata"
    assert cfg.source_peer == "me"
    assert cfg.stop_at_first_old_message is False


def test_alias_names():
    cfg = RelayConfig(_env_file=None, TG_API_ID="999", TG_API_HASH="abc", SESSION_STRING="s", TZ_NAME="UTC")
    assert cfg.api_id_int == 999
    assert cfg.api_hash == "abc"
    assert cfg.session_string == "s"
    assert cfg.timezone == "UTC"


def test_empty_session_is_reported_unset(make_config):
    assert make_config(USER_STRING_SESSION="").presence_flags()["session_set"] is False


def test_blank_numbers_fall_back_to_defaults(make_config):
    cfg = make_config(CHECK_INTERVAL_SECONDS="", MAX_MESSAGES_PER_CHECK="  ")
    assert cfg.check_interval_seconds == 300
    assert cfg.max_messages_per_check == 10


def test_numeric_strings_are_parsed(make_config):
    cfg = make_config(CHECK_INTERVAL_SECONDS="60", MESSAGE_LOOKBACK_MINUTES="5")
    assert cfg.check_interval_seconds == 60
    assert cfg.message_lookback_minutes == 5


@pytest.mark.parametrize("value", ["25:00", "noon", "7", "12:75"])
def test_malformed_active_time_fails_at_load(make_config, value):
    with pytest.raises(ValidationError):
        make_config(ACTIVE_START_TIME=value)


def test_unknown_timezone_fails_at_load(make_config):
    with pytest.raises(ValidationError):
        make_config(TIMEZONE="Mars/Olympus_Mons")


@pytest.mark.parametrize(
    "name,value",
    [
        ("CHECK_INTERVAL_SECONDS", "0"),
        ("MESSAGE_LOOKBACK_MINUTES", "-1"),
        ("MAX_MESSAGES_PER_CHECK", "0"),
        ("DELAY_BETWEEN_FORWARDS_MS", "-5"),
    ],
)
def test_non_positive_knobs_rejected(make_config, name, value):
    with pytest.raises(ValidationError):
        make_config(**{name: value})


def test_zero_delay_is_allowed(make_config):
    assert make_config(DELAY_BETWEEN_FORWARDS_MS="0").delay_between_forwards_ms == 0


def test_presence_flags(make_config):
    flags = make_config(TARGET_GROUP_CHAT_ID=" ").presence_flags()
    assert flags == {
        "api_id_set": True,
        "api_hash_set": True,
        "phone_number_set": True,
        "target_group_set": False,
        "session_set": True,
    }


def test_api_id_int(make_config):
    assert make_config().api_id_int == 12345
    assert make_config(API_ID="not-a-number").api_id_int == 0
    assert make_config().tz.key == "Asia/Kolkata"
