import logging

from sahayak.client.utils import educator_url, relative_time
from sahayak.config import Settings
from sahayak.logging_config import configure_logging


def test_relative_time_units():
    now = 10_000_000
    assert relative_time(now - 1000, now) == "1 second ago"
    assert relative_time(now - 45_000, now) == "45 seconds ago"
    assert relative_time(now - 120_000, now) == "2 minutes ago"
    assert relative_time(now - 3_600_000, now) == "1 hour ago"
    # future timestamps clamp to zero
    assert relative_time(now + 5000, now) == "0 seconds ago"


def test_educator_url_forms():
    assert educator_url("192.168.1.20", 8080) == "ws://192.168.1.20:8080/ws"
    assert educator_url("::1", "9000") == "ws://[::1]:9000/ws"
    assert educator_url("ws://host:1234", 8080) == "ws://host:1234/ws"
    assert educator_url("ws://host:1234/ws", 8080) == "ws://host:1234/ws"


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("SAHAYAK_PORT", "9001")
    monkeypatch.setenv("SAHAYAK_DOUBT_MAX_LIFETIME_MS", "0")
    monkeypatch.setenv("SAHAYAK_SEND_CORRECT_INDEX", "no")
    settings = Settings.from_env()
    assert settings.port == 9001
    assert settings.doubt_max_lifetime_ms is None
    assert settings.send_correct_index is False
    assert settings.allow_duplicate_answers is False


def test_configure_logging_writes_to_log_dir(tmp_path):
    logger = configure_logging("unit", "UNIT", str(tmp_path))
    assert logger.level == logging.DEBUG
    logging.getLogger("sahayak.test").debug("hello")

    root = logging.getLogger()
    for handler in list(root.handlers):
        handler.close()
        root.removeHandler(handler)
    assert "DEBUG [UNIT] sahayak.test hello" in (tmp_path / "unit.log").read_text()
