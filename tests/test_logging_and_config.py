# tests/test_logging_and_config.py
import json
import logging

import pytest
from pydantic import ValidationError

from qr_attendance.core.config import Settings
from qr_attendance.core.logging import CustomJsonFormatter, LoggerFactory, request_id_var


def test_json_formatter_includes_context_fields():
    formatter = CustomJsonFormatter(extra_fields=LoggerFactory.EXTRA_FIELDS)
    record = logging.LogRecord("qr_attendance.test", logging.INFO, __file__, 10, "Check-in recorded", None, None)
    record.session_id = "s1"
    record.request_id = "req-1"

    payload = json.loads(formatter.format(record))

    assert payload["message"] == "Check-in recorded"
    assert payload["session_id"] == "s1"
    assert payload["request_id"] == "req-1"
    assert "class_id" not in payload


def test_file_handlers_split_errors(tmp_path):
    logger = LoggerFactory.create_logger("qr_attendance.test_files", log_dir=str(tmp_path))
    token = request_id_var.set("req-42")
    try:
        logger.info("Attendance session started", extra={"session_id": "s1"})
        logger.error("Storage operation failed", extra={"error_code": "PERSISTENCE_ERROR"})
    finally:
        request_id_var.reset(token)
    for handler in logger.handlers:
        handler.flush()

    app_lines = [json.loads(line) for line in (tmp_path / "app.log").read_text().splitlines()]
    error_lines = [json.loads(line) for line in (tmp_path / "error.log").read_text().splitlines()]

    assert [line["message"] for line in app_lines] == ["Attendance session started", "Storage operation failed"]
    assert app_lines[0]["request_id"] == "req-42"
    assert [line["error_code"] for line in error_lines] == ["PERSISTENCE_ERROR"]

    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


def test_settings_normalisation():
    settings = Settings(
        PUBLIC_ORIGIN="chamada.example.com/",
        STORAGE_BACKEND=" Memory ",
        QR_ERROR_CORRECTION="q",
        ALLOWED_ORIGINS=["https://a.example.com"]
    )
    assert settings.PUBLIC_ORIGIN == "https://chamada.example.com"
    assert settings.STORAGE_BACKEND == "memory"
    assert settings.QR_ERROR_CORRECTION == "Q"


@pytest.mark.parametrize("field, value", [
    ("QR_ERROR_CORRECTION", "X"),
    ("SESSION_MIN_MINUTES", 0),
    ("SESSION_TIMEZONE", "Mars/Olympus_Mons"),
])
def test_settings_rejects_bad_values(field, value):
    with pytest.raises(ValidationError):
        Settings(**{field: value})


def test_allowed_origins_from_comma_separated_env(monkeypatch):
    monkeypatch.setenv("ALLOWED_ORIGINS", "https://a.example, https://b.example,")
    settings = Settings(_env_file=None)
    assert settings.ALLOWED_ORIGINS == ["https://a.example", "https://b.example"]


def test_allowed_origins_from_json_env(monkeypatch):
    monkeypatch.setenv("ALLOWED_ORIGINS", '["https://a.example"]')
    settings = Settings(_env_file=None)
    assert settings.ALLOWED_ORIGINS == ["https://a.example"]
