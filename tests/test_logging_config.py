"""Tests for logging configuration and entrypoint wiring."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from types import SimpleNamespace

import pytest

import trackloop.cli as cli_module
from trackloop.logging_utils import setup_logging

pytestmark = pytest.mark.usefixtures("restore_root_logging")


def _flush_root_handlers() -> None:
    for handler in logging.getLogger().handlers:
        flush = getattr(handler, "flush", None)
        if callable(flush):
            flush()


def test_setup_logging_default_path_writes_json_lines(tmp_path) -> None:
    log_path = setup_logging(log_dir=tmp_path, level="INFO")
    logger = logging.getLogger("trackloop.test")
    logger.info("default-log-path", extra={"track_id": "abc", "payload": b"12"})
    logger.debug("hidden-debug")
    _flush_root_handlers()

    assert log_path == tmp_path / "trackloop.log"
    lines = log_path.read_text(encoding="utf-8").splitlines()
    records = [json.loads(line) for line in lines]
    [record] = [item for item in records if item["message"] == "default-log-path"]
    assert record["level"] == "INFO"
    assert record["logger"] == "trackloop.test"
    assert record["context"] == {"track_id": "abc", "payload": "<2 bytes>"}
    assert not any(item["message"] == "hidden-debug" for item in records)


def test_setup_logging_custom_log_file_writes_log(tmp_path) -> None:
    custom_path = tmp_path / "custom" / "player.log"
    setup_logging(log_dir=tmp_path, level="DEBUG", log_file=custom_path)
    logging.getLogger("trackloop.test").debug("custom-log-path")
    _flush_root_handlers()

    assert custom_path.exists()
    assert "custom-log-path" in custom_path.read_text(encoding="utf-8")


def test_setup_logging_unknown_level_falls_back_to_info(tmp_path) -> None:
    setup_logging(log_dir=tmp_path, level="chatty")
    assert logging.getLogger().level == logging.INFO


def test_exception_is_serialized(tmp_path) -> None:
    log_path = setup_logging(log_dir=tmp_path)
    try:
        raise ValueError("boom")
    except ValueError:
        logging.getLogger("trackloop.test").exception("failed")
    _flush_root_handlers()

    record = json.loads(log_path.read_text(encoding="utf-8").splitlines()[-1])
    assert "ValueError: boom" in record["exception"]


def test_cli_main_passes_effective_level_and_log_file(monkeypatch, tmp_path) -> None:
    args = SimpleNamespace(
        verbose=True,
        quiet=True,
        log_file=str(tmp_path / "cli.log"),
        command="list",
    )
    captured: dict[str, object] = {}

    class FakeParser:
        def parse_args(self, argv):
            return args

    def fake_setup_logging(*, log_dir: Path, level: str, log_file: Path | None):
        captured["log_dir"] = log_dir
        captured["level"] = level
        captured["log_file"] = log_file

    async def fake_run_command(parsed, console) -> int:
        captured["args"] = parsed
        return 0

    monkeypatch.setattr(cli_module, "build_parser", lambda: FakeParser())
    monkeypatch.setattr(cli_module, "setup_logging", fake_setup_logging)
    monkeypatch.setattr(cli_module, "log_dir", lambda: tmp_path / "logs")
    monkeypatch.setattr(cli_module, "run_command", fake_run_command)

    rc = cli_module.main()

    assert rc == 0
    assert captured["level"] == "WARNING"
    assert captured["log_file"] == tmp_path / "cli.log"
    assert captured["args"] is args
