def test_logging_jsonl_persistence(monkeypatch, tmp_path):
    import json
    import logging

    from cadence.core.logging import configure_logging, get_logger, info, set_request_id

    base_dir = tmp_path / "logs"

    monkeypatch.setenv("CADENCE_LOG_DIR", str(base_dir))
    monkeypatch.setenv("CADENCE_JSONL_FILE", "test.jsonl")

    try:
        configure_logging(force=True)
        log = get_logger("test")
        set_request_id("rid-1")
        info(log, "hello", event="logging_test", voice="en-US-AriaNeural")

        for handler in logging.getLogger().handlers:
            handler.flush()

        log_path = base_dir / "test.jsonl"
        assert log_path.exists()

        line = log_path.read_text(encoding="utf-8").strip().splitlines()[-1]
        payload = json.loads(line)
        assert payload["message"] == "hello"
        assert payload["request_id"] == "rid-1"
        assert payload["event"] == "logging_test"
        assert payload["extra"]["voice"] == "en-US-AriaNeural"
    finally:
        set_request_id("-")
        for handler in logging.getLogger().handlers:
            handler.close()
        monkeypatch.delenv("CADENCE_LOG_DIR")
        configure_logging(force=True)


def test_logging_rotation_settings(monkeypatch, tmp_path):
    import logging
    from logging.handlers import RotatingFileHandler

    from cadence.core.logging import configure_logging

    monkeypatch.setenv("CADENCE_LOG_DIR", str(tmp_path))
    monkeypatch.setenv("CADENCE_LOG_ROTATE_BYTES", "2048")
    monkeypatch.setenv("CADENCE_LOG_ROTATE_BACKUP", "2")

    try:
        configure_logging(force=True)
        handlers = [h for h in logging.getLogger().handlers if isinstance(h, RotatingFileHandler)]
        assert len(handlers) == 1
        assert handlers[0].maxBytes == 2048
        assert handlers[0].backupCount == 2
    finally:
        for handler in logging.getLogger().handlers:
            handler.close()
        monkeypatch.delenv("CADENCE_LOG_DIR")
        configure_logging(force=True)
