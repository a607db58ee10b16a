import json

import pytest

from chat_relay.infrastructure.logging.logger import logger, setup_logger


@pytest.fixture
def configured(tmp_path):
    class SettingsStub:
        log_dir = str(tmp_path / "logs")
        log_level = "INFO"
        log_redact_content = False

    yield SettingsStub, tmp_path / "logs" / "relay.log"
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()
    logger.propagate = True


def _records(path):
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


def test_json_lines_with_extra(configured):
    settings, path = configured
    setup_logger(settings, console=False)
    logger.info("Stream completed", extra={"extra": {"fragments_sent": 2}})
    rec = _records(path)[-1]
    assert rec["msg"] == "Stream completed"
    assert rec["level"] == "INFO"
    assert rec["fragments_sent"] == 2
    assert rec["ts"].endswith("Z")


def test_redaction_and_reinit(configured):
    settings, path = configured
    settings.log_redact_content = True
    setup_logger(settings, console=False)
    setup_logger(settings, console=False)
    assert len(logger.handlers) == 1
    logger.warning("x" * 200)
    assert _records(path)[-1]["msg"] == "x" * 64
