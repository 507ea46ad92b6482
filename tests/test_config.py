# ==============================================================================
# FILE: tests/test_config.py
# DESCRIPTION: Environment configuration, logging format and wire models
# ==============================================================================

import logging
import os

import pytest

from horizon.config import ColoredFormatter, Config, setup_logging
from horizon.errors import DecodeError
from horizon.models import AssistMessage, AssistRequest, MessageMetadata, TagUpdate, decode_model
from horizon.types import ChatTurn, HeartbeatStyle


def test_defaults():
    config = Config()

    assert config.endpoints.base_url == "https://itzerhypergalaxy.online"
    assert config.heartbeat.interval_s == 30.0
    assert config.heartbeat.style is None
    assert config.reconnect.max_attempts == 10
    assert config.reconnect.monitor_interval_s == 10.0
    assert config.websocket.drain_interval_s == 0.1


def test_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("HORIZON_BASE_URL", "http://localhost:8000")
    monkeypatch.setenv("HORIZON_HEARTBEAT_STYLE", "text_sentinel")
    monkeypatch.setenv("HORIZON_RECONNECT_MAX_ATTEMPTS", "3")
    monkeypatch.setenv("HORIZON_RECONNECT_CAP", "5")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")

    config = Config.from_env(dotenv_path=str(tmp_path / "missing.env"))

    assert config.endpoints.base_url == "http://localhost:8000"
    assert config.heartbeat.style is HeartbeatStyle.TEXT_SENTINEL
    assert config.reconnect.max_attempts == 3
    assert config.reconnect.cap_s == 5.0
    assert config.log_level == "DEBUG"


def test_from_dotenv_file(monkeypatch, tmp_path):
    monkeypatch.delenv("HORIZON_HEARTBEAT_INTERVAL", raising=False)
    env_file = tmp_path / ".env"
    env_file.write_text("HORIZON_HEARTBEAT_INTERVAL=12.5\n")

    try:
        config = Config.from_env(dotenv_path=str(env_file))
    finally:
        os.environ.pop("HORIZON_HEARTBEAT_INTERVAL", None)

    assert config.heartbeat.interval_s == 12.5


def test_formatter_uses_component_names():
    formatter = ColoredFormatter(use_colors=False)
    record = logging.LogRecord(
        "horizon.reconnect", logging.WARNING, __file__, 1, "retrying", None, None
    )

    line = formatter.format(record)

    assert "WRN" in line
    assert "RECONNECT" in line
    assert line.endswith("retrying")


def test_setup_logging_sets_levels():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        logger = setup_logging(level=logging.DEBUG, use_colors=False)
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)

    assert logger.name == "horizon"
    assert logging.getLogger("horizon.heartbeat").level == logging.DEBUG
    assert logging.getLogger("websockets").level == logging.WARNING


@pytest.mark.parametrize(
    "kwargs, expected",
    [
        ({"config": Config(log_level="WARNING")}, logging.WARNING),
        ({"level": "debug"}, logging.DEBUG),
        ({"level": "nonsense"}, logging.INFO),
        ({}, logging.INFO),
    ],
)
def test_setup_logging_level_sources(kwargs, expected):
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        logger = setup_logging(use_colors=False, **kwargs)
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)

    assert logger.level == expected
    assert logging.getLogger("horizon.controller").level == expected


def test_assist_request_wire_format():
    request = AssistRequest(
        messages=[
            AssistMessage(role="user", content="Hi", metadata=MessageMetadata(ocr_text="screen")),
            AssistMessage(role="assistant", content="Hello"),
        ],
    )

    assert request.to_wire() == {
        "messages": [
            {"role": "user", "content": "Hi", "metadata": {"ocrText": "screen"}},
            {"role": "assistant", "content": "Hello"},
        ],
        "smarterAnalysisEnabled": False,
    }


def test_chat_turn_to_dict_omits_empty_metadata():
    assert ChatTurn(role="user", content="Hi").to_dict() == {"role": "user", "content": "Hi"}


def test_tag_update_ignores_unknown_fields():
    update = decode_model(TagUpdate, {"type": "tag_update", "action": "created", "extra": 1})

    assert update.data is None


def test_decode_model_raises_decode_error():
    with pytest.raises(DecodeError):
        decode_model(TagUpdate, {"action": "created"})
