import io
import json
import logging

import pytest

from nodegate.core.logging import LogSubsystem, configure_logging, get_logger


@pytest.fixture
def json_stdout():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    configure_logging("INFO")
    # capsys swaps sys.stdout per test phase, so keep the configured handler on a buffer that outlives setup.
    buffer = io.StringIO()
    root.handlers[0].setStream(buffer)
    try:
        yield lambda: json.loads(buffer.getvalue().strip().splitlines()[-1])
    finally:
        root.handlers[:] = handlers
        root.setLevel(level)


def test_subsystem_comes_from_logger(json_stdout):
    get_logger("nodegate.tests.participants", LogSubsystem.participants).info("hello", extra={"event": "x"})

    record = json_stdout()

    assert record["message"] == "hello"
    assert record["subsystem"] == "participants"
    assert record["event"] == "x"
    assert "node_id" not in record


def test_plain_logger_has_no_subsystem(json_stdout):
    get_logger("nodegate.tests.plain").warning("plain")

    record = json_stdout()

    assert record["message"] == "plain"
    assert "subsystem" not in record
    assert "event" not in record


def test_explicit_subsystem_wins(json_stdout):
    get_logger("nodegate.tests.override", LogSubsystem.nodes).info("moved", extra={"subsystem": "participants"})

    assert json_stdout()["subsystem"] == "participants"


def test_filter_is_attached_once():
    first = get_logger("nodegate.tests.once", LogSubsystem.nodes)
    second = get_logger("nodegate.tests.once", LogSubsystem.nodes)

    assert first is second
    assert len(first.filters) == 1
