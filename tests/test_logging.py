import json
import logging

from memoir.logging_config import HumanReadableFormatter, StructuredFormatter


def _record(**extra):
    record = logging.LogRecord(
        name="memoir.network.story_merger",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg="Merger %s published",
        args=("m-123",),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_structured_formatter_includes_context():
    line = StructuredFormatter().format(_record(merger_id="m-123", price=4.99))
    data = json.loads(line)

    assert data["message"] == "Merger m-123 published"
    assert data["level"] == "INFO"
    assert data["merger_id"] == "m-123"
    assert data["price"] == 4.99


def test_human_formatter_truncates_ids():
    line = HumanReadableFormatter().format(_record(user_id="abcdefghijkl"))

    assert "user:abcdefgh" in line
    assert line.endswith("Merger m-123 published")
