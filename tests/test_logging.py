from __future__ import annotations

import json
import logging

from fxguard.core.logging import JsonFormatter, RequestIdFilter, request_id_ctx


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        "fxguard.acquisition", logging.INFO, __file__, 1, "stored rate %s", ("83.5",), None
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_line_carries_rate_context_fields():
    line = JsonFormatter().format(_record(pair="USD-INR", source="fixer.io"))

    payload = json.loads(line)
    assert payload["message"] == "stored rate 83.5"
    assert payload["pair"] == "USD-INR"
    assert payload["source"] == "fixer.io"
    assert "order_id" not in payload


def test_request_id_filter_uses_context():
    token = request_id_ctx.set("req-42")
    try:
        record = _record()
        RequestIdFilter().filter(record)
    finally:
        request_id_ctx.reset(token)

    assert json.loads(JsonFormatter().format(record))["request_id"] == "req-42"
    assert json.loads(JsonFormatter().format(_record()))["request_id"] == "-"
