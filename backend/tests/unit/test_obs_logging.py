import json
import logging

from pbtrack.obs import logging as obs_logging


def _format(**extra):
	record = logging.LogRecord("pbtrack.test", logging.INFO, __file__, 1, "New personal best", None, None)
	for key, value in extra.items():
		setattr(record, key, value)
	return json.loads(obs_logging.JSONLogFormatter().format(record))


def test_formatter_includes_bound_context():
	tokens = obs_logging.bind_context(request_id="req-1", route="/users/{uid}/results", user_id="user-123")
	try:
		payload = _format(mode="time", wpm=80.0)
	finally:
		obs_logging.reset_context(tokens)

	assert payload["msg"] == "New personal best"
	assert payload["request_id"] == "req-1"
	assert payload["user_id"] == "user-123"
	assert payload["mode"] == "time"
	assert obs_logging.current_request_id() == "unknown"


def test_formatter_redacts_sensitive_fields_and_truncates():
	payload = _format(password="hunter2", failed_tags=[str(i) for i in range(15)])

	assert payload["password"] == "[redacted]"
	assert len(payload["failed_tags"]) == 11
	assert payload["failed_tags"][-1] == "…"
