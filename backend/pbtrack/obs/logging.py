"""Structured JSON logging with request context for the record service."""

from __future__ import annotations

import json
import logging
import random
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pbtrack.settings import settings

# Request scoped fields copied onto every log line emitted while handling it
_CONTEXT: Dict[str, ContextVar[Optional[str]]] = {
	"request_id": ContextVar("pbtrack_request_id", default=None),
	"route": ContextVar("pbtrack_route", default=None),
	"user_id": ContextVar("pbtrack_user_id", default=None),
}

_REDACTED_MARKERS = ("token", "secret", "authorization", "password", "email", "apekey")
_MAX_TEXT = 256
_MAX_ITEMS = 10
_ELLIPSIS = "…"

# Attributes every LogRecord carries; anything else came in through ``extra=``
_STANDARD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "taskName"}


def bind_context(**fields: Optional[str]) -> Dict[str, Token]:
	"""Bind request fields (request_id, route, user_id) and return reset tokens."""
	tokens: Dict[str, Token] = {}
	for name, value in fields.items():
		if value is not None:
			tokens[name] = _CONTEXT[name].set(value)
	return tokens


def reset_context(tokens: Dict[str, Token]) -> None:
	for name, token in tokens.items():
		_CONTEXT[name].reset(token)


def current_request_id(default: str = "unknown") -> str:
	return _CONTEXT["request_id"].get() or default


def _scrub(key: str, value: Any) -> Any:
	if any(marker in key.lower() for marker in _REDACTED_MARKERS):
		return "[redacted]"
	if isinstance(value, str) and len(value) > _MAX_TEXT:
		return value[:_MAX_TEXT] + _ELLIPSIS
	if isinstance(value, dict):
		items = list(value.items())
		scrubbed = {str(k): _scrub(str(k), v) for k, v in items[:_MAX_ITEMS]}
		if len(items) > _MAX_ITEMS:
			scrubbed[_ELLIPSIS] = f"+{len(items) - _MAX_ITEMS} keys"
		return scrubbed
	if isinstance(value, (list, tuple, set, frozenset)):
		items = list(value)
		scrubbed_items = [_scrub(key, item) for item in items[:_MAX_ITEMS]]
		if len(items) > _MAX_ITEMS:
			scrubbed_items.append(_ELLIPSIS)
		return scrubbed_items
	return value


class JSONLogFormatter(logging.Formatter):
	"""One JSON object per line: service metadata, bound request context, then ``extra`` fields."""

	def format(self, record: logging.LogRecord) -> str:  # noqa: A003 (match logging api)
		payload: Dict[str, Any] = {
			"ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
			"level": record.levelname.lower(),
			"msg": record.getMessage(),
			"logger": record.name,
			"service": settings.service_name,
			"env": settings.environment,
			"commit": settings.git_commit,
		}
		for name, var in _CONTEXT.items():
			value = var.get()
			if value:
				payload[name] = value
		if record.exc_info:
			payload["exc_info"] = self.formatException(record.exc_info)
		for key, value in record.__dict__.items():
			if key not in _STANDARD_ATTRS and key not in payload:
				payload[key] = _scrub(key, value)
		return json.dumps(payload, separators=(",", ":"), default=str)


class InfoSamplingFilter(logging.Filter):
	"""Drop a share of INFO lines; every other level passes."""

	def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
		if record.levelno != logging.INFO:
			return True
		rate = max(0.0, min(1.0, settings.obs_log_sampling_rate_info))
		return rate >= 1.0 or random.random() < rate


def configure_logging() -> None:
	"""Route the root logger through the JSON formatter at the configured level."""
	handler = logging.StreamHandler()
	handler.setFormatter(JSONLogFormatter())
	handler.addFilter(InfoSamplingFilter())
	root = logging.getLogger()
	root.handlers.clear()
	root.addHandler(handler)
	root.setLevel(settings.obs_log_level)
