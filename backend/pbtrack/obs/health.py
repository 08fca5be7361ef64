"""Health check helpers for liveness and readiness probes."""

from __future__ import annotations

import asyncio
import logging
from time import perf_counter
from typing import Any, Dict

from pbtrack.infra.redis import redis_client
from pbtrack.obs import metrics
from pbtrack.settings import settings

LOGGER = logging.getLogger(__name__)


async def redis_status() -> Dict[str, Any]:
	timeout = settings.health_redis_timeout_seconds or 0.2
	start = perf_counter()
	try:
		await asyncio.wait_for(redis_client.ping(), timeout=timeout)
	except Exception as exc:  # pragma: no cover - depends on runtime
		metrics.mark_redis(False)
		LOGGER.warning("Redis readiness check failed", exc_info=True)
		return {"ok": False, "error": str(exc)}
	latency = perf_counter() - start
	metrics.mark_redis(True, latency_seconds=latency)
	return {"ok": True, "latency_ms": round(latency * 1000, 2)}


async def readiness() -> Dict[str, Any]:
	redis_state = await redis_status()
	return {"ok": bool(redis_state.get("ok")), "checks": {"redis": redis_state}}
