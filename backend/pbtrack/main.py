"""FastAPI application entrypoint."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from pbtrack.api import ops, records
from pbtrack.api.errors import install_error_handlers
from pbtrack.infra.redis import redis_client
from pbtrack.obs import init as obs_init
from pbtrack.settings import settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
	logger.info("Starting %s (%s)", settings.service_name, settings.environment)
	try:
		yield
	finally:
		await redis_client.aclose()


app = FastAPI(title="Personal Best Tracker", lifespan=lifespan)
install_error_handlers(app)
obs_init(app)

app.include_router(ops.router)
app.include_router(records.router)
