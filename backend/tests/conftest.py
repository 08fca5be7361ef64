import sys
from pathlib import Path

import pytest
import pytest_asyncio
from fakeredis import FakeServer
from fakeredis.aioredis import FakeRedis
from httpx import ASGITransport, AsyncClient

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

from pbtrack.domain.records.models import ResultSubmission
from pbtrack.domain.records.service import RecordService
from pbtrack.infra.profile_store import ProfileStore


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	from pbtrack.infra.redis import redis_client, set_redis_client
	original = redis_client.client
	client = FakeRedis(server=FakeServer(), decode_responses=True)
	set_redis_client(client)
	try:
		yield client
	finally:
		set_redis_client(original)
		await client.flushall()


@pytest.fixture
def store():
	return ProfileStore()


@pytest.fixture
def service(store):
	return RecordService(store=store)


@pytest_asyncio.fixture
async def uid(store):
	user_id = "user-123"
	await store.create_profile(user_id, name="typist")
	return user_id


@pytest.fixture
def make_result():
	def _make(**overrides) -> ResultSubmission:
		values = dict(
			mode="time",
			sub_mode="60",
			acc=97.5,
			consistency=80.0,
			raw_wpm=85.0,
			wpm=80.0,
			timestamp=1_700_000_000_000,
			difficulty="normal",
			lazy_mode=False,
			language="english",
			punctuation=False,
			funbox="none",
			tags=(),
		)
		values.update(overrides)
		return ResultSubmission(**values)

	return _make


@pytest_asyncio.fixture
async def api_client():
	from pbtrack.main import app

	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client
