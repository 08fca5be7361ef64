import asyncio

import pytest

from pbtrack.domain.records.exceptions import StoreWriteFailure
from pbtrack.infra.profile_store import ProfileStore
from pbtrack.settings import settings


@pytest.mark.asyncio
async def test_concurrent_submissions_converge_to_best(service, uid, make_result):
	speeds = [61, 97, 73, 88, 102, 55, 99, 101, 64, 90]

	await asyncio.gather(
		*(service.update_global_record(uid, make_result(wpm=wpm, timestamp=wpm)) for wpm in speeds)
	)

	profile = await service.store.find_profile_by_user(uid)
	records = profile.global_records.records_for("time", "60")
	assert len(records) == 1
	assert records[0].wpm == 102
	assert profile.leaderboard_records.best_wpm("time", "60") == 102


@pytest.mark.asyncio
async def test_concurrent_rank_updates_keep_every_language(service, uid):
	languages = ["english", "german", "french", "spanish", "polish"]

	await asyncio.gather(
		*(service.set_rank(uid, "time", "60", language, index + 1) for index, language in enumerate(languages))
	)

	profile = await service.store.find_profile_by_user(uid)
	for index, language in enumerate(languages):
		assert profile.rank_memory.get("time", "60", language) == index + 1


@pytest.mark.asyncio
async def test_concurrent_counter_increments_are_not_lost(service, uid):
	results = await asyncio.gather(*(service.maybe_increment_counter(uid, 50) for _ in range(12)))

	assert all(results)
	profile = await service.store.find_profile_by_user(uid)
	assert profile.bananas == 12


@pytest.mark.asyncio
async def test_conflicting_write_is_retried(fake_redis):
	store = ProfileStore(max_attempts=4)
	key = "user:conflict"
	await fake_redis.hset(key, "value", "0")
	calls = 0

	async def stage(pipe):
		nonlocal calls
		calls += 1
		if calls == 1:
			await fake_redis.hset(key, "value", "other-writer")
		return lambda queued: queued.hset(key, "value", "mine")

	assert await store._transact(key, scope="test", stage=stage) is True
	assert calls == 2
	assert await fake_redis.hget(key, "value") == "mine"


@pytest.mark.asyncio
async def test_persistent_conflicts_give_up(fake_redis):
	store = ProfileStore(max_attempts=3)
	key = "user:contended"
	await fake_redis.hset(key, "value", "0")
	calls = 0

	async def stage(pipe):
		nonlocal calls
		calls += 1
		await fake_redis.hincrby(key, "value", 1)
		return lambda queued: queued.hset(key, "value", "mine")

	with pytest.raises(StoreWriteFailure):
		await store._transact(key, scope="test", stage=stage)

	assert calls == 3
	assert await fake_redis.hget(key, "value") == "3"


@pytest.mark.asyncio
async def test_concurrent_full_submissions_keep_fastest_at_default_settings(service, store, uid, make_result):
	assert store._max_attempts == settings.record_update_max_attempts
	speeds = list(range(60, 72))

	outcomes = await asyncio.gather(
		*(service.process_submission(uid, make_result(wpm=wpm, timestamp=wpm)) for wpm in speeds)
	)

	assert all(outcome.failures == [] for outcome in outcomes)
	profile = await store.find_profile_by_user(uid)
	assert profile.global_records.best_wpm("time", "60") == 71
	assert profile.leaderboard_records.best_wpm("time", "60") == 71
	assert len(profile.global_records) == 1
	assert profile.completed_tests == len(speeds)
	assert profile.bananas == len(speeds)


@pytest.mark.asyncio
async def test_concurrent_updates_of_one_tag_converge_to_best(service, store, uid, make_result):
	tag = await store.add_tag(uid, "practice")
	speeds = [70, 94, 81, 66, 90, 77]

	await asyncio.gather(*(service.update_tag_records(uid, make_result(wpm=wpm, tags=(tag.id,))) for wpm in speeds))

	profile = await store.find_profile_by_user(uid)
	records = profile.tag(tag.id).records.records_for("time", "60")
	assert len(records) == 1
	assert records[0].wpm == 94
