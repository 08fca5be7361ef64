"""Redis-backed user document store keyed by uid.

Each profile is a hash at ``<prefix>:<uid>``; each tag owns a separate hash at
``<prefix>:<uid>:tag:<tag_id>`` so per-tag writes never contend with each other or
with the profile-level fields. Structured fields are stored as JSON strings,
counters as plain numbers.

Writes to one key are serialised inside the process by a per-key lock, so the
updates a submission triggers queue behind each other instead of racing. Across
processes, read-modify-write updates run as optimistic transactions: the key is
WATCHed, the current value read and transformed, and the write queued in
MULTI/EXEC. A concurrent writer aborts EXEC with ``WatchError``; the value is then
re-read and the transform applied again, up to
``settings.record_update_max_attempts`` times. Counter increments are atomic on
their own and are not WATCHed.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
import weakref
from typing import Any, Awaitable, Callable, Mapping, Optional
from uuid import uuid4

from redis.exceptions import RedisError, WatchError

from pbtrack.domain.records.exceptions import ProfileNotFound, StoreWriteFailure, TagNotFound
from pbtrack.domain.records.models import RankMemory, RecordMap, Tag, UserProfile
from pbtrack.infra.redis import RedisProxy, redis_client
from pbtrack.obs import metrics as obs_metrics
from pbtrack.settings import settings

logger = logging.getLogger(__name__)

NAME_FIELD = "name"
ADDED_AT_FIELD = "addedAt"
GLOBAL_RECORDS_FIELD = "personalBests"
LEADERBOARD_RECORDS_FIELD = "lbPersonalBests"
RANK_MEMORY_FIELD = "lbMemory"
TAGS_FIELD = "tags"
BANANAS_FIELD = "bananas"
STARTED_TESTS_FIELD = "startedTests"
COMPLETED_TESTS_FIELD = "completedTests"
TIME_TYPING_FIELD = "timeTyping"
TAG_NAME_FIELD = "name"
TAG_RECORDS_FIELD = "personalBests"

JSON_FIELDS = frozenset({GLOBAL_RECORDS_FIELD, LEADERBOARD_RECORDS_FIELD, RANK_MEMORY_FIELD, TAGS_FIELD})

# A transform receives the decoded current value and returns the value to write,
# or None when nothing needs to be written.
Transform = Callable[[Any], Any]
QueueWrites = Callable[[Any], None]
Stage = Callable[[Any], Awaitable[Optional[QueueWrites]]]


def _encode(field: str, value: Any) -> Any:
	if field in JSON_FIELDS:
		return json.dumps(value, separators=(",", ":"))
	if isinstance(value, bool):
		return int(value)
	return value


def _decode(field: str, raw: Any) -> Any:
	if raw is None:
		return None
	if field in JSON_FIELDS:
		return json.loads(raw)
	return raw


def _as_int(raw: Any) -> int:
	if raw in (None, ""):
		return 0
	return int(float(raw))


def _as_float(raw: Any) -> float:
	if raw in (None, ""):
		return 0.0
	return float(raw)


class ProfileStore:
	"""Keyed read/update access to persisted user documents."""

	def __init__(
		self,
		redis: RedisProxy | None = None,
		*,
		key_prefix: str | None = None,
		max_attempts: int | None = None,
	) -> None:
		self._redis = redis if redis is not None else redis_client
		self._prefix = key_prefix or settings.profile_key_prefix
		self._max_attempts = max(1, max_attempts or settings.record_update_max_attempts)
		# Entries vanish once no writer holds or waits on the lock
		self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

	def _user_key(self, uid: str) -> str:
		return f"{self._prefix}:{uid}"

	def _tag_key(self, uid: str, tag_id: str) -> str:
		return f"{self._prefix}:{uid}:tag:{tag_id}"

	def _lock(self, key: str) -> asyncio.Lock:
		lock = self._locks.get(key)
		if lock is None:
			lock = asyncio.Lock()
			self._locks[key] = lock
		return lock

	async def _transact(
		self,
		key: str,
		*,
		scope: str,
		stage: Stage,
		missing: Callable[[], Exception] | None = None,
	) -> bool:
		"""Run ``stage`` under WATCH and commit what it queues; True when EXEC ran."""
		async with self._lock(key):
			return await self._transact_watched(key, scope=scope, stage=stage, missing=missing)

	async def _transact_watched(
		self,
		key: str,
		*,
		scope: str,
		stage: Stage,
		missing: Callable[[], Exception] | None = None,
	) -> bool:
		attempts = 0
		try:
			async with self._redis.pipeline(transaction=True) as pipe:
				while True:
					attempts += 1
					try:
						await pipe.watch(key)
						if missing is not None and not await pipe.exists(key):
							raise missing()
						queue_writes = await stage(pipe)
						if queue_writes is None:
							return False
						pipe.multi()
						queue_writes(pipe)
						await pipe.execute()
						return True
					except WatchError:
						obs_metrics.inc_record_write_conflict(scope)
						if attempts >= self._max_attempts:
							raise StoreWriteFailure(
								scope, f"gave up after {attempts} conflicting concurrent updates"
							)
						logger.debug("Retrying %s update on %s after conflict (attempt %d)", scope, key, attempts)
		except RedisError as exc:
			raise StoreWriteFailure(scope, str(exc)) from exc

	async def find_profile_by_user(self, uid: str) -> UserProfile:
		doc = await self._redis.hgetall(self._user_key(uid))
		if not doc:
			raise ProfileNotFound(uid, "find profile")
		tag_ids = [str(tag_id) for tag_id in (_decode(TAGS_FIELD, doc.get(TAGS_FIELD)) or [])]
		tags: list[Tag] = []
		if tag_ids:
			async with self._redis.pipeline(transaction=False) as pipe:
				for tag_id in tag_ids:
					pipe.hgetall(self._tag_key(uid, tag_id))
				tag_docs = await pipe.execute()
			for tag_id, tag_doc in zip(tag_ids, tag_docs):
				if not tag_doc:
					logger.warning("Tag %s listed on user %s has no document", tag_id, uid)
					continue
				tags.append(
					Tag(
						id=tag_id,
						name=str(tag_doc.get(TAG_NAME_FIELD) or ""),
						records=RecordMap.from_document(_decode(TAG_RECORDS_FIELD, tag_doc.get(TAG_RECORDS_FIELD))),
					)
				)
		return UserProfile(
			uid=uid,
			name=str(doc.get(NAME_FIELD) or ""),
			global_records=RecordMap.from_document(_decode(GLOBAL_RECORDS_FIELD, doc.get(GLOBAL_RECORDS_FIELD))),
			leaderboard_records=RecordMap.from_document(
				_decode(LEADERBOARD_RECORDS_FIELD, doc.get(LEADERBOARD_RECORDS_FIELD))
			),
			tags=tuple(tags),
			rank_memory=RankMemory.from_document(_decode(RANK_MEMORY_FIELD, doc.get(RANK_MEMORY_FIELD))),
			bananas=_as_int(doc.get(BANANAS_FIELD)),
			started_tests=_as_int(doc.get(STARTED_TESTS_FIELD)),
			completed_tests=_as_int(doc.get(COMPLETED_TESTS_FIELD)),
			time_typing=_as_float(doc.get(TIME_TYPING_FIELD)),
		)

	async def write_fields(self, uid: str, values: Mapping[str, Any]) -> None:
		"""Set several profile fields in one atomic write."""
		key = self._user_key(uid)
		encoded = {field: _encode(field, value) for field, value in values.items()}

		async def _stage(pipe) -> QueueWrites:
			return lambda queued: queued.hset(key, mapping=encoded)

		await self._transact(
			key,
			scope=",".join(values),
			stage=_stage,
			missing=lambda: ProfileNotFound(uid, "write fields"),
		)

	async def write_field(self, uid: str, field: str, value: Any) -> None:
		await self.write_fields(uid, {field: value})

	async def write_tag_field(self, uid: str, tag_id: str, field: str, value: Any) -> None:
		key = self._tag_key(uid, tag_id)
		encoded = _encode(field, value)

		async def _stage(pipe) -> QueueWrites:
			return lambda queued: queued.hset(key, field, encoded)

		await self._transact(
			key,
			scope="tag",
			stage=_stage,
			missing=lambda: TagNotFound(uid, tag_id),
		)

	async def update_field(self, uid: str, field: str, transform: Transform) -> bool:
		"""Read-modify-write one profile field; True when a new value was written."""
		key = self._user_key(uid)

		async def _stage(pipe) -> Optional[QueueWrites]:
			current = _decode(field, await pipe.hget(key, field))
			updated = transform(current)
			if updated is None:
				return None
			encoded = _encode(field, updated)
			return lambda queued: queued.hset(key, field, encoded)

		return await self._transact(
			key,
			scope=field,
			stage=_stage,
			missing=lambda: ProfileNotFound(uid, f"update {field}"),
		)

	async def update_tag_field(self, uid: str, tag_id: str, field: str, transform: Transform) -> bool:
		"""Read-modify-write one field of a tag document; True when a new value was written."""
		key = self._tag_key(uid, tag_id)

		async def _stage(pipe) -> Optional[QueueWrites]:
			current = _decode(field, await pipe.hget(key, field))
			updated = transform(current)
			if updated is None:
				return None
			encoded = _encode(field, updated)
			return lambda queued: queued.hset(key, field, encoded)

		return await self._transact(
			key,
			scope="tag",
			stage=_stage,
			missing=lambda: TagNotFound(uid, tag_id),
		)

	async def increment_fields(self, uid: str, amounts: Mapping[str, int | float]) -> None:
		"""Atomically add to numeric profile fields; the profile must already exist."""
		key = self._user_key(uid)
		scope = ",".join(amounts)
		async with self._lock(key):
			try:
				if not await self._redis.exists(key):
					raise ProfileNotFound(uid, "increment")
				async with self._redis.pipeline(transaction=True) as pipe:
					for field, amount in amounts.items():
						if isinstance(amount, float):
							pipe.hincrbyfloat(key, field, amount)
						else:
							pipe.hincrby(key, field, amount)
					await pipe.execute()
			except RedisError as exc:
				raise StoreWriteFailure(scope, str(exc)) from exc

	async def create_profile(self, uid: str, *, name: str = "") -> bool:
		"""Seed an empty profile document; False when one already exists."""
		key = self._user_key(uid)
		document = {
			NAME_FIELD: name,
			ADDED_AT_FIELD: int(time.time() * 1000),
			GLOBAL_RECORDS_FIELD: _encode(GLOBAL_RECORDS_FIELD, {}),
			LEADERBOARD_RECORDS_FIELD: _encode(LEADERBOARD_RECORDS_FIELD, {}),
			RANK_MEMORY_FIELD: _encode(RANK_MEMORY_FIELD, {}),
			TAGS_FIELD: _encode(TAGS_FIELD, []),
			BANANAS_FIELD: 0,
			STARTED_TESTS_FIELD: 0,
			COMPLETED_TESTS_FIELD: 0,
			TIME_TYPING_FIELD: 0,
		}

		async def _stage(pipe) -> Optional[QueueWrites]:
			if await pipe.exists(key):
				return None
			return lambda queued: queued.hset(key, mapping=document)

		return await self._transact(key, scope="profile", stage=_stage)

	async def add_tag(self, uid: str, name: str, *, tag_id: str | None = None) -> Tag:
		"""Attach an empty tag to the profile, keeping the tag order stable."""
		key = self._user_key(uid)
		tag = Tag(id=tag_id or uuid4().hex, name=name)
		tag_key = self._tag_key(uid, tag.id)

		async def _stage(pipe) -> QueueWrites:
			tag_ids = _decode(TAGS_FIELD, await pipe.hget(key, TAGS_FIELD)) or []
			if tag.id not in tag_ids:
				tag_ids.append(tag.id)
			encoded_ids = _encode(TAGS_FIELD, tag_ids)

			def _queue(queued) -> None:
				queued.hset(key, TAGS_FIELD, encoded_ids)
				queued.hset(tag_key, mapping={TAG_NAME_FIELD: name, TAG_RECORDS_FIELD: "{}"})

			return _queue

		await self._transact(
			key,
			scope="tags",
			stage=_stage,
			missing=lambda: ProfileNotFound(uid, "add tag"),
		)
		return tag
