"""Service deciding when a submitted result becomes a personal record."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from pbtrack.domain.records import policy
from pbtrack.domain.records.comparator import RecordComparator, compare
from pbtrack.domain.records.exceptions import (
	ComparatorFailure,
	LeaderboardWriteFailed,
	RecordsError,
	StoreWriteFailure,
	TagNotFound,
	TagRecordsPartialFailure,
)
from pbtrack.domain.records.models import (
	RankMemory,
	RecordMap,
	ResultSubmission,
	SubmissionOutcome,
)
from pbtrack.infra import profile_store
from pbtrack.infra.profile_store import ProfileStore
from pbtrack.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

SCOPE_GLOBAL = "global"
SCOPE_LEADERBOARD = "leaderboard"
SCOPE_TAG = "tag"


class RecordService:
	"""Applies the comparator to a user's record maps and commits the results."""

	def __init__(
		self,
		store: ProfileStore | None = None,
		comparator: RecordComparator | None = None,
	) -> None:
		self._store = store if store is not None else ProfileStore()
		self._compare: RecordComparator = comparator or compare

	@property
	def store(self) -> ProfileStore:
		return self._store

	def _records_transform(self, scope: str, result: ResultSubmission):
		"""Build a store transform that returns the new map document, or None when unchanged."""
		variant = result.variant_key

		def _transform(current: Any) -> Optional[dict]:
			existing = RecordMap.from_document(current)
			try:
				outcome = self._compare(existing, result.mode, result.sub_mode, variant, result)
			except Exception as exc:
				raise ComparatorFailure(
					scope=scope,
					mode=result.mode,
					sub_mode=result.sub_mode,
					variant=variant.describe(),
				) from exc
			if not outcome.is_new_record:
				return None
			return outcome.updated_map.to_document()

		return _transform

	async def _update_profile_records(self, uid: str, field: str, scope: str, result: ResultSubmission) -> bool:
		try:
			written = await self._store.update_field(uid, field, self._records_transform(scope, result))
		except StoreWriteFailure:
			obs_metrics.inc_record_write_failure(scope)
			raise
		if written:
			obs_metrics.inc_record_new(scope)
		return written

	async def update_global_record(self, uid: str, result: ResultSubmission) -> bool:
		"""Record ``result`` against the global map and, when eligible, the leaderboard map.

		The two maps are written independently. The return value reports the global
		outcome only. When the leaderboard write fails after the global step
		completed, ``LeaderboardWriteFailed`` carries the global outcome with it.
		A failed global write does not stop the leaderboard write; the global error
		is raised once the leaderboard step has run.
		"""
		global_error: RecordsError | None = None
		is_new_record = False
		try:
			is_new_record = await self._update_profile_records(
				uid, profile_store.GLOBAL_RECORDS_FIELD, SCOPE_GLOBAL, result
			)
		except (StoreWriteFailure, ComparatorFailure) as exc:
			global_error = exc
		if is_new_record:
			logger.info(
				"New personal best",
				extra={"uid": uid, "mode": result.mode, "sub_mode": result.sub_mode, "wpm": result.wpm},
			)

		if policy.is_leaderboard_eligible(result):
			try:
				await self._update_profile_records(
					uid, profile_store.LEADERBOARD_RECORDS_FIELD, SCOPE_LEADERBOARD, result
				)
			except (StoreWriteFailure, ComparatorFailure) as exc:
				logger.warning(
					"Leaderboard record write failed",
					extra={"uid": uid, "mode": result.mode, "sub_mode": result.sub_mode, "global_pb": is_new_record},
					exc_info=True,
				)
				if global_error is None:
					raise LeaderboardWriteFailed(is_new_record=is_new_record, cause=exc) from exc

		if global_error is not None:
			raise global_error
		return is_new_record

	async def _update_tag(self, uid: str, tag_id: str, result: ResultSubmission) -> bool:
		try:
			written = await self._store.update_tag_field(
				uid,
				tag_id,
				profile_store.TAG_RECORDS_FIELD,
				self._records_transform(SCOPE_TAG, result),
			)
		except StoreWriteFailure:
			obs_metrics.inc_record_write_failure(SCOPE_TAG)
			raise
		if written:
			obs_metrics.inc_record_new(SCOPE_TAG)
		return written

	async def update_tag_records(self, uid: str, result: ResultSubmission) -> list[str]:
		"""Return the ids of referenced tags whose records changed.

		Every candidate tag is updated concurrently and all of them settle before the
		list is built. Tags whose update failed are left out of the list and raised
		together in ``TagRecordsPartialFailure`` once the others have completed.
		"""
		profile = await self._store.find_profile_by_user(uid)
		if not profile.tags or not result.tags:
			return []
		if not policy.is_leaderboard_eligible(result):
			return []

		referenced = set(result.tags)
		candidates = [tag.id for tag in profile.tags if tag.id in referenced]
		if not candidates:
			return []

		settled = await asyncio.gather(
			*(self._update_tag(uid, tag_id, result) for tag_id in candidates),
			return_exceptions=True,
		)

		updated: list[str] = []
		failures: dict[str, Exception] = {}
		for tag_id, outcome in zip(candidates, settled):
			if isinstance(outcome, Exception):
				failures[tag_id] = outcome
			elif isinstance(outcome, BaseException):
				raise outcome
			elif outcome:
				updated.append(tag_id)

		if failures:
			logger.warning(
				"Tag record updates failed",
				extra={"uid": uid, "failed_tags": sorted(failures), "updated_tags": updated},
			)
			raise TagRecordsPartialFailure(updated_tag_ids=updated, failures=failures)
		return updated

	async def set_rank(self, uid: str, mode: str, sub_mode: str, language: str, rank: int) -> None:
		"""Remember the last leaderboard rank seen for (mode, sub_mode, language)."""
		if isinstance(rank, bool) or not isinstance(rank, int) or rank < 1:
			raise ValueError("rank must be a positive integer")

		def _transform(current: Any) -> dict:
			memory = RankMemory.from_document(current)
			memory.set(mode, sub_mode, language, rank)
			return memory.to_document()

		await self._store.update_field(uid, profile_store.RANK_MEMORY_FIELD, _transform)
		obs_metrics.inc_rank_memory_update()

	async def maybe_increment_counter(self, uid: str, wpm: float) -> bool:
		"""Award a banana when ``wpm`` is within 25% of the best 60 second time trial."""
		profile = await self._store.find_profile_by_user(uid)
		reference_best = profile.global_records.best_wpm(
			policy.BANANA_REFERENCE_MODE, policy.BANANA_REFERENCE_SUB_MODE
		)
		if not policy.qualifies_for_banana(wpm, reference_best):
			return False
		await self._store.increment_fields(uid, {profile_store.BANANAS_FIELD: 1})
		obs_metrics.inc_banana_awarded()
		return True

	async def update_typing_stats(self, uid: str, restart_count: int, time_typing: float) -> None:
		await self._store.increment_fields(
			uid,
			{
				profile_store.STARTED_TESTS_FIELD: restart_count + 1,
				profile_store.COMPLETED_TESTS_FIELD: 1,
				profile_store.TIME_TYPING_FIELD: float(time_typing),
			},
		)

	async def clear_records(self, uid: str) -> None:
		"""Drop both the global and the leaderboard records in one write."""
		await self._store.write_fields(
			uid,
			{
				profile_store.GLOBAL_RECORDS_FIELD: {},
				profile_store.LEADERBOARD_RECORDS_FIELD: {},
			},
		)

	async def reset_global_records(self, uid: str) -> None:
		await self._store.write_field(uid, profile_store.GLOBAL_RECORDS_FIELD, {})

	async def remove_tag_records(self, uid: str, tag_id: str) -> None:
		profile = await self._store.find_profile_by_user(uid)
		if profile.tag(tag_id) is None:
			raise TagNotFound(uid, tag_id)
		await self._store.write_tag_field(uid, tag_id, profile_store.TAG_RECORDS_FIELD, {})

	async def process_submission(self, uid: str, result: ResultSubmission) -> SubmissionOutcome:
		"""Run every record update a submission triggers.

		A failed write or comparison aborts only its own step: it is collected into
		the outcome and the remaining steps still run. A missing profile propagates.
		"""
		outcome = SubmissionOutcome(eligible=policy.is_leaderboard_eligible(result))
		obs_metrics.inc_submission(outcome.eligible)

		try:
			outcome.is_pb = await self.update_global_record(uid, result)
		except LeaderboardWriteFailed as exc:
			outcome.is_pb = exc.is_new_record
			outcome.failures.append(f"{exc.reason}: {exc.cause}")
		except (StoreWriteFailure, ComparatorFailure) as exc:
			outcome.failures.append(f"{exc.reason}: {exc}")

		if result.tags:
			try:
				outcome.tag_pbs = await self.update_tag_records(uid, result)
			except TagRecordsPartialFailure as exc:
				outcome.tag_pbs = exc.updated_tag_ids
				outcome.failures.extend(f"{exc.reason}: {tag_id}: {err}" for tag_id, err in exc.failures.items())

		try:
			outcome.bananas_awarded = await self.maybe_increment_counter(uid, result.wpm)
		except StoreWriteFailure as exc:
			obs_metrics.inc_record_write_failure("bananas")
			outcome.failures.append(f"{exc.reason}: {exc}")

		try:
			await self.update_typing_stats(uid, result.restart_count, result.test_duration)
		except StoreWriteFailure as exc:
			obs_metrics.inc_record_write_failure("typing_stats")
			outcome.failures.append(f"{exc.reason}: {exc}")

		if outcome.failures:
			logger.warning("Submission finished with partial failures", extra={"uid": uid, "failures": outcome.failures})
		return outcome

