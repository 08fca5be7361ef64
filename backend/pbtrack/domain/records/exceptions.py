"""Domain-level exceptions for personal-best record tracking."""

from __future__ import annotations

from typing import Mapping, Sequence


class RecordsError(Exception):
	"""Base class for record tracking errors."""

	reason: str = "unknown"

	def __init__(self, reason: str | None = None) -> None:
		super().__init__(reason or self.reason)
		if reason:
			self.reason = reason


class ProfileNotFound(RecordsError):
	reason = "user_not_found"

	def __init__(self, uid: str, operation: str | None = None) -> None:
		super().__init__()
		self.uid = uid
		self.operation = operation

	def __str__(self) -> str:
		suffix = f" ({self.operation})" if self.operation else ""
		return f"user {self.uid} not found{suffix}"


class TagNotFound(RecordsError):
	reason = "tag_not_found"

	def __init__(self, uid: str, tag_id: str) -> None:
		super().__init__()
		self.uid = uid
		self.tag_id = tag_id

	def __str__(self) -> str:
		return f"tag {self.tag_id} not found for user {self.uid}"


class ComparatorFailure(RecordsError):
	"""The comparator raised; the single update it belonged to is abandoned."""

	reason = "comparator_failure"

	def __init__(self, *, scope: str, mode: str, sub_mode: str, variant: str) -> None:
		super().__init__()
		self.scope = scope
		self.mode = mode
		self.sub_mode = sub_mode
		self.variant = variant

	def __str__(self) -> str:
		return f"comparator failed for {self.scope} {self.mode}/{self.sub_mode} [{self.variant}]"


class StoreWriteFailure(RecordsError):
	"""A persistence write did not land."""

	reason = "store_write_failed"

	def __init__(self, scope: str, detail: str | None = None) -> None:
		super().__init__()
		self.scope = scope
		self.detail = detail

	def __str__(self) -> str:
		return f"write to {self.scope} failed" + (f": {self.detail}" if self.detail else "")


class LeaderboardWriteFailed(RecordsError):
	"""The global write settled but the independent leaderboard write did not."""

	reason = "leaderboard_write_failed"

	def __init__(self, *, is_new_record: bool, cause: Exception) -> None:
		super().__init__()
		self.is_new_record = is_new_record
		self.cause = cause

	def __str__(self) -> str:
		return f"leaderboard record write failed: {self.cause}"


class TagRecordsPartialFailure(RecordsError):
	"""Raised after every tag update settled and at least one of them failed."""

	reason = "tag_records_partial_failure"

	def __init__(self, *, updated_tag_ids: Sequence[str], failures: Mapping[str, Exception]) -> None:
		super().__init__()
		self.updated_tag_ids = list(updated_tag_ids)
		self.failures = dict(failures)

	def __str__(self) -> str:
		failed = ", ".join(f"{tag_id}: {exc}" for tag_id, exc in self.failures.items())
		return f"tag record updates failed for {failed}"
