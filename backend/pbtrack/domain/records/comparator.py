"""Pure record comparison.

A comparator receives the current record map and a candidate result and returns
whether the candidate is a new record together with the map that should be
persisted. It must not keep state and must not mutate the map it is given.
"""

from __future__ import annotations

from typing import Protocol

from pbtrack.domain.records.models import ComparisonOutcome, RecordMap, ResultSubmission, VariantKey


class RecordComparator(Protocol):
	def __call__(
		self,
		existing: RecordMap,
		mode: str,
		sub_mode: str,
		variant: VariantKey,
		candidate: ResultSubmission,
	) -> ComparisonOutcome: ...


def compare(
	existing: RecordMap,
	mode: str,
	sub_mode: str,
	variant: VariantKey,
	candidate: ResultSubmission,
) -> ComparisonOutcome:
	current = existing.find(mode, sub_mode, variant)
	if current is not None and candidate.wpm <= current.wpm:
		return ComparisonOutcome(is_new_record=False, updated_map=existing)
	record = candidate.to_record()
	if record.variant_key != variant:
		raise ValueError(f"candidate variant {record.variant_key.describe()} does not match {variant.describe()}")
	return ComparisonOutcome(is_new_record=True, updated_map=existing.with_record(mode, sub_mode, record))
