"""Policy helpers for leaderboard eligibility and the banana counter."""

from __future__ import annotations

from typing import Optional

from pbtrack.domain.records.models import ResultSubmission

# Funboxes that leave a result comparable with a plain run
LEADERBOARD_FUNBOXES = frozenset({"none", "plus_one", "plus_two"})

# Quote mode texts differ per run and never reach the leaderboards
LEADERBOARD_EXCLUDED_MODES = frozenset({"quote"})

# Bananas are measured against the best 60 second time trial
BANANA_REFERENCE_MODE = "time"
BANANA_REFERENCE_SUB_MODE = "60"
BANANA_TOLERANCE = 0.25


def is_leaderboard_eligible(result: ResultSubmission) -> bool:
	"""Both the funbox allow-list and the mode exclusion must pass."""
	if result.funbox not in LEADERBOARD_FUNBOXES:
		return False
	if result.mode in LEADERBOARD_EXCLUDED_MODES:
		return False
	return True


def qualifies_for_banana(wpm: float, reference_best: Optional[float]) -> bool:
	"""True when there is no reference best yet or ``wpm`` is within 25% of it."""
	if reference_best is None:
		return True
	return wpm >= reference_best - reference_best * BANANA_TOLERANCE
