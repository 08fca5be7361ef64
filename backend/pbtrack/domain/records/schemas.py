"""Pydantic schemas for the record tracking API."""

from __future__ import annotations

import time
from typing import Literal, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator

from pbtrack.domain.records.models import ResultSubmission, SubmissionOutcome


def _sub_mode_text(value):
	"""Numeric sub modes (``60``, ``60.0``) become their text form; fractions are rejected."""
	if isinstance(value, bool) or not isinstance(value, (int, float)):
		return value
	if isinstance(value, float) and not value.is_integer():
		raise ValueError("sub_mode must be a whole number")
	return str(int(value))


class ResultSubmissionSchema(BaseModel):
	mode: str = Field(..., min_length=1)
	sub_mode: str = Field(..., validation_alias=AliasChoices("sub_mode", "mode2"))
	acc: float = Field(..., ge=0, le=100)
	consistency: float = Field(default=0.0, ge=0, le=100)
	difficulty: Literal["normal", "expert", "master"] = "normal"
	lazy_mode: bool = Field(default=False, validation_alias=AliasChoices("lazy_mode", "lazyMode"))
	language: str = "english"
	punctuation: bool = False
	raw_wpm: float = Field(..., ge=0, validation_alias=AliasChoices("raw_wpm", "rawWpm"))
	wpm: float = Field(..., ge=0)
	funbox: str = "none"
	tags: list[str] = Field(default_factory=list)
	timestamp: Optional[int] = Field(default=None, ge=0)
	restart_count: int = Field(default=0, ge=0, validation_alias=AliasChoices("restart_count", "restartCount"))
	test_duration: float = Field(default=0.0, ge=0, validation_alias=AliasChoices("test_duration", "testDuration"))

	@field_validator("sub_mode", mode="before")
	def _coerce_sub_mode(cls, value):  # type: ignore[override]
		return _sub_mode_text(value)

	def to_domain(self) -> ResultSubmission:
		return ResultSubmission(
			mode=self.mode,
			sub_mode=self.sub_mode,
			acc=self.acc,
			consistency=self.consistency,
			raw_wpm=self.raw_wpm,
			wpm=self.wpm,
			timestamp=self.timestamp if self.timestamp is not None else int(time.time() * 1000),
			difficulty=self.difficulty,
			lazy_mode=self.lazy_mode,
			language=self.language,
			punctuation=self.punctuation,
			funbox=self.funbox,
			tags=tuple(self.tags),
			restart_count=self.restart_count,
			test_duration=self.test_duration,
		)


class SubmissionOutcomeSchema(BaseModel):
	is_pb: bool
	tag_pbs: list[str] = Field(default_factory=list)
	bananas_awarded: bool = False
	eligible: bool = False
	failures: list[str] = Field(default_factory=list)

	@classmethod
	def from_domain(cls, outcome: SubmissionOutcome) -> "SubmissionOutcomeSchema":
		return cls(
			is_pb=outcome.is_pb,
			tag_pbs=list(outcome.tag_pbs),
			bananas_awarded=outcome.bananas_awarded,
			eligible=outcome.eligible,
			failures=list(outcome.failures),
		)


class RankMemoryUpdateRequest(BaseModel):
	mode: str = Field(..., min_length=1)
	sub_mode: str = Field(..., validation_alias=AliasChoices("sub_mode", "mode2"))
	language: str = Field(..., min_length=1)
	rank: int = Field(..., ge=1)

	@field_validator("sub_mode", mode="before")
	def _coerce_sub_mode(cls, value):  # type: ignore[override]
		return _sub_mode_text(value)
