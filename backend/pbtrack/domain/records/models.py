"""Domain models for personal-best records, tags and rank memory."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, Mapping, Optional


DEFAULT_DIFFICULTY = "normal"
DEFAULT_LANGUAGE = "english"


@dataclass(frozen=True, slots=True)
class VariantKey:
	"""Secondary attributes that subdivide records within a (mode, sub_mode) pair."""

	language: str
	punctuation: bool
	difficulty: str
	lazy_mode: bool

	def describe(self) -> str:
		return (
			f"{self.language}/punctuation={self.punctuation}"
			f"/difficulty={self.difficulty}/lazy={self.lazy_mode}"
		)


@dataclass(frozen=True, slots=True)
class Record:
	"""Best-known performance for one exact configuration."""

	acc: float
	consistency: float
	difficulty: str
	lazy_mode: bool
	language: str
	punctuation: bool
	raw: float
	wpm: float
	timestamp: int

	@property
	def variant_key(self) -> VariantKey:
		return VariantKey(
			language=self.language,
			punctuation=self.punctuation,
			difficulty=self.difficulty,
			lazy_mode=self.lazy_mode,
		)

	@classmethod
	def from_document(cls, doc: Mapping[str, Any]) -> "Record":
		return cls(
			acc=float(doc.get("acc", 0.0)),
			consistency=float(doc.get("consistency", 0.0)),
			difficulty=str(doc.get("difficulty") or DEFAULT_DIFFICULTY),
			lazy_mode=bool(doc.get("lazyMode", False)),
			language=str(doc.get("language") or DEFAULT_LANGUAGE),
			punctuation=bool(doc.get("punctuation", False)),
			raw=float(doc.get("raw", 0.0)),
			wpm=float(doc.get("wpm", 0.0)),
			timestamp=int(doc.get("timestamp", 0)),
		)

	def to_document(self) -> dict[str, Any]:
		return {
			"acc": self.acc,
			"consistency": self.consistency,
			"difficulty": self.difficulty,
			"lazyMode": self.lazy_mode,
			"language": self.language,
			"punctuation": self.punctuation,
			"raw": self.raw,
			"wpm": self.wpm,
			"timestamp": self.timestamp,
		}


@dataclass(frozen=True)
class RecordMap:
	"""Immutable mode -> sub_mode -> records mapping.

	At most one record is held per exact (mode, sub_mode, variant key). Every
	"mutation" returns a new map and leaves the receiver untouched, so callers can
	compare before/after to decide whether a write is needed.
	"""

	entries: Mapping[str, Mapping[str, tuple[Record, ...]]] = field(default_factory=dict)

	@classmethod
	def from_document(cls, doc: Optional[Mapping[str, Any]]) -> "RecordMap":
		"""Load a persisted map, keeping only the best record when a variant repeats."""
		if not doc:
			return cls()
		entries: dict[str, dict[str, tuple[Record, ...]]] = {}
		for mode, sub_modes in doc.items():
			if not isinstance(sub_modes, Mapping):
				continue
			by_sub_mode: dict[str, tuple[Record, ...]] = {}
			for sub_mode, records in sub_modes.items():
				best: dict[VariantKey, Record] = {}
				for raw_record in records or ():
					record = Record.from_document(raw_record)
					current = best.get(record.variant_key)
					if current is None or record.wpm > current.wpm:
						best[record.variant_key] = record
				by_sub_mode[str(sub_mode)] = tuple(best.values())
			entries[str(mode)] = by_sub_mode
		return cls(entries)

	def to_document(self) -> dict[str, dict[str, list[dict[str, Any]]]]:
		return {
			mode: {
				sub_mode: [record.to_document() for record in records]
				for sub_mode, records in sub_modes.items()
			}
			for mode, sub_modes in self.entries.items()
		}

	def records_for(self, mode: str, sub_mode: str) -> tuple[Record, ...]:
		return tuple(self.entries.get(mode, {}).get(sub_mode, ()))

	def find(self, mode: str, sub_mode: str, variant: VariantKey) -> Optional[Record]:
		for record in self.records_for(mode, sub_mode):
			if record.variant_key == variant:
				return record
		return None

	def best_wpm(self, mode: str, sub_mode: str) -> Optional[float]:
		records = self.records_for(mode, sub_mode)
		if not records:
			return None
		return max(record.wpm for record in records)

	def with_record(self, mode: str, sub_mode: str, record: Record) -> "RecordMap":
		"""Return a copy holding ``record`` in place of any entry with the same variant."""
		kept = tuple(r for r in self.records_for(mode, sub_mode) if r.variant_key != record.variant_key)
		by_sub_mode = dict(self.entries.get(mode, {}))
		by_sub_mode[sub_mode] = kept + (record,)
		entries = dict(self.entries)
		entries[mode] = by_sub_mode
		return RecordMap(entries)

	def __iter__(self) -> Iterator[tuple[str, str, Record]]:
		for mode, sub_modes in self.entries.items():
			for sub_mode, records in sub_modes.items():
				for record in records:
					yield mode, sub_mode, record

	def __len__(self) -> int:
		return sum(1 for _ in self)


@dataclass(frozen=True, slots=True)
class ResultSubmission:
	"""One parsed test result as handed over by the request layer."""

	mode: str
	sub_mode: str
	acc: float
	consistency: float
	raw_wpm: float
	wpm: float
	timestamp: int
	difficulty: str = DEFAULT_DIFFICULTY
	lazy_mode: bool = False
	language: str = DEFAULT_LANGUAGE
	punctuation: bool = False
	funbox: str = "none"
	tags: tuple[str, ...] = ()
	restart_count: int = 0
	test_duration: float = 0.0

	@property
	def variant_key(self) -> VariantKey:
		return VariantKey(
			language=self.language,
			punctuation=self.punctuation,
			difficulty=self.difficulty,
			lazy_mode=self.lazy_mode,
		)

	def to_record(self) -> Record:
		return Record(
			acc=self.acc,
			consistency=self.consistency,
			difficulty=self.difficulty,
			lazy_mode=self.lazy_mode,
			language=self.language,
			punctuation=self.punctuation,
			raw=self.raw_wpm,
			wpm=self.wpm,
			timestamp=self.timestamp,
		)


@dataclass(frozen=True, slots=True)
class ComparisonOutcome:
	is_new_record: bool
	updated_map: RecordMap


@dataclass(slots=True)
class RankMemory:
	"""Last-known leaderboard rank per mode -> sub_mode -> language."""

	levels: dict[str, dict[str, dict[str, int]]] = field(default_factory=dict)

	@classmethod
	def from_document(cls, doc: Optional[Mapping[str, Any]]) -> "RankMemory":
		levels: dict[str, dict[str, dict[str, int]]] = {}
		for mode, sub_modes in (doc or {}).items():
			if not isinstance(sub_modes, Mapping):
				continue
			for sub_mode, languages in sub_modes.items():
				if not isinstance(languages, Mapping):
					continue
				bucket = levels.setdefault(str(mode), {}).setdefault(str(sub_mode), {})
				for language, rank in languages.items():
					bucket[str(language)] = int(rank)
		return cls(levels)

	def to_document(self) -> dict[str, dict[str, dict[str, int]]]:
		return {
			mode: {sub_mode: dict(languages) for sub_mode, languages in sub_modes.items()}
			for mode, sub_modes in self.levels.items()
		}

	def set(self, mode: str, sub_mode: str, language: str, rank: int) -> None:
		# setdefault never replaces a level that already exists
		languages = self.levels.setdefault(mode, {}).setdefault(sub_mode, {})
		languages[language] = rank

	def get(self, mode: str, sub_mode: str, language: str) -> Optional[int]:
		return self.levels.get(mode, {}).get(sub_mode, {}).get(language)


@dataclass(frozen=True, slots=True)
class Tag:
	id: str
	name: str
	records: RecordMap = field(default_factory=RecordMap)


@dataclass(slots=True)
class UserProfile:
	"""Snapshot of the persisted user document relevant to record tracking."""

	uid: str
	name: str = ""
	global_records: RecordMap = field(default_factory=RecordMap)
	leaderboard_records: RecordMap = field(default_factory=RecordMap)
	tags: tuple[Tag, ...] = ()
	rank_memory: RankMemory = field(default_factory=RankMemory)
	bananas: int = 0
	started_tests: int = 0
	completed_tests: int = 0
	time_typing: float = 0.0

	def tag(self, tag_id: str) -> Optional[Tag]:
		for tag in self.tags:
			if tag.id == tag_id:
				return tag
		return None


@dataclass(slots=True)
class SubmissionOutcome:
	"""What a submission changed, plus any partial failures that were reported."""

	is_pb: bool = False
	tag_pbs: list[str] = field(default_factory=list)
	bananas_awarded: bool = False
	eligible: bool = False
	failures: list[str] = field(default_factory=list)
