from pbtrack.domain.records.models import RankMemory, Record, RecordMap, VariantKey


def _record(wpm: float, *, language: str = "english", punctuation: bool = False) -> Record:
	return Record(
		acc=95.0,
		consistency=70.0,
		difficulty="normal",
		lazy_mode=False,
		language=language,
		punctuation=punctuation,
		raw=wpm + 5,
		wpm=wpm,
		timestamp=1,
	)


def test_variant_key_has_value_equality():
	a = VariantKey(language="english", punctuation=True, difficulty="expert", lazy_mode=False)
	b = VariantKey(language="english", punctuation=True, difficulty="expert", lazy_mode=False)
	assert a == b
	assert len({a, b}) == 1
	assert a != VariantKey(language="english", punctuation=True, difficulty="expert", lazy_mode=True)


def test_with_record_returns_new_map_and_replaces_same_variant():
	empty = RecordMap()
	first = empty.with_record("time", "60", _record(80))
	second = first.with_record("time", "60", _record(90))

	assert len(empty) == 0
	assert first.find("time", "60", _record(80).variant_key).wpm == 80
	assert len(second.records_for("time", "60")) == 1
	assert second.find("time", "60", _record(80).variant_key).wpm == 90


def test_with_record_keeps_other_variants_and_sub_modes():
	records = (
		RecordMap()
		.with_record("time", "60", _record(80))
		.with_record("time", "60", _record(70, punctuation=True))
		.with_record("time", "30", _record(95))
	)
	assert len(records) == 3
	assert records.best_wpm("time", "60") == 80
	assert records.best_wpm("time", "15") is None


def test_from_document_keeps_best_of_duplicate_variants():
	doc = {
		"time": {
			"60": [
				_record(70).to_document(),
				_record(85).to_document(),
				_record(60, language="german").to_document(),
			]
		}
	}
	records = RecordMap.from_document(doc)
	assert len(records.records_for("time", "60")) == 2
	assert records.find("time", "60", _record(0).variant_key).wpm == 85


def test_record_document_uses_persisted_key_names():
	doc = _record(80).to_document()
	assert doc["lazyMode"] is False
	assert doc["raw"] == 85
	assert Record.from_document(doc) == _record(80)


def test_rank_memory_overwrites_leaf_and_preserves_siblings():
	memory = RankMemory()
	memory.set("time", "60", "english", 12)
	memory.set("time", "60", "english", 7)
	memory.set("time", "60", "german", 3)
	memory.set("time", "15", "english", 40)

	assert memory.get("time", "60", "english") == 7
	assert memory.get("time", "60", "german") == 3
	assert memory.get("time", "15", "english") == 40
	assert RankMemory.from_document(memory.to_document()) == memory
