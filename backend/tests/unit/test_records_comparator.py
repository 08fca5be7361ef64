from pbtrack.domain.records.comparator import compare
from pbtrack.domain.records.models import RecordMap


def test_first_result_for_variant_is_a_record(make_result):
	existing = RecordMap()
	result = make_result(wpm=80)

	outcome = compare(existing, "time", "60", result.variant_key, result)

	assert outcome.is_new_record is True
	assert outcome.updated_map.find("time", "60", result.variant_key).wpm == 80
	assert len(existing) == 0


def test_strict_improvement_replaces_stored_values(make_result):
	first = make_result(wpm=80, acc=90.0)
	existing = compare(RecordMap(), "time", "60", first.variant_key, first).updated_map
	better = make_result(wpm=81, acc=99.0, raw_wpm=84.0, timestamp=2)

	outcome = compare(existing, "time", "60", better.variant_key, better)

	stored = outcome.updated_map.find("time", "60", better.variant_key)
	assert outcome.is_new_record is True
	assert (stored.wpm, stored.acc, stored.raw, stored.timestamp) == (81, 99.0, 84.0, 2)
	assert existing.find("time", "60", better.variant_key).wpm == 80


def test_equal_or_lower_result_leaves_map_unchanged(make_result):
	first = make_result(wpm=80)
	existing = compare(RecordMap(), "time", "60", first.variant_key, first).updated_map

	for wpm in (80, 79.5, 10):
		candidate = make_result(wpm=wpm)
		outcome = compare(existing, "time", "60", candidate.variant_key, candidate)
		assert outcome.is_new_record is False
		assert outcome.updated_map == existing


def test_each_variant_holds_at_most_one_record(make_result):
	records = RecordMap()
	submissions = [
		make_result(wpm=70),
		make_result(wpm=75, punctuation=True),
		make_result(wpm=72),
		make_result(wpm=60, language="german"),
		make_result(wpm=90, punctuation=True),
		make_result(wpm=65, difficulty="expert"),
		make_result(wpm=71, lazy_mode=True),
		make_result(wpm=68),
	]
	for result in submissions:
		records = compare(records, "time", "60", result.variant_key, result).updated_map

	variants = [record.variant_key for _, _, record in records]
	assert len(variants) == len(set(variants)) == 5
	assert records.find("time", "60", make_result().variant_key).wpm == 72
