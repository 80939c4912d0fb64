"""Tests for memoized structural analysis."""
import pytest

from analysis_cache import CachedAnalyzer, parts_fingerprint


def test_fingerprint_ignores_order(table_parts):
    assert parts_fingerprint(table_parts) == parts_fingerprint(list(reversed(table_parts)))


def test_fingerprint_tracks_edits(table_parts):
    moved = [table_parts[0].moved_to((0.0, 30.0, 0.0))] + table_parts[1:]
    assert parts_fingerprint(moved) != parts_fingerprint(table_parts)


def test_unchanged_assembly_returns_cached_report(table_parts):
    cache = CachedAnalyzer()
    first = cache.analyze(table_parts)
    second = cache.analyze(list(reversed(table_parts)))
    assert second is first
    assert cache.stats() == {"entries": 1, "hits": 1, "misses": 1}


def test_moved_part_is_rescored(table_parts):
    cache = CachedAnalyzer()
    before = cache.analyze(table_parts)
    lifted = [table_parts[0].moved_to((0.0, 40.0, 0.0))] + table_parts[1:]
    after = cache.analyze(lifted)
    assert after is not before
    assert after.stats.connected_groups == 2


def test_scenario_and_intensity_are_part_of_the_key(table_parts):
    cache = CachedAnalyzer()
    base = cache.analyze(table_parts)
    rack = cache.analyze(table_parts, stress_scenario="lateral-rack")
    strong = cache.analyze(table_parts, stress_scenario="lateral-rack", stress_intensity=1)
    assert rack is not base
    assert strong is not rack
    assert len(cache) == 3


def test_oldest_entry_is_evicted(table_parts):
    cache = CachedAnalyzer(max_entries=2)
    first = cache.analyze(table_parts)
    cache.analyze(table_parts[:3])
    cache.analyze(table_parts[:2])
    assert len(cache) == 2
    assert cache.analyze(table_parts) is not first
    assert cache.misses == 4


def test_clear(table_parts):
    cache = CachedAnalyzer()
    cache.analyze(table_parts)
    cache.clear()
    assert len(cache) == 0


def test_max_entries_must_be_positive():
    with pytest.raises(ValueError):
        CachedAnalyzer(max_entries=0)


def test_cached_report_cannot_be_mutated(table_parts):
    cache = CachedAnalyzer()
    first = cache.analyze(table_parts)
    top_score = first.part_scores["top"]
    with pytest.raises(TypeError):
        first.part_scores["top"] = -1.0
    with pytest.raises(AttributeError):
        first.part_fields.clear()

    exported = first.to_dict()
    exported["partScores"]["top"] = -1.0
    exported["partFields"].clear()

    again = cache.analyze(table_parts)
    assert again is first
    assert again.part_scores["top"] == top_score
    assert set(again.part_fields) == {p.part_id for p in table_parts}
