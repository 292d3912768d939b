"""
Unit tests for category presets and the preset merger.
Run: python tests/test_presets.py
"""

import sys
from datetime import date, timedelta
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
	sys.path.insert(0, str(ROOT))

from cinefilter.models import DateRange, NumericRange
from cinefilter.presets import QUICK_FILTERS, apply_preset, collect_sticky, merge_preset, preset_categories, preset_defaults
from cinefilter.store import FilterStore

TODAY = date(2024, 6, 15)


def assert_equal(actual, expected, msg):
	if actual != expected:
		raise AssertionError(f"{msg} | expected={expected}, actual={actual}")


def assert_true(cond, msg):
	if not cond:
		raise AssertionError(msg)


def test_preset_tables():
	assert_true("upcoming" in preset_categories("movie"), "movie presets include upcoming")
	assert_true("airing_today" in preset_categories("tv"), "tv presets include airing_today")

	upcoming = preset_defaults("upcoming", "movie", TODAY)
	assert_equal(upcoming.category, "upcoming", "category tag set")
	assert_equal(upcoming.primary_release_date, DateRange(start=TODAY), "upcoming starts today")
	assert_equal(upcoming.sort_by, "primary_release_date.asc", "upcoming sorts by release date")
	assert_equal(upcoming.with_release_type, (2, 3), "theatrical release types")

	now_playing = preset_defaults("now_playing", "movie", TODAY)
	assert_equal(now_playing.primary_release_date.start, TODAY - timedelta(days=30), "now playing window")

	trending_tv = preset_defaults("trending", "tv", TODAY)
	assert_equal(trending_tv.first_air_date, DateRange(start=date(2023, 6, 15)), "tv trending looks back a year")

	odd = preset_defaults("cult_classics", "movie", TODAY)
	assert_equal(odd.category, "cult_classics", "unknown category keeps its tag")
	assert_equal(odd.sort_by, "popularity.desc", "unknown category uses discover defaults")


def test_no_sticky_fields_is_pure_reset():
	store = FilterStore()
	store.update_field("sort_by", "revenue.desc")
	store.update_field("with_original_language", "fr")
	store.set_preset("top_rated", TODAY)
	assert_equal(store.state, preset_defaults("top_rated", "movie", TODAY), "non-sticky facets are replaced")


def test_sticky_fields_survive_switch():
	store = FilterStore()
	store.toggle_in_set("with_genres", 18)
	store.set_range("vote_average", 7, 10)
	store.toggle_in_set("with_watch_providers", 8)
	store.update_field("region", "GB")
	store.update_ui(show_advanced=True)

	store.set_preset("upcoming", TODAY)
	state = store.state
	assert_equal(state.category, "upcoming", "switched category")
	assert_equal(state.with_genres, (18,), "genres sticky")
	assert_equal(state.vote_average, NumericRange(min=7), "rating sticky")
	assert_equal(state.with_watch_providers, (8,), "providers sticky")
	assert_equal(state.region, None, "region is not sticky")
	assert_equal(state.primary_release_date, DateRange(start=TODAY), "preset dates applied")
	assert_true(state.ui.show_advanced, "UI substate carried over")


def test_sticky_fields_kept_while_sort_resets():
	store = FilterStore()
	store.toggle_in_set("with_genres", 28)
	store.set_range("vote_average", 7.5, 10)
	store.update_field("sort_by", "revenue.desc")

	store.set_preset("top_rated", TODAY)
	state = store.state
	assert_equal(state.with_genres, (28,), "genres kept")
	assert_equal(state.vote_average, NumericRange(min=7.5), "rating floor kept")
	assert_equal(state.sort_by, "vote_average.desc", "sort is the new preset's default")
	assert_equal(state.vote_count, NumericRange(min=500), "preset vote floor applied")


def test_preset_scaffolding_is_not_sticky():
	trending = preset_defaults("trending", "movie", TODAY)
	assert_equal(collect_sticky(trending, TODAY), {}, "trending's own vote floor is not a user choice")
	popular = apply_preset(trending, "popular", TODAY)
	assert_equal(popular.vote_count, None, "vote floor dropped when leaving trending")

	user = merge_preset("trending", "movie", {"vote_count": NumericRange(min=50)}, TODAY)
	assert_equal(collect_sticky(user, TODAY), {"vote_count": NumericRange(min=50)}, "a changed floor is sticky")


def test_quick_filters():
	patch = QUICK_FILTERS["this-year"].patch(TODAY)
	assert_equal(patch["primary_release_date"], DateRange(start=date(2024, 1, 1), end=date(2024, 12, 31)), "this year window")
	store = FilterStore()
	store.apply_patch(QUICK_FILTERS["netflix"].patch(TODAY))
	assert_equal(store.state.with_watch_providers, (8,), "netflix chip")
	assert_equal(store.state.watch_region, "US", "netflix chip sets a watch region")


def main():
	print("Running preset tests...")
	test_preset_tables()
	print(" - preset tables ok")
	test_no_sticky_fields_is_pure_reset()
	print(" - pure reset ok")
	test_sticky_fields_survive_switch()
	print(" - sticky fields ok")
	test_sticky_fields_kept_while_sort_resets()
	print(" - sticky fields with sort reset ok")
	test_preset_scaffolding_is_not_sticky()
	print(" - scaffolding ok")
	test_quick_filters()
	print(" - quick filters ok")
	print("All preset tests passed!")


if __name__ == '__main__':
	main()
