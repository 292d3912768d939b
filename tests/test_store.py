"""
Unit tests for FilterStore and the default predicate: independence of defaults,
toggles, range sentinels, resets and change notification.
Run: python tests/test_store.py
"""

import sys
from datetime import date
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
	sys.path.insert(0, str(ROOT))

from cinefilter.defaults import active_filter_fields, create_default_filters, has_active_filters, is_default_value
from cinefilter.models import DateRange, NumericRange
from cinefilter.store import FilterStore


def assert_equal(actual, expected, msg):
	if actual != expected:
		raise AssertionError(f"{msg} | expected={expected}, actual={actual}")


def assert_true(cond, msg):
	if not cond:
		raise AssertionError(msg)


def assert_raises(exc_type, fn, msg):
	try:
		fn()
	except exc_type:
		return
	raise AssertionError(msg)


def test_defaults_are_independent():
	a = create_default_filters("movie")
	b = create_default_filters("movie")
	assert_true(a is not b, "each call builds a new object")
	assert_equal(a, b, "defaults are structurally equal")

	store_a = FilterStore(a)
	store_a.toggle_in_set("with_genres", 28)
	assert_equal(b.with_genres, (), "mutating one store leaves other defaults untouched")
	assert_equal(create_default_filters("movie").with_genres, (), "fresh defaults still empty")
	assert_equal(create_default_filters("tv").content_type, "tv", "tv defaults")
	assert_raises(ValueError, lambda: create_default_filters("podcast"), "unknown content type rejected")


def test_toggle_law():
	store = FilterStore()
	start = store.state
	store.toggle_in_set("with_genres", 18)
	assert_equal(store.state.with_genres, (18,), "toggle adds")
	store.toggle_in_set("with_genres", "18")
	assert_equal(store.state, start, "toggling twice returns to the original state")

	store.toggle_in_set("with_genres", 28)
	store.toggle_in_set("with_genres", 12)
	store.toggle_in_set("with_genres", 28)
	assert_equal(store.state.with_genres, (12,), "order preserved for remaining ids")
	assert_raises(KeyError, lambda: store.toggle_in_set("sort_by", 1), "only set facets toggle")


def test_range_sentinels_and_inversion():
	store = FilterStore()
	store.set_range("vote_average", 0, 10)
	assert_equal(store.state.vote_average, None, "full rating range is unset")
	store.set_range("vote_average", 7.5, 10)
	assert_equal(store.state.vote_average, NumericRange(min=7.5), "max sentinel dropped")
	store.set_range("with_runtime", 180, 90)
	assert_equal(store.state.with_runtime, NumericRange(min=90, max=180), "inverted bounds swapped")
	assert_true(is_default_value("vote_average", NumericRange(min=0, max=10)), "sentinel range counts as default")

	store.set_date_range("primary_release_date", "2020-12-31", "2020-01-01")
	assert_equal(
		store.state.primary_release_date,
		DateRange(start=date(2020, 1, 1), end=date(2020, 12, 31)),
		"date bounds swapped too",
	)
	store.set_date_range("primary_release_date", None, "")
	assert_equal(store.state.primary_release_date, None, "empty dates clear the facet")


def test_notifications_only_on_change():
	store = FilterStore()
	seen = []
	unsubscribe = store.subscribe(seen.append)
	assert_true(not store.update_field("sort_by", "popularity.desc"), "same value is not a change")
	assert_true(store.update_field("sort_by", "vote_average.desc"), "new value is a change")
	store.update_ui(show_advanced=True)
	assert_equal(len(seen), 1, "UI updates do not notify query listeners")
	assert_true(store.state.ui.show_advanced, "UI substate updated")
	unsubscribe()
	store.update_field("page", 3)
	assert_equal(len(seen), 1, "unsubscribed listener hears nothing")
	assert_raises(KeyError, lambda: store.update_field("nope", 1), "unknown field rejected")


def test_active_filters_and_resets():
	store = FilterStore(content_type="tv")
	assert_true(not store.has_active_filters, "defaults are inactive")
	store.apply_patch({"with_watch_providers": [8, 8, 337], "with_original_language": "  "})
	assert_equal(store.state.with_watch_providers, (8, 337), "patch dedupes ids")
	assert_equal(store.state.with_original_language, None, "blank strings clear")
	assert_equal(active_filter_fields(store.state), ["with_watch_providers"], "one active facet")

	store.update_ui(collapsed_sections=("dates",))
	store.clear_all()
	assert_equal(store.state.content_type, "tv", "clear keeps the content type")
	assert_equal(store.state.ui.collapsed_sections, ("dates",), "clear keeps the UI substate")
	assert_true(not has_active_filters(store.state), "clear removes every facet")

	store.reset_to_defaults({"content_type": "movie", "sort_by": "vote_count.desc"})
	assert_equal(store.state.content_type, "movie", "reset may switch content type")
	assert_equal(store.state.sort_by, "vote_count.desc", "reset applies overrides")


def test_year_range_covers_both_media():
	store = FilterStore()
	store.set_year_range(1990, 1999)
	expected = DateRange(start=date(1990, 1, 1), end=date(1999, 12, 31))
	assert_equal(store.state.primary_release_date, expected, "movie release window")
	assert_equal(store.state.first_air_date, expected, "tv first-air window")


def main():
	print("Running FilterStore tests...")
	test_defaults_are_independent()
	print(" - default independence ok")
	test_toggle_law()
	print(" - toggle law ok")
	test_range_sentinels_and_inversion()
	print(" - ranges ok")
	test_notifications_only_on_change()
	print(" - notifications ok")
	test_active_filters_and_resets()
	print(" - resets ok")
	test_year_range_covers_both_media()
	print(" - year range ok")
	print("All FilterStore tests passed!")


if __name__ == '__main__':
	main()
