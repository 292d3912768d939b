"""
Unit tests for URL serialization and the two-way URL synchronizer.
Run: python tests/test_url_sync.py
"""

import sys
from dataclasses import replace
from datetime import date
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
	sys.path.insert(0, str(ROOT))

from cinefilter.defaults import create_default_filters
from cinefilter.models import DateRange, NumericRange
from cinefilter.ports import ManualScheduler, MemoryNavigation
from cinefilter.session import FilterSession
from cinefilter.store import FilterStore
from cinefilter.url_sync import (
	HydrationState,
	UrlSynchronizer,
	filters_to_query_params,
	generate_shareable_url,
	has_filter_params,
	parse_filters_from_url,
	query_params_to_filters,
	serialize_filters,
)

DEEP_LINK = "type=tv&with_genres=18,9648&vote_average.gte=7"


def assert_equal(actual, expected, msg):
	if actual != expected:
		raise AssertionError(f"{msg} | expected={expected}, actual={actual}")


def assert_true(cond, msg):
	if not cond:
		raise AssertionError(msg)


def rich_state():
	return replace(
		create_default_filters("movie"),
		category="top_rated",
		with_genres=(28, 12),
		without_genres=(27,),
		with_keywords=(9715,),
		primary_release_date=DateRange(start=date(1990, 1, 1), end=date(1999, 12, 31)),
		with_runtime=NumericRange(min=90, max=180),
		vote_average=NumericRange(min=7.5),
		with_original_language="en",
		watch_region="US",
		with_watch_providers=(8, 337),
		with_watch_monetization_types=("flatrate", "rent"),
		include_adult=False,
		with_release_type=(2, 3),
		sort_by="vote_average.desc",
		page=2,
		search_query="heist",
	)


def make_session(search="", push_state=False):
	nav = MemoryNavigation("/discover", search)
	clock = ManualScheduler()
	session = FilterSession(navigation=nav, scheduler=clock, push_state=push_state)
	return nav, clock, session


def test_round_trip():
	state = rich_state()
	qs = serialize_filters(state)
	parsed = query_params_to_filters(qs)
	assert_equal(parsed, state, "parse(serialize(s)) == s")
	assert_equal(serialize_filters(parsed), qs, "serialization is idempotent")

	params = filters_to_query_params(create_default_filters("tv"))
	assert_equal(params, {"type": "tv"}, "defaults serialize to the content type only")
	assert_true("with_watch_providers=8,337" in qs, "providers stay readable")
	assert_true("with_watch_monetization_types=flatrate|rent" in qs, "pipes stay readable")


def test_malformed_params_are_dropped():
	qs = (
		"type=movie&with_genres=18,abc,-3,18&vote_average.gte=banana&page=0&sort_by=evil"
		"&include_adult=maybe&primary_release_date.gte=2020-13-01&with_runtime.gte=nan"
	)
	state = query_params_to_filters(qs)
	assert_equal(state.with_genres, (18,), "bad and duplicate ids dropped")
	assert_equal(state.vote_average, None, "non-numeric bound dropped")
	assert_equal(state.with_runtime, None, "nan dropped")
	assert_equal(state.page, 1, "non-positive page ignored")
	assert_equal(state.sort_by, "popularity.desc", "unknown sort ignored")
	assert_equal(state.include_adult, None, "non-boolean flag ignored")
	assert_equal(state.primary_release_date, None, "invalid date dropped")
	assert_equal(query_params_to_filters("type=book", "tv").content_type, "tv", "bad type falls back to context")


def test_url_helpers():
	assert_true(has_filter_params("?type=tv"), "type counts as a filter param")
	assert_true(not has_filter_params("?utm_source=mail"), "foreign params do not")
	state = query_params_to_filters(DEEP_LINK)
	url = generate_shareable_url(state, "https://example.com/discover")
	assert_equal(url, f"https://example.com/discover?{DEEP_LINK}", "shareable url")
	assert_equal(parse_filters_from_url(url), state, "url parses back")


def test_deep_link_hydration():
	nav, clock, session = make_session(f"?{DEEP_LINK}")
	hydration = session.start()
	assert_equal(hydration, HydrationState.COMPLETE, "hydrated")
	state = session.store.state
	assert_equal(state.content_type, "tv", "content type from link")
	assert_equal(state.with_genres, (18, 9648), "genres from link")
	assert_equal(state.vote_average.min, 7, "rating from link")
	assert_equal(session.settled, state, "hydrated state settled without waiting")
	clock.advance(1.0)
	assert_equal(nav.writes, [], "the default state never overwrote the link")
	assert_equal(nav.search, DEEP_LINK, "link untouched")


def test_no_writes_before_hydration():
	nav = MemoryNavigation("/", "type=tv")
	store = FilterStore()
	sync = UrlSynchronizer(store, nav)
	sync.on_settled(create_default_filters("movie"))
	assert_equal(nav.writes, [], "nothing written while hydration has not run")
	assert_equal(sync.hydration, HydrationState.NOT_STARTED, "still not started")


def test_settled_changes_are_written():
	nav, clock, session = make_session()
	session.start()
	session.store.toggle_in_set("with_genres", 18)
	assert_equal(nav.writes, [], "raw changes are not written")
	clock.advance(0.25)
	assert_equal(nav.writes, ["replace:type=movie&with_genres=18"], "settled change replaces the entry")

	seen = []
	session.url_sync.add_url_listener(seen.append)
	session.url_sync.update_url({"with_genres": None, "page": "3"})
	assert_equal(nav.search, "type=movie&page=3", "update_url edits single params")
	assert_equal(seen, [{"type": "movie", "page": "3"}], "url listeners hear writes")
	session.url_sync.clear_filter_params()
	assert_equal(nav.search, "", "filter params cleared")


def test_back_forward_read_back():
	nav, clock, session = make_session(push_state=True)
	session.start()
	session.store.toggle_in_set("with_genres", 18)
	clock.advance(0.25)
	session.store.toggle_in_set("with_genres", 35)
	clock.advance(0.25)
	assert_equal(len(nav.writes), 2, "two history entries pushed")
	assert_equal(nav.history_length, 3, "initial entry plus two pushes")

	nav.back()
	assert_equal(session.store.state.with_genres, (18,), "back restores the previous filters")
	assert_equal(session.settled.with_genres, (18,), "and settles them immediately")
	nav.forward()
	assert_equal(session.store.state.with_genres, (18, 35), "forward restores the newer filters")
	clock.advance(1.0)
	assert_equal(len(nav.writes), 2, "read-back never writes the URL again")

	nav.visit("type=tv&sort_by=vote_average.desc")
	assert_equal(session.store.state.content_type, "tv", "manual edit read back")
	assert_equal(session.store.state.sort_by, "vote_average.desc", "sort read back")
	assert_equal(len(nav.writes), 3, "only the manual visit itself")


def main():
	print("Running URL sync tests...")
	test_round_trip()
	print(" - round trip ok")
	test_malformed_params_are_dropped()
	print(" - malformed params ok")
	test_url_helpers()
	print(" - helpers ok")
	test_deep_link_hydration()
	print(" - deep link hydration ok")
	test_no_writes_before_hydration()
	print(" - hydration gate ok")
	test_settled_changes_are_written()
	print(" - settled writes ok")
	test_back_forward_read_back()
	print(" - back/forward ok")
	print("All URL sync tests passed!")


if __name__ == '__main__':
	main()
