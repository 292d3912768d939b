"""
Category presets and the preset merger.
A preset is a named default FilterState bundle ("trending", "upcoming", ...).
Switching presets keeps the user's deliberate narrowing (sticky fields) and
drops everything else the previous preset had put in place.
"""

from dataclasses import dataclass, replace  # immutable chips, state updates
from datetime import date, timedelta  # relative release windows
from typing import Any, Callable, Dict, List, Optional

from loguru import logger  # console logging

from .defaults import DEFAULT_CATEGORY, create_default_filters  # base defaults
from .models import DateRange, FilterState, NumericRange  # state types


THEATRICAL = (2, 3)  # release types: theatrical limited | theatrical

# Fields preserved across preset switches, in the order they are collected
STICKY_FIELDS = (
	"with_genres",
	"without_genres",
	"vote_average",
	"vote_count",
	"with_watch_providers",
)

PresetBuilder = Callable[[FilterState, date], FilterState]


def _movie_popular(base: FilterState, today: date) -> FilterState:
	return replace(base, sort_by="popularity.desc", with_release_type=THEATRICAL, include_adult=False)


def _movie_trending(base: FilterState, today: date) -> FilterState:
	return replace(
		base,
		sort_by="popularity.desc",
		vote_count=NumericRange(min=1000),
		with_release_type=THEATRICAL,
		include_adult=False,
	)


def _movie_top_rated(base: FilterState, today: date) -> FilterState:
	return replace(
		base,
		sort_by="vote_average.desc",
		vote_count=NumericRange(min=500),
		with_release_type=THEATRICAL,
		include_adult=False,
	)


def _movie_upcoming(base: FilterState, today: date) -> FilterState:
	return replace(
		base,
		sort_by="primary_release_date.asc",
		primary_release_date=DateRange(start=today),
		with_release_type=THEATRICAL,
		include_adult=False,
	)


def _movie_now_playing(base: FilterState, today: date) -> FilterState:
	return replace(
		base,
		sort_by="primary_release_date.desc",
		primary_release_date=DateRange(start=today - timedelta(days=30), end=today),
		with_release_type=THEATRICAL,
		include_adult=False,
	)


def _tv_popular(base: FilterState, today: date) -> FilterState:
	return replace(base, sort_by="popularity.desc", include_adult=False)


def _tv_top_rated(base: FilterState, today: date) -> FilterState:
	return replace(base, sort_by="vote_average.desc", vote_count=NumericRange(min=200), include_adult=False)


def _tv_trending(base: FilterState, today: date) -> FilterState:
	# One year back, same calendar day (Feb 29 falls back to Feb 28)
	try:
		year_ago = today.replace(year=today.year - 1)
	except ValueError:
		year_ago = today.replace(year=today.year - 1, day=28)
	return replace(base, sort_by="popularity.desc", first_air_date=DateRange(start=year_ago), include_adult=False)


def _tv_on_air(base: FilterState, today: date) -> FilterState:
	return replace(
		base,
		sort_by="popularity.desc",
		air_date=DateRange(start=today, end=today + timedelta(days=7)),
		include_adult=False,
	)


def _discover(base: FilterState, today: date) -> FilterState:
	return base


MOVIE_PRESETS: Dict[str, PresetBuilder] = {
	"discover": _discover,
	"popular": _movie_popular,
	"trending": _movie_trending,
	"top_rated": _movie_top_rated,
	"upcoming": _movie_upcoming,
	"now_playing": _movie_now_playing,
}

TV_PRESETS: Dict[str, PresetBuilder] = {
	"discover": _discover,
	"popular": _tv_popular,
	"trending": _tv_trending,
	"top_rated": _tv_top_rated,
	"airing_today": _tv_on_air,
	"on_the_air": _tv_on_air,
}


def preset_categories(content_type: str) -> List[str]:
	"""Preset tags available for a content type, in display order."""
	return list((TV_PRESETS if content_type == "tv" else MOVIE_PRESETS).keys())


def preset_defaults(category: str, content_type: str = "movie", today: Optional[date] = None) -> FilterState:
	"""
	Default FilterState for a preset.
	Unknown categories use the generic discover defaults but keep their tag.
	"""
	today = today or date.today()
	table = TV_PRESETS if content_type == "tv" else MOVIE_PRESETS
	builder = table.get(category)
	if builder is None:
		logger.debug(f"[Presets] Unknown category '{category}' for {content_type}; using {DEFAULT_CATEGORY} defaults")
		builder = _discover
	base = replace(create_default_filters(content_type), category=category or DEFAULT_CATEGORY)
	return builder(base, today)


def collect_sticky(state: FilterState, today: Optional[date] = None) -> Dict[str, Any]:
	"""
	Sticky fields the user has actually set on `state`.
	A value equal to what the current preset put there is scaffolding, not a choice, and is dropped.
	"""
	sticky: Dict[str, Any] = {}
	if state.with_genres:
		sticky["with_genres"] = state.with_genres
	if state.without_genres:
		sticky["without_genres"] = state.without_genres
	if state.vote_average is not None and (state.vote_average.min or state.vote_average.max):
		sticky["vote_average"] = state.vote_average
	# A vote count only counts as narrowing when it sets a floor
	if state.vote_count is not None and state.vote_count.min:
		sticky["vote_count"] = state.vote_count
	if state.with_watch_providers:
		sticky["with_watch_providers"] = state.with_watch_providers

	scaffold = preset_defaults(state.category, state.content_type, today)
	return {k: v for k, v in sticky.items() if getattr(scaffold, k) != v}


def merge_preset(
	category: str,
	content_type: str = "movie",
	overrides: Optional[Dict[str, Any]] = None,
	today: Optional[date] = None,
) -> FilterState:
	"""Start from the preset defaults and overlay `overrides` on top."""
	merged = preset_defaults(category, content_type, today)
	if overrides:
		merged = replace(merged, **overrides)
	logger.debug(f"[Presets] Merged '{category}' ({content_type}) with overrides {sorted((overrides or {}).keys())}")
	return merged


def apply_preset(state: FilterState, category: str, today: Optional[date] = None) -> FilterState:
	"""Switch `state` to another preset, keeping only its sticky fields."""
	result = merge_preset(category, state.content_type, collect_sticky(state, today), today)
	return replace(result, ui=state.ui)


@dataclass(frozen=True)
class QuickFilter:
	"""A one-click chip that patches a handful of facets."""
	id: str
	label: str
	description: str
	build: Callable[[date], Dict[str, Any]]

	def patch(self, today: Optional[date] = None) -> Dict[str, Any]:
		return self.build(today or date.today())


def _year_window(start_year: int, end_year: int) -> Dict[str, Any]:
	rng = DateRange(start=date(start_year, 1, 1), end=date(end_year, 12, 31))
	return {"primary_release_date": rng, "first_air_date": rng}


QUICK_FILTERS: Dict[str, QuickFilter] = {
	"this-year": QuickFilter(
		"this-year", "This Year", "Released this year",
		lambda today: _year_window(today.year, today.year),
	),
	"2010s": QuickFilter(
		"2010s", "2010s", "From the 2010s decade",
		lambda today: _year_window(2010, 2019),
	),
	"highly-rated": QuickFilter(
		"highly-rated", "Highly Rated", "7.5+ rating with 100+ votes",
		lambda today: {"vote_average": NumericRange(min=7.5), "vote_count": NumericRange(min=100)},
	),
	"netflix": QuickFilter(
		"netflix", "Netflix", "Available on Netflix",
		lambda today: {"with_watch_providers": (8,), "watch_region": "US"},
	),
	"free-to-watch": QuickFilter(
		"free-to-watch", "Free", "Free to watch",
		lambda today: {"with_watch_monetization_types": ("free", "ads")},
	),
}
