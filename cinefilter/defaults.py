"""
Default filter values and the single "is this at its default" predicate.
The store, the URL serializer and the query builder all ask this module,
so sentinel handling (e.g. rating max=10 meaning "unset") lives in one place.
"""

from typing import Any, Dict, Optional, Tuple

from .models import (
	CONTENT_TYPES,
	FILTER_FIELDS,
	DATE_RANGE_FIELDS,
	NUMERIC_RANGE_FIELDS,
	SET_FIELDS,
	DateRange,
	FilterState,
	NumericRange,
)


DEFAULT_SORT = "popularity.desc"
DEFAULT_CATEGORY = "discover"

# Full slider span per numeric facet; a bound sitting on the edge means "no filter"
RANGE_SENTINELS: Dict[str, Tuple[Optional[float], Optional[float]]] = {
	"vote_average": (0, 10),
	"with_runtime": (0, 400),
	"vote_count": (0, None),
}

# Values the UI uses for "any" that are equivalent to leaving the facet unset
BLANK_STRINGS = {"", "all"}


def create_default_filters(content_type: str = "movie") -> FilterState:
	"""Fresh default state; every call returns an independent object."""
	if content_type not in CONTENT_TYPES:
		raise ValueError(f"Unknown content type: {content_type}")
	return FilterState(content_type=content_type, category=DEFAULT_CATEGORY, sort_by=DEFAULT_SORT)


def normalize_numeric_range(
	key: str,
	min_value: Optional[float],
	max_value: Optional[float],
) -> Optional[NumericRange]:
	"""
	Collapse a UI range into the tagged optional the state stores.
	Bounds on the full-range sentinel become None, an inverted pair is swapped,
	and a range with no bounds left becomes None.
	"""
	low, high = RANGE_SENTINELS.get(key, (None, None))
	if min_value is not None and low is not None and min_value <= low:
		min_value = None
	if max_value is not None and high is not None and max_value >= high:
		max_value = None
	if min_value is not None and max_value is not None and min_value > max_value:
		min_value, max_value = max_value, min_value
	if min_value is None and max_value is None:
		return None
	return NumericRange(min=min_value, max=max_value)


def normalize_date_range(rng: Optional[DateRange]) -> Optional[DateRange]:
	if rng is None or rng.is_empty():
		return None
	if rng.start and rng.end and rng.start > rng.end:
		return DateRange(start=rng.end, end=rng.start)
	return rng


def is_default_value(key: str, value: Any, content_type: str = "movie") -> bool:
	"""True when `value` is equivalent to leaving facet `key` unset."""
	if key in SET_FIELDS:
		return not value
	if key in NUMERIC_RANGE_FIELDS:
		if value is None:
			return True
		return normalize_numeric_range(key, value.min, value.max) is None
	if key in DATE_RANGE_FIELDS:
		return value is None or value.is_empty()
	if key == "page":
		return not value or value <= 1
	if key == "sort_by":
		return not value or value == DEFAULT_SORT
	if key == "category":
		return not value or value == DEFAULT_CATEGORY
	if key == "content_type":
		return value == content_type
	if isinstance(value, str):
		return value.strip().lower() in BLANK_STRINGS
	return value is None


def active_filter_fields(state: FilterState):
	"""Names of the facets that narrow the default query for the state's content type."""
	return [
		name for name in FILTER_FIELDS
		if name != "content_type" and not is_default_value(name, getattr(state, name), state.content_type)
	]


def has_active_filters(state: FilterState) -> bool:
	return bool(active_filter_fields(state))
