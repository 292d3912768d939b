"""
Query builder.
Pure mapping from a FilterState to the catalog API's discover dialect:
comma lists for include sets, pipes for "any of" type sets, .gte/.lte range
suffixes, literal "true"/"false" booleans, and no parameter at all for a facet
sitting at its default.
"""

from dataclasses import dataclass  # request record
from datetime import date  # date formatting
from typing import Dict, Iterable, Optional

from .defaults import is_default_value, normalize_numeric_range
from .models import DateRange, FilterState, NumericRange


@dataclass(frozen=True)
class CatalogRequest:
	"""Endpoint path plus ordered query parameters for one catalog call."""
	path: str
	params: Dict[str, str]


def format_number(value: float) -> str:
	"""7.0 -> '7', 7.5 -> '7.5'."""
	if float(value).is_integer():
		return str(int(value))
	return repr(float(value))


def join_ids(values: Iterable, sep: str = ",") -> str:
	return sep.join(str(v) for v in values)


def format_bool(value: bool) -> str:
	return "true" if value else "false"


def add_numeric_range(params: Dict[str, str], key: str, rng: Optional[NumericRange]) -> None:
	"""Emit key.gte / key.lte for the bounds that survive sentinel normalization."""
	if rng is None:
		return
	rng = normalize_numeric_range(key, rng.min, rng.max)
	if rng is None:
		return
	if rng.min is not None:
		params[f"{key}.gte"] = format_number(rng.min)
	if rng.max is not None:
		params[f"{key}.lte"] = format_number(rng.max)


def add_date_range(params: Dict[str, str], key: str, rng: Optional[DateRange]) -> None:
	if rng is None:
		return
	if rng.start is not None:
		params[f"{key}.gte"] = _iso(rng.start)
	if rng.end is not None:
		params[f"{key}.lte"] = _iso(rng.end)


def _iso(value: date) -> str:
	return value.isoformat()


def build_discover_params(state: FilterState) -> Dict[str, str]:
	"""
	Catalog parameters for `state`, in a stable order.
	Only the active content type's date facets are used, and an ID that is both
	included and excluded is only excluded.
	"""
	ct = state.content_type
	params: Dict[str, str] = {}

	def keep(key: str) -> bool:
		return not is_default_value(key, getattr(state, key), ct)

	if keep("sort_by"):
		params["sort_by"] = state.sort_by
	if keep("page"):
		params["page"] = str(state.page)

	# Exclusion wins over inclusion
	genres = [g for g in state.with_genres if g not in state.without_genres]
	if genres:
		params["with_genres"] = join_ids(genres)
	if keep("without_genres"):
		params["without_genres"] = join_ids(state.without_genres)
	keywords = [k for k in state.with_keywords if k not in state.without_keywords]
	if keywords:
		params["with_keywords"] = join_ids(keywords)
	if keep("without_keywords"):
		params["without_keywords"] = join_ids(state.without_keywords)

	for key in state.active_date_fields:
		add_date_range(params, key, getattr(state, key))

	add_numeric_range(params, "with_runtime", state.with_runtime)
	add_numeric_range(params, "vote_average", state.vote_average)
	add_numeric_range(params, "vote_count", state.vote_count)

	for key in ("with_original_language", "region", "watch_region"):
		if keep(key):
			params[key] = getattr(state, key)

	if keep("with_watch_providers"):
		params["with_watch_providers"] = join_ids(state.with_watch_providers)
	if keep("with_watch_monetization_types"):
		params["with_watch_monetization_types"] = join_ids(state.with_watch_monetization_types, "|")

	if ct == "movie" and keep("with_people"):
		params["with_people"] = join_ids(state.with_people)
	if keep("with_companies"):
		params["with_companies"] = join_ids(state.with_companies)
	if ct == "tv" and keep("with_networks"):
		params["with_networks"] = join_ids(state.with_networks)

	if state.include_adult is not None:
		params["include_adult"] = format_bool(state.include_adult)
	if ct == "movie" and state.include_video is not None:
		params["include_video"] = format_bool(state.include_video)
	if keep("certification_country"):
		params["certification_country"] = state.certification_country
	if keep("certification"):
		params["certification"] = state.certification
	if ct == "movie" and keep("with_release_type"):
		params["with_release_type"] = join_ids(state.with_release_type, "|")

	return params


def build_catalog_request(state: FilterState) -> CatalogRequest:
	"""Discover request, or a search request when the state carries free text."""
	if state.search_query and state.search_query.strip():
		params = {"query": state.search_query.strip()}
		if state.page > 1:
			params["page"] = str(state.page)
		if state.include_adult is not None:
			params["include_adult"] = format_bool(state.include_adult)
		return CatalogRequest(path=f"/search/{state.content_type}", params=params)
	return CatalogRequest(path=f"/discover/{state.content_type}", params=build_discover_params(state))
