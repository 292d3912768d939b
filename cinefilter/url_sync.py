"""
URL synchronization.
Keeps the filter state and the URL query string in step, in both directions:
settled filter changes are written to history, and back/forward or manual edits
are read back into the store. A tri-state hydration gate keeps a not-yet-applied
deep link from being overwritten by the default state.
"""

import math  # reject nan/inf in numeric params
from dataclasses import replace  # copy-on-write state updates
from datetime import date  # date params
from enum import Enum  # hydration states
from typing import Callable, Dict, List, Mapping, Optional, Union
from urllib.parse import parse_qsl, quote, urlencode, urlsplit  # query string codec

from loguru import logger  # console logging

from .debounce import AbortHandle
from .defaults import create_default_filters, is_default_value, normalize_date_range, normalize_numeric_range
from .models import (
	CONTENT_TYPES,
	DATE_RANGE_FIELDS,
	MONETIZATION_TYPES,
	NUMERIC_RANGE_FIELDS,
	SORT_OPTIONS,
	DateRange,
	FilterState,
)
from .ports import NavigationPort
from .query_builder import add_date_range, add_numeric_range, format_bool, join_ids
from .store import FilterStore


# Plain ID list facets, serialized comma separated
_ID_LIST_PARAMS = (
	"with_genres", "without_genres", "with_keywords", "without_keywords",
	"with_watch_providers", "with_people", "with_companies", "with_networks",
)
_STRING_PARAMS = ("with_original_language", "region", "watch_region", "certification_country", "certification")

# Keys whose presence means the URL carries filters
FILTER_PARAM_KEYS = (
	"type", "category", "with_genres", "without_genres", "with_keywords",
	"primary_release_date.gte", "first_air_date.gte", "vote_average.gte",
	"with_runtime.gte", "sort_by",
)

ParamsLike = Union[str, Mapping[str, str]]


# ---------------- Serialization -----------------

def filters_to_query_params(state: FilterState) -> Dict[str, str]:
	"""
	Canonical URL parameters for `state`.
	The content type is always written; every other facet only when it differs from its default.
	"""
	ct = state.content_type
	params: Dict[str, str] = {"type": ct}

	def keep(key: str) -> bool:
		return not is_default_value(key, getattr(state, key), ct)

	if keep("category"):
		params["category"] = state.category
	for key in ("with_genres", "without_genres", "with_keywords", "without_keywords"):
		if keep(key):
			params[key] = join_ids(getattr(state, key))
	for key in DATE_RANGE_FIELDS:
		add_date_range(params, key, getattr(state, key))
	for key in NUMERIC_RANGE_FIELDS:
		add_numeric_range(params, key, getattr(state, key))
	for key in ("with_original_language", "region", "watch_region"):
		if keep(key):
			params[key] = getattr(state, key)
	if keep("with_watch_providers"):
		params["with_watch_providers"] = join_ids(state.with_watch_providers)
	if keep("with_watch_monetization_types"):
		params["with_watch_monetization_types"] = join_ids(state.with_watch_monetization_types, "|")
	for key in ("with_people", "with_companies", "with_networks"):
		if keep(key):
			params[key] = join_ids(getattr(state, key))
	if state.include_adult is not None:
		params["include_adult"] = format_bool(state.include_adult)
	if state.include_video is not None:
		params["include_video"] = format_bool(state.include_video)
	for key in ("certification_country", "certification"):
		if keep(key):
			params[key] = getattr(state, key)
	if keep("with_release_type"):
		params["with_release_type"] = join_ids(state.with_release_type, "|")
	if keep("sort_by"):
		params["sort_by"] = state.sort_by
	if keep("page"):
		params["page"] = str(state.page)
	if state.search_query:
		params["q"] = state.search_query
	return params


def to_query_string(params: Mapping[str, str]) -> str:
	"""Encode params, leaving list separators readable."""
	return urlencode([(k, v) for k, v in params.items() if v not in (None, "")], safe=",|", quote_via=quote)


def serialize_filters(state: FilterState) -> str:
	return to_query_string(filters_to_query_params(state))


def parse_query_string(search: str) -> Dict[str, str]:
	"""Query string -> dict; the last occurrence of a repeated key wins."""
	return dict(parse_qsl(search.lstrip("?"), keep_blank_values=False))


# ---------------- Parsing -----------------

def _ids(raw: str, low: int = 1, high: Optional[int] = None) -> tuple:
	out = []
	for part in raw.split(","):
		part = part.strip()
		try:
			value = int(part)
		except ValueError:
			if part:
				logger.debug(f"[UrlSync] Dropping non-numeric id '{part}'")
			continue
		if value < low or (high is not None and value > high):
			continue
		if value not in out:
			out.append(value)
	return tuple(out)


def _number(raw: Optional[str]) -> Optional[float]:
	if raw is None:
		return None
	try:
		value = float(raw)
	except ValueError:
		logger.debug(f"[UrlSync] Dropping non-numeric bound '{raw}'")
		return None
	if math.isnan(value) or math.isinf(value):
		return None
	return int(value) if value.is_integer() else value


def _date(raw: Optional[str]) -> Optional[date]:
	if not raw:
		return None
	try:
		return date.fromisoformat(raw)
	except ValueError:
		logger.debug(f"[UrlSync] Dropping invalid date '{raw}'")
		return None


def query_params_to_filters(params: ParamsLike, content_type: str = "movie") -> FilterState:
	"""
	Build a FilterState from URL parameters.
	Malformed values are dropped one by one; a partial state beats a failed hydration.
	Without a valid `type`, the caller's content type context is used.
	"""
	if isinstance(params, str):
		params = parse_query_string(params)
	ct = params.get("type")
	if ct not in CONTENT_TYPES:
		ct = content_type if content_type in CONTENT_TYPES else "movie"
	values: Dict[str, object] = {}

	if params.get("category"):
		values["category"] = params["category"]
	for key in _ID_LIST_PARAMS:
		if params.get(key):
			values[key] = _ids(params[key])
	for key in DATE_RANGE_FIELDS:
		rng = DateRange(start=_date(params.get(f"{key}.gte")), end=_date(params.get(f"{key}.lte")))
		values[key] = normalize_date_range(rng)
	for key in NUMERIC_RANGE_FIELDS:
		low = _number(params.get(f"{key}.gte"))
		high = _number(params.get(f"{key}.lte"))
		values[key] = normalize_numeric_range(key, low, high)
	for key in _STRING_PARAMS:
		if params.get(key):
			values[key] = params[key]
	if params.get("with_watch_monetization_types"):
		kinds = [k for k in params["with_watch_monetization_types"].split("|") if k in MONETIZATION_TYPES]
		values["with_watch_monetization_types"] = tuple(dict.fromkeys(kinds))
	if params.get("with_release_type"):
		values["with_release_type"] = _ids(params["with_release_type"].replace("|", ","), 1, 7)
	for key in ("include_adult", "include_video"):
		if params.get(key) in ("true", "false"):
			values[key] = params[key] == "true"
	sort_by = params.get("sort_by")
	if sort_by in SORT_OPTIONS:
		values["sort_by"] = sort_by
	elif sort_by:
		logger.debug(f"[UrlSync] Dropping unknown sort '{sort_by}'")
	page = _number(params.get("page"))
	if isinstance(page, int) and page >= 1:
		values["page"] = page
	if params.get("q"):
		values["search_query"] = params["q"]

	return replace(create_default_filters(ct), **values)


# ---------------- URL helpers -----------------

def has_filter_params(search: str) -> bool:
	params = parse_query_string(search)
	return any(key in params for key in FILTER_PARAM_KEYS)


def generate_shareable_url(state: FilterState, base_url: str) -> str:
	search = serialize_filters(state)
	return f"{base_url}?{search}" if search else base_url


def parse_filters_from_url(url: str, content_type: str = "movie") -> Optional[FilterState]:
	"""Filters from any absolute or relative URL; None if the URL cannot be split."""
	try:
		query = urlsplit(url).query
	except ValueError:
		return None
	return query_params_to_filters(query, content_type)


# ---------------- Synchronizer -----------------

class HydrationState(Enum):
	NOT_STARTED = "not_started"
	PENDING = "pending"
	COMPLETE = "complete"


class UrlSynchronizer:
	"""
	Two-way binding between a FilterStore and a NavigationPort.
	Writes happen on settled states (wire on_settled to the debouncer), reads on
	navigation events. Nothing is written before hydration completes.
	"""

	def __init__(
		self,
		store: FilterStore,
		navigation: NavigationPort,
		content_type: str = "movie",
		push_state: bool = False,
	):
		self.store = store
		self.navigation = navigation
		self.content_type = content_type
		self.push_state = push_state
		self.hydration = HydrationState.NOT_STARTED
		self._expected: Optional[str] = None  # serialized deep link waiting to land in the store
		self._last_written: Optional[str] = None
		self._url_listeners: List[Callable[[Dict[str, str]], None]] = []
		self._unsubscribe_store: Optional[Callable[[], None]] = None
		self._on_external_change: Optional[Callable[[FilterState], None]] = None

	def add_url_listener(self, listener: Callable[[Dict[str, str]], None]) -> None:
		self._url_listeners.append(listener)

	def set_external_change_handler(self, handler: Callable[[FilterState], None]) -> None:
		"""Called after a URL-driven state lands in the store (e.g. to flush the debouncer)."""
		self._on_external_change = handler

	def start(self) -> HydrationState:
		"""Hydrate once from the current URL, then start listening for navigation."""
		if self.hydration is not HydrationState.NOT_STARTED:
			return self.hydration
		self.navigation.add_listener(self._on_navigation)
		if not self.navigation.search:
			self.hydration = HydrationState.COMPLETE
			logger.debug("[UrlSync] No query string; hydration skipped")
			return self.hydration

		parsed = self.sync_from_url()
		self._expected = serialize_filters(parsed)
		self.hydration = HydrationState.PENDING
		self._unsubscribe_store = self.store.subscribe(self._check_hydrated)
		logger.info(f"[UrlSync] Hydrating from deep link '{self.navigation.search}'")
		self.store.replace(parsed)
		# The store may already hold exactly this state, in which case no change event fires
		self._check_hydrated(self.store.state)
		if self.hydration is HydrationState.COMPLETE and self._on_external_change:
			self._on_external_change(self.store.state)
		return self.hydration

	def dispose(self) -> None:
		self.navigation.remove_listener(self._on_navigation)
		if self._unsubscribe_store:
			self._unsubscribe_store()
			self._unsubscribe_store = None

	def sync_from_url(self) -> FilterState:
		return query_params_to_filters(self.navigation.search, self.content_type)

	def sync_to_url(self, state: FilterState, push: Optional[bool] = None) -> bool:
		"""Write `state` to the URL if it differs; returns True when history changed."""
		search = serialize_filters(state)
		if search == self.navigation.search:
			return False
		self._write(search, self.push_state if push is None else push)
		return True

	def update_url(self, params: Mapping[str, Optional[str]], push: bool = False) -> bool:
		"""Set or delete individual parameters, keeping the rest of the query string."""
		current = parse_query_string(self.navigation.search)
		for key, value in params.items():
			if value in (None, ""):
				current.pop(key, None)
			else:
				current[key] = str(value)
		search = to_query_string(current)
		if search == self.navigation.search:
			return False
		self._write(search, push)
		return True

	def clear_filter_params(self) -> None:
		if self.navigation.search:
			self._write("", False)

	def on_settled(self, state: FilterState, handle: Optional[AbortHandle] = None) -> None:
		"""Debouncer commit listener."""
		if self.hydration is not HydrationState.COMPLETE:
			logger.debug(f"[UrlSync] Write skipped, hydration {self.hydration.value}")
			return
		self.sync_to_url(state)

	def _write(self, search: str, push: bool) -> None:
		if push:
			self.navigation.push_state(search)
		else:
			self.navigation.replace_state(search)
		self._last_written = search
		logger.debug(f"[UrlSync] {'push' if push else 'replace'} ?{search}")
		params = parse_query_string(search)
		for listener in list(self._url_listeners):
			listener(params)
		self.navigation.notify()

	def _check_hydrated(self, state: FilterState) -> None:
		if self.hydration is not HydrationState.PENDING:
			return
		if serialize_filters(state) == self._expected:
			self.hydration = HydrationState.COMPLETE
			self._expected = None
			if self._unsubscribe_store:
				self._unsubscribe_store()
				self._unsubscribe_store = None
			logger.info("[UrlSync] Hydration complete")

	def _on_navigation(self) -> None:
		if self.hydration is not HydrationState.COMPLETE:
			return
		search = self.navigation.search
		if search == self._last_written:
			# Our own write echoing back; the store may already be ahead of it
			return
		self._last_written = None
		parsed = query_params_to_filters(search, self.content_type)
		if serialize_filters(parsed) == serialize_filters(self.store.state):
			return
		logger.debug(f"[UrlSync] External URL change -> ?{search}")
		self.store.replace(replace(parsed, ui=self.store.state.ui))
		if self._on_external_change:
			self._on_external_change(self.store.state)
