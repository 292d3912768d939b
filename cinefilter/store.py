"""
Filter state store.
Holds the canonical FilterState and exposes pure update operations.
Every mutation builds a new top-level object; listeners hear about structural changes only.
"""

from dataclasses import replace  # copy-on-write updates
from datetime import date  # date range inputs
from typing import Any, Callable, Dict, List, Optional, Union

from loguru import logger  # console logging

from .defaults import (
	create_default_filters,
	has_active_filters,
	normalize_date_range,
	normalize_numeric_range,
)
from .models import (
	CONTENT_TYPES,
	DATE_RANGE_FIELDS,
	FILTER_FIELDS,
	ID_SET_FIELDS,
	NUMERIC_RANGE_FIELDS,
	SET_FIELDS,
	DateRange,
	FilterState,
	NumericRange,
)
from .presets import apply_preset


StateListener = Callable[[FilterState], None]
DateLike = Union[date, str, None]


class FilterStore:
	"""
	In-memory owner of the current FilterState.
	Persistence, debouncing and network calls belong to whoever subscribes.
	"""

	def __init__(self, initial: Optional[FilterState] = None, content_type: str = "movie"):
		self._state = initial if initial is not None else create_default_filters(content_type)
		self._listeners: List[StateListener] = []
		logger.debug(f"[Store] Initialized for {self._state.content_type} (category={self._state.category})")

	@property
	def state(self) -> FilterState:
		return self._state

	@property
	def has_active_filters(self) -> bool:
		"""True when any facet narrows the default query for the active content type."""
		return has_active_filters(self._state)

	def subscribe(self, listener: StateListener) -> Callable[[], None]:
		"""Register a listener; returns a callable that removes it again."""
		self._listeners.append(listener)

		def unsubscribe() -> None:
			if listener in self._listeners:
				self._listeners.remove(listener)

		return unsubscribe

	# ----- mutations -----

	def replace(self, state: FilterState) -> bool:
		"""Swap in a whole new state (hydration, browser navigation, preset load)."""
		return self._commit(state, "replace")

	def update_field(self, key: str, value: Any) -> bool:
		if key not in FILTER_FIELDS:
			raise KeyError(f"Unknown filter field: {key}")
		return self._commit(replace(self._state, **{key: self._coerce(key, value)}), f"update {key}")

	def apply_patch(self, patch: Dict[str, Any]) -> bool:
		"""Update several facets at once (quick filter chips, natural-language search)."""
		unknown = [k for k in patch if k not in FILTER_FIELDS]
		if unknown:
			raise KeyError(f"Unknown filter fields: {unknown}")
		changes = {k: self._coerce(k, v) for k, v in patch.items()}
		return self._commit(replace(self._state, **changes), f"patch {sorted(changes)}")

	def update_ui(self, **changes: Any) -> None:
		"""Update rendering-only substate; never notifies query listeners."""
		self._state = replace(self._state, ui=replace(self._state.ui, **changes))

	def toggle_in_set(self, key: str, item_id: Union[int, str]) -> bool:
		"""Add `item_id` to set facet `key` when absent, remove it when present."""
		if key not in SET_FIELDS:
			raise KeyError(f"{key} is not a set facet")
		item = int(item_id) if key in ID_SET_FIELDS else str(item_id)
		current = getattr(self._state, key)
		if item in current:
			updated = tuple(x for x in current if x != item)
		else:
			updated = current + (item,)
		return self._commit(replace(self._state, **{key: updated}), f"toggle {key}={item}")

	def set_range(self, key: str, min_value: Optional[float], max_value: Optional[float]) -> bool:
		"""Set a numeric facet; full-range slider sentinels become unset bounds."""
		if key not in NUMERIC_RANGE_FIELDS:
			raise KeyError(f"{key} is not a numeric range facet")
		rng = normalize_numeric_range(key, min_value, max_value)
		return self._commit(replace(self._state, **{key: rng}), f"range {key}")

	def set_date_range(self, key: str, start: DateLike, end: DateLike) -> bool:
		if key not in DATE_RANGE_FIELDS:
			raise KeyError(f"{key} is not a date range facet")
		rng = normalize_date_range(DateRange(start=_to_date(start), end=_to_date(end)))
		return self._commit(replace(self._state, **{key: rng}), f"dates {key}")

	def set_year_range(self, start_year: Optional[int], end_year: Optional[int]) -> bool:
		"""Year slider: applies to both the movie release and tv first-air ranges."""
		rng = normalize_date_range(DateRange(
			start=date(start_year, 1, 1) if start_year else None,
			end=date(end_year, 12, 31) if end_year else None,
		))
		return self._commit(replace(self._state, primary_release_date=rng, first_air_date=rng), "year range")

	def set_preset(self, category: str, today: Optional[date] = None) -> bool:
		"""Switch category, keeping sticky user narrowing."""
		return self._commit(apply_preset(self._state, category, today), f"preset {category}")

	def clear_all(self) -> bool:
		cleared = replace(create_default_filters(self._state.content_type), ui=self._state.ui)
		return self._commit(cleared, "clear")

	def reset_to_defaults(self, overrides: Optional[Dict[str, Any]] = None) -> bool:
		overrides = dict(overrides or {})
		content_type = overrides.pop("content_type", self._state.content_type)
		state = create_default_filters(content_type)
		if overrides:
			state = replace(state, **{k: self._coerce(k, v) for k, v in overrides.items()})
		return self._commit(state, "reset")

	# ----- internals -----

	def _coerce(self, key: str, value: Any) -> Any:
		"""Normalize a raw facet value into the shape FilterState stores."""
		if key in SET_FIELDS:
			items = [int(v) for v in (value or [])] if key in ID_SET_FIELDS else [str(v) for v in (value or [])]
			return tuple(dict.fromkeys(items))  # dedupe, keep order
		if key in NUMERIC_RANGE_FIELDS:
			if value is None:
				return None
			if isinstance(value, NumericRange):
				return normalize_numeric_range(key, value.min, value.max)
			return normalize_numeric_range(key, *value)
		if key in DATE_RANGE_FIELDS:
			if value is None:
				return None
			if not isinstance(value, DateRange):
				value = DateRange(start=_to_date(value[0]), end=_to_date(value[1]))
			return normalize_date_range(value)
		if key == "content_type" and value not in CONTENT_TYPES:
			raise ValueError(f"Unknown content type: {value}")
		if key == "page":
			return max(1, int(value or 1))
		if isinstance(value, str):
			value = value.strip()
			if key in ("sort_by", "category", "content_type"):
				return value
			return value or None
		return value

	def _commit(self, new_state: FilterState, reason: str) -> bool:
		previous = self._state
		self._state = new_state
		if new_state == previous:
			return False
		logger.debug(f"[Store] {reason} -> active={has_active_filters(new_state)}")
		for listener in list(self._listeners):
			listener(new_state)
		return True


def _to_date(value: DateLike) -> Optional[date]:
	if value is None or value == "":
		return None
	if isinstance(value, date):
		return value
	return date.fromisoformat(value)
