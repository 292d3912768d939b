"""
Data models for the discovery filter core.
Defines the filter state, its range value objects, and saved presets.
"""

# Dataclasses keep the records immutable and give us structural equality for free
from dataclasses import dataclass, field, fields, replace  # record helpers
from datetime import date, datetime  # calendar dates for ranges, timestamps for presets
from typing import Any, Dict, Optional, Tuple  # precise and self-documenting types


CONTENT_TYPES = ("movie", "tv")  # the two catalog media types
MONETIZATION_TYPES = ("flatrate", "free", "ads", "rent", "buy")  # watch monetization enum

# Sort keys accepted by the catalog's discover endpoints
SORT_OPTIONS = (
	"popularity.desc", "popularity.asc",
	"vote_average.desc", "vote_average.asc",
	"vote_count.desc", "vote_count.asc",
	"original_title.asc", "original_title.desc",
	"name.asc", "name.desc",
	"primary_release_date.desc", "primary_release_date.asc",
	"release_date.desc", "release_date.asc",
	"revenue.desc", "revenue.asc",
	"first_air_date.desc", "first_air_date.asc",
	"air_date.desc", "air_date.asc",
)


@dataclass(frozen=True)
class NumericRange:
	"""Optional lower/upper bound pair (runtime minutes, rating, vote count)."""
	min: Optional[float] = None  # inclusive lower bound, None means open
	max: Optional[float] = None  # inclusive upper bound, None means open

	def is_empty(self) -> bool:
		return self.min is None and self.max is None


@dataclass(frozen=True)
class DateRange:
	"""Optional start/end pair of calendar dates."""
	start: Optional[date] = None  # inclusive first day
	end: Optional[date] = None  # inclusive last day

	def is_empty(self) -> bool:
		return self.start is None and self.end is None


@dataclass(frozen=True)
class UIState:
	"""
	Panel and history state that only matters to the rendering layer.
	Never serialized to the catalog, the URL, or saved presets.
	"""
	show_advanced: bool = False  # advanced panel open?
	collapsed_sections: Tuple[str, ...] = ()  # section ids the user folded
	recent_filters: Tuple[str, ...] = ()  # most recent facet names touched


@dataclass(frozen=True)
class FilterState:
	"""
	The canonical faceted query.
	Every update goes through dataclasses.replace, so a change always yields a new object
	and equality is structural. The UI substate does not take part in equality.
	"""
	content_type: str = "movie"  # movie | tv
	category: str = "discover"  # preset tag the state was built from

	# Multi-select facets (insertion ordered, no duplicates)
	with_genres: Tuple[int, ...] = ()
	without_genres: Tuple[int, ...] = ()
	with_keywords: Tuple[int, ...] = ()
	without_keywords: Tuple[int, ...] = ()

	# Date facets: movies use the release dates, tv the air dates
	primary_release_date: Optional[DateRange] = None
	release_date: Optional[DateRange] = None
	first_air_date: Optional[DateRange] = None
	air_date: Optional[DateRange] = None

	# Numeric facets
	with_runtime: Optional[NumericRange] = None  # minutes
	vote_average: Optional[NumericRange] = None  # 0..10
	vote_count: Optional[NumericRange] = None  # non-negative

	# Locale
	with_original_language: Optional[str] = None  # ISO 639-1
	region: Optional[str] = None  # ISO 3166-1 for release dates
	watch_region: Optional[str] = None  # ISO 3166-1 for providers

	# Streaming
	with_watch_providers: Tuple[int, ...] = ()
	with_watch_monetization_types: Tuple[str, ...] = ()

	# People and production
	with_people: Tuple[int, ...] = ()
	with_companies: Tuple[int, ...] = ()
	with_networks: Tuple[int, ...] = ()

	# Content flags
	include_adult: Optional[bool] = None
	include_video: Optional[bool] = None
	certification_country: Optional[str] = None
	certification: Optional[str] = None
	with_release_type: Tuple[int, ...] = ()  # 1..7, theatrical is 2|3

	sort_by: str = "popularity.desc"
	page: int = 1
	search_query: Optional[str] = None

	ui: UIState = field(default_factory=UIState, compare=False)

	@property
	def active_date_fields(self) -> Tuple[str, str]:
		"""Date range fields that affect the query for the current content type."""
		if self.content_type == "tv":
			return ("first_air_date", "air_date")
		return ("primary_release_date", "release_date")

	def without_ui(self) -> "FilterState":
		"""Copy with the UI substate reset to its defaults."""
		return replace(self, ui=UIState())


# Field groups used by the store, the serializers and the preset merger
ID_SET_FIELDS = (
	"with_genres", "without_genres", "with_keywords", "without_keywords",
	"with_watch_providers", "with_people", "with_companies", "with_networks",
	"with_release_type",
)
TAG_SET_FIELDS = ("with_watch_monetization_types",)
SET_FIELDS = ID_SET_FIELDS + TAG_SET_FIELDS
DATE_RANGE_FIELDS = ("primary_release_date", "release_date", "first_air_date", "air_date")
NUMERIC_RANGE_FIELDS = ("with_runtime", "vote_average", "vote_count")
RANGE_FIELDS = DATE_RANGE_FIELDS + NUMERIC_RANGE_FIELDS
FILTER_FIELDS = tuple(f.name for f in fields(FilterState) if f.name != "ui")


@dataclass(frozen=True)
class FilterPreset:
	"""A named, persisted snapshot of a filter state owned by one user context."""
	id: str
	name: str
	filters: FilterState  # UI substate stripped before saving
	description: Optional[str] = None
	is_public: bool = False
	usage_count: int = 0
	created_at: Optional[datetime] = None
	updated_at: Optional[datetime] = None

	def to_json_obj(self) -> Dict[str, Any]:
		return {
			"id": self.id,
			"name": self.name,
			"description": self.description,
			"filters": state_to_dict(self.filters),
			"is_public": self.is_public,
			"usage_count": self.usage_count,
			"created_at": self.created_at.isoformat() if self.created_at else None,
			"updated_at": self.updated_at.isoformat() if self.updated_at else None,
		}

	@classmethod
	def from_json_obj(cls, obj: Dict[str, Any]) -> "FilterPreset":
		if not obj.get("id") or not obj.get("name"):
			raise ValueError("preset record needs an id and a name")
		return cls(
			id=str(obj["id"]),
			name=str(obj["name"]),
			description=obj.get("description"),
			filters=state_from_dict(obj.get("filters") or {}),
			is_public=bool(obj.get("is_public", False)),
			usage_count=int(obj.get("usage_count", 0)),
			created_at=_parse_timestamp(obj.get("created_at")),
			updated_at=_parse_timestamp(obj.get("updated_at")),
		)


def state_to_dict(state: FilterState) -> Dict[str, Any]:
	"""
	Convert a FilterState into JSON-friendly primitives.
	Ranges become {min,max} / {start,end} dicts, tuples become lists, dates ISO strings.
	The UI substate is left out.
	"""
	out: Dict[str, Any] = {}
	for name in FILTER_FIELDS:
		value = getattr(state, name)
		if name in DATE_RANGE_FIELDS:
			out[name] = None if value is None else {
				"start": value.start.isoformat() if value.start else None,
				"end": value.end.isoformat() if value.end else None,
			}
		elif name in NUMERIC_RANGE_FIELDS:
			out[name] = None if value is None else {"min": value.min, "max": value.max}
		elif name in SET_FIELDS:
			out[name] = list(value)
		else:
			out[name] = value
	return out


def state_from_dict(data: Dict[str, Any]) -> FilterState:
	"""
	Inverse of state_to_dict. Unknown keys are ignored and missing keys keep their defaults,
	so records written by older versions still load.
	"""
	values: Dict[str, Any] = {}
	for name in FILTER_FIELDS:
		if name not in data:
			continue
		raw = data[name]
		if name in DATE_RANGE_FIELDS:
			values[name] = _date_range_from(raw)
		elif name in NUMERIC_RANGE_FIELDS:
			values[name] = _numeric_range_from(raw)
		elif name in ID_SET_FIELDS:
			values[name] = tuple(int(v) for v in (raw or []))
		elif name in TAG_SET_FIELDS:
			values[name] = tuple(str(v) for v in (raw or []))
		elif name == "page":
			values[name] = int(raw or 1)
		else:
			values[name] = raw
	return FilterState(**values)


def _date_range_from(raw: Optional[Dict[str, Any]]) -> Optional[DateRange]:
	if not raw:
		return None
	start = date.fromisoformat(raw["start"]) if raw.get("start") else None
	end = date.fromisoformat(raw["end"]) if raw.get("end") else None
	rng = DateRange(start=start, end=end)
	return None if rng.is_empty() else rng


def _numeric_range_from(raw: Optional[Dict[str, Any]]) -> Optional[NumericRange]:
	if not raw:
		return None
	rng = NumericRange(min=raw.get("min"), max=raw.get("max"))
	return None if rng.is_empty() else rng


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
	if not value:
		return None
	return datetime.fromisoformat(value)
