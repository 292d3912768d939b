"""
FastAPI server exposing the discovery filter core.
Endpoints:
- GET /health: basic health check
- GET /discover?type=movie&with_genres=28&...: URL-dialect filters -> catalog results
- GET /filters/normalize?...: canonical query string and catalog request for the given filters
- GET /filters/parse?q=...: natural-language text -> filters
- GET/POST /presets, DELETE /presets/{id}, POST /presets/{id}/load: saved presets

Filters travel in the same query-string dialect the browser URL uses, so a
shared link can be replayed against the API unchanged.
"""

import time  # measure startup and request latencies
from datetime import datetime  # preset timestamps
from typing import Dict, List, Optional  # precise typing for clarity

from fastapi import FastAPI, HTTPException, Query, Request  # FastAPI primitives
from pydantic import BaseModel  # request/response schema definitions

from cinefilter.catalog import CatalogClient, CatalogError  # catalog HTTP client
from cinefilter.defaults import active_filter_fields  # which facets narrow the query
from cinefilter.models import FilterPreset, FilterState  # core records
from cinefilter.nl_parser import NaturalLanguageFilterParser  # free text -> filter patch
from cinefilter.ports import JsonFileStorage  # preset persistence
from cinefilter.preset_library import PresetLibrary  # saved presets
from cinefilter.query_builder import build_catalog_request  # state -> catalog call
from cinefilter.settings import Settings, configure_logging, load_settings  # env config
from cinefilter.store import FilterStore  # applies parsed patches
from cinefilter.url_sync import query_params_to_filters, serialize_filters  # URL dialect codec

from loguru import logger  # convenient console logger

# Instantiate the FastAPI application with metadata
app = FastAPI(title="Discovery Filter API", version="1.0.0")

# Globals wired at startup (tests may assign them directly)
SETTINGS: Settings = Settings()
CATALOG: Optional[CatalogClient] = None
PRESETS: Optional[PresetLibrary] = None
PARSER = NaturalLanguageFilterParser()
STARTUP_TIME_S: float = 0.0


class FiltersOut(BaseModel):
	query_string: str  # canonical URL dialect
	content_type: str
	active_filters: List[str]  # facets that differ from the defaults
	catalog_path: str  # e.g. /discover/movie
	catalog_params: Dict[str, str]  # exact parameters sent to the catalog


class MediaOut(BaseModel):
	id: int
	title: str  # movie title or tv name
	date: Optional[str] = None  # release or first air date
	genre_ids: List[int] = []
	vote_average: Optional[float] = None
	vote_count: Optional[int] = None
	popularity: Optional[float] = None
	poster_path: Optional[str] = None
	overview: Optional[str] = None


class DiscoverResponse(BaseModel):
	filters: FiltersOut
	page: int
	total_pages: int
	total_results: int
	elapsed_ms: float
	results: List[MediaOut]


class ParseResponse(BaseModel):
	text: str
	recognized: List[str]  # facet names the text produced
	filters: FiltersOut


class PresetIn(BaseModel):
	name: str
	description: Optional[str] = None
	query_string: str = ""  # filters in the URL dialect


class PresetOut(BaseModel):
	id: str
	name: str
	description: Optional[str] = None
	query_string: str
	is_public: bool
	usage_count: int
	created_at: Optional[datetime] = None
	updated_at: Optional[datetime] = None


def _filters_out(state: FilterState) -> FiltersOut:
	req = build_catalog_request(state)
	return FiltersOut(
		query_string=serialize_filters(state),
		content_type=state.content_type,
		active_filters=active_filter_fields(state),
		catalog_path=req.path,
		catalog_params=req.params,
	)


def _preset_out(preset: FilterPreset) -> PresetOut:
	return PresetOut(
		id=preset.id,
		name=preset.name,
		description=preset.description,
		query_string=serialize_filters(preset.filters),
		is_public=preset.is_public,
		usage_count=preset.usage_count,
		created_at=preset.created_at,
		updated_at=preset.updated_at,
	)


def _media_out(item: Dict) -> MediaOut:
	return MediaOut(
		id=int(item.get("id", 0)),
		title=item.get("title") or item.get("name") or "",
		date=item.get("release_date") or item.get("first_air_date") or None,
		genre_ids=list(item.get("genre_ids") or []),
		vote_average=item.get("vote_average"),
		vote_count=item.get("vote_count"),
		popularity=item.get("popularity"),
		poster_path=item.get("poster_path"),
		overview=(item.get("overview") or "")[:350] or None,
	)


def _state_from_request(request: Request) -> FilterState:
	return query_params_to_filters(dict(request.query_params))


def _require_presets() -> PresetLibrary:
	if PRESETS is None:
		raise HTTPException(status_code=503, detail="Preset storage not initialized")
	return PRESETS


# FastAPI startup hook to wire settings, catalog client and preset storage once
@app.on_event("startup")
async def startup_event():
	"""Load settings and build the shared services."""
	global SETTINGS, CATALOG, PRESETS, STARTUP_TIME_S
	start = time.time()

	SETTINGS = load_settings()
	configure_logging(SETTINGS.log_level)
	logger.info("[API] Startup: loading settings and services...")

	if SETTINGS.has_catalog_credentials:
		CATALOG = CatalogClient(
			base_url=SETTINGS.catalog_base_url,
			api_key=SETTINGS.tmdb_api_key,
			bearer_token=SETTINGS.tmdb_bearer_token,
			timeout=SETTINGS.catalog_timeout_s,
		)
	else:
		logger.warning("[API] No TMDB credentials configured; /discover is disabled")

	PRESETS = PresetLibrary(JsonFileStorage(SETTINGS.presets_path), max_presets=SETTINGS.max_presets)

	STARTUP_TIME_S = time.time() - start
	logger.info(f"[API] Startup complete in {STARTUP_TIME_S:.2f}s")


@app.get("/health")
async def health():
	"""Return minimal health info for liveness/readiness probes."""
	return {
		"status": "ok",
		"catalog_ready": CATALOG is not None,
		"presets_ready": PRESETS is not None,
		"startup_seconds": round(STARTUP_TIME_S, 2),
	}


@app.get("/filters/normalize", response_model=FiltersOut)
async def normalize_filters(request: Request):
	"""Parse URL-dialect filters leniently and echo them back in canonical form."""
	state = _state_from_request(request)
	logger.debug(f"[API] /filters/normalize {dict(request.query_params)}")
	return _filters_out(state)


@app.get("/filters/parse", response_model=ParseResponse)
async def parse_filters(
	q: str = Query(..., description="Natural language description of what to watch"),
	type: str = Query("movie", description="Content type used when the text does not say"),
):
	"""Turn free text into filters."""
	try:
		patch = PARSER.parse(q, content_type=type)
		store = FilterStore(content_type=type)
	except ValueError as e:
		raise HTTPException(status_code=400, detail=str(e))
	store.apply_patch(patch)
	logger.info(f"[API] /filters/parse recognized {sorted(patch)}")
	return ParseResponse(text=q, recognized=sorted(patch), filters=_filters_out(store.state))


@app.get("/discover", response_model=DiscoverResponse)
async def discover(request: Request):
	"""Run the filters against the catalog and return one page of results."""
	if CATALOG is None:
		logger.warning("[API] Discover requested but catalog client not initialized")
		raise HTTPException(status_code=503, detail="Catalog client not configured")

	state = _state_from_request(request)
	start = time.time()
	try:
		payload = await CATALOG.discover(state)
	except CatalogError as e:
		logger.error(f"[API] /discover failed: {e}")
		raise HTTPException(status_code=502, detail=str(e))
	elapsed_ms = (time.time() - start) * 1000

	results = [_media_out(item) for item in payload.get("results", [])]
	logger.info(f"[API] /discover served {len(results)} results in {elapsed_ms:.2f} ms")
	return DiscoverResponse(
		filters=_filters_out(state),
		page=int(payload.get("page", state.page)),
		total_pages=int(payload.get("total_pages", 0)),
		total_results=int(payload.get("total_results", 0)),
		elapsed_ms=round(elapsed_ms, 2),
		results=results,
	)


@app.get("/presets", response_model=List[PresetOut])
async def list_presets():
	return [_preset_out(p) for p in _require_presets().presets]


@app.post("/presets", response_model=PresetOut, status_code=201)
async def create_preset(body: PresetIn):
	library = _require_presets()
	if not body.name.strip():
		raise HTTPException(status_code=400, detail="Preset name cannot be empty")
	if library.preset_name_exists(body.name):
		raise HTTPException(status_code=409, detail=f"A preset named '{body.name}' already exists")
	preset = library.save_preset(body.name.strip(), query_params_to_filters(body.query_string), body.description)
	if preset is None:
		raise HTTPException(status_code=409, detail=f"Preset limit of {library.max_presets} reached")
	return _preset_out(preset)


@app.delete("/presets/{preset_id}", status_code=204)
async def delete_preset(preset_id: str):
	if not _require_presets().delete_preset(preset_id):
		raise HTTPException(status_code=404, detail="Preset not found")


@app.post("/presets/{preset_id}/load", response_model=FiltersOut)
async def load_preset(preset_id: str):
	"""Return the preset's filters and count the use."""
	filters = _require_presets().load_preset(preset_id)
	if filters is None:
		raise HTTPException(status_code=404, detail="Preset not found")
	return _filters_out(filters)
