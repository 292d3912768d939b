"""
Streamlit UI for the discovery filters.
Filter controls are bound to the page's query parameters, so the address bar is
always a shareable link. Results come from the local FastAPI server at
http://localhost:8000 or, when it is unreachable, straight from the catalog.

Run API (optional):   uvicorn api:app --reload
Run UI:                streamlit run streamlit_app.py
"""

# HTTP client to call the API when running in API mode
import requests  # make web requests to the FastAPI server
# Streamlit framework to build a simple interactive UI
import streamlit as st  # UI primitives
import time  # wall clock for the undo window
# Typing to make function signatures clearer
from typing import Dict, List, Optional

from cinefilter.catalog import CatalogClient, CatalogError  # direct catalog access in local mode
from cinefilter.nl_parser import GENRE_IDS, NaturalLanguageFilterParser  # genre table + free text parsing
from cinefilter.ports import ManualScheduler, NavigationPort  # timers and URL adapter base
from cinefilter.presets import QUICK_FILTERS, preset_categories  # category tabs and chips
from cinefilter.session import FilterSession  # store + debounce + URL sync
from cinefilter.settings import load_settings  # env config
from cinefilter.url_sync import parse_query_string, to_query_string  # query string codec

# Default URL where the FastAPI server is expected to run locally
DEFAULT_API_URL = "http://localhost:8000"

PROVIDERS = {"Netflix": 8, "Disney+": 337, "Amazon Prime Video": 119, "HBO Max": 384}
SORTS = {
	"Most popular": "popularity.desc",
	"Highest rated": "vote_average.desc",
	"Most votes": "vote_count.desc",
	"Newest": "primary_release_date.desc",
}
TV_SORTS = {"Newest": "first_air_date.desc"}
POSTER_BASE = "https://image.tmdb.org/t/p/w342"


class StreamlitNavigation(NavigationPort):
	"""NavigationPort over st.query_params; Streamlit keeps no history, so push and replace coincide."""

	@property
	def path(self) -> str:
		return "/"

	@property
	def search(self) -> str:
		return to_query_string(st.query_params.to_dict())

	def push_state(self, search: str) -> None:
		self.replace_state(search)

	def replace_state(self, search: str) -> None:
		st.query_params.from_dict(parse_query_string(search))


st.set_page_config(page_title="Discover", layout="wide")
st.title("🎬 Discover Movies & TV")


# One filter session per browser tab
def get_session() -> FilterSession:
	if "filter_session" not in st.session_state:
		session = FilterSession(navigation=StreamlitNavigation(), scheduler=ManualScheduler())
		session.start()
		st.session_state["filter_session"] = session
		sync_widgets(session)
	return st.session_state["filter_session"]


def genre_options(content_type: str) -> Dict[str, int]:
	"""Genre label -> id for the content type (tv lacks some movie genres)."""
	idx = 1 if content_type == "tv" else 0
	return {name.title(): ids[idx] for name, ids in GENRE_IDS.items() if ids[idx] is not None}


def sort_options(content_type: str) -> Dict[str, str]:
	return {**SORTS, **TV_SORTS} if content_type == "tv" else dict(SORTS)


def sync_widgets(session: FilterSession) -> None:
	"""Push the store's state into the widget keys (after hydration, presets, resets)."""
	state = session.store.state
	genres = {v: k for k, v in genre_options(state.content_type).items()}
	st.session_state["w_type"] = state.content_type
	categories = preset_categories(state.content_type)
	st.session_state["w_category"] = state.category if state.category in categories else categories[0]
	st.session_state["w_genres"] = [genres[g] for g in state.with_genres if g in genres]
	st.session_state["w_providers"] = [k for k, v in PROVIDERS.items() if v in state.with_watch_providers]
	rating = state.vote_average
	st.session_state["w_rating"] = (
		float(rating.min) if rating and rating.min is not None else 0.0,
		float(rating.max) if rating and rating.max is not None else 10.0,
	)
	runtime = state.with_runtime
	st.session_state["w_runtime"] = (
		int(runtime.min) if runtime and runtime.min is not None else 0,
		int(runtime.max) if runtime and runtime.max is not None else 400,
	)
	st.session_state["w_sort"] = next((k for k, v in sort_options(state.content_type).items() if v == state.sort_by), "Most popular")


def settle(session: FilterSession) -> None:
	"""Streamlit reruns are already discrete events: settle every change at once."""
	session.debouncer.flush()


# ----- widget callbacks -----

def on_type_change():
	session = get_session()
	session.store.reset_to_defaults({"content_type": st.session_state["w_type"]})
	settle(session)
	sync_widgets(session)


def on_category_change():
	session = get_session()
	session.store.set_preset(st.session_state["w_category"])
	settle(session)
	sync_widgets(session)


def on_facets_change():
	session = get_session()
	store = session.store
	options = genre_options(store.state.content_type)
	store.update_field("with_genres", [options[g] for g in st.session_state["w_genres"]])
	store.update_field("with_watch_providers", [PROVIDERS[p] for p in st.session_state["w_providers"]])
	store.set_range("vote_average", *st.session_state["w_rating"])
	store.set_range("with_runtime", *st.session_state["w_runtime"])
	store.update_field("sort_by", sort_options(store.state.content_type)[st.session_state["w_sort"]])
	settle(session)


def on_reset():
	session = get_session()
	session.reset()
	settle(session)
	sync_widgets(session)


def on_undo():
	session = get_session()
	session.undo.restore()
	settle(session)
	sync_widgets(session)


def on_quick_filter(filter_id: str):
	session = get_session()
	session.store.apply_patch(QUICK_FILTERS[filter_id].patch())
	settle(session)
	sync_widgets(session)


def on_describe():
	text = st.session_state.get("w_describe", "")
	if not text.strip():
		return
	session = get_session()
	patch = NaturalLanguageFilterParser().parse(text, content_type=session.store.state.content_type)
	session.store.apply_patch(patch)
	settle(session)
	sync_widgets(session)


session = get_session()
# Drive the manual clock with wall time so the undo window still expires between reruns
now = time.monotonic()
session.scheduler.advance(now - st.session_state.get("clock_at", now))
st.session_state["clock_at"] = now
# Browser back/forward or a pasted link changes st.query_params outside our writes
before = session.store.state
session.navigation.notify()
if session.store.state is not before:
	sync_widgets(session)
state = session.store.state

# Sidebar contains configuration controls
with st.sidebar:
	st.header("Settings")
	api_url = st.text_input("API URL", DEFAULT_API_URL)
	use_local = st.toggle("Query the catalog directly", value=False, help="Skip the API and call the catalog with TMDB credentials from .env.")

	st.header("Filters")
	st.radio("Content", ["movie", "tv"], key="w_type", horizontal=True, on_change=on_type_change, format_func=lambda t: "Movies" if t == "movie" else "TV")
	st.multiselect("Genres", list(genre_options(state.content_type)), key="w_genres", on_change=on_facets_change)
	st.multiselect("Streaming on", list(PROVIDERS), key="w_providers", on_change=on_facets_change)
	st.slider("Rating", 0.0, 10.0, step=0.5, key="w_rating", on_change=on_facets_change)
	st.slider("Runtime (minutes)", 0, 400, step=10, key="w_runtime", on_change=on_facets_change)
	st.selectbox("Sort by", list(sort_options(state.content_type)), key="w_sort", on_change=on_facets_change)

	c1, c2 = st.columns(2)
	with c1:
		st.button("Reset", on_click=on_reset, disabled=not session.store.has_active_filters)
	with c2:
		st.button("Undo", on_click=on_undo, disabled=not session.undo.can_undo)

# Category tabs and quick chips
st.radio("Category", preset_categories(state.content_type), key="w_category", horizontal=True, on_change=on_category_change)
chip_cols = st.columns(len(QUICK_FILTERS))
for col, quick in zip(chip_cols, QUICK_FILTERS.values()):
	with col:
		st.button(quick.label, help=quick.description, on_click=on_quick_filter, args=(quick.id,))

st.text_input("Describe what you want", key="w_describe", on_change=on_describe, placeholder="e.g., action movies from the 90s rated above 7 on netflix")
st.caption(f"Share: `?{session.navigation.search}`")


def fetch_results(settled_query: str) -> Optional[dict]:
	"""Results for the settled filters, via the API or the catalog directly."""
	if use_local:
		settings = load_settings()
		if not settings.has_catalog_credentials:
			st.error("Set TMDB_API_KEY or TMDB_BEARER_TOKEN to query the catalog directly.")
			return None
		client = CatalogClient(settings.catalog_base_url, settings.tmdb_api_key, settings.tmdb_bearer_token, settings.catalog_timeout_s)
		payload = client.discover_sync(session.settled)
		return {"results": payload.get("results", []), "total_results": payload.get("total_results", 0)}
	resp = requests.get(f"{api_url}/discover?{settled_query}", timeout=60)
	resp.raise_for_status()
	data = resp.json()
	return {"results": data.get("results", []), "total_results": data.get("total_results", 0)}


with st.spinner("Loading..."):
	try:
		payload = fetch_results(session.navigation.search)
	except (requests.RequestException, CatalogError) as e:
		st.error(f"Could not load results: {e}")
		payload = None

if payload is not None:
	items: List[dict] = payload["results"]
	st.success(f"{payload['total_results']} titles match")
	st.divider()
	for item in items:
		c1, c2 = st.columns([1, 4])
		with c1:
			if item.get("poster_path"):
				st.image(f"{POSTER_BASE}{item['poster_path']}", width='stretch')
		with c2:
			title = item.get("title") or item.get("name")
			date = item.get("date") or item.get("release_date") or item.get("first_air_date") or ""
			st.subheader(f"{title} ({date[:4]})" if date else title)
			if item.get("vote_average") is not None:
				st.caption(f"Rating: {item['vote_average']:.1f}")
			if item.get("overview"):
				st.write(item["overview"])
		st.divider()
