"""
Unit tests for the catalog client, undo reset and the composed FilterSession.
Network calls are replaced by subclass overrides and fake HTTP sessions.
Run: python tests/test_session.py
"""

import asyncio
import os
import sys
import tempfile
import threading
from pathlib import Path

import requests

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
	sys.path.insert(0, str(ROOT))

from cinefilter.catalog import CatalogClient, CatalogError, is_abort_error
from cinefilter.debounce import AbortHandle, FetchAborted
from cinefilter.defaults import create_default_filters
from cinefilter.ports import ManualScheduler, MemoryNavigation, MemoryStorage
from cinefilter.preset_library import PresetLibrary
from cinefilter.session import FilterSession
from cinefilter.settings import load_settings
from cinefilter.store import FilterStore
from cinefilter.undo import UndoReset


def assert_equal(actual, expected, msg):
	if actual != expected:
		raise AssertionError(f"{msg} | expected={expected}, actual={actual}")


def assert_true(cond, msg):
	if not cond:
		raise AssertionError(msg)


class RecordingCatalog(CatalogClient):
	"""Answers immediately and records what was asked."""

	def __init__(self):
		super().__init__(api_key="test")
		self.calls = []

	def get(self, path, params=None):
		self.calls.append((path, dict(params or {})))
		return {"page": 1, "results": [{"id": 1, "title": "Alien"}], "total_pages": 1, "total_results": 1}


class BlockingCatalog(CatalogClient):
	"""Holds every request until release() so a test can abort it mid-flight."""

	def __init__(self):
		super().__init__(api_key="test")
		self.started = threading.Event()
		self._gate = threading.Event()

	def get(self, path, params=None):
		self.started.set()
		self._gate.wait(timeout=5)
		return {"page": 1, "results": [], "total_pages": 1, "total_results": 0}

	def release(self):
		self._gate.set()


class FakeResponse:
	def __init__(self, status, payload=None):
		self.status_code = status
		self._payload = payload or {}

	def raise_for_status(self):
		if self.status_code >= 400:
			raise requests.HTTPError(f"{self.status_code} error", response=self)

	def json(self):
		return self._payload


class FakeHttp:
	def __init__(self, response=None, exc=None):
		self.response = response
		self.exc = exc
		self.requests = []

	def get(self, url, params=None, headers=None, timeout=None):
		self.requests.append({"url": url, "params": params, "headers": headers, "timeout": timeout})
		if self.exc is not None:
			raise self.exc
		return self.response


async def _wait_started(catalog: BlockingCatalog):
	while not catalog.started.is_set():
		await asyncio.sleep(0.005)


def test_catalog_get_and_errors():
	http = FakeHttp(FakeResponse(200, {"results": []}))
	client = CatalogClient(base_url="https://catalog.test/3/", api_key="k", session=http)
	client.get("/discover/movie", {"with_genres": "18"})
	sent = http.requests[0]
	assert_equal(sent["url"], "https://catalog.test/3/discover/movie", "base url joined")
	assert_equal(sent["params"], {"with_genres": "18", "api_key": "k"}, "api key appended")

	http = FakeHttp(FakeResponse(200))
	CatalogClient(bearer_token="tok", api_key="k", session=http).get("/x")
	assert_equal(http.requests[0]["headers"]["Authorization"], "Bearer tok", "bearer header")
	assert_true("api_key" not in http.requests[0]["params"], "bearer replaces the api key")

	client = CatalogClient(api_key="k", session=FakeHttp(FakeResponse(401)))
	try:
		client.get("/discover/movie")
	except CatalogError as e:
		assert_equal(e.status_code, 401, "status carried")
	else:
		raise AssertionError("HTTP error should raise CatalogError")

	client = CatalogClient(api_key="k", session=FakeHttp(exc=requests.ConnectionError("down")))
	try:
		client.get("/discover/movie")
	except CatalogError as e:
		assert_equal(e.status_code, None, "no status for transport errors")
	else:
		raise AssertionError("transport error should raise CatalogError")


def test_discover_uses_query_builder():
	catalog = RecordingCatalog()
	state = create_default_filters("tv")
	payload = asyncio.run(catalog.discover(state, AbortHandle()))
	assert_equal(payload["total_results"], 1, "payload returned")
	assert_equal(catalog.calls, [("/discover/tv", {})], "default tv discover call")


def test_abort_mid_flight():
	async def scenario():
		catalog = BlockingCatalog()
		handle = AbortHandle()
		task = asyncio.create_task(catalog.discover(create_default_filters(), handle))
		await _wait_started(catalog)
		handle.abort()
		try:
			await task
		except FetchAborted as e:
			assert_true(is_abort_error(e), "recognised as an abort")
		else:
			raise AssertionError("aborted fetch should raise FetchAborted")
		finally:
			catalog.release()

		done = AbortHandle()
		await RecordingCatalog().discover(create_default_filters(), done)
		assert_true(done.completed, "successful fetch completes its handle")
		assert_true(not done.abort(), "late abort is a no-op")

	asyncio.run(scenario())


def test_undo_window():
	clock = ManualScheduler()
	store = FilterStore()
	store.toggle_in_set("with_genres", 18)
	before = store.state
	undo = UndoReset(store, clock, window=10.0)

	undo.reset()
	assert_equal(store.state.with_genres, (), "reset cleared filters")
	assert_true(undo.can_undo, "undo offered")
	assert_true(undo.restore(), "restored")
	assert_equal(store.state, before, "previous filters back")
	assert_true(not undo.can_undo, "undo consumed")

	undo.reset()
	clock.advance(9.9)
	assert_true(undo.can_undo, "still inside the window")
	clock.advance(0.2)
	assert_true(not undo.can_undo, "window expired")
	assert_true(not undo.restore(), "nothing to restore")


def test_session_fetch_and_stale_results():
	async def scenario():
		catalog = BlockingCatalog()
		session = FilterSession(navigation=MemoryNavigation(), scheduler=ManualScheduler(), catalog=catalog)
		session.start()
		task = asyncio.create_task(session.fetch_results())
		await _wait_started(catalog)
		session.store.toggle_in_set("with_genres", 18)
		try:
			result = await task
		finally:
			catalog.release()
		assert_equal(result, None, "superseded fetch yields no results")

		session.catalog = RecordingCatalog()
		session.debouncer.flush()
		result = await session.fetch_results()
		assert_equal(result["total_results"], 1, "fresh fetch returns results")
		assert_equal(session.catalog.calls[0], ("/discover/movie", {"with_genres": "18"}), "settled filters fetched")
		assert_true(session.last_results is result, "results kept on the session")
		session.dispose()

	asyncio.run(scenario())


def test_fetch_started_while_settling_is_dropped():
	async def scenario():
		clock = ManualScheduler()
		catalog = BlockingCatalog()
		session = FilterSession(navigation=MemoryNavigation(), scheduler=clock, catalog=catalog)
		session.start()
		session.store.toggle_in_set("with_genres", 18)
		task = asyncio.create_task(session.fetch_results())
		await _wait_started(catalog)
		clock.advance(0.25)
		try:
			result = await task
		finally:
			catalog.release()
		assert_equal(result, None, "fetch for the old settled state is dropped once the new one commits")
		assert_equal(session.settled.with_genres, (18,), "new state settled")
		assert_equal(session.last_results, None, "stale page never stored")
		session.dispose()

	asyncio.run(scenario())


def test_refetch_after_success_can_be_aborted():
	async def scenario():
		session = FilterSession(navigation=MemoryNavigation(), scheduler=ManualScheduler(), catalog=RecordingCatalog())
		session.start()
		first = await session.fetch_results()
		assert_equal(first["total_results"], 1, "first fetch completes")

		catalog = BlockingCatalog()
		session.catalog = catalog
		task = asyncio.create_task(session.fetch_results())
		await _wait_started(catalog)
		session.store.update_field("sort_by", "vote_average.desc")
		try:
			result = await task
		finally:
			catalog.release()
		assert_equal(result, None, "second fetch for the same state is still cancellable")
		assert_true(session.last_results is first, "earlier results kept")
		session.dispose()

	asyncio.run(scenario())


def test_session_presets_and_share():
	nav = MemoryNavigation("/discover")
	clock = ManualScheduler()
	library = PresetLibrary(MemoryStorage())
	session = FilterSession(navigation=nav, scheduler=clock, presets=library)
	session.start()
	session.store.toggle_in_set("with_watch_providers", 8)
	preset = session.save_preset("Netflix picks")
	session.reset()
	clock.advance(0.25)
	assert_equal(nav.search, "type=movie", "reset settled into the URL")

	assert_true(session.load_preset(preset.id), "preset loaded")
	assert_equal(nav.search, "type=movie&with_watch_providers=8", "preset filters written at once")
	assert_equal(library.get_preset(preset.id).usage_count, 1, "usage counted")
	assert_true(not session.load_preset("missing"), "unknown preset")
	assert_equal(session.shareable_url("https://cine.example/discover"), "https://cine.example/discover?type=movie&with_watch_providers=8", "share link")
	session.dispose()


def test_load_settings_from_env_file():
	keys = ["TMDB_API_KEY", "TMDB_BEARER_TOKEN", "FILTER_DEBOUNCE_MS", "MAX_FILTER_PRESETS", "CATALOG_TIMEOUT_S", "LOG_LEVEL"]
	saved = {k: os.environ.pop(k) for k in keys if k in os.environ}
	try:
		with tempfile.TemporaryDirectory() as tmp:
			env_file = Path(tmp) / ".env"
			env_file.write_text(
				"TMDB_API_KEY=abc123\nFILTER_DEBOUNCE_MS=400\nMAX_FILTER_PRESETS=5\nCATALOG_TIMEOUT_S=soon\nLOG_LEVEL=debug\n",
				encoding="utf-8",
			)
			settings = load_settings(str(env_file))
		assert_equal(settings.tmdb_api_key, "abc123", "api key from .env")
		assert_true(settings.has_catalog_credentials, "credentials present")
		assert_equal(settings.debounce_s, 0.4, "milliseconds converted to seconds")
		assert_equal(settings.max_presets, 5, "preset limit")
		assert_equal(settings.catalog_timeout_s, 20.0, "bad number falls back to the default")
		assert_equal(settings.log_level, "DEBUG", "level upper-cased")
	finally:
		for k in keys:
			os.environ.pop(k, None)
		os.environ.update(saved)


def main():
	print("Running session tests...")
	test_catalog_get_and_errors()
	print(" - catalog get ok")
	test_discover_uses_query_builder()
	print(" - discover ok")
	test_abort_mid_flight()
	print(" - abort ok")
	test_undo_window()
	print(" - undo ok")
	test_session_fetch_and_stale_results()
	print(" - session fetch ok")
	test_fetch_started_while_settling_is_dropped()
	print(" - settling fetch ok")
	test_refetch_after_success_can_be_aborted()
	print(" - refetch ok")
	test_session_presets_and_share()
	print(" - session presets ok")
	test_load_settings_from_env_file()
	print(" - settings ok")
	print("All session tests passed!")


if __name__ == '__main__':
	main()
