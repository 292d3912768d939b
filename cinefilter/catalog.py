"""
Catalog client.
Thin requests-based client for the TMDB-compatible catalog. The async entry point
runs the blocking request in a worker thread and races it against an AbortHandle,
so a superseded filter state never delivers its results.
"""

from __future__ import annotations

import asyncio  # worker thread + cancellation
from typing import Any, Dict, Optional

import requests  # HTTP client
from loguru import logger  # console logging

from .debounce import AbortHandle, FetchAborted
from .models import FilterState
from .query_builder import CatalogRequest, build_catalog_request


DEFAULT_BASE_URL = "https://api.themoviedb.org/3"


class CatalogError(Exception):
	"""The catalog could not be reached or answered with an error status."""

	def __init__(self, message: str, status_code: Optional[int] = None):
		super().__init__(message)
		self.status_code = status_code


def is_abort_error(exc: BaseException) -> bool:
	"""True for the expected termination of a stale fetch."""
	return isinstance(exc, FetchAborted)


class CatalogClient:
	def __init__(
		self,
		base_url: str = DEFAULT_BASE_URL,
		api_key: Optional[str] = None,
		bearer_token: Optional[str] = None,
		timeout: float = 20.0,
		session: Optional[requests.Session] = None,
	):
		self.base_url = base_url.rstrip("/")
		self.api_key = api_key
		self.bearer_token = bearer_token
		self.timeout = timeout
		self.session = session or requests.Session()

	def _headers(self) -> Dict[str, str]:
		headers = {"Accept": "application/json"}
		if self.bearer_token:
			headers["Authorization"] = f"Bearer {self.bearer_token}"
		return headers

	def get(self, path: str, params: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
		"""Blocking GET; raises CatalogError on transport or HTTP failures."""
		params = dict(params or {})
		if self.api_key and not self.bearer_token:
			params["api_key"] = self.api_key
		url = f"{self.base_url}{path}"
		try:
			r = self.session.get(url, params=params, headers=self._headers(), timeout=self.timeout)
			r.raise_for_status()
			return r.json()
		except requests.HTTPError as e:
			status = e.response.status_code if e.response is not None else None
			raise CatalogError(f"Catalog answered {status} for {path}", status_code=status) from e
		except (requests.RequestException, ValueError) as e:
			raise CatalogError(f"Catalog request to {path} failed: {e}") from e

	def request_for(self, state: FilterState) -> CatalogRequest:
		return build_catalog_request(state)

	def discover_sync(self, state: FilterState) -> Dict[str, Any]:
		req = self.request_for(state)
		logger.debug(f"[Catalog] GET {req.path} {req.params}")
		return self.get(req.path, req.params)

	async def discover(self, state: FilterState, signal: Optional[AbortHandle] = None) -> Dict[str, Any]:
		"""
		Fetch one page for `state`.
		Raises FetchAborted if `signal` aborts before the response arrives; an abort
		after completion changes nothing.
		"""
		req = self.request_for(state)
		if signal is None:
			return await asyncio.to_thread(self.get, req.path, req.params)

		signal.raise_if_aborted()
		loop = asyncio.get_running_loop()
		task = asyncio.ensure_future(asyncio.to_thread(self.get, req.path, req.params))
		remove = signal.add_callback(lambda: loop.call_soon_threadsafe(task.cancel))
		logger.debug(f"[Catalog] GET {req.path} {req.params} ({signal!r})")
		try:
			result = await task
		except asyncio.CancelledError:
			if signal.aborted:
				logger.debug(f"[Catalog] Dropped stale fetch {signal!r}")
				raise FetchAborted(f"request #{signal.id} aborted ({signal.reason})") from None
			raise
		finally:
			remove()
		signal.complete()
		return result
