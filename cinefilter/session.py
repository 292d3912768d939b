"""
Filter session.
Wires the store, the debounce layer, the URL synchronizer and (optionally) the
catalog client and preset library into one object a page or service can hold.
"""

from dataclasses import replace  # keep UI substate on preset loads
from typing import Any, Dict, Optional

from loguru import logger  # console logging

from .catalog import CatalogClient
from .debounce import DEFAULT_DELAY_S, FetchAborted, FilterDebouncer
from .models import FilterState
from .ports import AsyncioScheduler, MemoryNavigation, NavigationPort, Scheduler
from .preset_library import PresetLibrary
from .store import FilterStore
from .undo import UndoReset
from .url_sync import HydrationState, UrlSynchronizer, generate_shareable_url


class FilterSession:
	"""
	One user's live filter pipeline.
	Store changes feed the debouncer; settled states are written to the URL; URL
	changes from outside land in the store and are settled immediately.
	"""

	def __init__(
		self,
		content_type: str = "movie",
		navigation: Optional[NavigationPort] = None,
		scheduler: Optional[Scheduler] = None,
		catalog: Optional[CatalogClient] = None,
		presets: Optional[PresetLibrary] = None,
		delay: float = DEFAULT_DELAY_S,
		push_state: bool = False,
	):
		self.navigation = navigation or MemoryNavigation()
		self.scheduler = scheduler or AsyncioScheduler()
		self.catalog = catalog
		self.presets = presets
		self.last_results: Optional[Dict[str, Any]] = None

		self.store = FilterStore(content_type=content_type)
		self.debouncer = FilterDebouncer(self.store.state, self.scheduler, delay)
		self.url_sync = UrlSynchronizer(self.store, self.navigation, content_type, push_state)
		self.undo = UndoReset(self.store, self.scheduler)

		self._unsubscribe_store = self.store.subscribe(self.debouncer.submit)
		self._unsubscribe_commit = self.debouncer.on_commit(self.url_sync.on_settled)
		# URL-driven states skip the debounce delay
		self.url_sync.set_external_change_handler(lambda _state: self.debouncer.flush())

	@property
	def state(self) -> FilterState:
		return self.store.state

	@property
	def settled(self) -> FilterState:
		return self.debouncer.settled

	@property
	def is_hydrated(self) -> bool:
		return self.url_sync.hydration is HydrationState.COMPLETE

	def start(self) -> HydrationState:
		"""Hydrate from the current URL and begin two-way syncing."""
		hydration = self.url_sync.start()
		logger.info(f"[Session] Started ({hydration.value}) for {self.store.state.content_type}")
		return hydration

	def reset(self) -> bool:
		"""Clear every facet; undo stays available for the undo window."""
		return self.undo.reset()

	def load_preset(self, preset_id: str) -> bool:
		if self.presets is None:
			raise RuntimeError("FilterSession has no preset library")
		filters = self.presets.load_preset(preset_id)
		if filters is None:
			logger.warning(f"[Session] Unknown preset {preset_id}")
			return False
		self.store.replace(replace(filters, ui=self.store.state.ui))
		self.debouncer.flush()
		return True

	def save_preset(self, name: str, description: Optional[str] = None):
		if self.presets is None:
			raise RuntimeError("FilterSession has no preset library")
		return self.presets.save_preset(name, self.store.state, description)

	def shareable_url(self, base_url: str) -> str:
		return generate_shareable_url(self.debouncer.settled, base_url)

	async def fetch_results(self) -> Optional[Dict[str, Any]]:
		"""
		Fetch the settled state on a request handle tied to the live abort handle.
		Returns None when a newer state aborted the request.
		"""
		if self.catalog is None:
			raise RuntimeError("FilterSession has no catalog client")
		state = self.debouncer.settled
		handle = self.debouncer.signal.child()
		try:
			results = await self.catalog.discover(state, handle)
		except FetchAborted:
			logger.debug(f"[Session] Discarded results for {handle!r}")
			return None
		self.last_results = results
		return results

	def dispose(self) -> None:
		self._unsubscribe_store()
		self._unsubscribe_commit()
		self.debouncer.dispose()
		self.url_sync.dispose()
		self.undo.clear()
		logger.info("[Session] Disposed")
