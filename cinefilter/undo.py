"""
Undo for destructive resets.
Remembers the state just before a reset so a toast can offer "undo" for a short window.
"""

from typing import Any, Optional

from loguru import logger  # console logging

from .models import FilterState
from .ports import Scheduler
from .store import FilterStore


DEFAULT_UNDO_WINDOW_S = 10.0


class UndoReset:
	def __init__(self, store: FilterStore, scheduler: Scheduler, window: float = DEFAULT_UNDO_WINDOW_S):
		self.store = store
		self.scheduler = scheduler
		self.window = window
		self._previous: Optional[FilterState] = None
		self._timer: Any = None

	@property
	def can_undo(self) -> bool:
		return self._previous is not None

	def remember(self, state: Optional[FilterState] = None) -> None:
		"""Snapshot `state` (default: the store's current state) and restart the expiry timer."""
		self._previous = state if state is not None else self.store.state
		self._cancel_timer()
		self._timer = self.scheduler.call_later(self.window, self._expire)

	def reset(self) -> bool:
		"""Remember the current state, then clear every facet."""
		self.remember()
		return self.store.clear_all()

	def restore(self) -> bool:
		if self._previous is None:
			return False
		previous, self._previous = self._previous, None
		self._cancel_timer()
		self.store.replace(previous)
		logger.info("[Undo] Restored filters from before reset")
		return True

	def clear(self) -> None:
		self._previous = None
		self._cancel_timer()

	def _expire(self) -> None:
		self._timer = None
		if self._previous is not None:
			logger.debug("[Undo] Undo window expired")
		self._previous = None

	def _cancel_timer(self) -> None:
		if self._timer is not None:
			self._timer.cancel()
			self._timer = None
