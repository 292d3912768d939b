"""
Debounce and cancellation layer.
Watches raw filter states coming out of the store, decides which ones reach the
catalog immediately (category, content type, sort) and which ones wait for the
user to stop typing/sliding, and pairs every settled state with a fresh abort
handle so a stale request can never overwrite a newer one.
"""

import itertools  # handle ids for logs
from dataclasses import dataclass, fields  # session record, field diffing
from typing import Any, Callable, List, Optional

from loguru import logger  # console logging

from .models import FilterState
from .ports import Scheduler


INSTANT_FIELDS = frozenset({"category", "content_type", "sort_by"})
DEFAULT_DELAY_S = 0.25

INSTANT = "instant"
DEBOUNCED = "debounced"
UNCHANGED = "unchanged"


class FetchAborted(Exception):
	"""A fetch was cancelled because a newer settled state replaced the one it was for."""


class AbortHandle:
	"""
	Cancellation token for one settled state's request.
	abort() runs the registered callbacks once; after complete() it is a no-op.
	"""

	_ids = itertools.count(1)

	def __init__(self):
		self.id = next(self._ids)
		self.reason: Optional[str] = None
		self._aborted = False
		self._completed = False
		self._callbacks: List[Callable[[], None]] = []
		self._detach: Optional[Callable[[], None]] = None  # unhooks a child from its parent

	@property
	def aborted(self) -> bool:
		return self._aborted

	@property
	def completed(self) -> bool:
		return self._completed

	def abort(self, reason: str = "superseded") -> bool:
		"""Returns True if this call actually aborted the handle."""
		if self._aborted or self._completed:
			return False
		self._aborted = True
		self.reason = reason
		callbacks, self._callbacks = self._callbacks, []
		for callback in callbacks:
			callback()
		self._release_parent()
		return True

	def complete(self) -> None:
		"""The request finished; later aborts do nothing."""
		self._completed = True
		self._callbacks = []
		self._release_parent()

	def child(self) -> "AbortHandle":
		"""
		Handle for one request made on behalf of this one.
		Aborting the parent aborts every live child; completing a child leaves
		the parent and its other children untouched.
		"""
		request = AbortHandle()
		request._detach = self.add_callback(lambda: request.abort(self.reason or "superseded"))
		return request

	def _release_parent(self) -> None:
		if self._detach is not None:
			self._detach()
			self._detach = None

	def add_callback(self, callback: Callable[[], None]) -> Callable[[], None]:
		"""Run `callback` on abort (immediately if already aborted); returns a remover."""
		if self._aborted:
			callback()
			return lambda: None
		self._callbacks.append(callback)

		def remove() -> None:
			if callback in self._callbacks:
				self._callbacks.remove(callback)

		return remove

	def raise_if_aborted(self) -> None:
		if self._aborted:
			raise FetchAborted(f"request #{self.id} aborted ({self.reason})")

	def __repr__(self) -> str:
		state = "aborted" if self._aborted else "completed" if self._completed else "live"
		return f"AbortHandle(#{self.id}, {state})"


def changed_fields(previous: FilterState, current: FilterState) -> List[str]:
	"""Top-level facets whose values differ (UI substate ignored)."""
	return [
		f.name for f in fields(FilterState)
		if f.name != "ui" and getattr(previous, f.name) != getattr(current, f.name)
	]


def classify(previous: FilterState, current: FilterState) -> str:
	changed = changed_fields(previous, current)
	if not changed:
		return UNCHANGED
	if INSTANT_FIELDS.issuperset(changed):
		return INSTANT
	return DEBOUNCED


@dataclass
class DebounceSession:
	"""Everything the layer owns: the settled value, its abort handle and the pending timer."""
	settled: FilterState
	handle: Optional[AbortHandle] = None
	timer: Any = None
	pending: Optional[FilterState] = None

	def clear_timer(self) -> None:
		if self.timer is not None:
			self.timer.cancel()
			self.timer = None


CommitListener = Callable[[FilterState, AbortHandle], None]


class FilterDebouncer:
	"""
	Turns the stream of raw states into settled states.
	Classification diffs against the settled state, never the previous raw one.
	"""

	def __init__(self, initial: FilterState, scheduler: Scheduler, delay: float = DEFAULT_DELAY_S):
		self.delay = delay
		self._scheduler = scheduler
		self._session = DebounceSession(settled=initial, handle=AbortHandle())
		self._listeners: List[CommitListener] = []
		self._disposed = False
		self.commits = 0  # settled states published so far

	@property
	def settled(self) -> FilterState:
		return self._session.settled

	@property
	def pending(self) -> Optional[FilterState]:
		return self._session.pending

	@property
	def is_settling(self) -> bool:
		return self._session.pending is not None

	@property
	def has_pending_timer(self) -> bool:
		return self._session.timer is not None

	@property
	def signal(self) -> AbortHandle:
		"""The live abort handle; a fresh one is issued if the last was cancelled or used up."""
		handle = self._session.handle
		if handle is None or handle.aborted or handle.completed:
			self._session.handle = AbortHandle()
		return self._session.handle

	def on_commit(self, listener: CommitListener) -> Callable[[], None]:
		self._listeners.append(listener)

		def unsubscribe() -> None:
			if listener in self._listeners:
				self._listeners.remove(listener)

		return unsubscribe

	def submit(self, state: FilterState) -> str:
		"""Feed a raw state from the store; returns how it was classified."""
		if self._disposed:
			raise RuntimeError("FilterDebouncer used after dispose()")
		session = self._session
		kind = classify(session.settled, state)

		if kind == UNCHANGED:
			# The user walked back to the settled value while a debounce was running
			if session.timer is not None:
				session.clear_timer()
				session.pending = None
				self._commit(session.settled, "revert")
			return kind

		session.clear_timer()

		if kind == INSTANT:
			session.pending = None
			self._commit(state, "instant")
			return kind

		self._rotate_handle("superseded")
		session.pending = state
		session.timer = self._scheduler.call_later(self.delay, self._fire)
		logger.debug(f"[Debounce] Settling {changed_fields(session.settled, state)} for {self.delay * 1000:.0f} ms")
		return kind

	def flush(self) -> bool:
		"""Commit the pending state right now; False if nothing was pending."""
		session = self._session
		if session.pending is None:
			return False
		session.clear_timer()
		state, session.pending = session.pending, None
		self._commit(state, "flush")
		return True

	def cancel(self) -> None:
		"""Drop the pending state and abort the in-flight request; the settled state stays."""
		session = self._session
		session.clear_timer()
		session.pending = None
		if session.handle is not None:
			session.handle.abort("cancelled")
			session.handle = None
		logger.debug("[Debounce] Cancelled pending state and in-flight request")

	def dispose(self) -> None:
		self.cancel()
		self._listeners.clear()
		self._disposed = True

	def _fire(self) -> None:
		session = self._session
		session.timer = None
		if session.pending is None:
			return
		state, session.pending = session.pending, None
		self._commit(state, "timer")

	def _rotate_handle(self, reason: str) -> None:
		# Abort the old handle before the new one exists: at most one live handle
		if self._session.handle is not None:
			self._session.handle.abort(reason)
		self._session.handle = AbortHandle()

	def _commit(self, state: FilterState, reason: str) -> None:
		# Requests still running for the previous settled state die with its handle
		self._rotate_handle("settled")
		self._session.settled = state
		self.commits += 1
		handle = self._session.handle
		logger.debug(f"[Debounce] Committed settled state ({reason}) with {handle!r}")
		for listener in list(self._listeners):
			listener(state, handle)
