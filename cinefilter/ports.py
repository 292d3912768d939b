"""
Ports to the outside world.
The filter core never touches a browser, a clock or a disk directly: it talks to
a NavigationPort (URL + history), a StoragePort (key-value persistence) and a
Scheduler (timers). This module defines the interfaces and the implementations
shipped with the package.
"""

from __future__ import annotations

import asyncio  # production timers ride the running event loop
import heapq  # manual scheduler keeps timers ordered by due time
import itertools  # tie-breaker for timers due at the same instant
import json  # file-backed storage format
import os  # atomic file replace
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from loguru import logger  # console logging


Callback = Callable[[], None]


# ---------------- Scheduler -----------------

class Scheduler(ABC):
	"""Schedules a callback after a delay; the returned handle must support cancel()."""

	@abstractmethod
	def call_later(self, delay: float, callback: Callback) -> Any:
		...


class AsyncioScheduler(Scheduler):
	"""Timers on an asyncio loop (the running loop unless one is given)."""

	def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
		self._loop = loop

	def call_later(self, delay: float, callback: Callback) -> asyncio.TimerHandle:
		loop = self._loop or asyncio.get_running_loop()
		return loop.call_later(delay, callback)


class _ManualTimer:
	def __init__(self, when: float, callback: Callback):
		self.when = when
		self.callback = callback
		self.cancelled = False

	def cancel(self) -> None:
		self.cancelled = True


class ManualScheduler(Scheduler):
	"""
	Deterministic clock driven by advance().
	Used by synchronous hosts (Streamlit reruns, scripts) and by the tests.
	"""

	def __init__(self):
		self.now = 0.0
		self._queue: List[Any] = []
		self._seq = itertools.count()

	def call_later(self, delay: float, callback: Callback) -> _ManualTimer:
		timer = _ManualTimer(self.now + max(0.0, delay), callback)
		heapq.heappush(self._queue, (timer.when, next(self._seq), timer))
		return timer

	@property
	def pending(self) -> int:
		"""Number of live (not cancelled, not fired) timers."""
		return sum(1 for _, _, t in self._queue if not t.cancelled)

	def advance(self, seconds: float) -> int:
		"""Move the clock forward and fire every timer that came due; returns how many fired."""
		target = self.now + seconds
		fired = 0
		while self._queue and self._queue[0][0] <= target:
			when, _, timer = heapq.heappop(self._queue)
			self.now = when
			if timer.cancelled:
				continue
			timer.cancelled = True
			timer.callback()
			fired += 1
		self.now = target
		return fired


# ---------------- Navigation -----------------

class NavigationPort(ABC):
	"""URL query string plus history, with listeners for external navigation."""

	def __init__(self):
		self._listeners: List[Callback] = []

	@property
	@abstractmethod
	def path(self) -> str:
		...

	@property
	@abstractmethod
	def search(self) -> str:
		"""Current query string without the leading '?'."""

	@abstractmethod
	def push_state(self, search: str) -> None:
		...

	@abstractmethod
	def replace_state(self, search: str) -> None:
		...

	def add_listener(self, listener: Callback) -> None:
		self._listeners.append(listener)

	def remove_listener(self, listener: Callback) -> None:
		if listener in self._listeners:
			self._listeners.remove(listener)

	def notify(self) -> None:
		"""Tell listeners the URL changed (popstate or the internal url-change event)."""
		for listener in list(self._listeners):
			listener()


class MemoryNavigation(NavigationPort):
	"""In-process history stack with back/forward, standing in for the browser."""

	def __init__(self, path: str = "/", search: str = ""):
		super().__init__()
		self._path = path
		self._entries: List[str] = [search.lstrip("?")]
		self._index = 0
		self.writes: List[str] = []  # "push:<qs>" / "replace:<qs>" audit trail

	@property
	def path(self) -> str:
		return self._path

	@property
	def search(self) -> str:
		return self._entries[self._index]

	@property
	def url(self) -> str:
		return f"{self._path}?{self.search}" if self.search else self._path

	@property
	def history_length(self) -> int:
		return len(self._entries)

	def push_state(self, search: str) -> None:
		search = search.lstrip("?")
		del self._entries[self._index + 1:]  # a new entry drops the forward stack
		self._entries.append(search)
		self._index += 1
		self.writes.append(f"push:{search}")

	def replace_state(self, search: str) -> None:
		search = search.lstrip("?")
		self._entries[self._index] = search
		self.writes.append(f"replace:{search}")

	def back(self) -> bool:
		if self._index == 0:
			return False
		self._index -= 1
		self.notify()
		return True

	def forward(self) -> bool:
		if self._index >= len(self._entries) - 1:
			return False
		self._index += 1
		self.notify()
		return True

	def visit(self, search: str) -> None:
		"""A manual URL edit: new history entry, then listeners hear about it."""
		self.push_state(search)
		self.notify()


# ---------------- Storage -----------------

class StoragePort(ABC):
	"""String key-value store (localStorage semantics)."""

	@abstractmethod
	def get_item(self, key: str) -> Optional[str]:
		...

	@abstractmethod
	def set_item(self, key: str, value: str) -> None:
		...

	@abstractmethod
	def remove_item(self, key: str) -> None:
		...


class MemoryStorage(StoragePort):
	def __init__(self, initial: Optional[Dict[str, str]] = None):
		self._data: Dict[str, str] = dict(initial or {})

	def get_item(self, key: str) -> Optional[str]:
		return self._data.get(key)

	def set_item(self, key: str, value: str) -> None:
		self._data[key] = value

	def remove_item(self, key: str) -> None:
		self._data.pop(key, None)


class JsonFileStorage(StoragePort):
	"""
	All keys live in one JSON object on disk.
	An unreadable file is treated as empty; writes go through a temp file and os.replace.
	"""

	def __init__(self, path: str):
		self.path = Path(path)

	def _read(self) -> Dict[str, str]:
		if not self.path.exists():
			return {}
		try:
			data = json.loads(self.path.read_text(encoding="utf-8"))
		except (OSError, ValueError) as e:
			logger.warning(f"[Storage] Ignoring unreadable store {self.path}: {e}")
			return {}
		if not isinstance(data, dict):
			logger.warning(f"[Storage] Ignoring store {self.path}: top level is not an object")
			return {}
		return data

	def _write(self, data: Dict[str, str]) -> None:
		self.path.parent.mkdir(parents=True, exist_ok=True)
		tmp = self.path.with_suffix(self.path.suffix + ".tmp")
		tmp.write_text(json.dumps(data, indent=2), encoding="utf-8")
		os.replace(tmp, self.path)

	def get_item(self, key: str) -> Optional[str]:
		value = self._read().get(key)
		return value if isinstance(value, str) else None

	def set_item(self, key: str, value: str) -> None:
		data = self._read()
		data[key] = value
		self._write(data)

	def remove_item(self, key: str) -> None:
		data = self._read()
		if data.pop(key, None) is not None:
			self._write(data)
