"""
Preset library.
User-saved filter configurations persisted as one JSON array under a single
storage key. Data is read once when the library is created and written back on
every mutation.
"""

import json  # storage format
import uuid  # preset ids
from dataclasses import replace  # immutable preset updates
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from loguru import logger  # console logging

from .models import FilterPreset, FilterState
from .ports import StoragePort


PRESETS_STORAGE_KEY = "cinehub_filter_presets"
DEFAULT_MAX_PRESETS = 10

# Fields callers may change through update_preset
UPDATABLE_FIELDS = ("name", "description", "filters", "is_public", "usage_count")


def _now() -> datetime:
	return datetime.now(timezone.utc)


class PresetLibrary:
	def __init__(self, storage: StoragePort, max_presets: int = DEFAULT_MAX_PRESETS, key: str = PRESETS_STORAGE_KEY):
		self.storage = storage
		self.max_presets = max_presets
		self.key = key
		self._presets: List[FilterPreset] = self._load()

	@property
	def presets(self) -> List[FilterPreset]:
		return list(self._presets)

	@property
	def can_save_more(self) -> bool:
		return len(self._presets) < self.max_presets

	@property
	def remaining_slots(self) -> int:
		return max(0, self.max_presets - len(self._presets))

	def save_preset(self, name: str, filters: FilterState, description: Optional[str] = None) -> Optional[FilterPreset]:
		"""Store a new preset; returns None once the library is full."""
		if not self.can_save_more:
			logger.info(f"[Presets] Refusing to save '{name}': limit of {self.max_presets} reached")
			return None
		now = _now()
		preset = FilterPreset(
			id=uuid.uuid4().hex,
			name=name,
			description=description,
			filters=filters.without_ui(),
			created_at=now,
			updated_at=now,
		)
		self._presets.append(preset)
		self._persist()
		logger.info(f"[Presets] Saved '{name}' ({preset.id})")
		return preset

	def update_preset(self, preset_id: str, **updates: Any) -> Optional[FilterPreset]:
		unknown = [k for k in updates if k not in UPDATABLE_FIELDS]
		if unknown:
			raise KeyError(f"Preset fields cannot be updated: {unknown}")
		if isinstance(updates.get("filters"), FilterState):
			updates["filters"] = updates["filters"].without_ui()
		for i, preset in enumerate(self._presets):
			if preset.id == preset_id:
				updated = replace(preset, updated_at=_now(), **updates)
				self._presets[i] = updated
				self._persist()
				return updated
		return None

	def delete_preset(self, preset_id: str) -> bool:
		before = len(self._presets)
		self._presets = [p for p in self._presets if p.id != preset_id]
		if len(self._presets) == before:
			return False
		self._persist()
		logger.info(f"[Presets] Deleted {preset_id}")
		return True

	def load_preset(self, preset_id: str) -> Optional[FilterState]:
		"""Filters of the preset, counting the use; None for an unknown id."""
		preset = self.get_preset(preset_id)
		if preset is None:
			return None
		self.update_preset(preset_id, usage_count=preset.usage_count + 1)
		return preset.filters

	def get_preset(self, preset_id: str) -> Optional[FilterPreset]:
		return next((p for p in self._presets if p.id == preset_id), None)

	def clear_all_presets(self) -> None:
		self._presets = []
		self._persist()

	def preset_name_exists(self, name: str) -> bool:
		wanted = name.lower()
		return any(p.name.lower() == wanted for p in self._presets)

	# ----- storage -----

	def _load(self) -> List[FilterPreset]:
		raw = self.storage.get_item(self.key)
		if not raw:
			return []
		try:
			records = json.loads(raw)
		except ValueError as e:
			logger.warning(f"[Presets] Stored presets are not valid JSON, starting empty: {e}")
			return []
		if not isinstance(records, list):
			logger.warning("[Presets] Stored presets are not a list, starting empty")
			return []
		presets: List[FilterPreset] = []
		for record in records:
			try:
				presets.append(FilterPreset.from_json_obj(record))
			except (AttributeError, KeyError, TypeError, ValueError) as e:
				logger.warning(f"[Presets] Skipping unreadable preset record: {e}")
		logger.info(f"[Presets] Loaded {len(presets)} preset(s)")
		return presets

	def _persist(self) -> None:
		payload: List[Dict[str, Any]] = [p.to_json_obj() for p in self._presets]
		self.storage.set_item(self.key, json.dumps(payload))
