# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Per-platform build cache manifest (v0).

Maps a source unit to the universal object built from it, the init symbol
compiled into that object, and the configuration fingerprint in effect at the
time. The object's sha256 is recorded so an entry is only trusted for the exact
bytes it describes.

Stored as canonical JSON next to the objects:

  {"format": "appbuild-cache", "version": 0, "units": {<unit>: {...}}}
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Sequence

from appbuild.archs import Architecture

_log = logging.getLogger(__name__)


def sha256_file(path: Path) -> str:
	h = hashlib.sha256()
	with path.open("rb") as f:
		for chunk in iter(lambda: f.read(1 << 16), b""):
			h.update(chunk)
	return h.hexdigest()


def canonical_json_bytes(obj: Any) -> bytes:
	return (json.dumps(obj, sort_keys=True, separators=(",", ":")) + "\n").encode("utf-8")


def config_fingerprint(platform: str, archs: Sequence[Architecture], descriptors: Sequence[Path]) -> str:
	"""
	Fingerprint of everything besides the source file that shapes a unit's object.

	Kernel blobs and descriptors contribute their mtime so a runtime upgrade
	invalidates every unit.
	"""
	obj = {
		"platform": platform,
		"archs": [[a.name, str(a.kernel_path), a.kernel_path.stat().st_mtime_ns] for a in archs],
		"descriptors": [[str(d), d.stat().st_mtime_ns] for d in descriptors],
	}
	return "sha256:" + hashlib.sha256(canonical_json_bytes(obj)).hexdigest()


@dataclass(frozen=True)
class CacheEntry:
	object_path: str
	init_symbol: str
	fingerprint: str
	object_sha256: str

	def to_dict(self) -> dict[str, str]:
		return {
			"object_path": self.object_path,
			"init_symbol": self.init_symbol,
			"fingerprint": self.fingerprint,
			"object_sha256": self.object_sha256,
		}


class BuildCache:
	def __init__(self, path: Path, entries: dict[str, CacheEntry] | None = None) -> None:
		self.path = path
		self._entries: dict[str, CacheEntry] = dict(entries or {})
		self._lock = threading.Lock()

	@classmethod
	def load(cls, path: Path) -> BuildCache:
		"""
		Load the manifest at `path`.

		A missing or unreadable manifest yields an empty cache: every unit then
		falls back to the object's symbol table or a rebuild.
		"""
		if not path.exists():
			return cls(path)
		try:
			data = json.loads(path.read_text(encoding="utf-8"))
			entries = _parse_entries(data)
		except (OSError, ValueError) as err:
			_log.debug("ignoring build cache %s: %s", path, err)
			return cls(path)
		return cls(path, entries)

	def get(self, unit_key: str) -> CacheEntry | None:
		with self._lock:
			return self._entries.get(unit_key)

	def record(self, unit_key: str, entry: CacheEntry) -> None:
		with self._lock:
			self._entries[unit_key] = entry
			self._save_locked()

	def _save_locked(self) -> None:
		obj = {
			"format": "appbuild-cache",
			"version": 0,
			"units": {k: e.to_dict() for k, e in sorted(self._entries.items())},
		}
		self.path.parent.mkdir(parents=True, exist_ok=True)
		tmp = self.path.with_name(self.path.name + f".tmp.{os.getpid()}")
		tmp.write_bytes(canonical_json_bytes(obj))
		os.replace(tmp, self.path)


def _parse_entries(data: Any) -> dict[str, CacheEntry]:
	if not isinstance(data, dict):
		raise ValueError("cache manifest must be a JSON object")
	if data.get("format") != "appbuild-cache" or data.get("version") != 0:
		raise ValueError("unsupported cache manifest format/version")
	units = data.get("units")
	if not isinstance(units, dict):
		raise ValueError("cache manifest units must be an object")
	out: dict[str, CacheEntry] = {}
	for key, raw in units.items():
		if not isinstance(raw, dict):
			raise ValueError(f"cache entry for '{key}' must be an object")
		fields = ("object_path", "init_symbol", "fingerprint", "object_sha256")
		vals = [raw.get(f) for f in fields]
		if any(not isinstance(v, str) or not v for v in vals):
			raise ValueError(f"cache entry for '{key}' is incomplete")
		out[key] = CacheEntry(*vals)
	return out
