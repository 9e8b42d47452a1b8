# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Per-unit compilation to universal objects.

A unit is rebuilt when its universal object is missing, older than the
source, or was produced under a different configuration fingerprint. A
rebuild allocates a new init symbol; a cache hit reuses the one compiled into
the existing object, because the entry module calls it by name.
"""

from __future__ import annotations

import concurrent.futures
import logging
import os
import re
import threading
import uuid
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Sequence

from appbuild.archs import Architecture
from appbuild.cache import BuildCache, CacheEntry, config_fingerprint, sha256_file
from appbuild.errors import BuildError, ToolFailure
from appbuild.fat import assemble_fat
from appbuild.layout import RuntimeLayout
from appbuild.toolchain import Toolchain

_log = logging.getLogger(__name__)

INIT_SYMBOL_PREFIX = "MREP_"
_INIT_SYMBOL_RE = re.compile(r"^_?(MREP_[0-9A-Fa-f]+)$")


def new_init_symbol() -> str:
	return INIT_SYMBOL_PREFIX + uuid.uuid4().hex.upper()


def match_init_symbol(symbols: Sequence[tuple[str, str]]) -> str | None:
	"""First defined text symbol following the init naming convention, if any."""
	for kind, name in symbols:
		if kind != "T":
			continue
		m = _INIT_SYMBOL_RE.match(name)
		if m is not None:
			return m.group(1)
	return None


@dataclass(frozen=True)
class SourceUnit:
	"""
	A configured source file.

	`path` is the unit's location relative to the project root. It names the
	unit's objects and its cache entry, so both stay put when the project
	directory moves or the config is given by an absolute path.
	"""

	path: PurePosixPath
	source: Path
	objs_dir: Path

	@classmethod
	def resolve(cls, path: Path, root: Path, objs_dir: Path) -> SourceUnit:
		"""Raises ValueError when `path` does not lie under `root`."""
		root_abs = Path(os.path.normpath(root.absolute()))
		rel = Path(os.path.normpath(root_abs / path)).relative_to(root_abs)
		if not rel.parts:
			raise ValueError(f"{path} is the project root")
		return cls(path=PurePosixPath(rel.as_posix()), source=root / path, objs_dir=objs_dir)

	@property
	def key(self) -> str:
		return self.path.as_posix()

	@property
	def object_path(self) -> Path:
		return self.objs_dir / f"{self.path}.o"

	def intermediate(self, arch: str, ext: str) -> Path:
		return self.objs_dir / f"{self.path}.{arch}.{ext}"


@dataclass(frozen=True)
class CompiledUnit:
	unit_path: str
	source: Path
	object_path: Path
	init_symbol: str
	rebuilt: bool

	def to_dict(self) -> dict[str, object]:
		return {
			"unit_path": self.unit_path,
			"source": str(self.source),
			"object_path": str(self.object_path),
			"init_symbol": self.init_symbol,
			"rebuilt": self.rebuilt,
		}


def _manifest_path(unit: SourceUnit) -> str:
	"""Object path as recorded in the manifest: relative to the objs dir."""
	return f"{unit.key}.o"


class UnitCompiler:
	def __init__(
		self,
		toolchain: Toolchain,
		layout: RuntimeLayout,
		archs: Sequence[Architecture],
		*,
		frameworks: Sequence[str],
		objs_dir: Path,
		cache: BuildCache,
		source_root: Path = Path("."),
		jobs: int = 1,
	) -> None:
		self.toolchain = toolchain
		self.source_root = source_root
		self.archs = list(archs)
		self.objs_dir = objs_dir
		self.cache = cache
		self.jobs = max(1, jobs)
		self.descriptors = layout.descriptors_for(list(frameworks))
		self.fingerprint = config_fingerprint(toolchain.platform, self.archs, self.descriptors)
		self._abort = threading.Event()

	def compile_all(self, sources: Sequence[Path]) -> list[CompiledUnit]:
		"""Compile every unit; results follow the order of `sources`."""
		units = [self._unit(s) for s in sources]
		if self.jobs == 1 or len(units) < 2:
			return [self.compile_unit(u) for u in units]

		self._abort.clear()
		with concurrent.futures.ThreadPoolExecutor(max_workers=self.jobs) as executor:
			futures = [executor.submit(self.compile_unit, u) for u in units]
			done, _ = concurrent.futures.wait(futures, return_when=concurrent.futures.FIRST_EXCEPTION)
			failed = [f for f in futures if f in done and f.exception() is not None]
			if failed:
				self._abort.set()
				for f in futures:
					f.cancel()
				raise failed[0].exception()
			return [f.result() for f in futures]

	def _unit(self, path: Path) -> SourceUnit:
		try:
			return SourceUnit.resolve(path, self.source_root, self.objs_dir)
		except ValueError:
			raise BuildError(
				reason_code="invalid-config",
				message=f"source unit {path} is outside the project directory {self.source_root}",
				platform=self.toolchain.platform,
				unit_path=str(path),
			) from None

	def compile_unit(self, unit: SourceUnit) -> CompiledUnit:
		if not unit.source.is_file():
			raise BuildError(
				reason_code="missing-source",
				message=f"source unit not found: {unit.source}",
				platform=self.toolchain.platform,
				unit_path=unit.key,
			)
		cached = self._cached_symbol(unit)
		if cached is not None:
			_log.debug("%s: up to date (%s)", unit.key, cached)
			return CompiledUnit(
				unit_path=unit.key, source=unit.source, object_path=unit.object_path, init_symbol=cached, rebuilt=False
			)

		init_symbol = new_init_symbol()
		_log.info("compiling %s", unit.key)
		self._build(unit, init_symbol)
		obj = unit.object_path
		self.cache.record(
			unit.key,
			CacheEntry(
				object_path=_manifest_path(unit),
				init_symbol=init_symbol,
				fingerprint=self.fingerprint,
				object_sha256=sha256_file(obj),
			),
		)
		return CompiledUnit(unit_path=unit.key, source=unit.source, object_path=obj, init_symbol=init_symbol, rebuilt=True)

	def _cached_symbol(self, unit: SourceUnit) -> str | None:
		obj = unit.object_path
		if not obj.exists():
			return None
		if obj.stat().st_mtime < unit.source.stat().st_mtime:
			return None

		entry = self.cache.get(unit.key)
		if entry is not None:
			if entry.fingerprint != self.fingerprint:
				_log.debug("%s: configuration changed", unit.key)
				return None
			if entry.object_path == _manifest_path(unit) and entry.object_sha256 == sha256_file(obj):
				return entry.init_symbol

		# No usable manifest entry: read the symbol back from the object.
		try:
			symbols = self.toolchain.list_exported_symbols(obj)
		except ToolFailure as err:
			_log.debug("%s: cannot list symbols of %s: %s", unit.key, obj, err.message)
			return None
		found = match_init_symbol(symbols)
		if found is None:
			_log.debug("%s: no init symbol in %s; rebuilding", unit.key, obj)
		return found

	def _check_aborted(self, unit: SourceUnit) -> None:
		if self._abort.is_set():
			raise BuildError(
				reason_code="cancelled",
				message="build aborted after another unit failed",
				platform=self.toolchain.platform,
				unit_path=unit.key,
			)

	def _build(self, unit: SourceUnit, init_symbol: str) -> None:
		tc = self.toolchain
		unit.object_path.parent.mkdir(parents=True, exist_ok=True)
		slices: list[Path] = []
		for arch in self.archs:
			bc = unit.intermediate(arch.name, "bc")
			asm = unit.intermediate(arch.name, "s")
			arch_obj = unit.intermediate(arch.name, "o")
			self._check_aborted(unit)
			tc.translate_to_bitcode(
				unit.source,
				bc,
				kernel=arch.kernel_path,
				init_symbol=init_symbol,
				descriptors=self.descriptors,
			)
			self._check_aborted(unit)
			tc.lower_to_assembly(bc, asm, march=arch.march)
			self._check_aborted(unit)
			tc.compile_assembly(asm, arch_obj, arch=arch.name)
			slices.append(arch_obj)
		self._check_aborted(unit)
		assemble_fat(tc, slices, unit.object_path, self.archs)
