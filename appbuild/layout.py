# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Runtime data directory layout.

The data directory ships the runtime's compiler front end, the LLVM backend,
and per-platform artifacts:

  <data>/ruby                              source -> bitcode translator
  <data>/llc                               bitcode -> assembly
  <data>/<platform>/kernel-<arch>.bc       runtime kernel, one per architecture
  <data>/<platform>/lib<runtime>.a         runtime static archive
  <data>/<platform>/<framework>_stubs.o    optional precompiled framework stubs
  <data>/BridgeSupport/<framework>.bridgesupport
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

DATA_DIR_ENV = "APPBUILD_DATA_DIR"


@dataclass(frozen=True)
class RuntimeLayout:
	data_dir: Path
	runtime_library: str = "macruby-static"

	@classmethod
	def from_env(cls, data_dir: Path | None = None) -> RuntimeLayout:
		if data_dir is None:
			data_dir = Path(os.environ.get(DATA_DIR_ENV, "data"))
		return cls(data_dir=data_dir)

	@property
	def translator(self) -> Path:
		return self.data_dir / "ruby"

	@property
	def llc(self) -> Path:
		return self.data_dir / "llc"

	def platform_dir(self, platform: str) -> Path:
		return self.data_dir / platform

	def kernel(self, platform: str, arch: str) -> Path:
		return self.platform_dir(platform) / f"kernel-{arch}.bc"

	def descriptor(self, framework: str) -> Path:
		return self.data_dir / "BridgeSupport" / f"{framework}.bridgesupport"

	def framework_stub(self, platform: str, framework: str) -> Path:
		return self.platform_dir(platform) / f"{framework}_stubs.o"

	def descriptors_for(self, frameworks: list[str]) -> list[Path]:
		"""Foreign-interface descriptors for the frameworks that have one, in order."""
		return [p for p in (self.descriptor(fw) for fw in frameworks) if p.exists()]

	def stubs_for(self, platform: str, frameworks: list[str]) -> list[Path]:
		return [p for p in (self.framework_stub(platform, fw) for fw in frameworks) if p.exists()]
