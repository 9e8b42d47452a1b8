# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

from appbuild.errors import BuildError
from appbuild.layout import RuntimeLayout

_KERNEL_RE = re.compile(r"^kernel-(.+)\.bc$")


@dataclass(frozen=True)
class Architecture:
	name: str
	kernel_path: Path
	march: str

	def to_dict(self) -> dict[str, str]:
		return {"name": self.name, "kernel_path": str(self.kernel_path), "march": self.march}


def backend_march(arch: str) -> str:
	"""Map an instruction-set name to the LLVM backend's `-march` value."""
	if arch == "i386":
		return "x86"
	if arch == "x86_64":
		return "x86-64"
	if arch.startswith("arm"):
		return "arm"
	return arch


def discover_architectures(layout: RuntimeLayout, platform: str) -> list[Architecture]:
	"""
	Find the buildable architectures for `platform`.

	One architecture per `kernel-<arch>.bc` blob in the platform data directory,
	ordered by file name so the set (and everything generated from it) is
	stable between runs.
	"""
	plat_dir = layout.platform_dir(platform)
	found: list[Architecture] = []
	if plat_dir.is_dir():
		for path in sorted(plat_dir.iterdir(), key=lambda p: p.name):
			m = _KERNEL_RE.match(path.name)
			if m is None or not path.is_file():
				continue
			arch = m.group(1)
			found.append(Architecture(name=arch, kernel_path=path, march=backend_march(arch)))
	if not found:
		raise BuildError(
			reason_code="missing-architecture-source",
			message=f"no runtime kernels found under {plat_dir}; nothing can be compiled",
			platform=platform,
			artifact_path=str(plat_dir),
		)
	return found
