# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import os
import threading
from pathlib import Path
from typing import Sequence

from appbuild.archs import Architecture
from appbuild.errors import BuildError
from appbuild.toolchain import Toolchain


def assemble_fat(toolchain: Toolchain, slices: Sequence[Path], dest: Path, archs: Sequence[Architecture]) -> Path:
	"""
	Merge per-architecture objects into one universal object at `dest`.

	The merge writes a temporary sibling whose slices are checked against
	`archs` before it is renamed onto `dest`, so `dest` is either the previous
	object or a complete new one.
	"""
	dest.parent.mkdir(parents=True, exist_ok=True)
	tmp = dest.with_name(dest.name + f".tmp.{os.getpid()}.{threading.get_ident()}")
	try:
		toolchain.merge_fat(slices, tmp)
		verify_fat(toolchain, tmp, archs, artifact=dest)
		os.replace(tmp, dest)
	finally:
		tmp.unlink(missing_ok=True)
	return dest


def verify_fat(toolchain: Toolchain, obj: Path, archs: Sequence[Architecture], *, artifact: Path | None = None) -> None:
	got = toolchain.list_fat_archs(obj)
	want = [a.name for a in archs]
	if sorted(got) != sorted(want):
		raise BuildError(
			reason_code="fat-slice-mismatch",
			message=f"universal object has slices {got}, expected {want}",
			platform=toolchain.platform,
			artifact_path=str(artifact or obj),
		)
