# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

from pathlib import Path
from typing import Sequence

from appbuild.archs import Architecture
from appbuild.layout import RuntimeLayout
from appbuild.toolchain import Toolchain
from appbuild.units import CompiledUnit


def link_executable(
	toolchain: Toolchain,
	layout: RuntimeLayout,
	*,
	entry_object: Path,
	units: Sequence[CompiledUnit],
	archs: Sequence[Architecture],
	frameworks: Sequence[str],
	out_exe: Path,
) -> list[Path]:
	"""
	Link the bundle executable and return the framework stub objects used.

	Link order: entry object, unit objects in configuration order, then the
	runtime archive, system libraries, frameworks, and any stub object shipped
	for a (platform, framework) pair.
	"""
	stubs = layout.stubs_for(toolchain.platform, list(frameworks))
	objects = [entry_object, *(u.object_path for u in units)]
	out_exe.parent.mkdir(parents=True, exist_ok=True)
	toolchain.link(objects, out_exe, archs=archs, frameworks=frameworks, stubs=stubs)
	return stubs
