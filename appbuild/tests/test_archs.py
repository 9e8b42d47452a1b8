# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

from pathlib import Path

import pytest

from appbuild.archs import backend_march, discover_architectures
from appbuild.errors import BuildError
from appbuild.layout import RuntimeLayout


def test_discovers_one_arch_per_kernel_blob(layout: RuntimeLayout) -> None:
	(layout.platform_dir("iphoneos") / "kernel-notes.txt").write_text("ignored")
	archs = discover_architectures(layout, "iphoneos")
	assert [a.name for a in archs] == ["arm64", "armv7"]
	assert archs[1].kernel_path == layout.kernel("iphoneos", "armv7")
	assert {a.march for a in archs} == {"arm"}


def test_simulator_archs_map_to_x86_backends(tmp_path: Path) -> None:
	layout = RuntimeLayout(data_dir=tmp_path)
	sim = layout.platform_dir("iphonesimulator")
	sim.mkdir(parents=True)
	(sim / "kernel-i386.bc").write_bytes(b"")
	(sim / "kernel-x86_64.bc").write_bytes(b"")
	archs = discover_architectures(layout, "iphonesimulator")
	assert [(a.name, a.march) for a in archs] == [("i386", "x86"), ("x86_64", "x86-64")]


def test_unknown_arch_keeps_its_name_as_backend() -> None:
	assert backend_march("ppc") == "ppc"


def test_no_kernels_is_fatal(tmp_path: Path) -> None:
	layout = RuntimeLayout(data_dir=tmp_path)
	(tmp_path / "iphoneos").mkdir()
	with pytest.raises(BuildError) as exc:
		discover_architectures(layout, "iphoneos")
	assert exc.value.reason_code == "missing-architecture-source"
	assert exc.value.platform == "iphoneos"


def test_missing_platform_dir_is_fatal(tmp_path: Path) -> None:
	with pytest.raises(BuildError) as exc:
		discover_architectures(RuntimeLayout(data_dir=tmp_path), "iphoneos")
	assert exc.value.reason_code == "missing-architecture-source"
