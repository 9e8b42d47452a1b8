# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

from pathlib import Path

from appbuild.toolchain import Toolchain

INFO_PLIST = "Info.plist"
PKGINFO = "PkgInfo"


def bundle_path(build_dir: Path, platform: str, app_name: str) -> Path:
	return build_dir / platform / f"{app_name}.app"


def prepare_bundle_dir(path: Path) -> Path:
	path.mkdir(parents=True, exist_ok=True)
	return path


def write_bundle_metadata(toolchain: Toolchain, bundle: Path, *, info_bytes: bytes, pkginfo_bytes: bytes) -> None:
	"""
	Write Info.plist (converted in place to the binary encoding) and PkgInfo.

	Nothing else in the bundle is touched.
	"""
	info = bundle / INFO_PLIST
	info.write_bytes(info_bytes)
	toolchain.convert_plist_binary(info)
	(bundle / PKGINFO).write_bytes(pkginfo_bytes)
