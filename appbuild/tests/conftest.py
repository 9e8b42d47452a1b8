# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import plistlib
from pathlib import Path

import pytest

from appbuild.config_v0 import BuildConfig
from appbuild.layout import RuntimeLayout
from appbuild.tests.fakes import FakeRunner, write_source


@pytest.fixture
def runner() -> FakeRunner:
	return FakeRunner()


@pytest.fixture
def layout(tmp_path: Path) -> RuntimeLayout:
	data = tmp_path / "data"
	plat = data / "iphoneos"
	plat.mkdir(parents=True)
	for arch in ("armv7", "arm64"):
		(plat / f"kernel-{arch}.bc").write_bytes(b"kernel " + arch.encode())
	(plat / "libmacruby-static.a").write_bytes(b"!<arch>\n")
	(data / "BridgeSupport").mkdir()
	(data / "BridgeSupport" / "UIKit.bridgesupport").write_text("<signatures/>")
	return RuntimeLayout(data_dir=data)


@pytest.fixture
def config(tmp_path: Path) -> BuildConfig:
	write_source(tmp_path / "src" / "a.rb", "puts 'a'\n")
	write_source(tmp_path / "src" / "b.rb", "puts 'b'\n")
	profile = tmp_path / "dev.mobileprovision"
	profile.write_bytes(b"\x30\x82profile-bytes")
	return BuildConfig(
		app_name="AppName",
		build_dir=tmp_path / "build",
		files=[Path("src/a.rb"), Path("src/b.rb")],
		frameworks=["UIKit"],
		sdks={"iphoneos": tmp_path / "sdk"},
		platform_dirs={"iphoneos": tmp_path / "platform"},
		provisioning_profile_path=profile,
		codesign_identity="iPhone Developer: Test",
		bundle_info_bytes=plistlib.dumps({"CFBundleExecutable": "AppName"}, fmt=plistlib.FMT_XML),
		package_info_bytes=b"APPL????",
		source_root=tmp_path,
	)
