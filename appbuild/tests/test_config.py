# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import json
import plistlib
from pathlib import Path
from typing import Any

import pytest

from appbuild.config_v0 import load_config_v0
from appbuild.errors import BuildError


def _doc(**overrides: Any) -> dict[str, Any]:
	doc: dict[str, Any] = {
		"format": "appbuild-config",
		"version": 0,
		"app_name": "Hello",
		"build_dir": "build",
		"files": ["app/a.rb", "app/b.rb"],
		"frameworks": ["UIKit"],
		"sdk": {"iphoneos": "/sdk/iPhoneOS.sdk"},
		"platform_dir": {"iphoneos": "/Developer/Platforms/iPhoneOS.platform"},
		"provisioning_profile": "dev.mobileprovision",
		"codesign_identity": "iPhone Developer: Jane",
		"info": {"CFBundleExecutable": "Hello", "CFBundleVersion": "1.0"},
	}
	doc.update(overrides)
	return doc


def _write(tmp_path: Path, doc: dict[str, Any]) -> Path:
	path = tmp_path / "app.json"
	path.write_text(json.dumps(doc), encoding="utf-8")
	return path


def test_loads_and_resolves_relative_paths(tmp_path: Path) -> None:
	cfg = load_config_v0(_write(tmp_path, _doc()))
	assert cfg.app_name == "Hello"
	assert cfg.build_dir == tmp_path / "build"
	assert cfg.files == [Path("app/a.rb"), Path("app/b.rb")]
	assert cfg.source_root == tmp_path
	assert cfg.sdk("iphoneos") == Path("/sdk/iPhoneOS.sdk")
	assert cfg.platform_toolchain_dir("iphoneos") == Path("/Developer/Platforms/iPhoneOS.platform")
	assert cfg.provisioning_profile_path == tmp_path / "dev.mobileprovision"
	assert plistlib.loads(cfg.bundle_info_bytes) == {"CFBundleExecutable": "Hello", "CFBundleVersion": "1.0"}
	assert cfg.bundle_info_bytes.startswith(b"<?xml")
	assert cfg.package_info_bytes == b"APPL????"
	assert cfg.deployment_target == "4.3"
	assert cfg.delegate_class == "AppDelegate"


def test_optional_fields(tmp_path: Path) -> None:
	cfg = load_config_v0(
		_write(tmp_path, _doc(pkginfo="APPLHELO", deployment_target="5.0", delegate_class="HelloDelegate"))
	)
	assert cfg.package_info_bytes == b"APPLHELO"
	assert cfg.deployment_target == "5.0"
	assert cfg.delegate_class == "HelloDelegate"


@pytest.mark.parametrize(
	"overrides",
	[
		{"unexpected": True},
		{"x": {"note": 1}},
		{"version": 1},
		{"files": "a.rb"},
		{"frameworks": [""]},
		{"sdk": ["/sdk"]},
		{"info": []},
		{"app_name": ""},
	],
)
def test_rejects_invalid_documents(tmp_path: Path, overrides: dict[str, Any]) -> None:
	with pytest.raises(BuildError) as exc:
		load_config_v0(_write(tmp_path, _doc(**overrides)))
	assert exc.value.reason_code == "invalid-config"


def test_rejects_missing_fields(tmp_path: Path) -> None:
	doc = _doc()
	del doc["codesign_identity"]
	with pytest.raises(BuildError) as exc:
		load_config_v0(_write(tmp_path, doc))
	assert "codesign_identity" in exc.value.message


def test_rejects_non_json(tmp_path: Path) -> None:
	path = tmp_path / "app.json"
	path.write_text("{not json", encoding="utf-8")
	with pytest.raises(BuildError) as exc:
		load_config_v0(path)
	assert exc.value.reason_code == "invalid-config"


def test_unknown_platform_lookup(tmp_path: Path) -> None:
	cfg = load_config_v0(_write(tmp_path, _doc()))
	with pytest.raises(BuildError) as exc:
		cfg.sdk("iphonesimulator")
	assert exc.value.reason_code == "invalid-config"
