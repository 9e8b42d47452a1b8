# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import json
import os
import subprocess
import sys
from pathlib import Path

from appbuild.layout import RuntimeLayout
from appbuild.tests.fakes import make_profile_bytes

REPO_ROOT = Path(__file__).resolve().parents[2]


def _appbuild(*args: str, env: dict[str, str] | None = None) -> subprocess.CompletedProcess[str]:
	full_env = dict(os.environ)
	full_env.update(env or {})
	return subprocess.run(
		[sys.executable, "-m", "appbuild", *args],
		cwd=str(REPO_ROOT),
		check=False,
		capture_output=True,
		text=True,
		env=full_env,
	)


def _write_config(tmp_path: Path) -> Path:
	doc = {
		"format": "appbuild-config",
		"version": 0,
		"app_name": "Hello",
		"build_dir": "build",
		"files": ["a.rb"],
		"frameworks": ["UIKit"],
		"sdk": {"iphoneos": "sdk"},
		"platform_dir": {"iphoneos": "platform"},
		"provisioning_profile": "dev.mobileprovision",
		"codesign_identity": "iPhone Developer: Jane",
		"info": {"CFBundleExecutable": "Hello"},
	}
	path = tmp_path / "app.json"
	path.write_text(json.dumps(doc), encoding="utf-8")
	return path


def test_archs_json(layout: RuntimeLayout) -> None:
	res = _appbuild("archs", "--data-dir", str(layout.data_dir), "--json")
	assert res.returncode == 0, res.stderr
	out = json.loads(res.stdout)
	assert out["platform"] == "iphoneos"
	assert [a["name"] for a in out["archs"]] == ["arm64", "armv7"]


def test_archs_reads_data_dir_from_env(layout: RuntimeLayout) -> None:
	res = _appbuild("archs", env={"APPBUILD_DATA_DIR": str(layout.data_dir)})
	assert res.returncode == 0, res.stderr
	assert res.stdout.split() == ["arm64", "armv7"]


def test_build_without_kernels_exits_2(tmp_path: Path) -> None:
	cfg = _write_config(tmp_path)
	res = _appbuild("build", str(cfg), "--data-dir", str(tmp_path / "nodata"))
	assert res.returncode == 2
	assert "[missing-architecture-source]" in res.stderr


def test_codesign_without_bundle_reports_json_error(tmp_path: Path) -> None:
	cfg = _write_config(tmp_path)
	res = _appbuild("codesign", str(cfg), "--data-dir", str(tmp_path), "--json")
	assert res.returncode == 2
	out = json.loads(res.stdout)
	assert out["ok"] is False
	assert out["error"]["reason_code"] == "missing-bundle"


def test_invalid_config_exits_2(tmp_path: Path) -> None:
	cfg = tmp_path / "app.json"
	cfg.write_text("[]", encoding="utf-8")
	res = _appbuild("build", str(cfg))
	assert res.returncode == 2
	assert "[invalid-config]" in res.stderr


def test_profile_summary(tmp_path: Path) -> None:
	path = tmp_path / "dev.mobileprovision"
	path.write_bytes(make_profile_bytes(["iPhone Developer: Jane Doe"]))
	res = _appbuild("profile", str(path), "--json")
	assert res.returncode == 0, res.stderr
	out = json.loads(res.stdout)
	assert out["certificate_names"] == ["iPhone Developer: Jane Doe"]
	assert out["team_ids"] == ["TEAM123456"]
