# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Build configuration (v0).

`BuildConfig` is the contract the builder consumes. `load_config_v0` is one
provider of it: a JSON document, with relative paths resolved against the
document's directory. Source files stay as written and are resolved
against `source_root`.

  {
    "format": "appbuild-config",
    "version": 0,
    "app_name": "Hello",
    "build_dir": "build",
    "files": ["app/delegate.rb", "app/main.rb"],
    "frameworks": ["UIKit", "Foundation"],
    "sdk": {"iphoneos": "/Developer/.../iPhoneOS4.3.sdk"},
    "platform_dir": {"iphoneos": "/Developer/Platforms/iPhoneOS.platform"},
    "provisioning_profile": "dev.mobileprovision",
    "codesign_identity": "iPhone Developer: Jane Doe",
    "info": {"CFBundleExecutable": "Hello", ...}
  }
"""

from __future__ import annotations

import json
import plistlib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from appbuild.errors import BuildError


@dataclass(frozen=True)
class BuildConfig:
	app_name: str
	build_dir: Path
	files: list[Path]
	frameworks: list[str]
	sdks: dict[str, Path]
	platform_dirs: dict[str, Path]
	provisioning_profile_path: Path
	codesign_identity: str
	bundle_info_bytes: bytes
	package_info_bytes: bytes = b"APPL????"
	deployment_target: str = "4.3"
	delegate_class: str = "AppDelegate"
	source_root: Path = Path(".")

	def sdk(self, platform: str) -> Path:
		return self._for_platform(self.sdks, platform, what="sdk")

	def platform_toolchain_dir(self, platform: str) -> Path:
		return self._for_platform(self.platform_dirs, platform, what="platform_dir")

	@staticmethod
	def _for_platform(table: dict[str, Path], platform: str, *, what: str) -> Path:
		path = table.get(platform)
		if path is None:
			raise BuildError(
				reason_code="invalid-config",
				message=f"no {what} configured for platform '{platform}'",
				platform=platform,
			)
		return path


_REQUIRED = (
	"app_name",
	"build_dir",
	"files",
	"frameworks",
	"sdk",
	"platform_dir",
	"provisioning_profile",
	"codesign_identity",
	"info",
)
_OPTIONAL = ("format", "version", "pkginfo", "deployment_target", "delegate_class")


def _invalid(path: Path, message: str) -> BuildError:
	return BuildError(reason_code="invalid-config", message=message, artifact_path=str(path))


def _str_field(data: dict[str, Any], key: str, path: Path) -> str:
	value = data.get(key)
	if not isinstance(value, str) or not value:
		raise _invalid(path, f"config field '{key}' must be a non-empty string")
	return value


def _str_list(data: dict[str, Any], key: str, path: Path) -> list[str]:
	value = data.get(key)
	if not isinstance(value, list) or any((not isinstance(v, str) or not v) for v in value):
		raise _invalid(path, f"config field '{key}' must be a list of strings")
	return list(value)


def _path_map(data: dict[str, Any], key: str, path: Path, base: Path) -> dict[str, Path]:
	value = data.get(key)
	if not isinstance(value, dict) or any((not isinstance(v, str) or not v) for v in value.values()):
		raise _invalid(path, f"config field '{key}' must map platform names to paths")
	return {plat: base / p for plat, p in value.items()}


def load_config_v0(path: Path) -> BuildConfig:
	try:
		data = json.loads(path.read_text(encoding="utf-8"))
	except OSError as err:
		raise _invalid(path, f"cannot read config: {err}") from err
	except json.JSONDecodeError as err:
		raise _invalid(path, f"config is not valid JSON: {err}") from err
	if not isinstance(data, dict):
		raise _invalid(path, "config must be a JSON object")
	if data.get("format", "appbuild-config") != "appbuild-config" or data.get("version", 0) != 0:
		raise _invalid(path, "unsupported config format/version")
	unknown = sorted(set(data.keys()) - set(_REQUIRED) - set(_OPTIONAL))
	if unknown:
		raise _invalid(path, f"config has unknown fields: {', '.join(unknown)}")
	missing = [k for k in _REQUIRED if k not in data]
	if missing:
		raise _invalid(path, f"config is missing fields: {', '.join(missing)}")

	base = path.parent
	info = data["info"]
	if not isinstance(info, dict):
		raise _invalid(path, "config field 'info' must be an object")
	try:
		info_bytes = plistlib.dumps(info, fmt=plistlib.FMT_XML)
	except (TypeError, OverflowError) as err:
		raise _invalid(path, f"config field 'info' cannot be encoded as a property list: {err}") from err

	pkginfo = data.get("pkginfo", "APPL????")
	if not isinstance(pkginfo, str):
		raise _invalid(path, "config field 'pkginfo' must be a string")

	return BuildConfig(
		app_name=_str_field(data, "app_name", path),
		build_dir=base / _str_field(data, "build_dir", path),
		files=[Path(f) for f in _str_list(data, "files", path)],
		frameworks=_str_list(data, "frameworks", path),
		sdks=_path_map(data, "sdk", path, base),
		platform_dirs=_path_map(data, "platform_dir", path, base),
		provisioning_profile_path=base / _str_field(data, "provisioning_profile", path),
		codesign_identity=_str_field(data, "codesign_identity", path),
		bundle_info_bytes=info_bytes,
		package_info_bytes=pkginfo.encode("utf-8"),
		deployment_target=str(data.get("deployment_target", "4.3")),
		delegate_class=str(data.get("delegate_class", "AppDelegate")),
		source_root=base,
	)
