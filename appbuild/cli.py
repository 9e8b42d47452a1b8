# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from appbuild.archs import discover_architectures
from appbuild.builder import BuildOptions, CodesignOptions, build_v0, codesign_v0
from appbuild.config_v0 import load_config_v0
from appbuild.errors import BuildError
from appbuild.layout import DATA_DIR_ENV, RuntimeLayout
from appbuild.profile import read_profile
from appbuild.toolchain import ToolchainOptions

PLATFORMS = ("iphoneos", "iphonesimulator")


def _build_parser() -> argparse.ArgumentParser:
	p = argparse.ArgumentParser(prog="appbuild", description="Build and sign application bundles from script units")
	p.add_argument("-v", "--verbose", action="store_true", help="Log every toolchain command")
	sub = p.add_subparsers(dest="cmd", required=True)

	def add_common(sp: argparse.ArgumentParser, *, config: bool) -> None:
		if config:
			sp.add_argument("config", type=Path, help="Path to the app's appbuild JSON config")
		sp.add_argument("--platform", choices=PLATFORMS, default="iphoneos", help="Target platform (default: iphoneos)")
		sp.add_argument(
			"--data-dir",
			type=Path,
			default=None,
			help=f"Runtime data directory (default: ${DATA_DIR_ENV} or ./data)",
		)
		sp.add_argument("--json", action="store_true", help="Emit machine-readable JSON")

	build = sub.add_parser("build", help="Compile units, link, and assemble the app bundle")
	add_common(build, config=True)
	build.add_argument("--jobs", "-j", type=int, default=1, help="Compile up to N units in parallel (default: 1)")
	build.add_argument(
		"--timeout",
		type=float,
		default=600.0,
		help="Per-command timeout in seconds; 0 disables it (default: 600)",
	)

	codesign = sub.add_parser("codesign", help="Sign a previously built bundle")
	add_common(codesign, config=True)
	codesign.add_argument(
		"--verify-profile",
		action="store_true",
		help="Check that the signing identity is in the provisioning profile and that it has not expired",
	)

	archs = sub.add_parser("archs", help="List the architectures buildable for a platform")
	add_common(archs, config=False)

	profile = sub.add_parser("profile", help="Summarize a provisioning profile")
	profile.add_argument("path", type=Path, help="Path to a .mobileprovision file")
	profile.add_argument("--json", action="store_true", help="Emit machine-readable JSON")
	return p


def _emit(obj: dict[str, Any], *, as_json: bool, human: str) -> None:
	if as_json:
		print(json.dumps(obj, sort_keys=True, separators=(",", ":")))
	else:
		print(human)


def _run(args: argparse.Namespace) -> int:
	if args.cmd == "profile":
		info = read_profile(args.path.read_bytes())
		lines = [f"name: {info.name}", f"uuid: {info.uuid}", f"expires: {info.expiration}"]
		lines += [f"certificate: {cn}" for cn in info.certificate_names]
		_emit(info.to_dict(), as_json=args.json, human="\n".join(lines))
		return 0

	layout = RuntimeLayout.from_env(args.data_dir)

	if args.cmd == "archs":
		found = discover_architectures(layout, args.platform)
		_emit(
			{"platform": args.platform, "archs": [a.to_dict() for a in found]},
			as_json=args.json,
			human="\n".join(a.name for a in found),
		)
		return 0

	config = load_config_v0(args.config)

	if args.cmd == "build":
		timeout = args.timeout if args.timeout > 0 else None
		report = build_v0(
			BuildOptions(
				config=config,
				platform=args.platform,
				layout=layout,
				jobs=args.jobs,
				toolchain_options=ToolchainOptions(timeout=timeout),
			)
		)
		rebuilt = sum(1 for u in report.units if u.rebuilt)
		_emit(
			report.to_dict(),
			as_json=args.json,
			human=f"built {report.bundle_path} ({rebuilt}/{len(report.units)} units compiled)",
		)
		return 0

	if args.cmd == "codesign":
		bundle = codesign_v0(
			CodesignOptions(config=config, platform=args.platform, layout=layout, verify_profile=args.verify_profile)
		)
		_emit({"bundle_path": str(bundle), "signed": True}, as_json=args.json, human=f"signed {bundle}")
		return 0

	raise AssertionError("unreachable")


def main(argv: list[str] | None = None) -> int:
	p = _build_parser()
	args = p.parse_args(argv)
	logging.basicConfig(
		level=logging.DEBUG if args.verbose else logging.INFO,
		format="%(levelname)s: %(message)s",
		stream=sys.stderr,
	)
	try:
		return _run(args)
	except BuildError as err:
		if getattr(args, "json", False):
			print(json.dumps({"ok": False, "error": err.to_dict()}, sort_keys=True, separators=(",", ":")))
		else:
			print(f"appbuild: error: {err.format_human()}", file=sys.stderr)
		return 2
	except OSError as err:
		print(f"appbuild: error: {err}", file=sys.stderr)
		return 2
