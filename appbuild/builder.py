# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Build pipeline: discover architectures, compile units, generate and compile
the entry module, link, assemble the bundle; then, separately, sign it.

Every stage runs to completion before the next starts. The first tool failure
propagates as `ToolFailure` and aborts the remaining stages; partial
intermediates stay on disk.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from appbuild.archs import Architecture, discover_architectures
from appbuild.bundle import bundle_path, prepare_bundle_dir, write_bundle_metadata
from appbuild.cache import BuildCache
from appbuild.codesign import codesign_bundle
from appbuild.config_v0 import BuildConfig
from appbuild.entry import build_entry_object, render_entry_source
from appbuild.layout import RuntimeLayout
from appbuild.link import link_executable
from appbuild.toolchain import Runner, Toolchain, ToolchainOptions, subprocess_runner
from appbuild.units import CompiledUnit, UnitCompiler

_log = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuildOptions:
	config: BuildConfig
	platform: str
	layout: RuntimeLayout
	jobs: int = 1
	toolchain_options: ToolchainOptions = field(default_factory=ToolchainOptions)
	runner: Runner = subprocess_runner


@dataclass(frozen=True)
class BuildReport:
	platform: str
	archs: list[Architecture]
	units: list[CompiledUnit]
	entry_object: Path
	entry_rebuilt: bool
	bundle_path: Path
	executable: Path
	stubs: list[Path]

	def to_dict(self) -> dict[str, Any]:
		return {
			"platform": self.platform,
			"archs": [a.to_dict() for a in self.archs],
			"units": [u.to_dict() for u in self.units],
			"entry_object": str(self.entry_object),
			"entry_rebuilt": self.entry_rebuilt,
			"bundle_path": str(self.bundle_path),
			"executable": str(self.executable),
			"stubs": [str(s) for s in self.stubs],
		}


def make_toolchain(
	config: BuildConfig,
	layout: RuntimeLayout,
	platform: str,
	*,
	options: ToolchainOptions | None = None,
	runner: Runner = subprocess_runner,
) -> Toolchain:
	return Toolchain(
		layout,
		platform=platform,
		platform_dir=config.platform_toolchain_dir(platform),
		sdk=config.sdk(platform),
		deployment_target=config.deployment_target,
		options=options,
		runner=runner,
	)


def build_v0(opts: BuildOptions) -> BuildReport:
	config = opts.config
	platform = opts.platform
	toolchain = make_toolchain(config, opts.layout, platform, options=opts.toolchain_options, runner=opts.runner)

	archs = discover_architectures(opts.layout, platform)
	_log.info("%s: architectures %s", platform, " ".join(a.name for a in archs))

	platform_build_dir = config.build_dir / platform
	objs_dir = platform_build_dir / "objs"
	objs_dir.mkdir(parents=True, exist_ok=True)
	cache = BuildCache.load(objs_dir / "cache.json")

	compiler = UnitCompiler(
		toolchain,
		opts.layout,
		archs,
		frameworks=config.frameworks,
		objs_dir=objs_dir,
		cache=cache,
		source_root=config.source_root,
		jobs=opts.jobs,
	)
	units = compiler.compile_all(config.files)

	text = render_entry_source(
		[u.init_symbol for u in units],
		archs,
		config.app_name,
		delegate_class=config.delegate_class,
	)
	entry = build_entry_object(toolchain, objs_dir, text, archs)

	bundle = prepare_bundle_dir(bundle_path(config.build_dir, platform, config.app_name))
	executable = bundle / config.app_name
	_log.info("linking %s", executable)
	stubs = link_executable(
		toolchain,
		opts.layout,
		entry_object=entry.object_path,
		units=units,
		archs=archs,
		frameworks=config.frameworks,
		out_exe=executable,
	)
	write_bundle_metadata(
		toolchain,
		bundle,
		info_bytes=config.bundle_info_bytes,
		pkginfo_bytes=config.package_info_bytes,
	)
	return BuildReport(
		platform=platform,
		archs=archs,
		units=units,
		entry_object=entry.object_path,
		entry_rebuilt=entry.rebuilt,
		bundle_path=bundle,
		executable=executable,
		stubs=stubs,
	)


@dataclass(frozen=True)
class CodesignOptions:
	config: BuildConfig
	platform: str
	layout: RuntimeLayout = field(default_factory=RuntimeLayout.from_env)
	verify_profile: bool = False
	toolchain_options: ToolchainOptions = field(default_factory=ToolchainOptions)
	runner: Runner = subprocess_runner


def codesign_v0(opts: CodesignOptions) -> Path:
	config = opts.config
	bundle = bundle_path(config.build_dir, opts.platform, config.app_name)
	toolchain = make_toolchain(
		config, opts.layout, opts.platform, options=opts.toolchain_options, runner=opts.runner
	)
	_log.info("signing %s as %s", bundle, config.codesign_identity)
	codesign_bundle(
		toolchain,
		bundle,
		identity=config.codesign_identity,
		provisioning_profile=config.provisioning_profile_path,
		verify_profile=opts.verify_profile,
	)
	return bundle
