# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Typed wrappers around the external toolchain.

Each build stage is one method with explicit arguments. Nothing else in the
package assembles command lines. All invocations go through a single runner
callable so tests can substitute a fake that records argv and fabricates
outputs.
"""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Mapping, Sequence

from appbuild.archs import Architecture
from appbuild.errors import ToolFailure
from appbuild.layout import RuntimeLayout

_log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolResult:
	argv: tuple[str, ...]
	returncode: int
	stdout: str
	stderr: str


Runner = Callable[[Sequence[str], Mapping[str, str] | None, float | None], ToolResult]


def subprocess_runner(argv: Sequence[str], env: Mapping[str, str] | None, timeout: float | None) -> ToolResult:
	full_env = dict(os.environ)
	if env:
		full_env.update(env)
	try:
		res = subprocess.run(list(argv), capture_output=True, text=True, env=full_env, timeout=timeout, check=False)
	except FileNotFoundError as err:
		raise ToolFailure(
			reason_code="tool-missing",
			message=f"tool not found: {argv[0]}",
			argv=tuple(argv),
			stderr=str(err),
		) from err
	except subprocess.TimeoutExpired as err:
		raise ToolFailure(
			reason_code="tool-timeout",
			message=f"{argv[0]} timed out after {timeout}s",
			argv=tuple(argv),
			stdout=_as_text(err.stdout),
			stderr=_as_text(err.stderr),
		) from err
	return ToolResult(argv=tuple(argv), returncode=res.returncode, stdout=res.stdout, stderr=res.stderr)


def _as_text(data: str | bytes | None) -> str:
	if data is None:
		return ""
	if isinstance(data, bytes):
		return data.decode("utf-8", errors="replace")
	return data


@dataclass(frozen=True)
class ToolchainOptions:
	timeout: float | None = 600.0
	lipo: str = "lipo"
	nm: str = "nm"
	plutil: str = "/usr/bin/plutil"
	codesign: str = "/usr/bin/codesign"


class Toolchain:
	def __init__(
		self,
		layout: RuntimeLayout,
		*,
		platform: str,
		platform_dir: Path,
		sdk: Path,
		deployment_target: str = "4.3",
		options: ToolchainOptions | None = None,
		runner: Runner = subprocess_runner,
	) -> None:
		self.layout = layout
		self.platform = platform
		self.sdk = sdk
		self.deployment_target = deployment_target
		self.options = options or ToolchainOptions()
		self.cc = platform_dir / "Developer" / "usr" / "bin" / "gcc"
		self.cxx = platform_dir / "Developer" / "usr" / "bin" / "g++"
		self._runner = runner

	def _run(self, stage: str, argv: list[str], *, env: Mapping[str, str] | None = None) -> ToolResult:
		_log.debug("%s: %s", stage, " ".join(argv))
		res = self._runner(argv, env, self.options.timeout)
		if res.returncode != 0:
			raise ToolFailure(
				reason_code="tool-failed",
				message=f"{stage} failed",
				platform=self.platform,
				argv=tuple(argv),
				returncode=res.returncode,
				stdout=res.stdout,
				stderr=res.stderr,
			)
		return res

	def _version_min_flag(self) -> str:
		if self.platform == "iphonesimulator":
			return f"-mios-simulator-version-min={self.deployment_target}"
		return f"-miphoneos-version-min={self.deployment_target}"

	def translate_to_bitcode(
		self,
		source: Path,
		out_bc: Path,
		*,
		kernel: Path,
		init_symbol: str,
		descriptors: Sequence[Path] = (),
	) -> None:
		argv = [str(self.layout.translator)]
		for desc in descriptors:
			argv += ["--uses-bs", str(desc)]
		argv += ["--emit-llvm", str(out_bc), init_symbol, str(source)]
		self._run("translate", argv, env={"VM_KERNEL_PATH": str(kernel)})

	def lower_to_assembly(self, bc: Path, out_asm: Path, *, march: str) -> None:
		self._run(
			"llc",
			[
				str(self.layout.llc),
				str(bc),
				f"-o={out_asm}",
				f"-march={march}",
				"-relocation-model=pic",
				"-disable-fp-elim",
				"-jit-enable-eh",
			],
		)

	def compile_assembly(self, asm: Path, out_obj: Path, *, arch: str) -> None:
		self._run("cc", [str(self.cc), "-fexceptions", "-c", "-arch", arch, str(asm), "-o", str(out_obj)])

	def merge_fat(self, slices: Sequence[Path], out_obj: Path) -> None:
		self._run("lipo", [self.options.lipo, "-create", *(str(s) for s in slices), "-output", str(out_obj)])

	def list_fat_archs(self, obj: Path) -> list[str]:
		res = self._run("lipo", [self.options.lipo, "-archs", str(obj)])
		return res.stdout.split()

	def list_exported_symbols(self, obj: Path) -> list[tuple[str, str]]:
		"""
		Return (type, name) pairs from `nm -g`.

		Per-slice headers of universal objects ("x.o (for architecture arm64):")
		and blank lines are skipped; names keep their leading underscore.
		"""
		res = self._run("nm", [self.options.nm, "-g", str(obj)])
		out: list[tuple[str, str]] = []
		for line in res.stdout.splitlines():
			parts = line.split()
			if len(parts) < 2 or line.rstrip().endswith(":"):
				continue
			out.append((parts[-2], parts[-1]))
		return out

	def compile_entry(self, source: Path, out_obj: Path, *, archs: Sequence[Architecture]) -> None:
		self._run(
			"c++",
			[
				str(self.cxx),
				str(source),
				*_arch_flags(archs),
				"-fexceptions",
				"-fblocks",
				"-isysroot",
				str(self.sdk),
				self._version_min_flag(),
				"-fobjc-legacy-dispatch",
				"-fobjc-abi-version=2",
				"-c",
				"-o",
				str(out_obj),
			],
		)

	def link(
		self,
		objects: Sequence[Path],
		out_exe: Path,
		*,
		archs: Sequence[Architecture],
		frameworks: Sequence[str],
		stubs: Sequence[Path] = (),
	) -> None:
		argv = [str(self.cxx), "-o", str(out_exe), *(str(o) for o in objects), *_arch_flags(archs)]
		argv += ["-isysroot", str(self.sdk)]
		argv += [f"-L{self.layout.platform_dir(self.platform)}", f"-l{self.layout.runtime_library}", "-lobjc", "-licucore"]
		for fw in frameworks:
			argv += ["-framework", fw]
		argv += [str(s) for s in stubs]
		self._run("link", argv)

	def convert_plist_binary(self, path: Path) -> None:
		self._run("plutil", [self.options.plutil, "-convert", "binary1", str(path)])

	def codesign(self, bundle: Path, *, identity: str, resource_rules: Path) -> None:
		self._run(
			"codesign",
			[self.options.codesign, "-f", "-s", identity, f"--resource-rules={resource_rules}", str(bundle)],
		)


def _arch_flags(archs: Sequence[Architecture]) -> list[str]:
	out: list[str] = []
	for a in archs:
		out += ["-arch", a.name]
	return out
