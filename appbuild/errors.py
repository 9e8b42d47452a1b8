# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class BuildError(Exception):
	"""
	A structured, serializable build failure.

	`reason_code` is stable and meant for scripts; `message` is for humans.
	"""

	reason_code: str
	message: str
	platform: str | None = None
	unit_path: str | None = None
	artifact_path: str | None = None

	def __str__(self) -> str:
		return self.format_human()

	def to_dict(self) -> dict[str, Any]:
		return {
			"reason_code": self.reason_code,
			"message": self.message,
			"platform": self.platform,
			"unit_path": self.unit_path,
			"artifact_path": self.artifact_path,
		}

	def format_human(self) -> str:
		parts: list[str] = [f"[{self.reason_code}] {self.message}"]
		if self.platform:
			parts.append(f"platform={self.platform}")
		if self.unit_path:
			parts.append(f"unit={self.unit_path}")
		if self.artifact_path:
			parts.append(f"artifact_path={self.artifact_path}")
		return " ".join(parts)


@dataclass(frozen=True)
class ToolFailure(BuildError):
	"""
	An external toolchain stage exited nonzero, timed out, or could not start.

	The tool's own diagnostics are kept verbatim in `stderr`.
	"""

	argv: tuple[str, ...] = ()
	returncode: int | None = None
	stdout: str = ""
	stderr: str = ""

	def to_dict(self) -> dict[str, Any]:
		out = super().to_dict()
		out["argv"] = list(self.argv)
		out["returncode"] = self.returncode
		out["stdout"] = self.stdout
		out["stderr"] = self.stderr
		return out

	def format_human(self) -> str:
		head = super().format_human()
		if self.returncode is not None:
			head += f" exit={self.returncode}"
		if self.stderr:
			return head + "\n" + self.stderr
		return head
