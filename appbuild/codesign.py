# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import plistlib
from datetime import datetime
from pathlib import Path

from appbuild.bundle import INFO_PLIST
from appbuild.errors import BuildError
from appbuild.profile import read_profile, verify_identity
from appbuild.toolchain import Toolchain

RESOURCE_RULES_PLIST = "ResourceRules.plist"
EMBEDDED_PROFILE = "embedded.mobileprovision"


def resource_rules() -> dict[str, object]:
	"""
	Sign every path except Info.plist and the rules file itself.

	A higher weight wins when several rules match a path.
	"""
	return {
		"rules": {
			".*": True,
			INFO_PLIST: {"omit": True, "weight": 10.0},
			RESOURCE_RULES_PLIST: {"omit": True, "weight": 100.0},
		}
	}


def codesign_bundle(
	toolchain: Toolchain,
	bundle: Path,
	*,
	identity: str,
	provisioning_profile: Path,
	verify_profile: bool = False,
	now: datetime | None = None,
) -> None:
	if not bundle.is_dir():
		raise BuildError(
			reason_code="missing-bundle",
			message="bundle does not exist; build before signing",
			platform=toolchain.platform,
			artifact_path=str(bundle),
		)
	if not provisioning_profile.is_file():
		raise BuildError(
			reason_code="missing-provisioning-profile",
			message=f"provisioning profile not found: {provisioning_profile}",
			platform=toolchain.platform,
			artifact_path=str(provisioning_profile),
		)
	profile_bytes = provisioning_profile.read_bytes()
	if verify_profile:
		verify_identity(read_profile(profile_bytes), identity, now=now)

	rules_path = bundle / RESOURCE_RULES_PLIST
	rules_path.write_bytes(plistlib.dumps(resource_rules(), fmt=plistlib.FMT_XML))
	(bundle / EMBEDDED_PROFILE).write_bytes(profile_bytes)
	toolchain.codesign(bundle, identity=identity, resource_rules=rules_path)
