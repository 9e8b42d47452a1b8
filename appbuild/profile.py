# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Provisioning profile inspection.

A `.mobileprovision` file is a CMS envelope around an XML property list. The
plist is located by its XML prologue and closing tag rather than by decoding
the envelope; its `DeveloperCertificates` are DER certificates naming the
identities allowed to sign with the profile.
"""

from __future__ import annotations

import plistlib
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any
from xml.parsers.expat import ExpatError

from cryptography import x509
from cryptography.x509.oid import NameOID

from appbuild.errors import BuildError

_PLIST_START = b"<?xml"
_PLIST_END = b"</plist>"


@dataclass(frozen=True)
class ProfileInfo:
	name: str | None
	uuid: str | None
	team_ids: list[str]
	expiration: datetime | None
	certificate_names: list[str]

	def to_dict(self) -> dict[str, Any]:
		return {
			"name": self.name,
			"uuid": self.uuid,
			"team_ids": list(self.team_ids),
			"expiration": self.expiration.isoformat() if self.expiration is not None else None,
			"certificate_names": list(self.certificate_names),
		}


def _unreadable(message: str) -> BuildError:
	return BuildError(reason_code="profile-unreadable", message=message)


def extract_profile_plist(data: bytes) -> dict[str, Any]:
	start = data.find(_PLIST_START)
	end = data.find(_PLIST_END, start) if start >= 0 else -1
	if start < 0 or end < 0:
		raise _unreadable("no property list found in provisioning profile")
	try:
		obj = plistlib.loads(data[start : end + len(_PLIST_END)])
	except (plistlib.InvalidFileException, ExpatError, ValueError) as err:
		raise _unreadable(f"invalid property list in provisioning profile: {err}") from err
	if not isinstance(obj, dict):
		raise _unreadable("provisioning profile property list must be a dictionary")
	return obj


def _common_name(cert: x509.Certificate) -> str | None:
	attrs = cert.subject.get_attributes_for_oid(NameOID.COMMON_NAME)
	if not attrs:
		return None
	value = attrs[0].value
	return value if isinstance(value, str) else value.decode("utf-8", errors="replace")


def read_profile(data: bytes) -> ProfileInfo:
	obj = extract_profile_plist(data)
	names: list[str] = []
	for der in obj.get("DeveloperCertificates") or []:
		if not isinstance(der, bytes):
			raise _unreadable("DeveloperCertificates entries must be data")
		try:
			cert = x509.load_der_x509_certificate(der)
		except ValueError as err:
			raise _unreadable(f"invalid developer certificate: {err}") from err
		cn = _common_name(cert)
		if cn is not None:
			names.append(cn)

	expiration = obj.get("ExpirationDate")
	if expiration is not None and not isinstance(expiration, datetime):
		raise _unreadable("ExpirationDate must be a date")
	if expiration is not None and expiration.tzinfo is None:
		# plistlib decodes dates as naive UTC.
		expiration = expiration.replace(tzinfo=timezone.utc)

	team_ids = obj.get("TeamIdentifier") or []
	return ProfileInfo(
		name=obj.get("Name"),
		uuid=obj.get("UUID"),
		team_ids=[t for t in team_ids if isinstance(t, str)],
		expiration=expiration,
		certificate_names=names,
	)


def verify_identity(info: ProfileInfo, identity: str, *, now: datetime | None = None) -> None:
	"""
	Check that `identity` may sign with this profile.

	Matching follows codesign's rule for identity names: a substring of a
	certificate's common name.
	"""
	if now is None:
		now = datetime.now(timezone.utc)
	if info.expiration is not None and info.expiration <= now:
		raise BuildError(
			reason_code="profile-expired",
			message=f"provisioning profile {info.name!r} expired on {info.expiration.isoformat()}",
		)
	if not any(identity in cn for cn in info.certificate_names):
		raise BuildError(
			reason_code="profile-identity-mismatch",
			message=f"signing identity {identity!r} is not among the profile's certificates {info.certificate_names}",
		)
