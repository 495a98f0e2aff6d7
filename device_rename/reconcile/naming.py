"""Derive the canonical computer name from hardware identity.

Building a candidate is total: missing, blank or placeholder tags map to
``SENTINEL_TAG`` and nothing here raises. The naming rules are enforced
afterwards by ``CanonicalName.violation`` and the decision engine.
"""

from __future__ import annotations

import re

from ..collectors.windows.hardware import HardwareIdentityCollector, is_placeholder_tag
from ..models.schema import CanonicalName, ChassisType

SENTINEL_TAG = "UnknownSerial"
HARDWARE_SEGMENT_LENGTH = 13

_WHITESPACE_RE = re.compile(r"\s+")
_DISALLOWED_RE = re.compile(r"[^A-Za-z0-9-]")


def sanitize_hardware_tag(raw: str | None, max_length: int = HARDWARE_SEGMENT_LENGTH) -> str:
    """Reduce a vendor serial or asset tag to the hardware-derived name segment.

    Pre:  any string or None.
    Post: non-empty, only ``[A-Za-z0-9-]``, at most *max_length* characters
          with no leading or trailing hyphen
          (the sentinel itself is never shortened).
    """
    text = (raw or "").strip()
    if is_placeholder_tag(text):
        return SENTINEL_TAG
    text = _WHITESPACE_RE.sub("-", text)
    text = _DISALLOWED_RE.sub("", text)
    # hostname labels may not start or end with a hyphen
    text = text[:max_length].strip("-")
    return text or SENTINEL_TAG


def build_candidate(
    raw_tag: str | None,
    chassis: ChassisType = ChassisType.UNKNOWN,
    chassis_prefix: dict | None = None,
    max_length: int = HARDWARE_SEGMENT_LENGTH,
) -> CanonicalName:
    """Combine the optional chassis prefix with the sanitized hardware segment."""
    prefix = str((chassis_prefix or {}).get(chassis.config_key) or "")
    return CanonicalName(value=prefix + sanitize_hardware_tag(raw_tag, max_length))


class HardwareIdentityResolver:
    """Reads hardware identity and turns it into a ``CanonicalName``.

    After ``resolve()`` the facts it used are kept on ``hardware_tag`` and
    ``chassis`` for the run's snapshot.
    """

    def __init__(self, naming: dict, collector: HardwareIdentityCollector | None = None) -> None:
        self.identity_source = naming.get("identity_source", "serial")
        self.chassis_prefix = naming.get("chassis_prefix") or {}
        self.max_length = int(naming.get("hardware_segment_length", HARDWARE_SEGMENT_LENGTH))
        self.collector = collector or HardwareIdentityCollector()
        self.hardware_tag = ""
        self.chassis = ChassisType.UNKNOWN

    def resolve(self) -> CanonicalName:
        result = self.collector.collect()
        for err in result.errors:
            print(f"  [hardware] Warning: {err}", flush=True)

        data = result.data
        serial = data.get("serial") or ""
        tag = serial
        if self.identity_source == "asset_tag":
            asset_tag = data.get("asset_tag") or ""
            tag = serial if is_placeholder_tag(asset_tag) else asset_tag

        self.hardware_tag = tag
        self.chassis = data.get("chassis") or ChassisType.UNKNOWN
        return build_candidate(tag, self.chassis, self.chassis_prefix, self.max_length)
