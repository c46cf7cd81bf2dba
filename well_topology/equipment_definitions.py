"""
Equipment Type Definitions
==========================
Static registry of the downhole tool types the rule engine understands.

Each definition declares:
  • key / label / match tokens  (how a free-text type resolves to it)
  • defaults                    (seal map, actuation, integrity)
  • suppress codes              (warnings that silence "no seal behavior")
  • validate hook               (row-level attach checks)
  • seal-context hook           (geometry-aware seal map for attached tools)

REGISTERED TYPES:
  Packer        annulus seal on the slot it is set in, static, intact
  Safety Valve  bore seal, closed, intact
  Bridge Plug   bore seal once its host resolves, static, intact
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Optional

from well_geometry.ontology import (
    EquipmentPlacement, EquipmentRow, HostType, VolumeKind, TOPOLOGY_VOLUME_KINDS,
)
from well_geometry.references import RowReferenceResolver
from well_geometry.tolerance import DEPTH_EPSILON, within_range
from well_topology.warning_catalog import ValidationWarning, WarningCode, create_warning


class ActuationState(str, Enum):
    """Mechanical position of a tool."""
    STATIC = "static"
    OPEN = "open"
    CLOSED = "closed"


class IntegrityStatus(str, Enum):
    """Tested condition of a tool's seal."""
    INTACT = "intact"
    FAILED_OPEN = "failed_open"
    FAILED_CLOSED = "failed_closed"
    LEAKING = "leaking"


def build_seal_by_volume(bore: bool = False, annulus: bool = False) -> dict[VolumeKind, bool]:
    return {kind: (bore if kind is VolumeKind.TUBING_INNER else annulus) for kind in TOPOLOGY_VOLUME_KINDS}


@dataclass(frozen=True)
class EquipmentDefaults:
    seal_by_volume: dict[VolumeKind, bool]
    annular_seal: bool = False
    bore_seal: bool = False
    actuation_state: ActuationState = ActuationState.STATIC
    integrity_status: IntegrityStatus = IntegrityStatus.INTACT


@dataclass
class SealContext:
    """Geometry-aware seal inputs supplied by a definition hook."""
    default_seal_by_volume: dict[VolumeKind, bool]
    resolved_bore_seal: Optional[bool] = None
    resolved_annular_seal: Optional[bool] = None
    apply_annular_override: Optional[bool] = None


ValidateHook = Callable[[EquipmentRow, Optional[EquipmentPlacement], Optional[RowReferenceResolver]],
                        list[ValidationWarning]]
SealContextHook = Callable[[EquipmentRow, Optional[EquipmentPlacement]], SealContext]


@dataclass(frozen=True)
class EquipmentDefinition:
    key: str
    label: str
    match_tokens: tuple[str, ...]
    defaults: EquipmentDefaults
    suppress_no_seal_warning_codes: frozenset = field(default_factory=frozenset)
    validate: Optional[ValidateHook] = None
    resolve_seal_context: Optional[SealContextHook] = None


DEFAULT_RULE_FALLBACK = EquipmentDefaults(seal_by_volume=build_seal_by_volume(bore=False, annulus=False))


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  PACKER
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

ATTACH_WARNING_CODES = frozenset({
    WarningCode.EQUIPMENT_MISSING_ATTACH_TARGET,
    WarningCode.EQUIPMENT_UNRESOLVED_ATTACH_TARGET,
    WarningCode.EQUIPMENT_INVALID_HOST_DEPTH,
})

_PACKER_ATTACH_MESSAGES = {
    WarningCode.EQUIPMENT_MISSING_ATTACH_TARGET:
        "Packer attach target is required. Select a tubing or casing host row.",
    WarningCode.EQUIPMENT_UNRESOLVED_ATTACH_TARGET:
        "Packer attach target does not resolve to an existing host row.",
    WarningCode.EQUIPMENT_INVALID_HOST_DEPTH:
        "Packer depth does not overlap the selected attach host depth range.",
}


def _attach_warning(code: WarningCode, row: EquipmentRow) -> ValidationWarning:
    return create_warning(code, _PACKER_ATTACH_MESSAGES[code], row_id=row.row_id)


def validate_packer(row: EquipmentRow, placement: Optional[EquipmentPlacement] = None,
                    references: Optional[RowReferenceResolver] = None) -> list[ValidationWarning]:
    """
    Attach-target checks for a packer row.

    A geometry placement outcome wins when present. Otherwise the row's own
    attach columns are checked against ``references``.
    """
    if placement is not None:
        code = placement.attach_warning_code
        if code and WarningCode(code) in ATTACH_WARNING_CODES:
            return [_attach_warning(WarningCode(code), row)]
        return []

    host_type = HostType.normalize(row.attach_to_host_type)
    if not row.has_attach_input or host_type is None or not row.attach_to_id:
        return [_attach_warning(WarningCode.EQUIPMENT_MISSING_ATTACH_TARGET, row)]

    resolved = None
    if references is not None:
        resolved = references.resolve(row.attach_to_row or row.attach_to_display,
                                      host_type, preferred_id=row.attach_to_id)
    if resolved is None:
        return [_attach_warning(WarningCode.EQUIPMENT_UNRESOLVED_ATTACH_TARGET, row)]

    if row.depth is None:
        return []
    top, bottom = sorted((resolved.row.top, resolved.row.bottom))
    if within_range(row.depth, top, bottom, DEPTH_EPSILON):
        return []
    return [_attach_warning(WarningCode.EQUIPMENT_INVALID_HOST_DEPTH, row)]


def packer_seal_context(row: EquipmentRow, placement: Optional[EquipmentPlacement] = None) -> SealContext:
    seal_by_volume = build_seal_by_volume(bore=False, annulus=False)
    kind = VolumeKind.normalize(placement.seal_node_kind) if placement and placement.seal_node_kind else None
    if kind is not None and kind is not VolumeKind.TUBING_INNER:
        seal_by_volume[kind] = True
    return SealContext(default_seal_by_volume=seal_by_volume, resolved_bore_seal=False,
                       resolved_annular_seal=False, apply_annular_override=False)


PACKER = EquipmentDefinition(
    key="packer",
    label="Packer",
    match_tokens=("packer",),
    defaults=EquipmentDefaults(
        seal_by_volume=build_seal_by_volume(bore=False, annulus=True),
        annular_seal=True,
        bore_seal=False,
        actuation_state=ActuationState.STATIC,
        integrity_status=IntegrityStatus.INTACT,
    ),
    suppress_no_seal_warning_codes=ATTACH_WARNING_CODES,
    validate=validate_packer,
    resolve_seal_context=packer_seal_context,
)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  SAFETY VALVE
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

SAFETY_VALVE = EquipmentDefinition(
    key="safety-valve",
    label="Safety Valve",
    match_tokens=("safety valve", "safety_valve", "safety-valve"),
    defaults=EquipmentDefaults(
        seal_by_volume=build_seal_by_volume(bore=True, annulus=False),
        annular_seal=False,
        bore_seal=True,
        actuation_state=ActuationState.CLOSED,
        integrity_status=IntegrityStatus.INTACT,
    ),
)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  BRIDGE PLUG
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def validate_bridge_plug(row: EquipmentRow, placement: Optional[EquipmentPlacement] = None,
                         references: Optional[RowReferenceResolver] = None) -> list[ValidationWarning]:
    return [replace(w, message=w.message.replace("Packer", "Bridge plug"))
            for w in validate_packer(row, placement, references)]


def bridge_plug_seal_context(row: EquipmentRow, placement: Optional[EquipmentPlacement] = None) -> SealContext:
    has_resolved_host = bool(placement and VolumeKind.normalize(placement.seal_node_kind))
    return SealContext(default_seal_by_volume=build_seal_by_volume(bore=False, annulus=False),
                       resolved_bore_seal=has_resolved_host, resolved_annular_seal=False,
                       apply_annular_override=False)


BRIDGE_PLUG = EquipmentDefinition(
    key="bridge_plug",
    label="Bridge Plug",
    match_tokens=("bridge plug", "bridge_plug", "bridge-plug"),
    defaults=EquipmentDefaults(
        seal_by_volume=build_seal_by_volume(bore=True, annulus=False),
        annular_seal=False,
        bore_seal=True,
        actuation_state=ActuationState.STATIC,
        integrity_status=IntegrityStatus.INTACT,
    ),
    suppress_no_seal_warning_codes=ATTACH_WARNING_CODES,
    validate=validate_bridge_plug,
    resolve_seal_context=bridge_plug_seal_context,
)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  REGISTRY
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

EQUIPMENT_DEFINITIONS: tuple[EquipmentDefinition, ...] = (PACKER, SAFETY_VALVE, BRIDGE_PLUG)
DEFINITIONS_BY_KEY: dict[str, EquipmentDefinition] = {d.key: d for d in EQUIPMENT_DEFINITIONS}


def normalize_equipment_type_key(value) -> Optional[str]:
    """Resolve a free-text type to a definition key; unknown types return their own token."""
    token = str(value if value is not None else "").strip().lower()
    if not token:
        return None
    for definition in EQUIPMENT_DEFINITIONS:
        if any(match in token for match in definition.match_tokens):
            return definition.key
    return token


def resolve_equipment_definition(value) -> Optional[EquipmentDefinition]:
    key = normalize_equipment_type_key(value)
    return DEFINITIONS_BY_KEY.get(key) if key else None
