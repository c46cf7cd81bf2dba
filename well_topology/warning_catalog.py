"""
Topology Warning Catalog
========================
Closed taxonomy of non-fatal topology diagnostics. Every warning the graph
pipeline emits has a code from ``WarningCode``; its category, the table
fields it points at, and a remediation recommendation come from a static
metadata table so callers only supply the message.

CATEGORIES:
  equipment   rule-engine input problems and attach-target failures
  marker      perforation / leak markers that cannot produce radial edges
  source      source rows and illustrative-fluid channels
  policy      source-channel mode notices and unmodeled structural transitions
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from well_geometry.tolerance import is_finite


class WarningCategory(str, Enum):
    """Warning families."""
    EQUIPMENT = "equipment"
    MARKER = "marker"
    SOURCE = "source"
    POLICY = "policy"


class WarningCode(str, Enum):
    """Every warning the topology pipeline can emit."""
    # ── Equipment ──
    UNKNOWN_EQUIPMENT_TYPE = "unknown_type"
    INVALID_ANNULAR_SEAL_OVERRIDE = "invalid_annular_seal_override"
    INVALID_BORE_SEAL_OVERRIDE = "invalid_bore_seal_override"
    INVALID_VOLUME_SEAL_OVERRIDE_KEY = "invalid_volume_seal_override_key"
    INVALID_VOLUME_SEAL_OVERRIDE_VALUE = "invalid_volume_seal_override_value"
    UNKNOWN_ACTUATION_STATE = "unknown_actuation_state"
    UNKNOWN_INTEGRITY_STATUS = "unknown_integrity_status"
    CONFLICT_CLOSED_WITH_OPEN_INTEGRITY = "conflict_closed_with_open_integrity"
    CONFLICT_OPEN_WITH_FAILED_CLOSED = "conflict_open_with_failed_closed"
    NO_SEAL_BEHAVIOR_AT_BOUNDARY = "no_seal_behavior_at_boundary"
    EQUIPMENT_MISSING_ATTACH_TARGET = "equipment_missing_attach_target"
    EQUIPMENT_UNRESOLVED_ATTACH_TARGET = "equipment_unresolved_attach_target"
    EQUIPMENT_INVALID_HOST_DEPTH = "equipment_invalid_host_depth"

    # ── Markers ──
    MARKER_INVALID_DEPTH_RANGE = "marker_invalid_depth_range"
    MARKER_UNRESOLVED_HOST_REFERENCE = "marker_unresolved_host_reference"
    MARKER_INVALID_TUBING_HOST_AT_DEPTH = "marker_invalid_tubing_host_at_depth"
    MARKER_NO_RESOLVABLE_INTERVAL_OVERLAP = "marker_no_resolvable_interval_overlap"

    # ── Sources ──
    FLUID_ROWS_WITHOUT_MODELED_SOURCE_NODES = "fluid_rows_without_modeled_source_nodes"
    FLUID_IN_UNMODELED_OUTER_ANNULUS = "fluid_in_unmodeled_outer_annulus"
    UNMAPPED_FORMATION_ANNULUS_FLUID = "unmapped_formation_annulus_fluid"
    SCENARIO_SOURCE_UNSUPPORTED_VOLUME = "scenario_source_unsupported_volume"
    SCENARIO_SOURCE_MISSING_DEPTH_RANGE = "scenario_source_missing_depth_range"
    SCENARIO_SOURCE_NO_RESOLVABLE_INTERVAL = "scenario_source_no_resolvable_interval"
    SCENARIO_ROWS_WITH_NO_RESOLVED_NODES = "scenario_rows_with_no_resolved_nodes"
    SCENARIO_BREAKOUT_MISSING_VOLUME_PAIR = "scenario_breakout_missing_volume_pair"
    SCENARIO_BREAKOUT_UNSUPPORTED_VOLUME_PAIR = "scenario_breakout_unsupported_volume_pair"
    SCENARIO_BREAKOUT_MISSING_DEPTH_RANGE = "scenario_breakout_missing_depth_range"
    SCENARIO_BREAKOUT_NO_RESOLVABLE_INTERVAL = "scenario_breakout_no_resolvable_interval"

    # ── Policy ──
    ILLUSTRATIVE_FLUID_SOURCE_MODE_ENABLED = "illustrative_fluid_source_mode_enabled"
    EXPLICIT_SCENARIO_SOURCE_MODE_ACTIVE = "explicit_scenario_source_mode_active"
    STRUCTURAL_TRANSITION_NOT_MODELED = "structural_transition_not_modeled"
    TUBING_END_TRANSFER_UNRESOLVED = "tubing_end_transfer_unresolved"


@dataclass(frozen=True)
class WarningMetadata:
    category: WarningCategory
    recommendation: str
    fields: tuple[str, ...] = ()


_SUPPORTED_VOLUME_KEYS = (
    "TUBING_INNER (legacy BORE), TUBING_ANNULUS, ANNULUS_A, ANNULUS_B, ANNULUS_C, "
    "ANNULUS_D, FORMATION_ANNULUS"
)
_ATTACH_FIELDS = ("attachToDisplay", "attachToHostType", "attachToId")

_EQ, _MK, _SRC, _POL = (WarningCategory.EQUIPMENT, WarningCategory.MARKER,
                        WarningCategory.SOURCE, WarningCategory.POLICY)

WARNING_METADATA: dict[WarningCode, WarningMetadata] = {
    WarningCode.UNKNOWN_EQUIPMENT_TYPE: WarningMetadata(
        _EQ, "Use a recognized equipment type (Packer, Safety Valve or Bridge Plug), "
             "or set explicit bore/annular seal overrides.", ("type",)),
    WarningCode.INVALID_ANNULAR_SEAL_OVERRIDE: WarningMetadata(
        _EQ, "Set annular seal override to true, false, or leave it blank to inherit type defaults.",
        ("annularSeal",)),
    WarningCode.INVALID_BORE_SEAL_OVERRIDE: WarningMetadata(
        _EQ, "Set bore seal override to true, false, or leave it blank to inherit type defaults.",
        ("boreSeal",)),
    WarningCode.INVALID_VOLUME_SEAL_OVERRIDE_KEY: WarningMetadata(
        _EQ, f"Use supported volume keys only: {_SUPPORTED_VOLUME_KEYS}.", ("sealByVolume",)),
    WarningCode.INVALID_VOLUME_SEAL_OVERRIDE_VALUE: WarningMetadata(
        _EQ, "Use true/false values for per-volume seal overrides.", ("sealByVolume",)),
    WarningCode.UNKNOWN_ACTUATION_STATE: WarningMetadata(
        _EQ, "Use static, open, closed, or leave blank to inherit the equipment type default.",
        ("actuationState",)),
    WarningCode.UNKNOWN_INTEGRITY_STATUS: WarningMetadata(
        _EQ, "Use intact, failed_open, failed_closed, leaking, or leave blank to inherit "
             "the equipment type default.", ("integrityStatus",)),
    WarningCode.CONFLICT_CLOSED_WITH_OPEN_INTEGRITY: WarningMetadata(
        _EQ, "If the barrier should block flow, use integrity intact/failed_closed. "
             "If communication is expected, use actuation open.", ("actuationState", "integrityStatus")),
    WarningCode.CONFLICT_OPEN_WITH_FAILED_CLOSED: WarningMetadata(
        _EQ, "If communication is expected, avoid failed_closed integrity. "
             "If the barrier should block flow, use closed actuation.", ("actuationState", "integrityStatus")),
    WarningCode.NO_SEAL_BEHAVIOR_AT_BOUNDARY: WarningMetadata(
        _EQ, "Define at least one seal path for this equipment at the boundary (bore/annular/per-volume), "
             "or move/remove the row if it is non-sealing.", ("boreSeal", "annularSeal", "sealByVolume")),
    WarningCode.EQUIPMENT_MISSING_ATTACH_TARGET: WarningMetadata(
        _EQ, "Select a valid Attach To target (Tubing or Casing) for this row.", _ATTACH_FIELDS),
    WarningCode.EQUIPMENT_UNRESOLVED_ATTACH_TARGET: WarningMetadata(
        _EQ, "Re-select Attach To so this row references an existing host row.", _ATTACH_FIELDS),
    WarningCode.EQUIPMENT_INVALID_HOST_DEPTH: WarningMetadata(
        _EQ, "Move the equipment depth into the selected host interval, or choose a host "
             "that overlaps this depth.", ("depth", "attachToDisplay")),

    WarningCode.MARKER_INVALID_DEPTH_RANGE: WarningMetadata(
        _MK, "Set marker Top/Bottom so both values are numeric and Bottom is not shallower than Top."),
    WarningCode.MARKER_UNRESOLVED_HOST_REFERENCE: WarningMetadata(
        _MK, "Re-select Attach To so the marker references a valid host row."),
    WarningCode.MARKER_INVALID_TUBING_HOST_AT_DEPTH: WarningMetadata(
        _MK, "Set host type to tubing and keep the leak marker depth range inside the selected tubing interval."),
    WarningCode.MARKER_NO_RESOLVABLE_INTERVAL_OVERLAP: WarningMetadata(
        _MK, "Adjust marker depth range and host selection so it intersects a modeled radial volume pair."),

    WarningCode.FLUID_ROWS_WITHOUT_MODELED_SOURCE_NODES: WarningMetadata(
        _SRC, "Use marker/default sources, explicit topology sources, or enable illustrative "
              "fluid-source mode intentionally."),
    WarningCode.FLUID_IN_UNMODELED_OUTER_ANNULUS: WarningMetadata(
        _SRC, "Move sources to modeled volumes or reduce the number of nested casing strings "
              "beyond ANNULUS_D."),
    WarningCode.UNMAPPED_FORMATION_ANNULUS_FLUID: WarningMetadata(
        _SRC, "Check open-hole/formation annulus setup so FORMATION_ANNULUS nodes can be resolved "
              "for fluid intervals."),
    WarningCode.SCENARIO_SOURCE_UNSUPPORTED_VOLUME: WarningMetadata(
        _SRC, f"Use supported volume keys: {_SUPPORTED_VOLUME_KEYS}."),
    WarningCode.SCENARIO_SOURCE_MISSING_DEPTH_RANGE: WarningMetadata(
        _SRC, "Provide depth, or valid top/bottom values for the scenario source row."),
    WarningCode.SCENARIO_SOURCE_NO_RESOLVABLE_INTERVAL: WarningMetadata(
        _SRC, "Adjust scenario source depth range so it intersects at least one modeled topology interval."),
    WarningCode.SCENARIO_ROWS_WITH_NO_RESOLVED_NODES: WarningMetadata(
        _SRC, "Review scenario source rows for valid depth ranges and volume keys so they resolve "
              "to source nodes."),
    WarningCode.SCENARIO_BREAKOUT_MISSING_VOLUME_PAIR: WarningMetadata(
        _SRC, "Set both From Volume and To Volume for cross-annulus breakout scenario rows.",
        ("fromVolumeKey", "toVolumeKey")),
    WarningCode.SCENARIO_BREAKOUT_UNSUPPORTED_VOLUME_PAIR: WarningMetadata(
        _SRC, f"Use supported volume keys for breakout pairs: {_SUPPORTED_VOLUME_KEYS}.",
        ("fromVolumeKey", "toVolumeKey")),
    WarningCode.SCENARIO_BREAKOUT_MISSING_DEPTH_RANGE: WarningMetadata(
        _SRC, "Provide depth, or valid top/bottom values for breakout scenario rows.", ("top", "bottom")),
    WarningCode.SCENARIO_BREAKOUT_NO_RESOLVABLE_INTERVAL: WarningMetadata(
        _SRC, "Adjust breakout row depth range and volume pair so both volumes resolve in at least "
              "one interval.", ("top", "bottom", "fromVolumeKey", "toVolumeKey")),

    WarningCode.ILLUSTRATIVE_FLUID_SOURCE_MODE_ENABLED: WarningMetadata(
        _POL, "Use this mode for exploratory analysis only; rely on explicit scenario/marker-driven "
              "sources for engineering decisions."),
    WarningCode.EXPLICIT_SCENARIO_SOURCE_MODE_ACTIVE: WarningMetadata(
        _POL, "When explicit scenario rows are active, marker/fluid fallback is disabled for this run."),
    WarningCode.STRUCTURAL_TRANSITION_NOT_MODELED: WarningMetadata(
        _POL, "Review the casing program at this depth; communication across this annulus change is "
              "not represented by an explicit edge."),
    WarningCode.TUBING_END_TRANSFER_UNRESOLVED: WarningMetadata(
        _POL, "Check that a casing annulus (ANNULUS_A) is resolved on both sides of the tubing end."),
}


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  WARNING RECORD
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@dataclass
class ValidationWarning:
    """A non-fatal diagnostic attached to a row and/or a depth."""
    code: WarningCode
    message: str
    row_id: Optional[str] = None
    depth: Optional[float] = None
    fields: tuple[str, ...] = ()
    category: Optional[WarningCategory] = None
    recommendation: Optional[str] = None
    level: str = "warning"

    def at_depth(self, depth: Optional[float]) -> "ValidationWarning":
        return replace(self, depth=depth if is_finite(depth) else None)

    def to_dict(self) -> dict:
        data = {
            "level": self.level,
            "code": self.code.value,
            "message": self.message,
            "depth": self.depth,
        }
        if self.row_id:
            data["rowId"] = self.row_id
        if self.fields:
            data["fields"] = list(self.fields)
        if self.category:
            data["category"] = self.category.value
        if self.recommendation:
            data["recommendation"] = self.recommendation
        return data


def warning_metadata(code) -> Optional[WarningMetadata]:
    try:
        return WARNING_METADATA.get(WarningCode(code))
    except ValueError:
        return None


def create_warning(code: WarningCode, message: str, row_id: Optional[str] = None,
                   depth: Optional[float] = None, fields: Optional[list[str]] = None,
                   category: Optional[WarningCategory] = None,
                   recommendation: Optional[str] = None) -> ValidationWarning:
    """Build a warning, filling category/fields/recommendation from the catalog."""
    code = WarningCode(code)
    metadata = WARNING_METADATA.get(code)
    explicit_fields = tuple(dict.fromkeys(f.strip() for f in fields or [] if f and f.strip()))
    return ValidationWarning(
        code=code,
        message=str(message or "").strip(),
        row_id=(str(row_id).strip() or None) if row_id is not None else None,
        depth=depth if is_finite(depth) else None,
        fields=explicit_fields or (metadata.fields if metadata else ()),
        category=category or (metadata.category if metadata else None),
        recommendation=(recommendation or "").strip() or (metadata.recommendation if metadata else None),
    )
