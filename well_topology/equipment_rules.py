"""
Equipment Rule Engine
=====================
Turns a raw equipment row into a normalized rule (seal map, actuation,
integrity) and decides, per volume kind, whether the tools sitting on a
depth boundary block vertical flow there.

RULE RESOLUTION:
  type  → definition (packer / safety valve / bridge plug / unknown)
  raw overrides (annularSeal, boreSeal, sealByVolume) → parsed or warned
  actuation + integrity → normalized, conflicts warned
  definition seal-context hook → geometry-aware defaults for attached tools

SEAL STATE (per volume kind the rule seals):
  no seal                      → open, cost 0
  failed_open / leaking        → passes, cost 0
  failed_closed                → blocked, cost 1
  actuation open               → open, cost 0
  otherwise                    → blocked, cost 1, closed_failable
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Iterable, Optional, Union

from loguru import logger

from well_geometry.ontology import (
    EquipmentPlacement, EquipmentRow, ResolvedEquipment, VolumeKind, TOPOLOGY_VOLUME_KINDS,
)
from well_geometry.references import RowReferenceResolver
from well_geometry.tolerance import EQUIPMENT_BOUNDARY_EPSILON, RADIAL_EPSILON, is_finite
from well_topology.equipment_definitions import (
    ActuationState, DEFAULT_RULE_FALLBACK, EquipmentDefaults, EquipmentDefinition, IntegrityStatus,
    normalize_equipment_type_key, resolve_equipment_definition,
)
from well_topology.warning_catalog import ValidationWarning, WarningCode, create_warning


_TRUE_TOKENS = ("true", "yes", "y", "1")
_FALSE_TOKENS = ("false", "no", "n", "0")


def _token(value) -> str:
    return str(value).strip().lower() if value is not None else ""


def parse_optional_boolean(value) -> Optional[bool]:
    """true/false, 1/0, yes/no, y/n → bool; blank or anything else → None."""
    if isinstance(value, bool):
        return value
    if value is None:
        return None
    if isinstance(value, (int, float)):
        if value == 1:
            return True
        if value == 0:
            return False
        return None
    token = _token(value)
    if token in _TRUE_TOKENS:
        return True
    if token in _FALSE_TOKENS:
        return False
    return None


def normalize_actuation_state(value, fallback: ActuationState) -> tuple[ActuationState, bool]:
    """Returns (state, recognized). Blank inherits the fallback and counts as recognized."""
    token = _token(value)
    if not token:
        return fallback, True
    if "open" in token:
        return ActuationState.OPEN, True
    if "close" in token:
        return ActuationState.CLOSED, True
    if "static" in token:
        return ActuationState.STATIC, True
    return fallback, False


def normalize_integrity_status(value, fallback: IntegrityStatus) -> tuple[IntegrityStatus, bool]:
    token = _token(value)
    if not token:
        return fallback, True
    if "leak" in token:
        return IntegrityStatus.LEAKING, True
    if "fail" in token and "open" in token:
        return IntegrityStatus.FAILED_OPEN, True
    if "fail" in token and "close" in token:
        return IntegrityStatus.FAILED_CLOSED, True
    if "intact" in token:
        return IntegrityStatus.INTACT, True
    return fallback, False


def _parse_volume_overrides(raw) -> tuple[dict[VolumeKind, bool], list[str], bool]:
    """Returns (overrides, invalid keys, has invalid value)."""
    overrides: dict[VolumeKind, bool] = {}
    invalid_keys: list[str] = []
    has_invalid_value = False
    if not isinstance(raw, dict):
        return overrides, invalid_keys, has_invalid_value

    for key, value in raw.items():
        kind = VolumeKind.normalize(key)
        if kind is None or kind not in TOPOLOGY_VOLUME_KINDS:
            invalid_keys.append(str(key))
            continue
        if value is None or (isinstance(value, str) and not value.strip()):
            continue
        parsed = parse_optional_boolean(value)
        if parsed is None:
            has_invalid_value = True
            continue
        overrides[kind] = parsed
    return overrides, invalid_keys, has_invalid_value


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  ROW RULE
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@dataclass
class RowRule:
    """Normalized sealing behavior of one equipment row."""
    type_key: Optional[str]
    definition: Optional[EquipmentDefinition]
    seal_by_volume: dict[VolumeKind, bool]
    actuation_state: ActuationState
    integrity_status: IntegrityStatus
    warnings: list[ValidationWarning] = field(default_factory=list)

    @property
    def is_known_type(self) -> bool:
        return self.definition is not None

    def seals(self, kind: VolumeKind) -> bool:
        return self.seal_by_volume.get(kind, False)

    @property
    def has_seal_path(self) -> bool:
        return any(self.seal_by_volume.values())


def resolve_row_rule(row: EquipmentRow, placement: Optional[EquipmentPlacement] = None,
                     references: Optional[RowReferenceResolver] = None) -> RowRule:
    """
    Normalize one equipment row into a rule and collect its input warnings.

    Warnings are produced in a fixed order: unknown type, seal overrides,
    actuation, integrity, per-volume keys/values, state conflicts, then the
    definition's own validation.
    """
    definition = resolve_equipment_definition(row.type)
    type_key = normalize_equipment_type_key(row.type)
    defaults: EquipmentDefaults = definition.defaults if definition else DEFAULT_RULE_FALLBACK
    row_id = row.row_id
    warnings: list[ValidationWarning] = []

    if definition is None:
        warnings.append(create_warning(
            WarningCode.UNKNOWN_EQUIPMENT_TYPE,
            "Equipment type is not recognized by topology rules; default no-seal behavior is applied.",
            row_id=row_id))

    annular_override = parse_optional_boolean(row.annular_seal)
    if _token(row.annular_seal) and annular_override is None:
        warnings.append(create_warning(
            WarningCode.INVALID_ANNULAR_SEAL_OVERRIDE,
            "Annular seal override value is invalid. Expected true/false or blank.", row_id=row_id))

    bore_override = parse_optional_boolean(row.bore_seal)
    if _token(row.bore_seal) and bore_override is None:
        warnings.append(create_warning(
            WarningCode.INVALID_BORE_SEAL_OVERRIDE,
            "Bore seal override value is invalid. Expected true/false or blank.", row_id=row_id))

    actuation, actuation_ok = normalize_actuation_state(row.actuation_state, defaults.actuation_state)
    if not actuation_ok:
        warnings.append(create_warning(
            WarningCode.UNKNOWN_ACTUATION_STATE,
            "Actuation state is not recognized. Expected static/open/closed or blank.", row_id=row_id))

    integrity, integrity_ok = normalize_integrity_status(row.integrity_status, defaults.integrity_status)
    if not integrity_ok:
        warnings.append(create_warning(
            WarningCode.UNKNOWN_INTEGRITY_STATUS,
            "Integrity status is not recognized. Expected intact/failed_open/failed_closed/leaking or blank.",
            row_id=row_id))

    volume_overrides, invalid_keys, has_invalid_value = _parse_volume_overrides(row.seal_by_volume)
    if invalid_keys:
        warnings.append(create_warning(
            WarningCode.INVALID_VOLUME_SEAL_OVERRIDE_KEY,
            f"Per-volume seal override contains unsupported keys: {', '.join(invalid_keys)}.",
            row_id=row_id))
    if has_invalid_value:
        warnings.append(create_warning(
            WarningCode.INVALID_VOLUME_SEAL_OVERRIDE_VALUE,
            "Per-volume seal override values must be true/false (or 1/0/yes/no).", row_id=row_id))

    if actuation is ActuationState.CLOSED and integrity in (IntegrityStatus.FAILED_OPEN, IntegrityStatus.LEAKING):
        warnings.append(create_warning(
            WarningCode.CONFLICT_CLOSED_WITH_OPEN_INTEGRITY,
            "Integrity status implies open/leaking behavior and overrides a closed actuation state.",
            row_id=row_id))
    if actuation is ActuationState.OPEN and integrity is IntegrityStatus.FAILED_CLOSED:
        warnings.append(create_warning(
            WarningCode.CONFLICT_OPEN_WITH_FAILED_CLOSED,
            "Integrity status implies failed-closed behavior and overrides an open actuation state.",
            row_id=row_id))

    if definition is not None and definition.validate is not None:
        warnings.extend(definition.validate(row, placement, references))

    # Seal map: defaults, then the definition's geometry hook, then row overrides
    default_seal_by_volume = dict(defaults.seal_by_volume)
    resolved_bore = bore_override if bore_override is not None else defaults.bore_seal
    resolved_annular = annular_override if annular_override is not None else defaults.annular_seal
    apply_annular_override = annular_override is not None

    if definition is not None and definition.resolve_seal_context is not None:
        context = definition.resolve_seal_context(row, placement)
        for kind, value in context.default_seal_by_volume.items():
            if isinstance(value, bool):
                default_seal_by_volume[kind] = value
        if isinstance(context.resolved_bore_seal, bool):
            resolved_bore = context.resolved_bore_seal
        if isinstance(context.resolved_annular_seal, bool):
            resolved_annular = context.resolved_annular_seal
        if isinstance(context.apply_annular_override, bool):
            apply_annular_override = context.apply_annular_override

    seal_by_volume: dict[VolumeKind, bool] = {}
    for kind in TOPOLOGY_VOLUME_KINDS:
        if kind is VolumeKind.TUBING_INNER:
            seal_by_volume[kind] = resolved_bore
        elif apply_annular_override:
            seal_by_volume[kind] = resolved_annular
        else:
            seal_by_volume[kind] = default_seal_by_volume.get(kind, False)
    seal_by_volume.update(volume_overrides)

    return RowRule(
        type_key=definition.key if definition else type_key,
        definition=definition,
        seal_by_volume=seal_by_volume,
        actuation_state=actuation,
        integrity_status=integrity,
        warnings=warnings,
    )


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  SEAL STATE
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@dataclass(frozen=True)
class SealState:
    blocked: bool
    cost: int
    state: str          # open | closed_failable | failed_open | leaking | failed_closed


def resolve_seal_state(rule: RowRule, kind: VolumeKind) -> SealState:
    if not rule.seals(kind):
        return SealState(False, 0, "open")
    if rule.integrity_status in (IntegrityStatus.FAILED_OPEN, IntegrityStatus.LEAKING):
        return SealState(False, 0, rule.integrity_status.value)
    if rule.integrity_status is IntegrityStatus.FAILED_CLOSED:
        return SealState(True, 1, "failed_closed")
    if rule.actuation_state is ActuationState.OPEN:
        return SealState(False, 0, "open")
    return SealState(True, 1, "closed_failable")


def seal_function_key(kind: VolumeKind) -> str:
    if kind is VolumeKind.TUBING_INNER:
        return "bore_seal"
    return f"{kind.value.lower()}_seal"


@dataclass
class SealContributor:
    row_id: Optional[str]
    equipment_type: Optional[str]
    state: str
    cost: int
    function_key: str

    def to_dict(self) -> dict:
        return {
            "rowId": self.row_id,
            "equipmentType": self.equipment_type,
            "state": self.state,
            "cost": self.cost,
            "functionKey": self.function_key,
        }


@dataclass
class VolumeEffect:
    """Combined vertical-flow effect of all tools at one boundary on one volume kind."""
    blocked: bool = False
    cost: int = 0
    state: str = "open"
    contributors: list[SealContributor] = field(default_factory=list)


@dataclass
class BoundaryEquipmentEffects:
    by_volume: dict[VolumeKind, VolumeEffect]
    warnings: list[ValidationWarning] = field(default_factory=list)

    def effect(self, kind: VolumeKind) -> VolumeEffect:
        return self.by_volume.get(kind) or VolumeEffect()


def _unwrap(item: Union[EquipmentRow, ResolvedEquipment]) -> tuple[EquipmentRow, Optional[EquipmentPlacement]]:
    if isinstance(item, ResolvedEquipment):
        return item.row, item.placement
    return item, None


def resolve_boundary_equipment_effects(depth: float,
                                       equipment: Iterable[Union[EquipmentRow, ResolvedEquipment]],
                                       epsilon: Optional[float] = None,
                                       references: Optional[RowReferenceResolver] = None,
                                       ) -> BoundaryEquipmentEffects:
    """
    Aggregate the tools within ``epsilon`` of ``depth``.

    A volume kind is blocked when any contributing tool blocks it; the cost is
    the maximum contributor cost and the state is the last blocking state.
    """
    eps = max(RADIAL_EPSILON, epsilon) if is_finite(epsilon) else EQUIPMENT_BOUNDARY_EPSILON
    effects = BoundaryEquipmentEffects(by_volume={kind: VolumeEffect() for kind in TOPOLOGY_VOLUME_KINDS})

    for item in equipment:
        row, placement = _unwrap(item)
        if not row.show or not is_finite(row.depth) or abs(row.depth - depth) > eps:
            continue

        rule = resolve_row_rule(row, placement, references)
        effects.warnings.extend(w.at_depth(depth) for w in rule.warnings)
        suppressed = bool(rule.definition) and any(
            w.code in rule.definition.suppress_no_seal_warning_codes for w in rule.warnings)

        has_seal_path = False
        for kind in TOPOLOGY_VOLUME_KINDS:
            if not rule.seals(kind):
                continue
            has_seal_path = True
            seal = resolve_seal_state(rule, kind)
            effect = effects.by_volume[kind]
            if seal.blocked:
                effect.blocked = True
                effect.cost = max(effect.cost, seal.cost)
                effect.state = seal.state
            effect.contributors.append(SealContributor(
                row_id=row.row_id, equipment_type=rule.type_key, state=seal.state,
                cost=seal.cost, function_key=seal_function_key(kind)))

        if not has_seal_path and not suppressed:
            effects.warnings.append(create_warning(
                WarningCode.NO_SEAL_BEHAVIOR_AT_BOUNDARY,
                "Equipment row is present at a topology boundary but does not define bore/annulus "
                "seal behavior.", row_id=row.row_id, depth=depth))

    blocked = [kind.value for kind, effect in effects.by_volume.items() if effect.blocked]
    if blocked:
        logger.debug(f"Boundary {depth:.2f}: equipment blocks {', '.join(blocked)}")
    return effects
