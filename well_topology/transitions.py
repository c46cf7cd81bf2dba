"""
Structural Transition Resolver
==============================
Detects boundary shapes that same-kind vertical continuity cannot express.

TRANSITIONS (current interval → next interval):
  tubing-annulus-transition   ANNULUS_A ↔ TUBING_ANNULUS where a tubing string
                              starts or ends
  tubing-end-transfer         TUBING_INNER ↔ innermost casing annulus where the
                              innermost open channel flips between tubing and
                              open wellbore
  annulus-family-transition   an annulus kind appears or disappears beside a
                              kind present on both sides

Only radially-adjacent family pairs and any-kind-to-formation pairs become
edges. Every other detected shift, and a tubing-end transfer whose casing
annulus endpoint is missing, is returned as an unmodeled contract that the
edge builder reports as a warning.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional

from well_geometry.ontology import VolumeKind, CASING_ANNULUS_KINDS
from well_topology.equipment_rules import BoundaryEquipmentEffects, SealContributor
from well_topology.model import GraphNode, TopologyInterval
from well_topology.nodes import INNER_CHANNEL_TUBING, INNER_CHANNEL_WELLBORE, NodeSet
from well_topology.warning_catalog import WarningCode


RULE_TUBING_ANNULUS_TRANSITION = "tubing-annulus-transition"
RULE_TUBING_END_TRANSFER = "tubing-end-transfer"
RULE_ANNULUS_FAMILY_TRANSITION = "annulus-family-transition"

INNERMOST_CASING_ANNULUS = CASING_ANNULUS_KINDS[0]
ANNULUS_FAMILY_SEQUENCE: tuple[VolumeKind, ...] = (*CASING_ANNULUS_KINDS, VolumeKind.FORMATION_ANNULUS)


def adjacent_pair_keys(sequence) -> set[tuple[VolumeKind, VolumeKind]]:
    return {(inner, outer) for inner, outer in zip(sequence, sequence[1:]) if inner is not outer}


def formation_pair_keys(sequence) -> set[tuple[VolumeKind, VolumeKind]]:
    if len(sequence) < 2:
        return set()
    formation = sequence[-1]
    return {(inner, formation) for inner in sequence[:-1] if inner is not formation}


EDGE_ENABLED_FAMILY_PAIRS = frozenset(
    adjacent_pair_keys(ANNULUS_FAMILY_SEQUENCE) | formation_pair_keys(ANNULUS_FAMILY_SEQUENCE)
)


@dataclass
class TransitionDefinition:
    """One detected structural transition at a boundary."""
    rule_id: str
    transition_type: str
    from_node: GraphNode
    to_node: GraphNode
    emits_edge: bool = True
    edge_suffix: str = ""
    primary_volume_kind: Optional[VolumeKind] = None
    equipment_volume_kinds: tuple[VolumeKind, ...] = ()
    summary_when_blocked: str = ""
    summary_when_open: str = ""
    warning_code: Optional[WarningCode] = None
    warning_summary: str = ""


@dataclass
class TransitionState:
    blocked_by_material: bool
    blocked_by_equipment: bool
    cost: int
    equipment_contributors: list[SealContributor] = field(default_factory=list)

    @property
    def blocked(self) -> bool:
        return self.blocked_by_material or self.blocked_by_equipment


# ── Definition factories ─────────────────────────────────────

def _tubing_annulus_transition(from_node: GraphNode, to_node: GraphNode, transition_type: str):
    return TransitionDefinition(
        rule_id=RULE_TUBING_ANNULUS_TRANSITION,
        transition_type=transition_type,
        from_node=from_node,
        to_node=to_node,
        edge_suffix=f"{RULE_TUBING_ANNULUS_TRANSITION}:{transition_type}",
        primary_volume_kind=VolumeKind.TUBING_ANNULUS,
        equipment_volume_kinds=(VolumeKind.TUBING_ANNULUS, INNERMOST_CASING_ANNULUS),
        summary_when_blocked="Tubing-annulus to Annulus A transition at tubing boundary is blocked by "
                             "interval content or equipment seal behavior.",
        summary_when_open="Tubing-annulus to Annulus A transition is open across tubing boundary.",
    )


def _tubing_end_transfer(from_node: GraphNode, to_node: GraphNode, transition_type: str):
    boundary = "tubing-entry" if transition_type == "tubing_end_transfer_entry" else "tubing-end"
    return TransitionDefinition(
        rule_id=RULE_TUBING_END_TRANSFER,
        transition_type=transition_type,
        from_node=from_node,
        to_node=to_node,
        edge_suffix=f"{RULE_TUBING_END_TRANSFER}:{transition_type}",
        primary_volume_kind=VolumeKind.TUBING_INNER,
        equipment_volume_kinds=(VolumeKind.TUBING_INNER, VolumeKind.TUBING_ANNULUS, INNERMOST_CASING_ANNULUS),
        summary_when_blocked=f"Tubing-end transfer {from_node.kind} -> {to_node.kind} at {boundary} boundary "
                             f"is blocked by interval content or equipment seal behavior.",
        summary_when_open=f"Tubing-end transfer {from_node.kind} -> {to_node.kind} is open across "
                          f"{boundary} boundary.",
    )


def _tubing_end_transfer_unresolved(from_node: GraphNode, to_node: GraphNode, transition_type: str):
    return TransitionDefinition(
        rule_id=RULE_TUBING_END_TRANSFER,
        transition_type=transition_type,
        from_node=from_node,
        to_node=to_node,
        emits_edge=False,
        warning_code=WarningCode.TUBING_END_TRANSFER_UNRESOLVED,
        warning_summary=f"Tubing-end transfer {transition_type} is detected at boundary depth, but required "
                        f"{INNERMOST_CASING_ANNULUS.value} endpoint is not resolved for explicit transfer "
                        f"edge modeling.",
    )


def _annulus_family_transition(from_node: GraphNode, to_node: GraphNode, transition_type: str):
    is_entry = transition_type == "annulus_family_shift_entry"
    inner_kind = VolumeKind(from_node.kind if is_entry else to_node.kind)
    outer_kind = VolumeKind(to_node.kind if is_entry else from_node.kind)

    if (inner_kind, outer_kind) in EDGE_ENABLED_FAMILY_PAIRS:
        pair_key = f"{inner_kind.value}|{outer_kind.value}"
        return TransitionDefinition(
            rule_id=RULE_ANNULUS_FAMILY_TRANSITION,
            transition_type=transition_type,
            from_node=from_node,
            to_node=to_node,
            edge_suffix=f"{RULE_ANNULUS_FAMILY_TRANSITION}:{pair_key}:{transition_type}",
            primary_volume_kind=outer_kind if is_entry else inner_kind,
            equipment_volume_kinds=(inner_kind, outer_kind),
            summary_when_blocked=f"Annulus-family transition {from_node.kind} -> {to_node.kind} is blocked by "
                                 f"interval content or equipment seal behavior.",
            summary_when_open=f"Annulus-family transition {from_node.kind} -> {to_node.kind} is open across "
                              f"structural boundary.",
        )

    return TransitionDefinition(
        rule_id=RULE_ANNULUS_FAMILY_TRANSITION,
        transition_type=transition_type,
        from_node=from_node,
        to_node=to_node,
        emits_edge=False,
        warning_code=WarningCode.STRUCTURAL_TRANSITION_NOT_MODELED,
        warning_summary=f"Annulus-family structural transition {from_node.kind} -> {to_node.kind} is detected "
                        f"at boundary depth but is not yet modeled as an explicit topology edge.",
    )


# ── Detection ────────────────────────────────────────────────

def _inner_channel(node: Optional[GraphNode]) -> str:
    if node is not None and node.inner_channel == INNER_CHANNEL_TUBING:
        return INNER_CHANNEL_TUBING
    return INNER_CHANNEL_WELLBORE


def _annulus_family_transitions(current: dict[VolumeKind, GraphNode],
                                upcoming: dict[VolumeKind, GraphNode]) -> list[TransitionDefinition]:
    definitions: list[TransitionDefinition] = []
    seen: set[tuple[str, str, str]] = set()

    def append(definition: TransitionDefinition):
        key = (definition.from_node.kind, definition.to_node.kind, definition.transition_type)
        if key in seen:
            return
        seen.add(key)
        definitions.append(definition)

    def intermediates_absent(inner_index: int, outer_index: int) -> bool:
        for kind in ANNULUS_FAMILY_SEQUENCE[inner_index + 1:outer_index]:
            if kind in current or kind in upcoming:
                return False
        return True

    for inner_index, inner_kind in enumerate(ANNULUS_FAMILY_SEQUENCE[:-1]):
        current_inner = current.get(inner_kind)
        next_inner = upcoming.get(inner_kind)
        if current_inner is None or next_inner is None:
            continue
        for outer_index in range(inner_index + 1, len(ANNULUS_FAMILY_SEQUENCE)):
            if not intermediates_absent(inner_index, outer_index):
                continue
            outer_kind = ANNULUS_FAMILY_SEQUENCE[outer_index]
            current_outer = current.get(outer_kind)
            next_outer = upcoming.get(outer_kind)
            if current_outer is None and next_outer is not None:
                append(_annulus_family_transition(current_inner, next_outer, "annulus_family_shift_entry"))
            if current_outer is not None and next_outer is None:
                append(_annulus_family_transition(current_outer, next_inner, "annulus_family_shift_exit"))
    return definitions


def resolve_boundary_transitions(current: TopologyInterval, upcoming: TopologyInterval,
                                 nodes: NodeSet) -> list[TransitionDefinition]:
    """All structural transitions between two consecutive intervals."""
    current_inner = nodes.node(current, VolumeKind.TUBING_INNER)
    next_inner = nodes.node(upcoming, VolumeKind.TUBING_INNER)
    current_ta = nodes.node(current, VolumeKind.TUBING_ANNULUS)
    next_ta = nodes.node(upcoming, VolumeKind.TUBING_ANNULUS)
    current_a = nodes.node(current, INNERMOST_CASING_ANNULUS)
    next_a = nodes.node(upcoming, INNERMOST_CASING_ANNULUS)

    definitions: list[TransitionDefinition] = []

    if current_a is not None and current_ta is None and next_ta is not None:
        definitions.append(_tubing_annulus_transition(current_a, next_ta, "tubing_annulus_entry"))
    if current_ta is not None and next_ta is None and next_a is not None:
        definitions.append(_tubing_annulus_transition(current_ta, next_a, "tubing_annulus_exit"))

    current_channel = _inner_channel(current_inner)
    next_channel = _inner_channel(next_inner)
    if current_inner is not None and next_inner is not None and current_channel != next_channel:
        enters_tubing = (current_channel == INNER_CHANNEL_WELLBORE and next_channel == INNER_CHANNEL_TUBING
                         and current_ta is None and next_ta is not None)
        if enters_tubing:
            if current_a is not None:
                definitions.append(_tubing_end_transfer(current_a, next_inner, "tubing_end_transfer_entry"))
            else:
                definitions.append(_tubing_end_transfer_unresolved(current_inner, next_inner,
                                                                   "tubing_end_transfer_entry"))

        leaves_tubing = (current_channel == INNER_CHANNEL_TUBING and next_channel == INNER_CHANNEL_WELLBORE
                         and current_ta is not None and next_ta is None)
        if leaves_tubing:
            definitions.append(_tubing_end_transfer(current_inner, current_ta, "tubing_end_transfer_exit"))
            if next_a is not None:
                definitions.append(_tubing_end_transfer(current_inner, next_a, "tubing_end_transfer_exit"))
            else:
                definitions.append(_tubing_end_transfer_unresolved(current_inner, next_inner,
                                                                   "tubing_end_transfer_exit"))

    definitions.extend(_annulus_family_transitions(_family_nodes(nodes, current),
                                                   _family_nodes(nodes, upcoming)))
    return definitions


def _family_nodes(nodes: NodeSet, interval: TopologyInterval) -> dict[VolumeKind, GraphNode]:
    family = {}
    for kind in ANNULUS_FAMILY_SEQUENCE:
        node = nodes.node(interval, kind)
        if node is not None:
            family[kind] = node
    return family


def resolve_transition_state(definition: TransitionDefinition,
                             effects: BoundaryEquipmentEffects) -> TransitionState:
    """Material block from either endpoint, equipment block from any of the definition's volume kinds."""
    blocked_by_material = definition.from_node.is_blocked or definition.to_node.is_blocked
    volume_effects = [effects.effect(kind) for kind in definition.equipment_volume_kinds]
    blocked_by_equipment = any(effect.blocked for effect in volume_effects)
    contributors = [c for effect in volume_effects for c in effect.contributors]
    max_cost = max((effect.cost for effect in volume_effects), default=0)

    blocked = blocked_by_material or blocked_by_equipment
    cost = max(1 if blocked_by_material else 0, max_cost, 1) if blocked else 0
    return TransitionState(blocked_by_material, blocked_by_equipment, cost, contributors)
