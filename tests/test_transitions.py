import pytest

from well_geometry.geometry import WellGeometry
from well_geometry.ontology import VolumeKind
from well_topology.equipment_rules import BoundaryEquipmentEffects, SealContributor, VolumeEffect
from well_topology.model import GraphNode, node_id
from well_topology.nodes import build_topology_nodes
from well_topology.transitions import (
    EDGE_ENABLED_FAMILY_PAIRS, RULE_ANNULUS_FAMILY_TRANSITION, RULE_TUBING_ANNULUS_TRANSITION,
    RULE_TUBING_END_TRANSFER, _annulus_family_transitions, resolve_boundary_transitions,
    resolve_transition_state,
)
from well_topology.warning_catalog import WarningCode


def volume_node(kind: VolumeKind, top: float, bottom: float, blocked: bool = False) -> GraphNode:
    return GraphNode(node_id=node_id(kind, top, bottom), kind=kind.value,
                     depth_top=top, depth_bottom=bottom, is_blocked=blocked)


def family(top, bottom, *kinds):
    return {kind: volume_node(kind, top, bottom) for kind in kinds}


def transitions_at(well, boundary_index=0):
    nodes = build_topology_nodes(WellGeometry(well))
    current = nodes.intervals[boundary_index]
    upcoming = nodes.intervals[boundary_index + 1]
    return resolve_boundary_transitions(current, upcoming, nodes)


# ── Enabled pairs ────────────────────────────────────────

def test_family_pairs_are_adjacent_or_formation():
    a, b, c, d, f = (VolumeKind.ANNULUS_A, VolumeKind.ANNULUS_B, VolumeKind.ANNULUS_C,
                     VolumeKind.ANNULUS_D, VolumeKind.FORMATION_ANNULUS)
    assert {(a, b), (b, c), (c, d), (d, f), (a, f), (b, f), (c, f)} == set(EDGE_ENABLED_FAMILY_PAIRS)
    assert (a, c) not in EDGE_ENABLED_FAMILY_PAIRS


# ── Tubing boundaries ────────────────────────────────────

def test_tubing_end_produces_three_transitions(tubing_completion_well):
    definitions = transitions_at(tubing_completion_well)
    summary = [(d.rule_id, d.transition_type, d.from_node.kind, d.to_node.kind) for d in definitions]
    assert summary == [
        (RULE_TUBING_ANNULUS_TRANSITION, "tubing_annulus_exit", "TUBING_ANNULUS", "ANNULUS_A"),
        (RULE_TUBING_END_TRANSFER, "tubing_end_transfer_exit", "TUBING_INNER", "TUBING_ANNULUS"),
        (RULE_TUBING_END_TRANSFER, "tubing_end_transfer_exit", "TUBING_INNER", "ANNULUS_A"),
    ]
    assert all(d.emits_edge for d in definitions)
    # the bore-to-tubing-annulus transfer stays inside the upper interval
    assert definitions[1].from_node.depth_bottom == definitions[1].to_node.depth_bottom == 4000


def test_tubing_hung_below_surface_enters_tubing(make_well, production_casing):
    tubing = {"od": 3.5, "weight": 9.3, "top": 1000, "bottom": 4000}
    definitions = transitions_at(make_well(casing=[production_casing], tubing=[tubing]))
    summary = [(d.transition_type, d.from_node.kind, d.to_node.kind) for d in definitions]
    assert summary == [
        ("tubing_annulus_entry", "ANNULUS_A", "TUBING_ANNULUS"),
        ("tubing_end_transfer_entry", "ANNULUS_A", "TUBING_INNER"),
    ]


def test_tubing_entry_without_casing_annulus_is_unresolved(make_well):
    well = make_well(casing=[{"od": 9.625, "weight": 40, "top": 0, "bottom": 5000}],
                     tubing=[{"od": 3.5, "weight": 9.3, "top": 1000, "bottom": 5000}])
    definitions = transitions_at(well)
    assert len(definitions) == 1
    unresolved = definitions[0]
    assert not unresolved.emits_edge
    assert unresolved.warning_code is WarningCode.TUBING_END_TRANSFER_UNRESOLVED
    assert "ANNULUS_A endpoint is not resolved" in unresolved.warning_summary


def test_no_transitions_for_unchanged_composition(cemented_casing_well):
    assert transitions_at(cemented_casing_well, boundary_index=0) == []


# ── Annulus family ───────────────────────────────────────

def test_annulus_family_exit_at_outer_shoe(cemented_casing_well):
    definitions = transitions_at(cemented_casing_well, boundary_index=1)
    assert len(definitions) == 1
    exit_definition = definitions[0]
    assert exit_definition.rule_id == RULE_ANNULUS_FAMILY_TRANSITION
    assert (exit_definition.from_node.kind, exit_definition.to_node.kind) == ("ANNULUS_B", "ANNULUS_A")
    assert exit_definition.edge_suffix == \
        "annulus-family-transition:ANNULUS_A|ANNULUS_B:annulus_family_shift_exit"
    assert exit_definition.primary_volume_kind is VolumeKind.ANNULUS_A


def test_annulus_family_entry_to_formation():
    current = family(0, 100, VolumeKind.ANNULUS_A)
    upcoming = family(100, 200, VolumeKind.ANNULUS_A, VolumeKind.FORMATION_ANNULUS)
    definitions = _annulus_family_transitions(current, upcoming)
    assert [(d.transition_type, d.from_node.kind, d.to_node.kind, d.emits_edge) for d in definitions] == [
        ("annulus_family_shift_entry", "ANNULUS_A", "FORMATION_ANNULUS", True),
    ]
    assert definitions[0].primary_volume_kind is VolumeKind.FORMATION_ANNULUS


def test_non_adjacent_family_shift_is_not_modeled():
    current = family(0, 100, VolumeKind.ANNULUS_A, VolumeKind.ANNULUS_C)
    upcoming = family(100, 200, VolumeKind.ANNULUS_A)
    definitions = _annulus_family_transitions(current, upcoming)
    assert len(definitions) == 1
    assert not definitions[0].emits_edge
    assert definitions[0].warning_code is WarningCode.STRUCTURAL_TRANSITION_NOT_MODELED
    assert "ANNULUS_C -> ANNULUS_A" in definitions[0].warning_summary


def test_intermediate_kind_stops_the_search():
    current = family(0, 100, VolumeKind.ANNULUS_A, VolumeKind.ANNULUS_B, VolumeKind.ANNULUS_C)
    upcoming = family(100, 200, VolumeKind.ANNULUS_A, VolumeKind.ANNULUS_B)
    definitions = _annulus_family_transitions(current, upcoming)
    assert [(d.from_node.kind, d.to_node.kind) for d in definitions] == [("ANNULUS_C", "ANNULUS_B")]
    assert definitions[0].emits_edge


# ── State ────────────────────────────────────────────────

@pytest.fixture
def exit_definition():
    current = family(0, 100, VolumeKind.ANNULUS_A, VolumeKind.ANNULUS_B)
    upcoming = family(100, 200, VolumeKind.ANNULUS_A)
    return _annulus_family_transitions(current, upcoming)[0]


def test_open_transition_costs_nothing(exit_definition):
    state = resolve_transition_state(exit_definition, BoundaryEquipmentEffects(by_volume={}))
    assert not state.blocked
    assert state.cost == 0
    assert state.equipment_contributors == []


def test_material_block_from_either_endpoint(exit_definition):
    exit_definition.to_node.is_blocked = True
    state = resolve_transition_state(exit_definition, BoundaryEquipmentEffects(by_volume={}))
    assert state.blocked_by_material
    assert not state.blocked_by_equipment
    assert state.cost == 1


def test_equipment_block_on_any_listed_kind(exit_definition):
    contributor = SealContributor(row_id="pkr", equipment_type="packer", state="failed_closed",
                                  cost=3, function_key="annulus_b_seal")
    effects = BoundaryEquipmentEffects(by_volume={
        VolumeKind.ANNULUS_B: VolumeEffect(blocked=True, cost=3, state="failed_closed", contributors=[contributor]),
    })
    state = resolve_transition_state(exit_definition, effects)
    assert state.blocked_by_equipment
    assert state.cost == 3
    assert state.equipment_contributors == [contributor]
