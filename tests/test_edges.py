from well_geometry.geometry import WellGeometry
from well_geometry.ontology import SourceRow, VolumeKind
from well_topology.edges import (
    PAIR_CASING_HOST, PAIR_DEFAULT_TUBING, PAIR_SCENARIO, build_radial_edges, build_scenario_radial_edges,
    build_termination_edges, build_vertical_edges,
)
from well_topology.model import SURFACE_NODE_ID, EdgeKind, EdgeState, node_id
from well_topology.nodes import build_topology_nodes
from well_topology.warning_catalog import WarningCode


def vertical(well):
    geometry = WellGeometry(well)
    nodes = build_topology_nodes(geometry)
    return build_vertical_edges(nodes, geometry.equipment, geometry.references)


def radial(well):
    geometry = WellGeometry(well)
    return build_radial_edges(well.markers, build_topology_nodes(geometry), geometry.references)


def scenario(well):
    return build_scenario_radial_edges(well.sources, build_topology_nodes(WellGeometry(well)))


def continuity(edges, kind: VolumeKind, boundary: float):
    return next(e for e in edges if e.reason.rule_id == "vertical-continuity"
                and e.meta["volumeKey"] == kind.value and e.reason.details["boundaryDepth"] == boundary)


def codes(warnings):
    return [w.code for w in warnings]


# ── Vertical continuity ──────────────────────────────────

def test_tubing_completion_vertical_edges(tubing_completion_well):
    result = vertical(tubing_completion_well)
    rules = [(e.reason.rule_id, e.meta["fromVolumeKey"] if "fromVolumeKey" in e.meta else e.meta["volumeKey"])
             for e in result.edges]
    assert rules == [
        ("vertical-continuity", "TUBING_INNER"),
        ("vertical-continuity", "ANNULUS_A"),
        ("tubing-annulus-transition", "TUBING_ANNULUS"),
        ("tubing-end-transfer", "TUBING_INNER"),
        ("tubing-end-transfer", "TUBING_INNER"),
    ]
    assert all(e.state is EdgeState.OPEN and e.cost == 0 for e in result.edges)
    assert result.warnings == []


def test_continuity_edge_ids_are_deterministic(tubing_completion_well):
    edge = continuity(vertical(tubing_completion_well).edges, VolumeKind.ANNULUS_A, 4000)
    from_id = node_id(VolumeKind.ANNULUS_A, 0, 4000)
    to_id = node_id(VolumeKind.ANNULUS_A, 4000, 5000)
    assert edge.edge_id == f"edge:vertical:{from_id}->{to_id}:ANNULUS_A"
    assert edge.reason.details["fromInterval"] == 0
    assert edge.reason.details["toInterval"] == 1


def test_packer_blocks_tubing_annulus(packer_well):
    result = vertical(packer_well)
    sealed = continuity(result.edges, VolumeKind.TUBING_ANNULUS, 3000)
    assert sealed.state is EdgeState.CLOSED_FAILABLE
    assert sealed.cost == 1
    assert sealed.reason.details["blockedByEquipment"]
    assert not sealed.reason.details["blockedByMaterial"]
    assert [c["rowId"] for c in sealed.reason.details["equipmentContributors"]] == ["pkr"]
    assert continuity(result.edges, VolumeKind.TUBING_INNER, 3000).state is EdgeState.OPEN
    assert continuity(result.edges, VolumeKind.ANNULUS_A, 3000).state is EdgeState.OPEN
    assert result.warnings == []


def test_unattached_packer_warns_and_seals_nothing(make_well, production_casing, tubing_row):
    well = make_well(casing=[production_casing], tubing=[tubing_row],
                     equipment=[{"rowId": "pkr", "type": "Packer", "depth": 3000}])
    result = vertical(well)
    assert codes(result.warnings) == [WarningCode.EQUIPMENT_MISSING_ATTACH_TARGET]
    assert result.warnings[0].depth == 3000
    assert continuity(result.edges, VolumeKind.TUBING_ANNULUS, 3000).state is EdgeState.OPEN


def test_safety_valve_blocks_bore(make_well, production_casing, tubing_row):
    well = make_well(casing=[production_casing], tubing=[tubing_row],
                     equipment=[{"rowId": "sv", "type": "Safety Valve", "depth": 2000}])
    result = vertical(well)
    assert continuity(result.edges, VolumeKind.TUBING_INNER, 2000).state is EdgeState.CLOSED_FAILABLE
    assert continuity(result.edges, VolumeKind.TUBING_ANNULUS, 2000).state is EdgeState.OPEN


def test_unknown_equipment_warns_at_boundary(make_well, production_casing, tubing_row):
    well = make_well(casing=[production_casing], tubing=[tubing_row],
                     equipment=[{"rowId": "g", "type": "Gauge", "depth": 2000}])
    result = vertical(well)
    assert codes(result.warnings) == [WarningCode.UNKNOWN_EQUIPMENT_TYPE, WarningCode.NO_SEAL_BEHAVIOR_AT_BOUNDARY]
    assert all(w.depth == 2000 for w in result.warnings)


def test_cement_blocks_continuity(cemented_casing_well):
    edges = vertical(cemented_casing_well).edges
    top_of_cement = continuity(edges, VolumeKind.ANNULUS_B, 500)
    assert top_of_cement.state is EdgeState.CLOSED_FAILABLE
    assert top_of_cement.cost == 1
    assert top_of_cement.reason.details["blockedByMaterial"]
    assert continuity(edges, VolumeKind.ANNULUS_A, 500).state is EdgeState.OPEN
    assert continuity(edges, VolumeKind.ANNULUS_A, 3000).state is EdgeState.CLOSED_FAILABLE


def test_family_transition_edge_at_outer_shoe(cemented_casing_well):
    edges = vertical(cemented_casing_well).edges
    shift = next(e for e in edges if e.reason.rule_id == "annulus-family-transition")
    assert shift.edge_id.endswith("annulus-family-transition:ANNULUS_A|ANNULUS_B:annulus_family_shift_exit")
    assert shift.meta["fromVolumeKey"] == "ANNULUS_B"
    assert shift.meta["toVolumeKey"] == "ANNULUS_A"
    assert shift.meta["volumeKey"] == "ANNULUS_A"
    assert shift.state is EdgeState.CLOSED_FAILABLE
    assert shift.reason.details["blockedByMaterial"]


def test_plug_blocks_bore(make_well):
    well = make_well(casing=[{"od": 9.625, "weight": 40, "top": 0, "bottom": 5000}],
                     plugs=[{"top": 1000, "bottom": 2000}])
    edges = vertical(well).edges
    assert continuity(edges, VolumeKind.TUBING_INNER, 1000).state is EdgeState.CLOSED_FAILABLE
    assert continuity(edges, VolumeKind.TUBING_INNER, 2000).state is EdgeState.CLOSED_FAILABLE


def test_unresolved_tubing_entry_becomes_warning(make_well):
    well = make_well(casing=[{"od": 9.625, "weight": 40, "top": 0, "bottom": 5000}],
                     tubing=[{"od": 3.5, "weight": 9.3, "top": 1000, "bottom": 5000}])
    result = vertical(well)
    assert codes(result.warnings) == [WarningCode.TUBING_END_TRANSFER_UNRESOLVED]
    assert result.warnings[0].depth == 1000


# ── Radial (markers) ─────────────────────────────────────

def test_perforation_opens_casing_wall_and_seeds_sources(make_well, production_casing):
    marker = {"rowId": "perf-1", "type": "Perforation", "top": 4000, "bottom": 4200, "attachToRow": "csg-prod"}
    result = radial(make_well(casing=[production_casing], markers=[marker]))
    assert len(result.edges) == 1
    edge = result.edges[0]
    bore = node_id(VolumeKind.TUBING_INNER, 4000, 4200)
    annulus = node_id(VolumeKind.ANNULUS_A, 4000, 4200)
    assert (edge.from_id, edge.to_id) == (bore, annulus)
    assert edge.kind is EdgeKind.RADIAL
    assert edge.state is EdgeState.OPEN
    assert edge.meta["radialPairSource"] == PAIR_CASING_HOST
    assert edge.meta["markerHostRowId"] == "csg-prod"

    assert result.source_node_ids == [bore, annulus]
    entity = result.source_entities[0]
    assert entity.source_id == "source:marker:perf-1"
    assert entity.volume_key == "TUBING_INNER+ANNULUS_A"
    assert entity.origin == "marker"


def test_perforation_into_cement_is_closed(make_well):
    marker = {"type": "Perforation", "top": 3500, "bottom": 3600, "attachToId": "csg-prod"}
    well = make_well(casing=[
        {"rowId": "csg-prod", "od": 9.625, "weight": 40, "top": 0, "bottom": 5000,
         "manualHoleSize": 12.25, "toc": 3000},
    ], markers=[marker])
    result = radial(well)
    edge = result.edges[0]
    assert edge.state is EdgeState.CLOSED_FAILABLE
    assert edge.cost == 1
    assert result.source_node_ids == [node_id(VolumeKind.TUBING_INNER, 3500, 3600)]
    assert result.source_entities[0].source_id == "source:marker:0"


def test_perforation_through_partly_plugged_annulus(make_well, production_casing):
    marker = {"type": "Perforation", "top": 1200, "bottom": 1300, "attachToRow": "csg-prod"}
    plug = {"top": 1000, "bottom": 2000, "manualWidth": 11}
    result = radial(make_well(casing=[production_casing], markers=[marker], plugs=[plug]))
    edge = result.edges[0]
    assert edge.meta["radialPairSource"] == PAIR_CASING_HOST
    assert edge.to_id == node_id(VolumeKind.ANNULUS_A, 1200, 1300)
    assert edge.state is EdgeState.CLOSED_FAILABLE
    assert result.source_node_ids == [node_id(VolumeKind.ANNULUS_A, 1200, 1300)]


def test_tubing_leak_uses_tubing_annulus(make_well, production_casing, tubing_row):
    marker = {"type": "Leak", "top": 1000, "bottom": 1100, "attachToHostType": "tubing", "attachToId": "tbg"}
    result = radial(make_well(casing=[production_casing], tubing=[tubing_row], markers=[marker]))
    assert len(result.edges) == 1
    edge = result.edges[0]
    assert edge.from_id == node_id(VolumeKind.TUBING_INNER, 1000, 1100)
    assert edge.to_id == node_id(VolumeKind.TUBING_ANNULUS, 1000, 1100)
    assert edge.meta["radialPairSource"] == PAIR_DEFAULT_TUBING
    assert result.source_node_ids == []


def test_marker_warnings(make_well, production_casing, tubing_row):
    markers = [
        {"rowId": "bad-range", "type": "Perforation", "top": 200, "bottom": 100},
        {"rowId": "bad-host", "type": "Perforation", "top": 100, "bottom": 200, "attachToRow": "nope"},
        {"rowId": "off-tubing", "type": "Leak", "top": 4500, "bottom": 4600,
         "attachToHostType": "tubing", "attachToId": "tbg"},
        {"rowId": "too-deep", "type": "Perforation", "top": 6000, "bottom": 6100},
        {"rowId": "untyped", "type": "", "top": 100, "bottom": 200},
    ]
    result = radial(make_well(casing=[production_casing], tubing=[tubing_row], markers=markers))
    assert [(w.code, w.row_id) for w in result.warnings] == [
        (WarningCode.MARKER_INVALID_DEPTH_RANGE, "bad-range"),
        (WarningCode.MARKER_UNRESOLVED_HOST_REFERENCE, "bad-host"),
        (WarningCode.MARKER_INVALID_TUBING_HOST_AT_DEPTH, "off-tubing"),
        (WarningCode.MARKER_NO_RESOLVABLE_INTERVAL_OVERLAP, "too-deep"),
    ]
    assert result.edges == []


# ── Radial (scenario breakouts) ──────────────────────────

def test_breakout_edge_between_annuli(cemented_casing_well):
    well = cemented_casing_well
    well.sources = [SourceRow.from_dict({"rowId": "bo-1", "fromVolumeKey": "A-Annulus", "toVolumeKey": "ANNULUS_B",
                                         "top": 100, "bottom": 400, "sourceType": "Casing failure"})]
    result = scenario(well)
    assert len(result.edges) == 1
    edge = result.edges[0]
    assert edge.from_id == node_id(VolumeKind.ANNULUS_A, 0, 500)
    assert edge.to_id == node_id(VolumeKind.ANNULUS_B, 0, 500)
    assert edge.state is EdgeState.OPEN and edge.cost == 0
    assert edge.meta["radialPairSource"] == PAIR_SCENARIO
    assert edge.meta["scenarioBreakoutSourceType"] == "casing_failure"
    assert edge.edge_id.endswith("scenario-breakout:0:0:ANNULUS_A:ANNULUS_B")
    assert result.warnings == []


def test_breakout_warnings(cemented_casing_well):
    rows = [
        {"rowId": "one-sided", "fromVolumeKey": "ANNULUS_A", "top": 100, "bottom": 400},
        {"rowId": "same", "fromVolumeKey": "ANNULUS_A", "toVolumeKey": "a annulus", "top": 100, "bottom": 400},
        {"rowId": "no-depth", "fromVolumeKey": "ANNULUS_A", "toVolumeKey": "ANNULUS_B"},
        {"rowId": "no-b", "fromVolumeKey": "ANNULUS_A", "toVolumeKey": "ANNULUS_B", "top": 2500, "bottom": 2800},
    ]
    well = cemented_casing_well
    well.sources = [SourceRow.from_dict(row) for row in rows]
    result = scenario(well)
    assert [(w.code, w.row_id) for w in result.warnings] == [
        (WarningCode.SCENARIO_BREAKOUT_MISSING_VOLUME_PAIR, "one-sided"),
        (WarningCode.SCENARIO_BREAKOUT_UNSUPPORTED_VOLUME_PAIR, "same"),
        (WarningCode.SCENARIO_BREAKOUT_MISSING_DEPTH_RANGE, "no-depth"),
        (WarningCode.SCENARIO_BREAKOUT_NO_RESOLVABLE_INTERVAL, "no-b"),
    ]
    assert result.edges == []


# ── Termination ──────────────────────────────────────────

def test_termination_from_shallowest_interval(tubing_completion_well):
    result = build_termination_edges(build_topology_nodes(WellGeometry(tubing_completion_well)))
    assert [e.meta["volumeKey"] for e in result.edges] == ["TUBING_INNER", "TUBING_ANNULUS", "ANNULUS_A"]
    assert all(e.to_id == SURFACE_NODE_ID and e.kind is EdgeKind.TERMINATION for e in result.edges)
    assert all(e.reason.rule_id == "surface-termination" for e in result.edges)
