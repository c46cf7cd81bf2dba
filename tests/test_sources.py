import pytest

from well_geometry.geometry import WellGeometry
from well_geometry.ontology import SourceRow, VolumeKind
from well_topology.graph import build_topology
from well_topology.model import SourceEntity, SourcePolicy, SourcePolicyMode, node_id
from well_topology.nodes import build_topology_nodes
from well_topology.sources import (
    SourceChannel, build_explicit_scenario_source_nodes, build_fluid_source_nodes,
    build_open_hole_source_nodes, resolve_source_channels, resolve_source_depth_range,
    source_policy_warnings,
)
from well_topology.warning_catalog import WarningCode


def topology_nodes(well):
    return build_topology_nodes(WellGeometry(well))


def codes(warnings):
    return [w.code for w in warnings]


OPEN_HOLE_CASING = [
    {"od": 9.625, "weight": 40, "top": 0, "bottom": 4000},
    {"od": 8.5, "top": 4000, "bottom": 5000, "grade": "OH"},
]


# ── Depth ranges ─────────────────────────────────────────

def test_depth_range_forms():
    full = resolve_source_depth_range(SourceRow(top=100, bottom=200))
    assert (full.top, full.bottom, full.is_point) == (100, 200, False)
    point = resolve_source_depth_range(SourceRow(depth=150))
    assert (point.top, point.bottom, point.is_point) == (150, 150, True)
    assert resolve_source_depth_range(SourceRow(bottom=300)).is_point
    assert resolve_source_depth_range(SourceRow(top=200, bottom=100)) is None
    assert resolve_source_depth_range(SourceRow()) is None


# ── Explicit scenario rows ───────────────────────────────

def test_explicit_row_resolves_to_tubing_annulus(tubing_completion_well):
    nodes = topology_nodes(tubing_completion_well)
    rows = [SourceRow.from_dict({"rowId": "src-1", "volumeKey": "TUBING_ANNULUS", "depth": 2000,
                                 "sourceType": "Tubing leak"})]
    channel = build_explicit_scenario_source_nodes(rows, nodes)
    expected = node_id(VolumeKind.TUBING_ANNULUS, 0, 4000)
    assert channel.has_scenario_rows
    assert channel.source_node_ids == [expected]
    entity = channel.source_entities[0]
    assert entity.source_id == "source:scenario:src-1"
    assert entity.source_type == "leak"
    assert entity.node_ids == [expected]
    assert channel.warnings == []


def test_formation_request_falls_back_to_formation_bounded_slot(cased_hole_well):
    nodes = topology_nodes(cased_hole_well)
    rows = [SourceRow(volume_key="FORMATION_ANNULUS", top=1000, bottom=2000)]
    channel = build_explicit_scenario_source_nodes(rows, nodes)
    assert channel.source_node_ids == [node_id(VolumeKind.ANNULUS_A, 0, 5000)]
    assert channel.source_entities[0].source_id == "source:scenario:0"


@pytest.mark.parametrize("row, code", [
    (SourceRow(volume_key="mystery", depth=2000), WarningCode.SCENARIO_SOURCE_UNSUPPORTED_VOLUME),
    (SourceRow(volume_key="ANNULUS_A"), WarningCode.SCENARIO_SOURCE_MISSING_DEPTH_RANGE),
    (SourceRow(volume_key="TUBING_ANNULUS", depth=4500), WarningCode.SCENARIO_SOURCE_NO_RESOLVABLE_INTERVAL),
])
def test_explicit_row_warnings(tubing_completion_well, row, code):
    channel = build_explicit_scenario_source_nodes([row], topology_nodes(tubing_completion_well))
    assert codes(channel.warnings) == [code]
    assert channel.source_node_ids == []
    assert channel.has_scenario_rows


def test_hidden_and_breakout_rows_are_not_sources(tubing_completion_well):
    rows = [SourceRow(volume_key="ANNULUS_A", depth=100, show=False),
            SourceRow(volume_key="ANNULUS_A", depth=100, enabled=False),
            SourceRow(from_volume_key="ANNULUS_A", to_volume_key="ANNULUS_B", top=0, bottom=100)]
    channel = build_explicit_scenario_source_nodes(rows, topology_nodes(tubing_completion_well))
    assert not channel.has_scenario_rows


# ── Fluid & open-hole channels ───────────────────────────

def test_fluid_channel_uses_fluid_filled_annuli(make_well, production_casing, tubing_row):
    fluid = {"top": 0, "bottom": 4000, "placement": "Auto: Production Annulus"}
    well = make_well(casing=[production_casing], tubing=[tubing_row], fluids=[fluid])
    channel = build_fluid_source_nodes(well.fluids, topology_nodes(well))
    assert channel.source_node_ids == [node_id(VolumeKind.TUBING_ANNULUS, 0, 4000)]
    assert channel.source_entities[0].origin == "illustrative-fluid"
    assert channel.warnings == []


def test_fluid_rows_without_nodes_warn(make_well):
    well = make_well(casing=[{"od": 9.625, "weight": 40, "top": 0, "bottom": 5000}],
                     fluids=[{"top": 0, "bottom": 1000, "placement": "A-Annulus"}])
    channel = build_fluid_source_nodes(well.fluids, topology_nodes(well))
    assert codes(channel.warnings) == [WarningCode.FLUID_ROWS_WITHOUT_MODELED_SOURCE_NODES]


def test_open_hole_channel_seeds_bore(make_well):
    well = make_well(casing=OPEN_HOLE_CASING)
    channel = build_open_hole_source_nodes(topology_nodes(well))
    assert channel.source_node_ids == [node_id(VolumeKind.TUBING_INNER, 4000, 5000)]
    entity = channel.source_entities[0]
    assert entity.source_type == "formation_inflow"
    assert entity.origin == "open-hole"


def test_open_hole_channel_prefers_formation_node(cased_hole_well):
    channel = build_open_hole_source_nodes(topology_nodes(cased_hole_well))
    assert channel.source_node_ids == [node_id(VolumeKind.ANNULUS_A, 0, 5000)]


# ── Channel resolution ───────────────────────────────────

def _channel(*ids, scenario=False):
    entities = [SourceEntity(source_id=f"source:{i}", source_type="scenario", volume_key="X",
                             depth_top=None, depth_bottom=None, node_ids=[i]) for i in ids]
    return SourceChannel(source_node_ids=list(ids), source_entities=entities, has_scenario_rows=scenario)


def test_explicit_rows_replace_other_channels():
    resolution = resolve_source_channels(_channel("m1"), _channel("e1", scenario=True),
                                         fluid=_channel("f1"), use_illustrative_fluid_source=True)
    assert resolution.source_node_ids == ["e1"]
    assert resolution.policy.mode is SourcePolicyMode.SCENARIO_EXPLICIT
    assert resolution.policy.explicit_scenario_derived
    assert not resolution.policy.marker_derived


def test_unresolved_explicit_rows_fall_back_to_markers():
    resolution = resolve_source_channels(_channel("m1"), _channel(scenario=True))
    assert resolution.source_node_ids == ["m1"]
    assert resolution.policy.mode is SourcePolicyMode.MARKER_DEFAULT
    assert codes(resolution.warnings) == [WarningCode.SCENARIO_ROWS_WITH_NO_RESOLVED_NODES]


def test_opt_in_channels_are_unioned_without_duplicates():
    resolution = resolve_source_channels(
        _channel("m1", "shared"), _channel(), fluid=_channel("shared", "f1"), open_hole=_channel("o1"),
        use_illustrative_fluid_source=True, use_open_hole_source=True)
    assert resolution.source_node_ids == ["m1", "shared", "f1", "o1"]
    assert len(resolution.source_entities) == 5
    assert resolution.policy.mode is SourcePolicyMode.FLUID_OPT_IN
    assert resolution.policy.open_hole_derived


def test_disabled_channels_are_ignored():
    resolution = resolve_source_channels(_channel("m1"), _channel(), fluid=_channel("f1"),
                                         open_hole=_channel("o1"))
    assert resolution.source_node_ids == ["m1"]


def test_policy_warnings():
    explicit = SourcePolicy(mode=SourcePolicyMode.SCENARIO_EXPLICIT, explicit_scenario_derived=True)
    assert codes(source_policy_warnings(explicit, True, True)) == [WarningCode.EXPLICIT_SCENARIO_SOURCE_MODE_ACTIVE]
    fluid = SourcePolicy(mode=SourcePolicyMode.FLUID_OPT_IN, illustrative_fluid_derived=True)
    assert codes(source_policy_warnings(fluid, True, True)) == [WarningCode.ILLUSTRATIVE_FLUID_SOURCE_MODE_ENABLED]
    assert source_policy_warnings(fluid, True, False) == []
    assert source_policy_warnings(SourcePolicy(), False, True) == []


# ── Pipeline ─────────────────────────────────────────────

def test_pipeline_explicit_mode(make_well, production_casing, tubing_row):
    well = make_well(casing=[production_casing], tubing=[tubing_row],
                     sources=[{"volumeKey": "TUBING_ANNULUS", "depth": 2000}])
    result = build_topology(well)
    assert result.source_node_ids == [node_id(VolumeKind.TUBING_ANNULUS, 0, 4000)]
    assert result.source_policy.mode is SourcePolicyMode.SCENARIO_EXPLICIT
    assert result.warning_codes() == ["explicit_scenario_source_mode_active"]


def test_pipeline_fluid_opt_in(make_well, production_casing, tubing_row):
    fluid = {"top": 0, "bottom": 4000, "placement": "Auto: Production Annulus"}
    base = dict(casing=[production_casing], tubing=[tubing_row], fluids=[fluid])

    opted_in = build_topology(make_well(**base, config={"topologyUseIllustrativeFluidSource": True}))
    assert opted_in.source_node_ids == [node_id(VolumeKind.TUBING_ANNULUS, 0, 4000)]
    assert opted_in.source_policy.mode is SourcePolicyMode.FLUID_OPT_IN
    assert "illustrative_fluid_source_mode_enabled" in opted_in.warning_codes()

    default = build_topology(make_well(**base))
    assert default.source_node_ids == []
    assert default.source_policy.mode is SourcePolicyMode.MARKER_DEFAULT


def test_pipeline_open_hole_opt_in(make_well):
    result = build_topology(make_well(casing=OPEN_HOLE_CASING, config={"topologyUseOpenHoleSource": True}))
    assert result.source_node_ids == [node_id(VolumeKind.TUBING_INNER, 4000, 5000)]
    assert result.source_policy.mode is SourcePolicyMode.OPEN_HOLE_OPT_IN
    assert len(result.connections) == 1
