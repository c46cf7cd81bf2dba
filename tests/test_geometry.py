import pytest

from well_geometry.geometry import (
    WellGeometry, estimate_casing_id, normalize_casing_rows, resolve_connections, resolve_hangers,
)
from well_geometry.ontology import ConnectionType, HostType, LayerRole, PipeRow, PipeType, WellConfiguration
from well_geometry.references import RowReferenceResolver
from well_geometry.tolerance import (
    approx_eq, parse_optional_number, ranges_overlap, strictly_within, within_range,
)


# ── Tolerances ───────────────────────────────────────────

@pytest.mark.parametrize("raw, expected", [
    (12.5, 12.5), ("12,500 ", 12500.0), (" 7 ", 7.0), ("", None), ("abc", None),
    (None, None), (True, None), (float("nan"), None), ("inf", None),
])
def test_parse_optional_number(raw, expected):
    assert parse_optional_number(raw) == expected


def test_range_predicates():
    assert within_range(100.0, 100.0, 200.0)
    assert not strictly_within(100.0, 100.0, 200.0)
    assert strictly_within(150.0, 100.0, 200.0)
    assert not ranges_overlap(0.0, 100.0, 100.0, 200.0)
    assert ranges_overlap(0.0, 100.5, 100.0, 200.0)
    assert approx_eq(1.0, 1.0 + 1e-7)
    assert not approx_eq(None, 1.0)


# ── Pipe normalization ───────────────────────────────────

def test_estimate_casing_id_from_weight():
    expected = 9.625 - 2 * 40 / (9.625 * 10.68)
    assert estimate_casing_id(9.625, 40) == pytest.approx(expected)


def test_estimate_casing_id_defaults_and_clamps():
    assert estimate_casing_id(10.0, None) == pytest.approx(9.0)
    assert estimate_casing_id(10.0, 0) == pytest.approx(9.0)
    # wall clamps at 15% of OD
    assert estimate_casing_id(5.0, 200) == pytest.approx(5.0 - 2 * 0.75)
    assert estimate_casing_id(None, 40) == 0.0


def test_invalid_rows_are_dropped_and_indices_kept():
    rows = normalize_casing_rows([
        PipeRow(od=None, top=0, bottom=100),
        PipeRow(od=9.625, top=500, bottom=100),
        PipeRow(od=7.0, weight=29, top=0, bottom=1000, id_override=6.184),
    ])
    assert [r.index for r in rows] == [2]
    assert rows[0].inner_diameter == pytest.approx(6.184)


def test_open_hole_row_keeps_full_diameter():
    row = normalize_casing_rows([PipeRow(od=8.5, top=4000, bottom=5000, is_open_hole=True)])[0]
    assert row.is_open_hole
    assert row.inner_diameter == 8.5


def test_open_hole_flag_from_grade():
    assert PipeRow.from_dict({"od": 8.5, "top": 1, "bottom": 2, "grade": "Open Hole"}).is_open_hole
    assert PipeRow.from_dict({"od": 8.5, "top": 1, "bottom": 2, "grade": "OH"}).is_open_hole
    assert not PipeRow.from_dict({"od": 8.5, "top": 1, "bottom": 2, "weight": 32, "grade": "L80"}).is_open_hole


@pytest.mark.parametrize("weight", [None, 0, -5, "n/a"])
def test_weightless_row_is_open_hole(weight):
    assert PipeRow.from_dict({"od": 8.5, "top": 1, "bottom": 2, "weight": weight}).is_open_hole


def test_weightless_row_below_shoe_is_bare_hole(make_well):
    well = make_well(casing=[{"od": 9.625, "weight": 40, "top": 0, "bottom": 4000},
                             {"od": 8.5, "top": 4000, "bottom": 5000}])
    geometry = WellGeometry(well)
    assert geometry.casing_rows[1].is_open_hole
    layers = geometry.stack_at_depth(4500)
    assert not any(layer.role is LayerRole.PIPE for layer in layers)
    assert layers[0].outer_radius == pytest.approx(4.25)
    assert layers[0].is_open_hole_boundary


# ── Connections & hangers ────────────────────────────────

def test_swage_connection(swage_pair_well):
    geometry = WellGeometry(swage_pair_well)
    assert len(geometry.connections) == 1
    connection = geometry.connections[0]
    assert connection.type is ConnectionType.SWAGE
    assert (connection.upper_index, connection.lower_index) == (0, 1)
    assert connection.join_depth == 3000
    assert geometry.critical_depths() == [0, 3000, 6000]


def test_crossover_gap_within_epsilon(make_well):
    well = make_well(
        casing=[{"od": 9.625, "weight": 40, "top": 0, "bottom": 3000},
                {"od": 7, "weight": 29, "top": 3050, "bottom": 6000}],
        config={"crossoverEpsilon": 60},
    )
    geometry = WellGeometry(well)
    connection = geometry.connections[0]
    assert connection.type is ConnectionType.CROSSOVER
    assert (connection.depth_top, connection.depth_bottom) == (3000, 3050)
    assert connection.join_depth == 3025
    assert geometry.critical_depths() == [0, 3025, 6000]


def test_gap_beyond_default_epsilon_is_not_joined(make_well):
    well = make_well(casing=[{"od": 9.625, "weight": 40, "top": 0, "bottom": 3000},
                             {"od": 7, "weight": 29, "top": 3050, "bottom": 6000}])
    geometry = WellGeometry(well)
    assert geometry.connections == []
    assert geometry.critical_depths() == [0, 3000, 3050, 6000]


def test_casing_parent_must_be_larger():
    rows = normalize_casing_rows([
        PipeRow(od=7, weight=29, top=0, bottom=3000),
        PipeRow(od=9.625, weight=40, top=3000, bottom=6000),
    ])
    assert resolve_connections(rows, PipeType.CASING) == []
    # tubing strings do not require a larger parent
    for row in rows:
        row.pipe_type = PipeType.TUBING
    assert len(resolve_connections(rows, PipeType.TUBING)) == 1


def test_liner_hanger_barrier():
    rows = normalize_casing_rows([
        PipeRow(od=9.625, weight=40, top=0, bottom=5000),
        PipeRow(od=7, weight=29, top=4000, bottom=8000),
    ])
    barriers = resolve_hangers(rows)
    assert len(barriers) == 1
    assert barriers[0].row_index == 1
    assert barriers[0].parent_index == 0
    assert barriers[0].depth == 4000
    assert barriers[0].parent_inner_diameter == pytest.approx(rows[0].inner_diameter)


def test_liner_mode_no_suppresses_hanger():
    rows = normalize_casing_rows([
        PipeRow(od=9.625, weight=40, top=0, bottom=5000),
        PipeRow.from_dict({"od": 7, "weight": 29, "top": 4000, "bottom": 8000, "linerMode": "No"}),
    ])
    assert resolve_hangers(rows) == []


def test_string_hung_from_surface_is_not_a_liner(cemented_casing_well):
    assert WellGeometry(cemented_casing_well).barriers == []


# ── References ───────────────────────────────────────────

@pytest.fixture
def resolver():
    casing = normalize_casing_rows([
        PipeRow(od=13.375, weight=54.5, top=0, bottom=2000, label="Surface", row_id="csg-surf"),
        PipeRow(od=9.625, weight=40, top=0, bottom=5000, label="Production", row_id="csg-prod"),
    ])
    return RowReferenceResolver(casing, [])


@pytest.mark.parametrize("reference, index", [
    ("csg-prod", 1), ("Production", 1), ("#2", 1), ("2", 1), ("#1 Surface (13.375\")", 0), ("1", 0),
])
def test_reference_forms(resolver, reference, index):
    assert resolver.resolve_casing(reference).index == index


def test_preferred_id_wins(resolver):
    assert resolver.resolve_casing("Surface", preferred_id="csg-prod").index == 1


def test_unknown_reference_is_none(resolver):
    assert resolver.resolve_casing("#7") is None
    assert resolver.resolve_casing("") is None
    assert resolver.resolve("csg-prod", host_type=HostType.TUBING) is None


# ── Intervals ────────────────────────────────────────────

def test_single_interval_well(single_casing_well):
    intervals = WellGeometry(single_casing_well).intervals_with_boundary_reasons()
    assert [(i.top, i.bottom) for i in intervals] == [(0, 5000)]
    assert intervals[0].start_boundary_reasons[0].type == "model"
    assert intervals[0].end_boundary_reasons[0].type == "model"


def test_cement_boundaries_split_intervals(cemented_casing_well):
    geometry = WellGeometry(cemented_casing_well)
    assert geometry.critical_depths() == [0, 500, 2000, 3000, 5000]
    reasons = geometry.boundary_reasons(500)
    assert [(r.type, r.action, r.label) for r in reasons] == [("cement", "start", "Surface")]


def test_equipment_depth_is_critical(packer_well):
    geometry = WellGeometry(packer_well)
    assert geometry.critical_depths() == [0, 3000, 4000, 5000]
    labels = [r.label for r in geometry.boundary_reasons(3000)]
    assert labels == ["Packer #1"]


def test_empty_well_defaults():
    geometry = WellGeometry(WellConfiguration())
    assert geometry.min_depth() == 0.0
    assert geometry.max_depth() == 1000.0
    assert [(i.top, i.bottom) for i in geometry.intervals()] == [(0.0, 1000.0)]


def test_packer_placement_on_tubing(packer_well):
    equipment = WellGeometry(packer_well).equipment
    assert len(equipment) == 1
    placement = equipment[0].placement
    assert placement.attach_warning_code is None
    assert placement.seal_node_kind.value == "TUBING_ANNULUS"
    assert equipment[0].tubing_parent_od == 3.5


def test_packer_without_attach_is_orphaned(make_well, production_casing, tubing_row):
    well = make_well(casing=[production_casing], tubing=[tubing_row],
                     equipment=[{"type": "Packer", "depth": 3000}])
    placement = WellGeometry(well).equipment[0].placement
    assert placement.is_orphaned
    assert placement.attach_warning_code == "equipment_missing_attach_target"
