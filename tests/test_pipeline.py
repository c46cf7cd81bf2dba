import json
import sys

import pytest

import main
from well_geometry.ontology import WellConfiguration
from well_geometry.reference_well import build_reference_well, reference_well_data
from well_topology.graph import TopologyGraph, build_topology
from well_topology.model import SURFACE_NODE_ID, EdgeKind, SourcePolicyMode


@pytest.fixture
def reference_graph():
    return TopologyGraph.build(build_reference_well())


# ── Pipeline invariants ──────────────────────────────────

def test_pipeline_is_deterministic():
    first = build_topology(build_reference_well())
    second = build_topology(build_reference_well())
    assert [e.edge_id for e in first.edges] == [e.edge_id for e in second.edges]
    assert [n.node_id for n in first.nodes] == [n.node_id for n in second.nodes]
    assert first.warning_codes() == second.warning_codes()


def test_every_edge_endpoint_is_a_node(reference_graph):
    for edge in reference_graph.edges.values():
        assert edge.from_id in reference_graph.nodes
        assert edge.to_id in reference_graph.nodes
    assert len(reference_graph.nodes) == len(reference_graph.result.nodes)
    assert len(reference_graph.edges) == len(reference_graph.result.edges)


def test_intervals_tile_the_well(reference_graph):
    intervals = reference_graph.result.intervals
    assert intervals[0].top == 1400
    assert intervals[-1].bottom == 14000
    for upper, lower in zip(intervals, intervals[1:]):
        assert upper.bottom == lower.top
        assert lower.index == upper.index + 1


def test_surface_node_only_receives_termination(reference_graph):
    incoming = reference_graph.incoming(SURFACE_NODE_ID)
    assert incoming
    assert all(edge.kind is EdgeKind.TERMINATION for edge in incoming)
    assert reference_graph.outgoing(SURFACE_NODE_ID) == []
    top = reference_graph.result.intervals[0]
    assert all(reference_graph.get_node(e.from_id).depth_top == top.top for e in incoming)


def test_reference_well_sources_come_from_perforations(reference_graph):
    result = reference_graph.result
    assert result.source_policy.mode is SourcePolicyMode.MARKER_DEFAULT
    assert result.source_node_ids
    assert all(node_id in reference_graph.nodes for node_id in result.source_node_ids)
    assert [e.source_id for e in result.source_entities] == ["source:marker:mk-perf"]


def test_reference_well_geometry_features(reference_graph):
    result = reference_graph.result
    assert 8000 in [barrier.depth for barrier in result.barriers]
    radial = result.edges_of(EdgeKind.RADIAL)
    marker_types = {edge.meta["markerType"] for edge in radial}
    assert marker_types == {"perforation", "leak"}


def test_every_edge_has_a_reason(reference_graph):
    result = reference_graph.result
    assert set(result.edge_reasons) == {edge.edge_id for edge in result.edges}


def test_opt_in_flags_change_policy():
    result = build_topology(build_reference_well(use_illustrative_fluid_source=True))
    assert result.source_policy.mode is SourcePolicyMode.FLUID_OPT_IN
    assert result.source_policy.illustrative_fluid_derived
    assert "illustrative_fluid_source_mode_enabled" in result.warning_codes()


def test_reference_data_overrides_are_copies():
    data = reference_well_data({"tubingData": []})
    assert data["tubingData"] == []
    assert reference_well_data()["tubingData"]
    assert WellConfiguration.from_dict(data).tubing == []


# ── Graph store ──────────────────────────────────────────

def test_stats_are_consistent(reference_graph):
    stats = reference_graph.stats()
    assert stats["edges"] == stats["vertical_edges"] + stats["radial_edges"] + stats["termination_edges"]
    assert stats["nodes"] == len(reference_graph.nodes)
    assert stats["sources"] == len(reference_graph.result.source_node_ids)
    assert stats["closed_edges"] > 0
    assert stats["blocked_nodes"] > 0


def test_adjacency_matches_edges(reference_graph):
    for edge in reference_graph.edges.values():
        assert edge in reference_graph.outgoing(edge.from_id)
        assert edge in reference_graph.incoming(edge.to_id)


def test_export_json(reference_graph, tmp_path):
    path = tmp_path / "topology.json"
    reference_graph.export_json(str(path))
    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["metadata"]["well"] == "Reference offshore producer"
    assert data["statistics"] == reference_graph.stats()
    assert data["sourcePolicy"]["mode"] == "marker_default"
    assert len(data["edges"]) == len(reference_graph.edges)
    assert {e["kind"] for e in data["edges"]} == {"vertical", "radial", "termination"}
    assert data["intervals"][0]["layers"]


def test_export_markdown(reference_graph, tmp_path):
    path = tmp_path / "topology.md"
    reference_graph.export_markdown(str(path))
    text = path.read_text(encoding="utf-8")
    assert text.startswith("# Topology: Reference offshore producer")
    assert "## Intervals" in text
    assert "## Closed paths" in text


# ── CLI ──────────────────────────────────────────────────

def test_cli_reference_run(tmp_path, monkeypatch):
    monkeypatch.setattr(sys, "argv", ["main.py", "--reference", "--output", str(tmp_path)])
    main.main()
    assert (tmp_path / "topology.json").exists()
    assert (tmp_path / "topology_summary.md").exists()


def test_cli_project_file(tmp_path, monkeypatch):
    project = tmp_path / "well.json"
    project.write_text(json.dumps(reference_well_data({"name": ""})), encoding="utf-8")
    out = tmp_path / "out"
    monkeypatch.setattr(sys, "argv", ["main.py", "-i", str(project), "-o", str(out), "--phase", "drilling"])
    main.main()
    data = json.loads((out / "topology.json").read_text(encoding="utf-8"))
    assert data["metadata"]["well"] == "well"


def test_cli_missing_file_exits(tmp_path, monkeypatch):
    monkeypatch.setattr(sys, "argv", ["main.py", "-i", str(tmp_path / "missing.json"), "-o", str(tmp_path)])
    with pytest.raises(SystemExit) as excinfo:
        main.main()
    assert excinfo.value.code == 1
