"""
Wellbore Topology — Pipeline & Graph Store
==========================================
Runs the full topology pipeline for one well and holds the result.

PIPELINE:
  geometry → nodes → vertical edges → radial edges → scenario breakouts
  → explicit sources → fluid sources (opt-in) → open-hole sources (opt-in)
  → source channel resolution → policy warnings → surface termination

The pipeline is a pure function of the ``WellConfiguration``: repeated runs
over the same well produce identical ids, edges and warnings.

Usage:
    graph = TopologyGraph.build(well)
    graph.stats()
    graph.export_json("output/topology.json")
"""

from __future__ import annotations
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from loguru import logger

from well_geometry.geometry import WellGeometry
from well_geometry.ontology import Barrier, Connection, WellConfiguration
from well_topology.edges import (
    build_radial_edges, build_scenario_radial_edges, build_termination_edges, build_vertical_edges,
)
from well_topology.model import EdgeKind, EdgeReason, GraphEdge, GraphNode, SourceEntity, SourcePolicy, TopologyInterval
from well_topology.nodes import build_topology_nodes
from well_topology.sources import (
    SourceChannel, build_explicit_scenario_source_nodes, build_fluid_source_nodes,
    build_open_hole_source_nodes, resolve_source_channels, source_policy_warnings,
)
from well_topology.warning_catalog import ValidationWarning


@dataclass
class TopologyResult:
    """Everything one pipeline run produces."""
    intervals: list[TopologyInterval] = field(default_factory=list)
    nodes: list[GraphNode] = field(default_factory=list)
    edges: list[GraphEdge] = field(default_factory=list)
    edge_reasons: dict[str, EdgeReason] = field(default_factory=dict)
    source_entities: list[SourceEntity] = field(default_factory=list)
    source_node_ids: list[str] = field(default_factory=list)
    source_policy: SourcePolicy = field(default_factory=SourcePolicy)
    validation_warnings: list[ValidationWarning] = field(default_factory=list)
    connections: list[Connection] = field(default_factory=list)     # inspection only
    barriers: list[Barrier] = field(default_factory=list)           # inspection only

    def edges_of(self, kind) -> list[GraphEdge]:
        return [edge for edge in self.edges if edge.kind is kind]

    def warning_codes(self) -> list[str]:
        return [w.code.value for w in self.validation_warnings]


def build_topology(well: WellConfiguration) -> TopologyResult:
    config = well.config
    geometry = WellGeometry(well)
    nodes = build_topology_nodes(geometry)

    vertical = build_vertical_edges(nodes, geometry.equipment, geometry.references)
    radial = build_radial_edges(well.markers, nodes, geometry.references)
    scenario = build_scenario_radial_edges(well.sources, nodes)

    explicit = build_explicit_scenario_source_nodes(well.sources, nodes)
    fluid: Optional[SourceChannel] = None
    if config.use_illustrative_fluid_source:
        fluid = build_fluid_source_nodes(well.fluids, nodes)
    open_hole: Optional[SourceChannel] = None
    if config.use_open_hole_source:
        open_hole = build_open_hole_source_nodes(nodes)

    marker_channel = SourceChannel(source_node_ids=list(radial.source_node_ids),
                                   source_entities=list(radial.source_entities))
    sources = resolve_source_channels(
        marker_channel, explicit, fluid=fluid, open_hole=open_hole,
        use_illustrative_fluid_source=config.use_illustrative_fluid_source,
        use_open_hole_source=config.use_open_hole_source,
    )
    has_visible_fluid_rows = any(row.show for row in well.fluids)
    policy_warnings = source_policy_warnings(sources.policy, config.use_illustrative_fluid_source,
                                             has_visible_fluid_rows)
    termination = build_termination_edges(nodes)

    edges = vertical.edges + radial.edges + scenario.edges + termination.edges
    warnings = (
        vertical.warnings + radial.warnings + scenario.warnings + explicit.warnings
        + (fluid.warnings if fluid else []) + (open_hole.warnings if open_hole else [])
        + sources.warnings + policy_warnings
    )

    logger.info(
        f"Topology built for {well.name}: {len(nodes.intervals)} intervals, {len(nodes.nodes)} nodes, "
        f"{len(edges)} edges, {len(sources.source_node_ids)} sources, {len(warnings)} warnings"
    )
    return TopologyResult(
        intervals=nodes.intervals,
        nodes=nodes.nodes,
        edges=edges,
        edge_reasons={edge.edge_id: edge.reason for edge in edges if edge.reason is not None},
        source_entities=sources.source_entities,
        source_node_ids=sources.source_node_ids,
        source_policy=sources.policy,
        validation_warnings=warnings,
        connections=geometry.connections,
        barriers=geometry.barriers,
    )


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  GRAPH STORE
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class TopologyGraph:
    """
    Indexed view of a ``TopologyResult``.

    Supports:
    - node and edge lookup by id
    - outgoing / incoming adjacency
    - export to JSON and a Markdown summary
    """

    def __init__(self, result: TopologyResult, name: str = "Unnamed well"):
        self.name = name
        self.result = result
        self.nodes: dict[str, GraphNode] = {node.node_id: node for node in result.nodes}
        self.edges: dict[str, GraphEdge] = {edge.edge_id: edge for edge in result.edges}

        self._outgoing: dict[str, list[GraphEdge]] = {}
        self._incoming: dict[str, list[GraphEdge]] = {}
        for edge in result.edges:
            self._outgoing.setdefault(edge.from_id, []).append(edge)
            self._incoming.setdefault(edge.to_id, []).append(edge)

    @classmethod
    def build(cls, well: WellConfiguration) -> "TopologyGraph":
        return cls(build_topology(well), name=well.name)

    # ── Queries ──────────────────────────────────────────

    def get_node(self, node_id: str) -> Optional[GraphNode]:
        return self.nodes.get(node_id)

    def outgoing(self, node_id: str) -> list[GraphEdge]:
        return list(self._outgoing.get(node_id, []))

    def incoming(self, node_id: str) -> list[GraphEdge]:
        return list(self._incoming.get(node_id, []))

    def stats(self) -> dict:
        edges = self.result.edges
        return {
            "intervals": len(self.result.intervals),
            "nodes": len(self.nodes),
            "blocked_nodes": sum(1 for n in self.nodes.values() if n.is_blocked),
            "edges": len(edges),
            "vertical_edges": sum(1 for e in edges if e.kind is EdgeKind.VERTICAL),
            "radial_edges": sum(1 for e in edges if e.kind is EdgeKind.RADIAL),
            "termination_edges": sum(1 for e in edges if e.kind is EdgeKind.TERMINATION),
            "closed_edges": sum(1 for e in edges if e.is_blocked),
            "sources": len(self.result.source_node_ids),
            "source_entities": len(self.result.source_entities),
            "connections": len(self.result.connections),
            "barriers": len(self.result.barriers),
            "warnings": len(self.result.validation_warnings),
        }

    # ── Export ───────────────────────────────────────────

    def to_dict(self) -> dict:
        result = self.result
        return {
            "metadata": {"version": "1.0", "generator": "Wellbore Topology Builder", "well": self.name},
            "statistics": self.stats(),
            "sourcePolicy": result.source_policy.to_dict(),
            "intervals": [
                {
                    "intervalIndex": interval.index,
                    "top": interval.top,
                    "bottom": interval.bottom,
                    "midpoint": interval.midpoint,
                    "layers": [layer.to_dict() for layer in interval.stack],
                }
                for interval in result.intervals
            ],
            "nodes": [node.to_dict() for node in result.nodes],
            "edges": [edge.to_dict() for edge in result.edges],
            "sourceNodeIds": list(result.source_node_ids),
            "sourceEntities": [entity.to_dict() for entity in result.source_entities],
            "validationWarnings": [w.to_dict() for w in result.validation_warnings],
        }

    def export_json(self, filepath: str):
        """Export the whole topology run to JSON."""
        Path(filepath).write_text(json.dumps(self.to_dict(), indent=2, default=str), encoding="utf-8")
        logger.info(f"Topology exported to {filepath} ({self.stats()['edges']} edges)")

    def export_markdown(self, filepath: str):
        """Human-readable summary: intervals, closed paths and warnings."""
        stats = self.stats()
        lines = [f"# Topology: {self.name}", "", "## Statistics", ""]
        lines += [f"- {key.replace('_', ' ')}: {value}" for key, value in stats.items()]

        lines += ["", "## Intervals", ""]
        for interval in self.result.intervals:
            kinds = [n.kind for n in self.result.nodes
                     if n.depth_top == interval.top and n.depth_bottom == interval.bottom]
            lines.append(f"- {interval.top:g} to {interval.bottom:g} ft: {', '.join(kinds) or 'no volumes'}")

        closed = [e for e in self.result.edges if e.is_blocked]
        if closed:
            lines += ["", "## Closed paths", ""]
            for edge in closed:
                summary = edge.reason.summary if edge.reason else ""
                lines.append(f"- `{edge.edge_id}` (cost {edge.cost}): {summary}")

        if self.result.validation_warnings:
            lines += ["", "## Warnings", ""]
            for warning in self.result.validation_warnings:
                where = f" @ {warning.depth:g} ft" if warning.depth is not None else ""
                lines.append(f"- **{warning.code.value}**{where}: {warning.message}")

        Path(filepath).write_text("\n".join(lines) + "\n", encoding="utf-8")
        logger.info(f"Topology summary exported to {filepath}")
