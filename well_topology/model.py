"""
Topology Graph Model
====================
Node, edge and source records of the wellbore connectivity graph.

  GraphNode     one named fluid volume over one depth interval, plus the
                synthetic surface sink
  GraphEdge     directed communication between two nodes with a failure cost
  SourceEntity  a flow origin and the nodes it resolved to
  SourcePolicy  which source channels contributed to a run

Identifiers are deterministic strings so repeated evaluations of the same
well produce identical graphs.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from well_geometry.ontology import Interval, Layer, VolumeKind


SURFACE_NODE_ID = "node:SURFACE"
SURFACE_KIND = "SURFACE"


class EdgeKind(str, Enum):
    """Edge families."""
    VERTICAL = "vertical"
    RADIAL = "radial"
    TERMINATION = "termination"


class EdgeState(str, Enum):
    """Evaluated condition of an edge."""
    OPEN = "open"
    CLOSED_FAILABLE = "closed_failable"
    FAILED_OPEN = "failed_open"
    LEAKING = "leaking"
    FAILED_CLOSED = "failed_closed"


class SourceKind(str, Enum):
    """What a flow origin represents."""
    PERFORATION = "perforation"
    LEAK = "leak"
    FORMATION_INFLOW = "formation_inflow"
    SCENARIO = "scenario"


class SourcePolicyMode(str, Enum):
    """Which channel set produced the run's sources."""
    MARKER_DEFAULT = "marker_default"
    FLUID_OPT_IN = "fluid_opt_in"
    OPEN_HOLE_OPT_IN = "open_hole_opt_in"
    SCENARIO_EXPLICIT = "scenario_explicit"


def normalize_source_type(value) -> str:
    token = str(value if value is not None else "").strip().lower()
    if not token:
        return SourceKind.SCENARIO.value
    if "perf" in token:
        return SourceKind.PERFORATION.value
    if "leak" in token:
        return SourceKind.LEAK.value
    if "formation" in token or "inflow" in token:
        return SourceKind.FORMATION_INFLOW.value
    return "_".join(token.split())


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  NODES
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def node_id(kind, top: float, bottom: float) -> str:
    value = kind.value if isinstance(kind, Enum) else str(kind)
    return f"node:{value}:{top:.6f}:{bottom:.6f}"


@dataclass
class GraphNode:
    node_id: str
    kind: str                                   # VolumeKind value or "SURFACE"
    depth_top: Optional[float] = None
    depth_bottom: Optional[float] = None
    is_blocked: bool = False                    # cement or plug fills the volume
    material: Optional[str] = None
    annulus_index: Optional[int] = None         # radial slot index in the stack
    inner_channel: Optional[str] = None         # bore only: tubing_inner | wellbore_inner

    @property
    def volume_key(self) -> str:
        return self.kind

    @property
    def is_surface(self) -> bool:
        return self.kind == SURFACE_KIND

    def to_dict(self) -> dict:
        meta: dict = {}
        if not self.is_surface:
            meta["isBlocked"] = self.is_blocked
        if self.material is not None:
            meta["material"] = self.material
        if self.annulus_index is not None:
            meta["annulusIndex"] = self.annulus_index
        if self.inner_channel is not None:
            meta["innerChannel"] = self.inner_channel
        return {
            "nodeId": self.node_id,
            "kind": self.kind,
            "depthTop": self.depth_top,
            "depthBottom": self.depth_bottom,
            "volumeKey": self.volume_key,
            "meta": meta,
        }


def surface_node() -> GraphNode:
    return GraphNode(node_id=SURFACE_NODE_ID, kind=SURFACE_KIND)


@dataclass
class TopologyInterval:
    """An interval re-indexed for graph building, with the stack probed at its midpoint."""
    index: int
    top: float
    bottom: float
    midpoint: float
    stack: list[Layer] = field(default_factory=list)
    source: Optional[Interval] = None

    @property
    def is_open_hole_boundary(self) -> bool:
        return any(layer.is_open_hole_boundary for layer in self.stack)


class NodeIndex:
    """Lookup of volume nodes by (interval index, volume kind)."""

    def __init__(self):
        self._nodes: dict[tuple[int, VolumeKind], GraphNode] = {}

    def add(self, interval_index: int, kind: VolumeKind, node: GraphNode):
        self._nodes[(interval_index, kind)] = node

    def get(self, interval_index: int, kind: Optional[VolumeKind]) -> Optional[GraphNode]:
        if kind is None:
            return None
        return self._nodes.get((interval_index, kind))

    def __contains__(self, key) -> bool:
        return key in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  EDGES
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def edge_id(kind: EdgeKind, from_id: str, to_id: str, suffix: str = "") -> str:
    suffix = str(suffix or "").strip()
    base = f"edge:{kind.value}:{from_id}->{to_id}"
    return f"{base}:{suffix}" if suffix else base


@dataclass
class EdgeReason:
    rule_id: str
    summary: str
    details: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"ruleId": self.rule_id, "summary": self.summary, "details": self.details}


@dataclass
class GraphEdge:
    edge_id: str
    from_id: str
    to_id: str
    kind: EdgeKind
    cost: int = 0
    state: EdgeState = EdgeState.OPEN
    meta: dict = field(default_factory=dict)
    reason: Optional[EdgeReason] = None

    @property
    def is_blocked(self) -> bool:
        return self.state is EdgeState.CLOSED_FAILABLE or self.state is EdgeState.FAILED_CLOSED

    def to_dict(self) -> dict:
        return {
            "edgeId": self.edge_id,
            "from": self.from_id,
            "to": self.to_id,
            "kind": self.kind.value,
            "cost": self.cost,
            "state": self.state.value,
            "meta": self.meta,
            "reason": self.reason.to_dict() if self.reason else None,
        }


@dataclass
class EdgeSet:
    """Edges built by one stage, with their reasons and warnings."""
    edges: list[GraphEdge] = field(default_factory=list)
    warnings: list = field(default_factory=list)
    source_node_ids: list[str] = field(default_factory=list)
    source_entities: list["SourceEntity"] = field(default_factory=list)

    def add(self, edge: GraphEdge):
        self.edges.append(edge)

    @property
    def edge_reasons(self) -> dict[str, EdgeReason]:
        return {edge.edge_id: edge.reason for edge in self.edges if edge.reason is not None}


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  SOURCES
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@dataclass
class SourceEntity:
    source_id: str
    source_type: str
    volume_key: str                             # kind, or "INNER+OUTER" pairs for markers
    depth_top: Optional[float]
    depth_bottom: Optional[float]
    row_id: Optional[str] = None
    origin: str = "scenario"                    # marker | illustrative-fluid | open-hole | scenario
    node_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "sourceId": self.source_id,
            "sourceType": self.source_type,
            "volumeKey": self.volume_key,
            "depthTop": self.depth_top,
            "depthBottom": self.depth_bottom,
            "rowId": self.row_id,
            "origin": self.origin,
            "nodeIds": list(self.node_ids),
        }


@dataclass
class SourcePolicy:
    mode: SourcePolicyMode = SourcePolicyMode.MARKER_DEFAULT
    marker_derived: bool = True
    illustrative_fluid_derived: bool = False
    open_hole_derived: bool = False
    explicit_scenario_derived: bool = False

    def to_dict(self) -> dict:
        return {
            "mode": self.mode.value,
            "markerDerived": self.marker_derived,
            "illustrativeFluidDerived": self.illustrative_fluid_derived,
            "openHoleDerived": self.open_hole_derived,
            "explicitScenarioDerived": self.explicit_scenario_derived,
        }
