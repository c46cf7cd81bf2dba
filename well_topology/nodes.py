"""
Graph Node Stage
================
Turns resolved geometry intervals into volume nodes.

Per interval (stack probed at the midpoint):
  • bore node (TUBING_INNER) when a core layer has positive thickness;
    blocked when a plug fills the axis
  • one annulus node per annulus layer that carries a volume kind;
    blocked when cement or plug fills it
  • a FORMATION_ANNULUS node for the formation-bounded layer when no
    other node represents that slot
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional

from loguru import logger

from well_geometry.geometry import WellGeometry
from well_geometry.ontology import Layer, LayerRole, Material, VolumeKind
from well_geometry.tolerance import RADIAL_EPSILON
from well_topology.model import GraphNode, NodeIndex, TopologyInterval, node_id, surface_node


INNER_CHANNEL_TUBING = "tubing_inner"
INNER_CHANNEL_WELLBORE = "wellbore_inner"

_BLOCKING_MATERIALS = (Material.CEMENT, Material.PLUG)


@dataclass
class NodeSet:
    intervals: list[TopologyInterval] = field(default_factory=list)
    nodes: list[GraphNode] = field(default_factory=list)
    index: NodeIndex = field(default_factory=NodeIndex)

    def node(self, interval: TopologyInterval, kind: Optional[VolumeKind]) -> Optional[GraphNode]:
        return self.index.get(interval.index, kind)


def _core_layer(stack: list[Layer]) -> Optional[Layer]:
    return next((layer for layer in stack if layer.role is LayerRole.CORE
                 and layer.outer_radius > layer.inner_radius + RADIAL_EPSILON), None)


def _is_bore_plugged(stack: list[Layer]) -> bool:
    return any(layer.material is Material.PLUG and layer.inner_radius <= RADIAL_EPSILON
               and layer.outer_radius > RADIAL_EPSILON for layer in stack)


def inner_channel(stack: list[Layer]) -> str:
    innermost_wall = next((layer for layer in stack if layer.role is LayerRole.PIPE), None)
    if innermost_wall is not None and innermost_wall.pipe_type is not None and innermost_wall.pipe_type.is_transient:
        return INNER_CHANNEL_TUBING
    return INNER_CHANNEL_WELLBORE


def _annulus_node(kind: VolumeKind, interval: TopologyInterval, layer: Layer) -> GraphNode:
    return GraphNode(
        node_id=node_id(kind, interval.top, interval.bottom),
        kind=kind.value,
        depth_top=interval.top,
        depth_bottom=interval.bottom,
        is_blocked=layer.material in _BLOCKING_MATERIALS,
        material=layer.material.value,
        annulus_index=layer.slot_index,
    )


def volume_nodes_for_interval(interval: TopologyInterval) -> list[tuple[VolumeKind, GraphNode]]:
    stack = interval.stack
    nodes: list[tuple[VolumeKind, GraphNode]] = []

    core = _core_layer(stack)
    if core is not None:
        nodes.append((VolumeKind.TUBING_INNER, GraphNode(
            node_id=node_id(VolumeKind.TUBING_INNER, interval.top, interval.bottom),
            kind=VolumeKind.TUBING_INNER.value,
            depth_top=interval.top,
            depth_bottom=interval.bottom,
            is_blocked=_is_bore_plugged(stack),
            material=core.material.value,
            inner_channel=inner_channel(stack),
        )))

    seen: set[VolumeKind] = set()
    for layer in stack:
        if layer.role is not LayerRole.ANNULUS or layer.volume_kind is None or layer.volume_kind in seen:
            continue
        seen.add(layer.volume_kind)
        nodes.append((layer.volume_kind, _annulus_node(layer.volume_kind, interval, layer)))

    formation = next((layer for layer in stack if layer.role is LayerRole.ANNULUS and layer.is_formation), None)
    if formation is not None and VolumeKind.FORMATION_ANNULUS not in seen:
        represented = any(node.annulus_index == formation.slot_index for _, node in nodes
                          if node.annulus_index is not None)
        if not represented:
            nodes.append((VolumeKind.FORMATION_ANNULUS,
                          _annulus_node(VolumeKind.FORMATION_ANNULUS, interval, formation)))
    return nodes


def build_topology_nodes(geometry: WellGeometry) -> NodeSet:
    """Probe every interval and emit its volume nodes, plus the surface sink."""
    probed = []
    for interval in geometry.intervals_with_boundary_reasons():
        if interval.bottom <= interval.top:
            continue
        probed.append((interval, geometry.stack_at_depth(interval.midpoint)))
    probed.sort(key=lambda item: item[0].top)

    result = NodeSet(nodes=[surface_node()])
    for position, (interval, stack) in enumerate(probed):
        interval.stack = stack
        topology_interval = TopologyInterval(index=position, top=interval.top, bottom=interval.bottom,
                                             midpoint=interval.midpoint, stack=stack, source=interval)
        result.intervals.append(topology_interval)
        for kind, node in volume_nodes_for_interval(topology_interval):
            result.nodes.append(node)
            result.index.add(position, kind, node)

    logger.debug(f"Node stage: {len(result.intervals)} intervals, {len(result.nodes)} nodes")
    return result
