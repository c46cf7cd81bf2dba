"""
Source Resolver
===============
Decides which volume nodes are flow origins for a run.

CHANNELS:
  marker              perforation markers (built with the radial edges)
  illustrative fluid  annulus layers whose material resolved to fluid (opt-in)
  open hole           formation-contact intervals, formation node or bore (opt-in)
  explicit scenario   topologySources rows with a target volume and depth range

PRECEDENCE:
  Explicit scenario rows that resolve at least one node replace every other
  channel. Rows that resolve nothing raise a warning and the union of the
  remaining channels is used instead.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Iterable, Optional

from loguru import logger

from well_geometry.ontology import FluidRow, LayerRole, Material, SourceRow, VolumeKind
from well_geometry.tolerance import DEPTH_EPSILON, is_finite, ranges_overlap
from well_topology.model import (
    GraphNode, SourceEntity, SourceKind, SourcePolicy, SourcePolicyMode, TopologyInterval,
    normalize_source_type,
)
from well_topology.nodes import NodeSet
from well_topology.warning_catalog import ValidationWarning, WarningCode, create_warning


@dataclass(frozen=True)
class DepthRange:
    top: float
    bottom: float
    is_point: bool = False


@dataclass
class SourceChannel:
    """Candidate sources produced by one channel."""
    source_node_ids: list[str] = field(default_factory=list)
    source_entities: list[SourceEntity] = field(default_factory=list)
    warnings: list[ValidationWarning] = field(default_factory=list)
    has_scenario_rows: bool = False

    def add_node(self, node_id: str):
        if node_id not in self.source_node_ids:
            self.source_node_ids.append(node_id)


@dataclass
class SourceResolution:
    source_node_ids: list[str]
    source_entities: list[SourceEntity]
    policy: SourcePolicy
    warnings: list[ValidationWarning] = field(default_factory=list)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  DEPTH RANGES
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def resolve_source_depth_range(row: SourceRow) -> Optional[DepthRange]:
    """top+bottom, else a single top/bottom/depth as a point; inverted ranges are invalid."""
    top, bottom = row.top, row.bottom
    if is_finite(top) and is_finite(bottom):
        if bottom < top:
            return None
        return DepthRange(top, bottom, is_point=abs(bottom - top) <= DEPTH_EPSILON)
    for value in (top, bottom, row.depth):
        if is_finite(value):
            return DepthRange(value, value, is_point=True)
    return None


def interval_intersects_range(interval: TopologyInterval, depth_range: Optional[DepthRange]) -> bool:
    if depth_range is None:
        return False
    if depth_range.is_point:
        return interval.top - DEPTH_EPSILON <= depth_range.top <= interval.bottom + DEPTH_EPSILON
    return ranges_overlap(depth_range.top, depth_range.bottom, interval.top, interval.bottom)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  NODE LOOKUP
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def _formation_layer(interval: TopologyInterval):
    return next((layer for layer in interval.stack
                 if layer.role is LayerRole.ANNULUS and layer.is_formation), None)


def formation_source_node(interval: TopologyInterval, nodes: NodeSet) -> Optional[GraphNode]:
    """The FORMATION_ANNULUS node, or the node that represents the formation-bounded slot."""
    direct = nodes.node(interval, VolumeKind.FORMATION_ANNULUS)
    if direct is not None:
        return direct
    layer = _formation_layer(interval)
    if layer is None or layer.volume_kind is None:
        return None
    return nodes.node(interval, layer.volume_kind)


def source_node_for_kind(interval: TopologyInterval, nodes: NodeSet, kind: VolumeKind) -> Optional[GraphNode]:
    if kind is VolumeKind.FORMATION_ANNULUS:
        return formation_source_node(interval, nodes)
    return nodes.node(interval, kind)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  CHANNELS
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def build_fluid_source_nodes(fluid_rows: Iterable[FluidRow], nodes: NodeSet) -> SourceChannel:
    """Every fluid-filled annulus node becomes an illustrative source."""
    channel = SourceChannel()
    has_visible_rows = any(row.show for row in fluid_rows)
    fluid_outside_modeled = False
    unmapped_formation_fluid = False

    for interval in nodes.intervals:
        for layer in interval.stack:
            if layer.role is not LayerRole.ANNULUS or layer.material is not Material.FLUID:
                continue
            node = nodes.node(interval, layer.volume_kind)
            if node is None and layer.is_formation:
                node = formation_source_node(interval, nodes)
            if node is None:
                if layer.is_formation:
                    unmapped_formation_fluid = True
                else:
                    fluid_outside_modeled = True
                continue
            if node.node_id in channel.source_node_ids:
                continue
            channel.add_node(node.node_id)
            channel.source_entities.append(SourceEntity(
                source_id=f"source:illustrative-fluid:{interval.index}:{node.node_id}",
                source_type=SourceKind.SCENARIO.value,
                volume_key=node.kind,
                depth_top=interval.top,
                depth_bottom=interval.bottom,
                origin="illustrative-fluid",
                node_ids=[node.node_id],
            ))

    if has_visible_rows and not channel.source_node_ids:
        channel.warnings.append(create_warning(
            WarningCode.FLUID_ROWS_WITHOUT_MODELED_SOURCE_NODES,
            "Fluid intervals exist, but none currently map to TUBING_ANNULUS/ANNULUS_A/ANNULUS_B/"
            "ANNULUS_C/ANNULUS_D/FORMATION_ANNULUS sources."))
    if fluid_outside_modeled:
        channel.warnings.append(create_warning(
            WarningCode.FLUID_IN_UNMODELED_OUTER_ANNULUS,
            "Fluid detected in non-formation annulus volumes beyond ANNULUS_D; those outer annulus "
            "volumes are not modeled."))
    if unmapped_formation_fluid:
        channel.warnings.append(create_warning(
            WarningCode.UNMAPPED_FORMATION_ANNULUS_FLUID,
            "Formation-annulus fluid was detected, but no resolvable FORMATION_ANNULUS node was created "
            "for at least one interval."))
    return channel


def build_open_hole_source_nodes(nodes: NodeSet) -> SourceChannel:
    """Formation-contact intervals seed their formation node, or the bore when no annulus touches rock."""
    channel = SourceChannel()
    for interval in nodes.intervals:
        if not interval.is_open_hole_boundary:
            continue
        node = formation_source_node(interval, nodes) or nodes.node(interval, VolumeKind.TUBING_INNER)
        if node is None or node.is_blocked:
            continue
        channel.add_node(node.node_id)
        channel.source_entities.append(SourceEntity(
            source_id=f"source:open-hole:{interval.index}:{node.node_id}",
            source_type=SourceKind.FORMATION_INFLOW.value,
            volume_key=node.kind,
            depth_top=interval.top,
            depth_bottom=interval.bottom,
            origin="open-hole",
            node_ids=[node.node_id],
        ))
    return channel


def build_explicit_scenario_source_nodes(source_rows: Iterable[SourceRow], nodes: NodeSet) -> SourceChannel:
    rows = [row for row in source_rows if row.is_visible and not row.is_breakout]
    channel = SourceChannel(has_scenario_rows=bool(rows))

    for position, row in enumerate(rows):
        kind = VolumeKind.normalize(row.volume_key)
        if kind is None:
            channel.warnings.append(create_warning(
                WarningCode.SCENARIO_SOURCE_UNSUPPORTED_VOLUME,
                "Scenario source row has an unsupported volume key. Use TUBING_INNER (legacy BORE), "
                "TUBING_ANNULUS, ANNULUS_A, ANNULUS_B, ANNULUS_C, ANNULUS_D, or FORMATION_ANNULUS.",
                row_id=row.row_id))
            continue

        depth_range = resolve_source_depth_range(row)
        if depth_range is None:
            channel.warnings.append(create_warning(
                WarningCode.SCENARIO_SOURCE_MISSING_DEPTH_RANGE,
                "Scenario source row is missing a valid depth/depth range.", row_id=row.row_id))
            continue

        matched: list[str] = []
        for interval in nodes.intervals:
            if not interval_intersects_range(interval, depth_range):
                continue
            node = source_node_for_kind(interval, nodes, kind)
            if node is None:
                continue
            channel.add_node(node.node_id)
            if node.node_id not in matched:
                matched.append(node.node_id)

        if not matched:
            channel.warnings.append(create_warning(
                WarningCode.SCENARIO_SOURCE_NO_RESOLVABLE_INTERVAL,
                "Scenario source row does not intersect a resolvable topology volume interval.",
                row_id=row.row_id, depth=depth_range.top))
            continue

        channel.source_entities.append(SourceEntity(
            source_id=f"source:scenario:{row.row_id if row.row_id else position}",
            source_type=normalize_source_type(row.source_type),
            volume_key=kind.value,
            depth_top=depth_range.top,
            depth_bottom=depth_range.bottom,
            row_id=row.row_id,
            origin="scenario",
            node_ids=matched,
        ))
    return channel


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  RESOLUTION
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def resolve_source_channels(marker: SourceChannel, explicit: SourceChannel,
                            fluid: Optional[SourceChannel] = None,
                            open_hole: Optional[SourceChannel] = None,
                            use_illustrative_fluid_source: bool = False,
                            use_open_hole_source: bool = False) -> SourceResolution:
    warnings: list[ValidationWarning] = []

    if explicit.has_scenario_rows:
        if explicit.source_node_ids:
            logger.debug(f"Sources: {len(explicit.source_node_ids)} explicit scenario nodes")
            return SourceResolution(
                source_node_ids=list(explicit.source_node_ids),
                source_entities=list(explicit.source_entities),
                policy=SourcePolicy(mode=SourcePolicyMode.SCENARIO_EXPLICIT, marker_derived=False,
                                    explicit_scenario_derived=True),
                warnings=warnings,
            )
        warnings.append(create_warning(
            WarningCode.SCENARIO_ROWS_WITH_NO_RESOLVED_NODES,
            "Scenario source rows are present, but no source nodes were resolved for this run."))

    channels = [marker]
    if use_illustrative_fluid_source and fluid is not None:
        channels.append(fluid)
    if use_open_hole_source and open_hole is not None:
        channels.append(open_hole)

    node_ids: list[str] = []
    entities: list[SourceEntity] = []
    for channel in channels:
        node_ids.extend(n for n in channel.source_node_ids if n not in node_ids)
        entities.extend(channel.source_entities)

    if use_illustrative_fluid_source:
        mode = SourcePolicyMode.FLUID_OPT_IN
    elif use_open_hole_source:
        mode = SourcePolicyMode.OPEN_HOLE_OPT_IN
    else:
        mode = SourcePolicyMode.MARKER_DEFAULT

    logger.debug(f"Sources: {len(node_ids)} nodes, mode {mode.value}")
    return SourceResolution(
        source_node_ids=node_ids,
        source_entities=entities,
        policy=SourcePolicy(mode=mode, marker_derived=True,
                            illustrative_fluid_derived=use_illustrative_fluid_source,
                            open_hole_derived=use_open_hole_source),
        warnings=warnings,
    )


def source_policy_warnings(policy: SourcePolicy, use_illustrative_fluid_source: bool,
                           has_visible_fluid_rows: bool) -> list[ValidationWarning]:
    warnings = []
    if use_illustrative_fluid_source and not policy.explicit_scenario_derived and has_visible_fluid_rows:
        warnings.append(create_warning(
            WarningCode.ILLUSTRATIVE_FLUID_SOURCE_MODE_ENABLED,
            "Illustrative fluid-source mode is enabled. Use marker/open-hole driven scenarios for "
            "engineering decisions."))
    if policy.explicit_scenario_derived:
        warnings.append(create_warning(
            WarningCode.EXPLICIT_SCENARIO_SOURCE_MODE_ACTIVE,
            "Explicit scenario source rows are active. Marker/fluid inferred source fallback is disabled "
            "for this topology run."))
    return warnings
