"""
Edge Builder
============
Assembles the directed edges of the connectivity graph.

EDGE FAMILIES:
  vertical     same-kind continuity between consecutive intervals, plus the
               structural transitions found at each boundary
  radial       marker (perforation / leak) and scenario-breakout communication
               between two volumes inside one interval
  termination  every volume of the shallowest interval to the surface sink

COST MODEL:
  open              cost 0
  closed_failable   cost max(material block, equipment cost, 1)
"""

from __future__ import annotations
from typing import Iterable, Optional

from loguru import logger

from well_geometry.ontology import (
    HostType, LayerRole, MarkerRow, MarkerType, PipeType, ResolvedEquipment, ResolvedPipe,
    SourceRow, VolumeKind, TOPOLOGY_VOLUME_KINDS,
)
from well_geometry.references import ResolvedReference, RowReferenceResolver
from well_geometry.tolerance import DEPTH_EPSILON, ranges_overlap, within_range
from well_topology.equipment_rules import resolve_boundary_equipment_effects
from well_topology.model import (
    EdgeKind, EdgeReason, EdgeSet, EdgeState, GraphEdge, GraphNode, SourceEntity, SourceKind,
    TopologyInterval, SURFACE_NODE_ID, edge_id, normalize_source_type,
)
from well_topology.nodes import NodeSet
from well_topology.sources import interval_intersects_range, resolve_source_depth_range
from well_topology.transitions import TransitionDefinition, resolve_boundary_transitions, resolve_transition_state
from well_topology.warning_catalog import WarningCode, create_warning


PAIR_DEFAULT_TUBING = "default_tubing_inner_tubing_annulus"
PAIR_DEFAULT_ANNULUS_A = "default_bore_annulus_a"
PAIR_CASING_HOST = "casing_host_adjacent_annuli"
PAIR_SCENARIO = "scenario_cross_annulus_failure"


def _blocked_cost(blocked_by_material: bool, equipment_cost: int) -> int:
    return max(1 if blocked_by_material else 0, equipment_cost, 1)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  VERTICAL
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def _transition_edge(definition: TransitionDefinition, effects, current: TopologyInterval,
                     upcoming: TopologyInterval, boundary: float) -> GraphEdge:
    state = resolve_transition_state(definition, effects)
    from_node, to_node = definition.from_node, definition.to_node
    return GraphEdge(
        edge_id=edge_id(EdgeKind.VERTICAL, from_node.node_id, to_node.node_id, definition.edge_suffix),
        from_id=from_node.node_id,
        to_id=to_node.node_id,
        kind=EdgeKind.VERTICAL,
        cost=state.cost,
        state=EdgeState.CLOSED_FAILABLE if state.blocked else EdgeState.OPEN,
        meta={
            "volumeKey": definition.primary_volume_kind.value if definition.primary_volume_kind else None,
            "fromVolumeKey": from_node.kind,
            "toVolumeKey": to_node.kind,
            "transitionType": definition.transition_type,
            "transitionRuleId": definition.rule_id,
        },
        reason=EdgeReason(
            rule_id=definition.rule_id,
            summary=definition.summary_when_blocked if state.blocked else definition.summary_when_open,
            details={
                "fromInterval": current.index,
                "toInterval": upcoming.index,
                "boundaryDepth": boundary,
                "fromVolumeKey": from_node.kind,
                "toVolumeKey": to_node.kind,
                "transitionType": definition.transition_type,
                "blockedByMaterial": state.blocked_by_material,
                "blockedByEquipment": state.blocked_by_equipment,
                "equipmentContributors": [c.to_dict() for c in state.equipment_contributors],
            },
        ),
    )


def build_vertical_edges(nodes: NodeSet, equipment: Iterable[ResolvedEquipment] = (),
                         references: Optional[RowReferenceResolver] = None) -> EdgeSet:
    """
    Continuity edges across every interval boundary.

    Equipment effects are evaluated once per boundary at the upper interval's
    bottom. Structural transitions at the same boundary reuse those effects;
    unmodeled ones become warnings instead of edges.
    """
    result = EdgeSet()
    equipment = list(equipment)
    intervals = nodes.intervals

    for current, upcoming in zip(intervals, intervals[1:]):
        boundary = upcoming.top
        effects = resolve_boundary_equipment_effects(boundary, equipment, epsilon=DEPTH_EPSILON,
                                                     references=references)
        result.warnings.extend(effects.warnings)

        for kind in TOPOLOGY_VOLUME_KINDS:
            from_node = nodes.node(current, kind)
            to_node = nodes.node(upcoming, kind)
            if from_node is None or to_node is None:
                continue
            blocked_by_material = from_node.is_blocked or to_node.is_blocked
            effect = effects.effect(kind)
            blocked = blocked_by_material or effect.blocked
            result.add(GraphEdge(
                edge_id=edge_id(EdgeKind.VERTICAL, from_node.node_id, to_node.node_id, kind.value),
                from_id=from_node.node_id,
                to_id=to_node.node_id,
                kind=EdgeKind.VERTICAL,
                cost=_blocked_cost(blocked_by_material, effect.cost) if blocked else 0,
                state=EdgeState.CLOSED_FAILABLE if blocked else EdgeState.OPEN,
                meta={"volumeKey": kind.value},
                reason=EdgeReason(
                    rule_id="vertical-continuity",
                    summary=(f"Vertical continuity for {kind.value} is blocked by interval content or "
                             f"equipment seal behavior." if blocked
                             else f"Vertical continuity for {kind.value} is open."),
                    details={
                        "fromInterval": current.index,
                        "toInterval": upcoming.index,
                        "volumeKey": kind.value,
                        "boundaryDepth": boundary,
                        "blockedByMaterial": blocked_by_material,
                        "blockedByEquipment": effect.blocked,
                        "equipmentContributors": [c.to_dict() for c in effect.contributors],
                    },
                ),
            ))

        for definition in resolve_boundary_transitions(current, upcoming, nodes):
            if not definition.emits_edge:
                result.warnings.append(create_warning(
                    definition.warning_code or WarningCode.STRUCTURAL_TRANSITION_NOT_MODELED,
                    definition.warning_summary, depth=boundary))
                continue
            result.add(_transition_edge(definition, effects, current, upcoming, boundary))

    logger.debug(f"Vertical edges: {len(result.edges)}, warnings: {len(result.warnings)}")
    return result


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  RADIAL (MARKERS)
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def _marker_intersects(top: float, bottom: float, interval: TopologyInterval) -> bool:
    if abs(bottom - top) <= DEPTH_EPSILON:
        return within_range(top, interval.top, interval.bottom)
    return ranges_overlap(top, bottom, interval.top, interval.bottom)


def _range_overlaps_host(top: float, bottom: float, host: Optional[ResolvedPipe]) -> bool:
    if host is None:
        return False
    if abs(bottom - top) <= DEPTH_EPSILON:
        return within_range(top, host.top, host.bottom)
    return ranges_overlap(top, bottom, host.top, host.bottom)


def resolve_marker_host(marker: MarkerRow, host_type: HostType,
                        references: RowReferenceResolver) -> Optional[ResolvedReference]:
    """Row reference first, then the stable row id."""
    if marker.attach_to_row:
        resolved = references.resolve(marker.attach_to_row, host_type)
        if resolved is not None:
            return resolved
    if not marker.attach_to_id:
        return None
    return references.resolve("", host_type, preferred_id=marker.attach_to_id)


def default_radial_pair(interval: TopologyInterval, nodes: NodeSet) -> tuple[VolumeKind, VolumeKind, str]:
    if nodes.node(interval, VolumeKind.TUBING_ANNULUS) is not None:
        return VolumeKind.TUBING_INNER, VolumeKind.TUBING_ANNULUS, PAIR_DEFAULT_TUBING
    return VolumeKind.TUBING_INNER, VolumeKind.ANNULUS_A, PAIR_DEFAULT_ANNULUS_A


def casing_host_radial_pair(interval: TopologyInterval,
                            host: Optional[ResolvedReference]) -> Optional[tuple[VolumeKind, VolumeKind, str]]:
    """The volumes on either side of the host casing's wall in this interval's stack."""
    if host is None or host.host_type is not HostType.CASING:
        return None
    stack = interval.stack
    position = next((i for i, layer in enumerate(stack)
                     if layer.role is LayerRole.PIPE and layer.source is not None
                     and layer.source.pipe_type is PipeType.CASING and layer.source.index == host.row.index), None)
    if position is None or position == 0 or position + 1 >= len(stack):
        return None

    inside = stack[position - 1]
    if inside.role is LayerRole.CORE:
        inner_kind = VolumeKind.TUBING_INNER
    elif inside.role is LayerRole.ANNULUS:
        inner_kind = inside.volume_kind
    else:
        inner_kind = None
    outer_kind = None
    # a partly plugged annulus leads with a kindless plug segment
    for outside in stack[position + 1:]:
        if outside.role is not LayerRole.ANNULUS:
            break
        if outside.volume_kind is not None:
            outer_kind = outside.volume_kind
            break
    if inner_kind is None or outer_kind is None or inner_kind is outer_kind:
        return None
    return inner_kind, outer_kind, PAIR_CASING_HOST


def _marker_warning(code: WarningCode, message: str, marker: MarkerRow, depth: Optional[float]):
    return create_warning(code, message, row_id=marker.row_id, depth=depth)


def build_radial_edges(markers: Iterable[MarkerRow], nodes: NodeSet,
                       references: RowReferenceResolver) -> EdgeSet:
    """
    One radial edge per marker per overlapping interval.

    Perforations also register their unblocked endpoint nodes as marker
    sources; leaks only open the path.
    """
    result = EdgeSet()

    for marker_index, marker in enumerate(markers):
        if not marker.show:
            continue
        marker_type = marker.marker_type
        if marker_type is None:
            continue

        top, bottom = marker.top, marker.bottom
        if not marker.has_valid_range:
            result.warnings.append(_marker_warning(
                WarningCode.MARKER_INVALID_DEPTH_RANGE,
                "Marker depth range is invalid for topology radial edge generation.", marker, top))
            continue

        host_type = HostType.normalize(marker.attach_to_host_type, HostType.CASING)
        has_reference = bool(marker.attach_to_id or marker.attach_to_row)
        host = resolve_marker_host(marker, host_type, references) if has_reference else None
        if has_reference and host is None:
            result.warnings.append(_marker_warning(
                WarningCode.MARKER_UNRESOLVED_HOST_REFERENCE,
                "Marker host reference could not be resolved.", marker, top))
            continue

        tubing_host_leak = marker_type is MarkerType.LEAK and host_type is HostType.TUBING
        host_row = host.row if host else None
        if tubing_host_leak and not _range_overlaps_host(top, bottom, host_row):
            result.warnings.append(_marker_warning(
                WarningCode.MARKER_INVALID_TUBING_HOST_AT_DEPTH,
                "Tubing-host leak marker does not overlap the selected tubing row at marker depth.",
                marker, top))
            continue

        connected = 0
        marker_sources: list[str] = []
        volume_pairs: set[str] = set()
        for interval in nodes.intervals:
            if not _marker_intersects(top, bottom, interval):
                continue
            if tubing_host_leak and not ranges_overlap(host_row.top, host_row.bottom, interval.top, interval.bottom):
                continue

            fallback = default_radial_pair(interval, nodes)
            pair = fallback if tubing_host_leak else (casing_host_radial_pair(interval, host) or fallback)
            inner_node = nodes.node(interval, pair[0])
            outer_node = nodes.node(interval, pair[1])
            if (inner_node is None or outer_node is None) and not tubing_host_leak:
                pair = fallback
                inner_node = nodes.node(interval, pair[0])
                outer_node = nodes.node(interval, pair[1])
            if inner_node is None or outer_node is None:
                continue

            result.add(_marker_edge(marker, marker_index, marker_type, host_type, host_row,
                                    interval, pair, inner_node, outer_node, tubing_host_leak))
            connected += 1
            volume_pairs.add(f"{pair[0].value}+{pair[1].value}")
            if marker_type is MarkerType.PERFORATION:
                for node in (inner_node, outer_node):
                    if not node.is_blocked and node.node_id not in marker_sources:
                        marker_sources.append(node.node_id)

        if connected == 0:
            result.warnings.append(_marker_warning(
                WarningCode.MARKER_NO_RESOLVABLE_INTERVAL_OVERLAP,
                "Marker does not intersect a resolvable topology radial volume pair.", marker, top))
            continue
        if marker_type is not MarkerType.PERFORATION or not marker_sources:
            continue

        result.source_node_ids.extend(n for n in marker_sources if n not in result.source_node_ids)
        result.source_entities.append(SourceEntity(
            source_id=f"source:marker:{marker.row_id if marker.row_id else marker_index}",
            source_type=SourceKind.PERFORATION.value,
            volume_key="|".join(sorted(volume_pairs)),
            depth_top=top,
            depth_bottom=bottom,
            row_id=marker.row_id,
            origin="marker",
            node_ids=marker_sources,
        ))

    logger.debug(f"Radial edges: {len(result.edges)}, marker sources: {len(result.source_node_ids)}")
    return result


def _marker_edge(marker: MarkerRow, marker_index: int, marker_type: MarkerType, host_type: HostType,
                 host_row: Optional[ResolvedPipe], interval: TopologyInterval,
                 pair: tuple[VolumeKind, VolumeKind, str], inner_node: GraphNode, outer_node: GraphNode,
                 tubing_host_leak: bool) -> GraphEdge:
    inner_kind, outer_kind, pair_source = pair
    blocked_by_material = inner_node.is_blocked or outer_node.is_blocked
    if tubing_host_leak:
        summary = "Tubing-host leak marker creates a radial communication path where tubing exists."
    elif pair_source == PAIR_CASING_HOST:
        summary = "Casing-host marker creates a radial communication path across adjacent annulus volumes."
    else:
        summary = f"{marker_type.value} marker creates a radial communication path."
    if blocked_by_material:
        summary += " The path is currently blocked by interval material content."

    host_row_id = host_row.row_id if host_row else None
    return GraphEdge(
        edge_id=edge_id(EdgeKind.RADIAL, inner_node.node_id, outer_node.node_id,
                        f"{marker_index}:{interval.index}:{marker_type.value}"),
        from_id=inner_node.node_id,
        to_id=outer_node.node_id,
        kind=EdgeKind.RADIAL,
        cost=1 if blocked_by_material else 0,
        state=EdgeState.CLOSED_FAILABLE if blocked_by_material else EdgeState.OPEN,
        meta={
            "markerIndex": marker_index,
            "markerRowId": marker.row_id,
            "markerType": marker_type.value,
            "markerHostType": host_type.value,
            "markerHostRowId": host_row_id,
            "fromVolumeKey": inner_kind.value,
            "toVolumeKey": outer_kind.value,
            "radialPairSource": pair_source,
        },
        reason=EdgeReason(
            rule_id=f"marker-{marker_type.value}",
            summary=summary,
            details={
                "markerIndex": marker_index,
                "intervalIndex": interval.index,
                "markerHostType": host_type.value,
                "markerHostRowId": host_row_id,
                "fromVolumeKey": inner_kind.value,
                "toVolumeKey": outer_kind.value,
                "radialPairSource": pair_source,
                "blockedByMaterial": blocked_by_material,
            },
        ),
    )


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  RADIAL (SCENARIO BREAKOUTS)
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def build_scenario_radial_edges(source_rows: Iterable[SourceRow], nodes: NodeSet) -> EdgeSet:
    """Explicit cross-annulus breakouts: an open edge wherever both volumes exist."""
    result = EdgeSet()
    rows = [row for row in source_rows if row.is_visible and row.is_breakout]

    for position, row in enumerate(rows):
        if not row.from_volume_key or not row.to_volume_key:
            result.warnings.append(create_warning(
                WarningCode.SCENARIO_BREAKOUT_MISSING_VOLUME_PAIR,
                "Scenario breakout row must include both fromVolume and toVolume keys.", row_id=row.row_id))
            continue

        from_kind = VolumeKind.normalize(row.from_volume_key)
        to_kind = VolumeKind.normalize(row.to_volume_key)
        if from_kind is None or to_kind is None or from_kind is to_kind:
            result.warnings.append(create_warning(
                WarningCode.SCENARIO_BREAKOUT_UNSUPPORTED_VOLUME_PAIR,
                "Scenario breakout row has an unsupported volume pair for radial connectivity.",
                row_id=row.row_id))
            continue

        depth_range = resolve_source_depth_range(row)
        if depth_range is None:
            result.warnings.append(create_warning(
                WarningCode.SCENARIO_BREAKOUT_MISSING_DEPTH_RANGE,
                "Scenario breakout row is missing a valid depth/depth range.", row_id=row.row_id))
            continue

        source_type = normalize_source_type(row.source_type)
        connected = 0
        for interval in nodes.intervals:
            if not interval_intersects_range(interval, depth_range):
                continue
            from_node = nodes.node(interval, from_kind)
            to_node = nodes.node(interval, to_kind)
            if from_node is None or to_node is None:
                continue
            result.add(GraphEdge(
                edge_id=edge_id(EdgeKind.RADIAL, from_node.node_id, to_node.node_id,
                                f"scenario-breakout:{position}:{interval.index}:{from_kind.value}:{to_kind.value}"),
                from_id=from_node.node_id,
                to_id=to_node.node_id,
                kind=EdgeKind.RADIAL,
                meta={
                    "scenarioBreakoutRowId": row.row_id,
                    "scenarioBreakoutSourceType": source_type,
                    "fromVolumeKey": from_kind.value,
                    "toVolumeKey": to_kind.value,
                    "radialPairSource": PAIR_SCENARIO,
                },
                reason=EdgeReason(
                    rule_id="scenario-cross-annulus-failure",
                    summary="Scenario breakout row creates explicit cross-annulus radial connectivity.",
                    details={
                        "sourceIndex": position,
                        "intervalIndex": interval.index,
                        "fromVolumeKey": from_kind.value,
                        "toVolumeKey": to_kind.value,
                        "sourceType": source_type,
                    },
                ),
            ))
            connected += 1

        if connected == 0:
            result.warnings.append(create_warning(
                WarningCode.SCENARIO_BREAKOUT_NO_RESOLVABLE_INTERVAL,
                "Scenario breakout row does not intersect a resolvable interval with both configured volumes.",
                row_id=row.row_id, depth=depth_range.top))
    return result


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  TERMINATION
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def build_termination_edges(nodes: NodeSet) -> EdgeSet:
    result = EdgeSet()
    if not nodes.intervals:
        return result
    top = nodes.intervals[0]
    for kind in TOPOLOGY_VOLUME_KINDS:
        node = nodes.node(top, kind)
        if node is None:
            continue
        result.add(GraphEdge(
            edge_id=edge_id(EdgeKind.TERMINATION, node.node_id, SURFACE_NODE_ID, kind.value),
            from_id=node.node_id,
            to_id=SURFACE_NODE_ID,
            kind=EdgeKind.TERMINATION,
            meta={"volumeKey": kind.value},
            reason=EdgeReason(rule_id="surface-termination",
                              summary=f"{kind.value} top interval connects to surface sink.",
                              details={"intervalIndex": top.index}),
        ))
    return result
