"""
Wellbore Geometry Resolver
==========================
Turns the raw construction tables of a WellConfiguration into resolved
geometry that the topology layer consumes.

RESOLUTION STEPS:
  1. Pipe normalization    → ResolvedPipe (validated rows, derived diameters)
  2. Connections           → swage / crossover joins per string family
  3. Hangers               → implicit liner-top packers (Barrier)
  4. Equipment placement   → tubing parent, host attachment, seal slot
  5. Critical depths       → every depth where the radial composition changes
  6. Intervals             → consecutive critical depths + boundary reasons
  7. Stacks                → per-depth radial layers (see stack.py)

Invalid rows are dropped silently. Geometry anomalies are logged, never raised.
"""

from __future__ import annotations
from typing import Iterable, Optional

from loguru import logger

from well_geometry.ontology import (
    Barrier, BoundaryReason, Connection, ConnectionType, EquipmentPlacement, EquipmentRow,
    HostType, Interval, Layer, LinerMode, MarkerBoundary, MarkerType, Perforation, PipeRow,
    PipeType, ResolvedEquipment, ResolvedPipe, WellConfiguration,
)
from well_geometry.references import RowReferenceResolver
from well_geometry.stack import (
    DepthContext, active_pipes_at_depth, build_annulus_slots, outer_environment_radius,
    resolve_depth_context, stack_at_depth,
)
from well_geometry.tolerance import (
    BOUNDARY_TOLERANCE, DEFAULT_CROSSOVER_EPSILON, DEFAULT_ID_RATIO, DEPTH_EPSILON,
    HANGER_PROBE_OFFSET, LINER_TOP_OFFSET, MAX_WALL_RATIO, MIN_WALL_RATIO,
    STEEL_DENSITY_FACTOR_IMPERIAL, approx_eq, is_finite, parse_optional_number, within_range,
)


EQUIPMENT_WARNING_MISSING_ATTACH_TARGET = "equipment_missing_attach_target"
EQUIPMENT_WARNING_UNRESOLVED_ATTACH_TARGET = "equipment_unresolved_attach_target"
EQUIPMENT_WARNING_INVALID_HOST_DEPTH = "equipment_invalid_host_depth"

# Equipment types that must be attached to a host pipe row
HOST_ATTACHED_EQUIPMENT_TOKENS = ("packer", "bridge plug", "bridge_plug", "bridge-plug")

DEFAULT_MIN_DEPTH = 0.0
DEFAULT_MAX_DEPTH = 1000.0


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  PIPE NORMALIZATION
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def estimate_casing_id(od: Optional[float], weight: Optional[float]) -> float:
    """
    Estimate inner diameter from OD and nominal weight.

    wall = weight / (od * 10.68), clamped to [1%, 15%] of OD. Without a usable
    weight the ID defaults to 90% of OD.
    """
    if od is None or od <= 0:
        return 0.0
    if weight is None or weight <= 0:
        return od * DEFAULT_ID_RATIO
    wall = weight / (od * STEEL_DENSITY_FACTOR_IMPERIAL)
    wall = min(max(wall, od * MIN_WALL_RATIO), od * MAX_WALL_RATIO)
    return od - 2 * wall


def _resolve_inner_diameter(row: PipeRow, is_open_hole: bool) -> float:
    od = row.od
    if is_open_hole:
        return od
    if row.id_override is not None and row.id_override > 0:
        inner = row.id_override
    else:
        inner = estimate_casing_id(od, row.weight)
    safe = min(inner, od)
    if safe <= 0:
        safe = od * DEFAULT_ID_RATIO
    if safe >= od:
        safe = od * DEFAULT_ID_RATIO
    return safe


def normalize_pipe_rows(rows: Iterable[PipeRow], pipe_type: PipeType, allow_open_hole: bool = False,
                        include_cement: bool = False,
                        include_manual_hole_size: bool = False) -> list[ResolvedPipe]:
    resolved = []
    for index, row in enumerate(rows):
        if row.od is None or row.od <= 0 or row.top is None or row.bottom is None:
            continue
        if row.bottom <= row.top:
            continue

        is_open_hole = allow_open_hole and row.is_open_hole
        toc = row.toc if include_cement else None
        boc = None
        if include_cement and toc is not None:
            boc = row.boc if row.boc is not None else row.bottom

        resolved.append(ResolvedPipe(
            index=index,
            pipe_type=pipe_type,
            od=row.od,
            top=row.top,
            bottom=row.bottom,
            inner_diameter=_resolve_inner_diameter(row, is_open_hole),
            toc=toc,
            boc=boc,
            manual_hole_size=row.manual_hole_size if include_manual_hole_size else None,
            manual_parent=row.manual_parent,
            is_open_hole=is_open_hole,
            liner_mode=row.liner_mode,
            weight=row.weight,
            label=row.label,
            row_id=row.row_id,
            component_type=row.component_type,
        ))
    return resolved


def _fallback_annulus_outer_radius(row: ResolvedPipe, rows: list[ResolvedPipe]) -> Optional[float]:
    hole = row.manual_hole_size
    if hole is not None and hole > row.od:
        return hole / 2

    probe = row.top + DEPTH_EPSILON
    candidates = [c for c in rows
                  if c is not row and c.od > row.od and c.top <= probe < c.bottom]
    if not candidates:
        return None
    parent = min(candidates, key=lambda c: c.od)
    return parent.outer_radius if parent.is_open_hole else parent.inner_radius


def normalize_casing_rows(rows: Iterable[PipeRow]) -> list[ResolvedPipe]:
    casing = normalize_pipe_rows(rows, PipeType.CASING, allow_open_hole=True,
                                 include_cement=True, include_manual_hole_size=True)
    for row in casing:
        row.fallback_annulus_outer_radius = _fallback_annulus_outer_radius(row, casing)
    return casing


def normalize_tubing_rows(rows: Iterable[PipeRow]) -> list[ResolvedPipe]:
    return normalize_pipe_rows(rows, PipeType.TUBING)


def normalize_drill_string_rows(rows: Iterable[PipeRow]) -> list[ResolvedPipe]:
    return normalize_pipe_rows(rows, PipeType.DRILL_STRING)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  CONNECTIONS & HANGERS
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def _is_connection_path_blocked(parent: ResolvedPipe, child: ResolvedPipe, rows: list[ResolvedPipe],
                                size_tolerance: float) -> bool:
    """An intermediate-size row spanning the parent's bottom sits between parent and child."""
    for row in rows:
        if row is parent or row is child:
            continue
        if not (row.top < parent.bottom < row.bottom):
            continue
        if child.od + size_tolerance < row.od < parent.od - size_tolerance:
            return True
    return False


def resolve_connections(rows: list[ResolvedPipe], pipe_type: PipeType = PipeType.CASING,
                        crossover_epsilon: Optional[float] = DEFAULT_CROSSOVER_EPSILON,
                        size_tolerance: float = DEPTH_EPSILON,
                        allow_manual_parent: Optional[bool] = None,
                        require_larger_parent: Optional[bool] = None,
                        boundary_tolerance: float = BOUNDARY_TOLERANCE) -> list[Connection]:
    """
    Find the parent row each row hangs from and classify the join.

    A parent's bottom must lie within ``crossover_epsilon`` of the child's top.
    Casing strings additionally require a strictly larger parent with no
    intermediate-size row in between, and honour a 1-based manual parent.
    The closest gap wins, then the smaller parent OD.
    """
    epsilon = parse_optional_number(crossover_epsilon)
    if epsilon is None or epsilon < 0:
        epsilon = DEFAULT_CROSSOVER_EPSILON
    is_casing = pipe_type is PipeType.CASING
    allow_manual_parent = is_casing if allow_manual_parent is None else allow_manual_parent
    require_larger_parent = is_casing if require_larger_parent is None else require_larger_parent
    by_index = {row.index: row for row in rows}

    def acceptable(candidate: ResolvedPipe, child: ResolvedPipe) -> bool:
        if candidate is child or abs(child.top - candidate.bottom) > epsilon:
            return False
        if require_larger_parent:
            if candidate.od <= child.od + size_tolerance:
                return False
            if _is_connection_path_blocked(candidate, child, rows, size_tolerance):
                return False
        return True

    connections = []
    for row in rows:
        parent = None
        if allow_manual_parent and row.manual_parent is not None:
            manual = by_index.get(int(row.manual_parent) - 1)
            if manual is not None and acceptable(manual, row):
                parent = manual

        if parent is None:
            candidates = [c for c in rows if acceptable(c, row)]
            candidates.sort(key=lambda c: (abs(row.top - c.bottom), c.od))
            parent = candidates[0] if candidates else None
        if parent is None:
            continue

        kind = (ConnectionType.SWAGE if abs(parent.bottom - row.top) <= boundary_tolerance
                else ConnectionType.CROSSOVER)
        connections.append(Connection(
            type=kind,
            pipe_type=pipe_type,
            upper_index=parent.index,
            lower_index=row.index,
            depth_top=min(parent.bottom, row.top),
            depth_bottom=max(parent.bottom, row.top),
        ))
    return connections


def _hanger_parent_inner_diameter(parent: ResolvedPipe) -> float:
    return parent.od if parent.is_open_hole else min(parent.inner_diameter, parent.od)


def resolve_hangers(casing_rows: list[ResolvedPipe], connections: Iterable[Connection] = ()) -> list[Barrier]:
    """Implicit liner-top packers for casing rows hung inside a larger casing."""
    connected_children = {c.lower_index for c in connections if c.pipe_type is PipeType.CASING}
    barriers = []
    for row in casing_rows:
        if row.index in connected_children:
            continue

        probe = row.top + HANGER_PROBE_OFFSET
        parents = [c for c in casing_rows
                   if c is not row and c.od > row.od and within_range(probe, c.top, c.bottom)]
        if not parents:
            continue
        parent = min(parents, key=lambda c: c.od)

        if row.liner_mode is LinerMode.NO:
            continue
        if row.liner_mode is not LinerMode.YES and row.top <= parent.top + LINER_TOP_OFFSET:
            continue

        parent_inner = _hanger_parent_inner_diameter(parent)
        if parent_inner <= row.od:
            continue
        barriers.append(Barrier(
            row_index=row.index,
            parent_index=parent.index,
            depth=row.top,
            parent_inner_diameter=parent_inner,
            child_outer_diameter=row.od,
        ))
    return barriers


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  EQUIPMENT PLACEMENT
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def requires_attach_host(equipment_type) -> bool:
    token = str(equipment_type or "").strip().lower()
    return any(marker in token for marker in HOST_ATTACHED_EQUIPMENT_TOKENS)


def equipment_display_type(equipment_type) -> str:
    token = str(equipment_type or "").strip()
    lowered = token.lower()
    if lowered == "packer":
        return "Packer"
    if lowered in ("safety valve", "safety_valve", "safety-valve"):
        return "Safety Valve"
    if lowered in ("bridge plug", "bridge_plug", "bridge-plug"):
        return "Bridge Plug"
    return token


def _unresolved_placement(code: str, host_type: Optional[HostType] = None,
                          host: Optional[ResolvedPipe] = None) -> EquipmentPlacement:
    return EquipmentPlacement(
        host_type=host_type,
        host_index=host.index if host else None,
        host_row_id=host.row_id if host else None,
        is_orphaned=True,
        attach_warning_code=code,
    )


def _seal_slot_for_host(depth: float, host: ResolvedPipe, casing_rows: list[ResolvedPipe],
                        transient_rows: list[ResolvedPipe]):
    steel, open_holes = active_pipes_at_depth(depth, casing_rows, transient_rows)
    annuli = build_annulus_slots(steel, outer_environment_radius(steel, open_holes, depth))
    for slot in annuli:
        inner = slot.inner_pipe
        if inner.pipe_type is not host.pipe_type:
            continue
        if host.row_id and inner.row_id:
            if inner.row_id == host.row_id:
                return slot
        elif inner.index == host.index:
            return slot
    return None


def resolve_attachment(row: EquipmentRow, references: RowReferenceResolver,
                       casing_rows: list[ResolvedPipe],
                       transient_rows: list[ResolvedPipe]) -> EquipmentPlacement:
    """Resolve a host-attached tool to its host row and the annulus slot it seals."""
    host_type = HostType.normalize(row.attach_to_host_type)
    if host_type is None or not row.attach_to_id:
        return _unresolved_placement(EQUIPMENT_WARNING_MISSING_ATTACH_TARGET, host_type)

    reference = row.attach_to_row or row.attach_to_display or ""
    resolved = references.resolve(reference, host_type, preferred_id=row.attach_to_id)
    if resolved is None:
        return _unresolved_placement(EQUIPMENT_WARNING_UNRESOLVED_ATTACH_TARGET, host_type)

    host = resolved.row
    if not within_range(row.depth, host.top, host.bottom):
        return _unresolved_placement(EQUIPMENT_WARNING_INVALID_HOST_DEPTH, host_type, host)

    slot = _seal_slot_for_host(row.depth, host, casing_rows, transient_rows)
    if slot is None or slot.volume_kind is None:
        return _unresolved_placement(EQUIPMENT_WARNING_UNRESOLVED_ATTACH_TARGET, host_type, host)

    outer_pipe = slot.outer_pipe
    return EquipmentPlacement(
        host_type=host_type,
        host_index=host.index,
        host_row_id=host.row_id,
        parent_casing_index=outer_pipe.index if outer_pipe and outer_pipe.pipe_type is PipeType.CASING else None,
        parent_inner_diameter=slot.outer_radius * 2,
        seal_node_kind=slot.volume_kind,
        seal_slot_index=slot.index,
        seal_inner_diameter=slot.inner_radius * 2,
        seal_outer_diameter=slot.outer_radius * 2,
    )


def resolve_equipment(rows: Iterable[EquipmentRow], references: RowReferenceResolver,
                      casing_rows: list[ResolvedPipe], tubing_rows: list[ResolvedPipe],
                      transient_rows: list[ResolvedPipe]) -> list[ResolvedEquipment]:
    resolved = []
    for index, row in enumerate(rows):
        if row.depth is None:
            continue
        tubing_parents = [t for t in tubing_rows if within_range(row.depth, t.top, t.bottom)]
        tubing_parent = min(tubing_parents, key=lambda t: t.od) if tubing_parents else None

        placement = None
        if requires_attach_host(row.type):
            placement = resolve_attachment(row, references, casing_rows, transient_rows)
            if placement.attach_warning_code:
                logger.debug(f"Equipment #{index + 1} ({row.type}) attach: {placement.attach_warning_code}")

        resolved.append(ResolvedEquipment(
            row=row,
            index=index,
            tubing_parent_index=tubing_parent.index if tubing_parent else None,
            tubing_parent_od=tubing_parent.od if tubing_parent else None,
            tubing_parent_inner_diameter=tubing_parent.inner_diameter if tubing_parent else None,
            placement=placement,
        ))
    return resolved


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  WELL GEOMETRY
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def _row_label(label: str, fallback: str, index: Optional[int]) -> str:
    if label:
        return label
    suffix = f" #{index + 1}" if index is not None and index >= 0 else ""
    return f"{fallback}{suffix}"


def _add_reason(reasons: list[BoundaryReason], reason: BoundaryReason):
    if any(existing.signature == reason.signature for existing in reasons):
        return
    reasons.append(reason)


class WellGeometry:
    """
    Resolved geometry for one well.

    All derived collections are computed once in ``__init__``; every query
    afterwards is a pure function of them.

    Usage:
        geometry = WellGeometry(well)
        for interval in geometry.intervals_with_boundary_reasons():
            layers = geometry.stack_at_depth(interval.midpoint)
    """

    def __init__(self, well: WellConfiguration):
        self.well = well
        self.config = well.config

        self.casing_rows = normalize_casing_rows(well.casing)
        self.tubing_rows = normalize_tubing_rows(well.tubing)
        self.drill_string_rows = normalize_drill_string_rows(well.drill_string)
        self.references = RowReferenceResolver(self.casing_rows, self.tubing_rows)

        self.fluid_rows = [(i, row) for i, row in enumerate(well.fluids)
                           if row.show and row.top is not None and row.bottom is not None
                           and row.bottom > row.top]
        self.plug_rows = [(i, row) for i, row in enumerate(well.plugs)
                          if row.show and row.top is not None and row.bottom is not None
                          and row.bottom > row.top]
        self.perforations = self._resolve_perforations()
        self.marker_boundaries = self._resolve_marker_boundaries()

        epsilon = self.config.crossover_epsilon
        tolerance = self.config.boundary_tolerance
        self.connections = (
            resolve_connections(self.casing_rows, PipeType.CASING, epsilon, boundary_tolerance=tolerance)
            + resolve_connections(self.tubing_rows, PipeType.TUBING, epsilon, boundary_tolerance=tolerance)
            + resolve_connections(self.drill_string_rows, PipeType.DRILL_STRING, epsilon,
                                  boundary_tolerance=tolerance)
        )
        self.barriers = resolve_hangers(self.casing_rows,
                                        [c for c in self.connections if c.pipe_type is PipeType.CASING])
        self.equipment = resolve_equipment(well.equipment, self.references, self.casing_rows,
                                           self.tubing_rows, self.transient_rows)

        logger.debug(
            f"Geometry resolved: {len(self.casing_rows)} casing, {len(self.tubing_rows)} tubing, "
            f"{len(self.drill_string_rows)} drill string, {len(self.connections)} connections, "
            f"{len(self.barriers)} hangers, {len(self.equipment)} equipment"
        )

    @property
    def transient_rows(self) -> list[ResolvedPipe]:
        if self.config.operation_phase.transient_pipe_type is PipeType.DRILL_STRING:
            return self.drill_string_rows
        return self.tubing_rows

    def rows_of(self, pipe_type: PipeType) -> list[ResolvedPipe]:
        return {
            PipeType.CASING: self.casing_rows,
            PipeType.TUBING: self.tubing_rows,
            PipeType.DRILL_STRING: self.drill_string_rows,
        }[pipe_type]

    # ── Markers ──────────────────────────────────────────────

    def _resolve_perforations(self) -> list[Perforation]:
        perforations = []
        for row in self.well.markers:
            if not row.show or row.marker_type is not MarkerType.PERFORATION or not row.has_valid_range:
                continue
            if not row.attach_to_id and not row.attach_to_row:
                continue
            casing = self.references.resolve_casing(row.attach_to_row, row.attach_to_id)
            if casing is not None:
                perforations.append(Perforation(casing_index=casing.index, top=row.top, bottom=row.bottom))
        return perforations

    def _resolve_marker_boundaries(self) -> list[MarkerBoundary]:
        boundaries = []
        for index, row in enumerate(self.well.markers):
            if not row.show or not row.has_valid_range:
                continue
            is_leak = "leak" in row.type.lower()
            fallback = "Tubing leak" if is_leak else "Marker"
            boundaries.append(MarkerBoundary(
                index=index,
                top=row.top,
                bottom=row.bottom,
                type="tubingLeak" if is_leak else "marker",
                label=row.label or f"{fallback} #{index + 1}",
            ))
        return boundaries

    # ── Critical depths & intervals ──────────────────────────

    def _raw_depths(self) -> list[float]:
        depths: list[float] = []
        for row in self.casing_rows:
            depths.extend(v for v in (row.top, row.bottom, row.toc, row.boc) if v is not None)
        for row in self.tubing_rows + self.drill_string_rows:
            depths.extend((row.top, row.bottom))
        for _, row in self.plug_rows + self.fluid_rows:
            depths.extend((row.top, row.bottom))
        depths.extend(item.depth for item in self.equipment)
        for marker in self.marker_boundaries:
            depths.extend((marker.top, marker.bottom))
        return depths

    def min_depth(self) -> float:
        depths = self._raw_depths()
        return min(depths) if depths else DEFAULT_MIN_DEPTH

    def max_depth(self) -> float:
        depths = self._raw_depths()
        deepest = max(depths) if depths else 0.0
        return deepest if deepest > 0 else DEFAULT_MAX_DEPTH

    def _connection_boundary_lookup(self) -> dict[tuple, float]:
        lookup = {}
        for connection in self.connections:
            join = connection.join_depth
            lookup[(connection.pipe_type, connection.upper_index, "bottom")] = join
            lookup[(connection.pipe_type, connection.lower_index, "top")] = join
        return lookup

    def critical_depths(self) -> list[float]:
        """Sorted depths where the composition can change, deduplicated within DEPTH_EPSILON."""
        lookup = self._connection_boundary_lookup()
        depths = [self.min_depth(), self.max_depth()]

        for row in self.casing_rows + self.tubing_rows + self.drill_string_rows:
            depths.append(lookup.get((row.pipe_type, row.index, "top"), row.top))
            depths.append(lookup.get((row.pipe_type, row.index, "bottom"), row.bottom))
        for row in self.casing_rows:
            depths.extend(v for v in (row.toc, row.boc) if v is not None)
        for _, row in self.plug_rows + self.fluid_rows:
            depths.extend((row.top, row.bottom))
        depths.extend(item.depth for item in self.equipment)
        for marker in self.marker_boundaries:
            depths.extend((marker.top, marker.bottom))

        unique: list[float] = []
        for depth in sorted(d for d in depths if is_finite(d)):
            if not unique or not approx_eq(depth, unique[-1]):
                unique.append(depth)
        return unique

    def intervals(self) -> list[Interval]:
        depths = self.critical_depths()
        intervals = []
        for top, bottom in zip(depths, depths[1:]):
            if bottom > top:
                intervals.append(Interval(index=len(intervals), top=top, bottom=bottom,
                                          midpoint=(top + bottom) / 2))
        return intervals

    def boundary_reasons(self, depth: float, include_model_start: bool = False,
                         include_model_end: bool = False) -> list[BoundaryReason]:
        reasons: list[BoundaryReason] = []
        if not is_finite(depth):
            return reasons

        def hits(boundary) -> bool:
            return approx_eq(depth, boundary)

        if include_model_start:
            _add_reason(reasons, BoundaryReason("model", "start"))
        if include_model_end:
            _add_reason(reasons, BoundaryReason("model", "end"))

        for row in self.casing_rows:
            label = _row_label(row.label, "Open hole" if row.is_open_hole else "Casing", row.index)
            if hits(row.top):
                _add_reason(reasons, BoundaryReason("casing", "start", label, row.index))
            if hits(row.bottom):
                _add_reason(reasons, BoundaryReason("casing", "end", label, row.index))
            cement_bottom = row.cement_bottom
            if row.toc is not None and cement_bottom is not None and cement_bottom > row.toc + DEPTH_EPSILON:
                if hits(row.toc):
                    _add_reason(reasons, BoundaryReason("cement", "start", label, row.index))
                if hits(cement_bottom):
                    _add_reason(reasons, BoundaryReason("cement", "end", label, row.index))

        for kind, fallback, rows in (("fluid", "Fluid", self.fluid_rows), ("plug", "Plug", self.plug_rows)):
            for index, row in rows:
                label = _row_label(row.label, fallback, index)
                if hits(row.top):
                    _add_reason(reasons, BoundaryReason(kind, "start", label, index))
                if hits(row.bottom):
                    _add_reason(reasons, BoundaryReason(kind, "end", label, index))

        for marker in self.marker_boundaries:
            if abs(marker.bottom - marker.top) <= DEPTH_EPSILON and hits(marker.top):
                _add_reason(reasons, BoundaryReason(marker.type, "point", marker.label, marker.index))
                continue
            if hits(marker.top):
                _add_reason(reasons, BoundaryReason(marker.type, "start", marker.label, marker.index))
            if hits(marker.bottom):
                _add_reason(reasons, BoundaryReason(marker.type, "end", marker.label, marker.index))

        for position, connection in enumerate(self.connections):
            if not (hits(connection.depth_top) or hits(connection.depth_bottom) or hits(connection.join_depth)):
                continue
            rows = {row.index: row for row in self.rows_of(connection.pipe_type)}
            prefix = connection.pipe_type.display_name
            upper = rows.get(connection.upper_index)
            lower = rows.get(connection.lower_index)
            upper_label = _row_label(upper.label if upper else "", f"Upper {prefix.lower()}", connection.upper_index)
            lower_label = _row_label(lower.label if lower else "", f"Lower {prefix.lower()}", connection.lower_index)
            kind = "Swage" if connection.type is ConnectionType.SWAGE else "Crossover"
            _add_reason(reasons, BoundaryReason(
                "connection", "transition", f"{kind} ({prefix}): {upper_label} -> {lower_label}", position))

        casing_by_index = {row.index: row for row in self.casing_rows}
        for position, barrier in enumerate(self.barriers):
            if not hits(barrier.depth):
                continue
            child = casing_by_index.get(barrier.row_index)
            parent = casing_by_index.get(barrier.parent_index)
            child_label = _row_label(child.label if child else "", "Child casing", barrier.row_index)
            parent_label = _row_label(parent.label if parent else "", "Parent casing", barrier.parent_index)
            _add_reason(reasons, BoundaryReason(
                "barrier", "transition", f"Liner packer: {child_label} in {parent_label}", position))

        for item in self.equipment:
            if not hits(item.depth):
                continue
            fallback = equipment_display_type(item.row.type) or "Equipment"
            _add_reason(reasons, BoundaryReason(
                "equipment", "transition", _row_label(item.row.label, fallback, item.index), item.index))

        if not reasons:
            _add_reason(reasons, BoundaryReason("depth", "transition"))
        return reasons

    def intervals_with_boundary_reasons(self) -> list[Interval]:
        intervals = self.intervals()
        last = len(intervals) - 1
        for position, interval in enumerate(intervals):
            interval.start_boundary_reasons = self.boundary_reasons(
                interval.top, include_model_start=position == 0)
            interval.end_boundary_reasons = self.boundary_reasons(
                interval.bottom, include_model_end=position == last)
        return intervals

    # ── Stacks ───────────────────────────────────────────────

    def depth_context(self, depth: float) -> DepthContext:
        return resolve_depth_context(depth, self)

    def stack_at_depth(self, depth: float) -> list[Layer]:
        return stack_at_depth(depth, self)
