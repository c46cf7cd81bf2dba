"""
Radial Stack Resolution
=======================
Builds the ordered, non-overlapping radial composition of the wellbore at a
single depth.

PIPELINE (per depth):
  1. Depth context   → active steel (casings + phase transient string),
                       active open holes, outer environment radius
  2. Annulus slots   → one slot outside each steel pipe, tagged with a
                       topology volume kind
  3. Skeleton        → core / pipe wall / annulus layers
  4. Materials       → fluid assignment > cement (own or inherited) > mud
  5. Plug overlay    → plug fills the non-steel space from the axis outward

VOLUME KINDS:
  Transient string inside casing (or formation)  → TUBING_ANNULUS
  Casing at ordinal k among active casings       → ANNULUS_[A..D][k]
  Deeper formation-bounded slot                  → FORMATION_ANNULUS
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Optional

from loguru import logger

from well_geometry.ontology import (
    AnnulusSlot, FluidRow, Layer, LayerRole, LayerSource, ManualOdOverride, Material,
    Perforation, PlugRow, ResolvedPipe, VolumeKind,
    CASING_ANNULUS_KINDS, MAX_FORMATION_CASING_ORDINAL,
)
from well_geometry.references import RowReferenceResolver
from well_geometry.tolerance import (
    BOUNDARY_TOLERANCE, RADIAL_EPSILON, DEPTH_EPSILON,
    is_finite, strictly_within, within_range,
)

if TYPE_CHECKING:
    from well_geometry.geometry import WellGeometry


AUTO_FORMATION_ANNULUS = "Auto: Formation Annulus"
AUTO_PRODUCTION_ANNULUS = "Auto: Production Annulus"
AUTO_A_ANNULUS = "Auto: A-Annulus"
AUTO_B_ANNULUS = "Auto: B-Annulus"
AUTO_C_ANNULUS = "Auto: C-Annulus"
DEFAULT_FLUID_PLACEMENT = AUTO_FORMATION_ANNULUS

_CENTER_REFERENCES = {"none", "none(center)", "none (center)", "none center", "none/center", "center"}


@dataclass
class FluidAssignment:
    index: int
    row: FluidRow
    manual_od: Optional[float] = None


@dataclass
class PlugMatch:
    index: int
    row: PlugRow
    radius: float


@dataclass
class DepthContext:
    """Everything active at one depth, before layers are emitted."""
    depth: float
    active_steel: list[ResolvedPipe] = field(default_factory=list)
    active_open_holes: list[ResolvedPipe] = field(default_factory=list)
    max_open_hole_radius: float = 0.0
    outer_environment_radius: float = 0.0
    annuli: list[AnnulusSlot] = field(default_factory=list)
    fluid_assignments: dict[int, FluidAssignment] = field(default_factory=dict)
    plug: Optional[PlugMatch] = None


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  ACTIVE PIPES & SLOTS
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def active_pipes_at_depth(depth: float, casing_rows: list[ResolvedPipe],
                          transient_rows: list[ResolvedPipe]) -> tuple[list[ResolvedPipe], list[ResolvedPipe]]:
    """Return (active steel sorted by OD, active open holes sorted by OD)."""
    active_casings = [row for row in casing_rows if within_range(depth, row.top, row.bottom)]
    active_transient = [row for row in transient_rows if within_range(depth, row.top, row.bottom)]
    steel = sorted([row for row in active_casings if not row.is_open_hole] + active_transient,
                   key=lambda row: row.od)
    open_holes = sorted([row for row in active_casings if row.is_open_hole], key=lambda row: row.od)

    for previous, current in zip(steel, steel[1:]):
        if abs(current.od - previous.od) <= BOUNDARY_TOLERANCE:
            logger.warning(f"Duplicate active pipe OD {current.od:.3f}\" at depth {depth:.2f} ft")
    return steel, open_holes


def outer_environment_radius(active_steel: list[ResolvedPipe], active_open_holes: list[ResolvedPipe],
                             depth: float) -> float:
    candidates = []
    if active_steel:
        candidates.append(active_steel[-1].outer_radius)
    candidates.extend(row.outer_radius for row in active_open_holes)
    for row in active_steel:
        hole = row.manual_hole_size
        if hole is not None and hole > row.od and strictly_within(depth, row.top, row.bottom):
            candidates.append(hole / 2)
    return max(candidates) if candidates else 0.0


def annulus_volume_kind(slot: AnnulusSlot, active_steel: list[ResolvedPipe]) -> Optional[VolumeKind]:
    """Name the topology volume a slot represents, or None when it is not modeled."""
    pipe = slot.inner_pipe
    if pipe.is_transient:
        if slot.outer_pipe is None or not slot.outer_pipe.is_transient:
            return VolumeKind.TUBING_ANNULUS
        return None

    casings = [row for row in active_steel if not row.is_transient]
    ordinal = next((i for i, row in enumerate(casings) if row.same_row(pipe)), None)
    if ordinal is None:
        return None
    if ordinal < len(CASING_ANNULUS_KINDS) and (not slot.is_formation or ordinal <= MAX_FORMATION_CASING_ORDINAL):
        return CASING_ANNULUS_KINDS[ordinal]
    if slot.is_formation:
        return VolumeKind.FORMATION_ANNULUS
    return None


def build_annulus_slots(active_steel: list[ResolvedPipe], environment_radius: float) -> list[AnnulusSlot]:
    annuli = []
    for i, pipe in enumerate(active_steel):
        next_pipe = active_steel[i + 1] if i + 1 < len(active_steel) else None
        inner = pipe.outer_radius
        outer = next_pipe.inner_radius if next_pipe else environment_radius

        fallback = pipe.fallback_annulus_outer_radius
        if (next_pipe is None or outer <= inner + RADIAL_EPSILON) and \
                is_finite(fallback) and fallback > inner + RADIAL_EPSILON:
            outer = max(outer, fallback)
        if not is_finite(outer) or outer <= inner + RADIAL_EPSILON:
            continue

        slot = AnnulusSlot(index=i, inner_radius=inner, outer_radius=outer,
                           inner_pipe=pipe, outer_pipe=next_pipe, is_formation=next_pipe is None)
        slot.volume_kind = annulus_volume_kind(slot, active_steel)
        annuli.append(slot)
    return annuli


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  FLUIDS & PLUGS
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def normalize_fluid_placement(value) -> str:
    """Canonicalize a placement token; unknown tokens pass through unchanged."""
    raw = str(value or "").strip()
    if not raw:
        return ""
    compact = "".join(ch for ch in raw.lower() if ch not in " \t_-")

    if "formation" in compact:
        return AUTO_FORMATION_ANNULUS
    if "production" in compact:
        return AUTO_PRODUCTION_ANNULUS
    if "aannulus" in compact or compact == "a":
        return AUTO_A_ANNULUS
    if "bannulus" in compact or compact == "b":
        return AUTO_B_ANNULUS
    if "cannulus" in compact or compact == "c":
        return AUTO_C_ANNULUS
    if raw.lower().startswith("behind:"):
        reference = raw.split(":", 1)[1].strip()
        return f"Behind: {reference}" if reference else ""
    return raw


def fluid_placement(row: FluidRow) -> str:
    explicit = normalize_fluid_placement(row.placement)
    if explicit:
        return explicit
    inner_ref = row.inner_ref.strip()
    if inner_ref and inner_ref.lower() not in _CENTER_REFERENCES:
        return f"Behind: {inner_ref}"
    return DEFAULT_FLUID_PLACEMENT


def slot_for_placement(placement: str, annuli: list[AnnulusSlot], references: RowReferenceResolver,
                       placement_ref_id: Optional[str] = None) -> Optional[int]:
    if not placement or not annuli:
        return None
    if placement == AUTO_FORMATION_ANNULUS:
        return annuli[-1].index
    if placement in (AUTO_PRODUCTION_ANNULUS, AUTO_A_ANNULUS):
        return annuli[0].index
    if placement == AUTO_B_ANNULUS:
        return annuli[1].index if len(annuli) > 1 else None
    if placement == AUTO_C_ANNULUS:
        return annuli[2].index if len(annuli) > 2 else None
    if placement.lower().startswith("behind:"):
        reference = placement.split(":", 1)[1].strip()
        casing = references.resolve_casing(reference, placement_ref_id) if reference else None
        if casing is None:
            return None
        slot = next((s for s in annuli if s.inner_pipe.same_row(casing)), None)
        return slot.index if slot else None
    return None


def resolve_fluid_assignments(depth: float, fluid_rows: list[tuple[int, FluidRow]],
                              annuli: list[AnnulusSlot],
                              references: RowReferenceResolver) -> dict[int, FluidAssignment]:
    assignments: dict[int, FluidAssignment] = {}
    for index, row in fluid_rows:
        if not strictly_within(depth, row.top, row.bottom):
            continue
        slot_index = slot_for_placement(fluid_placement(row), annuli, references, row.placement_ref_id)
        if slot_index is None:
            continue
        manual_od = row.manual_od if row.manual_od is not None and row.manual_od > 0 else None
        # last active row in table order wins a slot
        assignments[slot_index] = FluidAssignment(index=index, row=row, manual_od=manual_od)
    return assignments


def resolve_plug_at_depth(depth: float, plug_rows: list[tuple[int, PlugRow]],
                          active_steel: list[ResolvedPipe],
                          references: RowReferenceResolver) -> Optional[PlugMatch]:
    chosen: Optional[PlugMatch] = None
    for index, plug in plug_rows:
        if not strictly_within(depth, plug.top, plug.bottom):
            continue
        radius = None
        if plug.manual_width is not None and plug.manual_width > 0:
            radius = plug.manual_width / 2
        else:
            if plug.attach_to_id or plug.attach_to_row:
                target = references.resolve_casing(plug.attach_to_row, plug.attach_to_id)
                if target is not None:
                    radius = target.outer_radius if target.is_open_hole else target.inner_radius
            if radius is None or radius <= 0:
                radius = active_steel[0].inner_radius if active_steel else None
        if radius is None or radius <= 0:
            continue
        if chosen is None or radius > chosen.radius:
            chosen = PlugMatch(index=index, row=plug, radius=radius)
    return chosen


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  DEPTH CONTEXT
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def resolve_depth_context(depth: float, geometry: "WellGeometry") -> DepthContext:
    if not is_finite(depth):
        return DepthContext(depth=depth)

    steel, open_holes = active_pipes_at_depth(depth, geometry.casing_rows, geometry.transient_rows)
    environment = outer_environment_radius(steel, open_holes, depth)
    annuli = build_annulus_slots(steel, environment)
    return DepthContext(
        depth=depth,
        active_steel=steel,
        active_open_holes=open_holes,
        max_open_hole_radius=max((row.outer_radius for row in open_holes), default=0.0),
        outer_environment_radius=environment,
        annuli=annuli,
        fluid_assignments=resolve_fluid_assignments(depth, geometry.fluid_rows, annuli, geometry.references),
        plug=resolve_plug_at_depth(depth, geometry.plug_rows, steel, geometry.references),
    )


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  LAYERS
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def _pipe_source(pipe: ResolvedPipe) -> LayerSource:
    return LayerSource(type="pipe", index=pipe.index, pipe_type=pipe.pipe_type)


def _is_perforated(pipe: ResolvedPipe, depth: float, perforations: list[Perforation]) -> bool:
    if pipe.is_transient:
        return False
    return any(p.casing_index == pipe.index and within_range(depth, p.top, p.bottom)
               for p in perforations)


def build_skeleton(ctx: DepthContext, perforations: list[Perforation]) -> list[Layer]:
    """Core, pipe-wall and annulus layers with unresolved annulus material."""
    layers: list[Layer] = []
    slots = {slot.index: slot for slot in ctx.annuli}
    outermost_open_hole = ctx.active_open_holes[-1] if ctx.active_open_holes else None

    if ctx.active_steel:
        innermost = ctx.active_steel[0]
        if innermost.inner_radius > RADIAL_EPSILON:
            layers.append(Layer(role=LayerRole.CORE, material=Material.WELLBORE,
                                inner_radius=0.0, outer_radius=innermost.inner_radius))
    elif ctx.outer_environment_radius > RADIAL_EPSILON:
        layers.append(Layer(
            role=LayerRole.CORE, material=Material.WELLBORE,
            inner_radius=0.0, outer_radius=ctx.outer_environment_radius,
            source=_pipe_source(outermost_open_hole) if outermost_open_hole else None,
            is_open_hole_boundary=outermost_open_hole is not None,
        ))

    for i, pipe in enumerate(ctx.active_steel):
        if pipe.outer_radius > pipe.inner_radius + RADIAL_EPSILON:
            layers.append(Layer(
                role=LayerRole.PIPE, material=Material.STEEL,
                inner_radius=pipe.inner_radius, outer_radius=pipe.outer_radius,
                source=_pipe_source(pipe), pipe_type=pipe.pipe_type,
                component_type=pipe.component_type, label=pipe.label,
                is_perforated=_is_perforated(pipe, ctx.depth, perforations),
            ))

        slot = slots.get(i)
        if slot is None:
            continue
        hole = pipe.manual_hole_size
        touches_formation = slot.is_formation and (
            ctx.max_open_hole_radius > slot.inner_radius + RADIAL_EPSILON
            or (hole is not None and hole > pipe.od + RADIAL_EPSILON)
        )
        source_pipe = outermost_open_hole if touches_formation and outermost_open_hole else pipe
        layers.append(Layer(
            role=LayerRole.ANNULUS, material=Material.UNRESOLVED,
            inner_radius=slot.inner_radius, outer_radius=slot.outer_radius,
            source=_pipe_source(source_pipe), slot_index=slot.index,
            inner_pipe=slot.inner_pipe, is_formation=slot.is_formation,
            is_open_hole_boundary=touches_formation, volume_kind=slot.volume_kind,
        ))
    return layers


def _has_cement(pipe: Optional[ResolvedPipe], depth: float) -> bool:
    if pipe is None or pipe.toc is None:
        return False
    bottom = pipe.cement_bottom
    if bottom is None or bottom <= pipe.toc + DEPTH_EPSILON:
        return False
    return within_range(depth, pipe.toc, bottom)


def _has_inherited_cement(layer: Layer, ctx: DepthContext, casing_rows: list[ResolvedPipe]) -> bool:
    """Cement below a casing shoe, pumped from a smaller string, fills the parent's annulus."""
    if layer.inner_pipe is None:
        return False
    for row in casing_rows:
        if not _has_cement(row, ctx.depth):
            continue
        if ctx.depth >= row.top - DEPTH_EPSILON:
            continue
        parent = next((p for p in ctx.active_steel if p.od > row.od + RADIAL_EPSILON), None)
        if parent is not None and parent.same_row(layer.inner_pipe):
            return True
    return False


def manual_od_override(layer: Layer, manual_od: Optional[float]) -> Optional[ManualOdOverride]:
    if manual_od is None or manual_od <= 0:
        return None
    if layer.outer_radius <= layer.inner_radius + RADIAL_EPSILON:
        return None
    requested = manual_od / 2
    minimum = layer.inner_radius + RADIAL_EPSILON
    applied = min(max(requested, minimum), layer.outer_radius)
    if applied <= layer.inner_radius + RADIAL_EPSILON:
        return None
    return ManualOdOverride(
        requested_od=manual_od,
        applied_od=applied * 2,
        minimum_od=minimum * 2,
        maximum_od=layer.outer_radius * 2,
        was_clamped=abs(applied - requested) > RADIAL_EPSILON,
    )


def resolve_annulus_materials(layers: list[Layer], ctx: DepthContext,
                              casing_rows: list[ResolvedPipe]) -> list[Layer]:
    resolved = []
    for layer in layers:
        if layer.role is not LayerRole.ANNULUS:
            resolved.append(layer)
            continue

        assignment = ctx.fluid_assignments.get(layer.slot_index)
        if assignment is not None:
            override = manual_od_override(layer, assignment.manual_od)
            resolved.append(replace(
                layer, material=Material.FLUID,
                outer_radius=override.applied_od / 2 if override else layer.outer_radius,
                manual_od_override=override,
                source=LayerSource(type="fluid", index=assignment.index),
                label=assignment.row.label,
                placement=fluid_placement(assignment.row),
            ))
        elif _has_cement(layer.inner_pipe, ctx.depth) or _has_inherited_cement(layer, ctx, casing_rows):
            resolved.append(replace(layer, material=Material.CEMENT,
                                    source=LayerSource(type="casing", index=layer.inner_pipe.index)))
        else:
            resolved.append(replace(layer, material=Material.MUD))
    return resolved


def _is_steel_layer(layer: Layer) -> bool:
    return layer.material is Material.STEEL or layer.role is LayerRole.PIPE


def apply_plug_overlay(layers: list[Layer], plug: Optional[PlugMatch]) -> list[Layer]:
    """
    Fill non-steel space inside the plug radius with plug material.

    Steel walls are preserved. The axial plug layer stops at the innermost
    preserved wall; annuli lying wholly inside the plug radius beyond that
    wall become plugged annuli so their volume stays represented. An annulus
    the plug radius cuts through is split into a plugged inner segment, which
    carries no volume kind, and an open remainder bounded at the plug radius.
    """
    if plug is None or plug.radius <= RADIAL_EPSILON:
        return layers

    max_outer = max((layer.outer_radius for layer in layers), default=0.0)
    plug_outer = min(plug.radius, max_outer) if max_outer > RADIAL_EPSILON else plug.radius
    if plug_outer <= RADIAL_EPSILON:
        return layers

    core_outer = min([plug_outer] + [layer.inner_radius for layer in layers
                                     if _is_steel_layer(layer) and layer.inner_radius < plug_outer - RADIAL_EPSILON])
    plug_source = LayerSource(type="plug", index=plug.index)

    trimmed = []
    for layer in layers:
        if layer.outer_radius <= layer.inner_radius + RADIAL_EPSILON:
            continue
        if _is_steel_layer(layer):
            trimmed.append(layer)
        elif layer.outer_radius <= plug_outer + RADIAL_EPSILON:
            if layer.role is LayerRole.ANNULUS and layer.inner_radius >= core_outer - RADIAL_EPSILON:
                trimmed.append(replace(layer, material=Material.PLUG, source=plug_source,
                                       label=plug.row.label, manual_od_override=None))
        elif layer.inner_radius < plug_outer - RADIAL_EPSILON and layer.inner_radius < core_outer:
            trimmed.append(replace(layer, inner_radius=core_outer))
        elif layer.inner_radius < plug_outer - RADIAL_EPSILON:
            trimmed.append(replace(layer, material=Material.PLUG, outer_radius=plug_outer, source=plug_source,
                                   label=plug.row.label, manual_od_override=None, volume_kind=None,
                                   is_formation=False, is_open_hole_boundary=False))
            trimmed.append(replace(layer, inner_radius=plug_outer))
        else:
            trimmed.append(layer)

    if core_outer <= RADIAL_EPSILON:
        return trimmed
    plug_core = Layer(role=LayerRole.CORE, material=Material.PLUG, inner_radius=0.0,
                      outer_radius=core_outer, source=plug_source, label=plug.row.label)
    return [plug_core] + trimmed


def stack_at_depth(depth: float, geometry: "WellGeometry") -> list[Layer]:
    """Ordered, non-overlapping radial layers at ``depth`` (empty for a non-finite depth)."""
    ctx = resolve_depth_context(depth, geometry)
    if not is_finite(ctx.depth):
        return []
    layers = build_skeleton(ctx, geometry.perforations)
    layers = resolve_annulus_materials(layers, ctx, geometry.casing_rows)
    return apply_plug_overlay(layers, ctx.plug)
