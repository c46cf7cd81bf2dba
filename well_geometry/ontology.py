"""
Wellbore Construction Ontology
==============================
Typed vocabulary and records for a single wellbore: the rows a user enters in
the construction tables, the run configuration, and the resolved geometry
entities derived from them.

DATA MODEL:
  Input rows:     PipeRow (casing / tubing / drill string), EquipmentRow,
                  MarkerRow, FluidRow, PlugRow, SourceRow
  Configuration:  TopologyConfig, WellConfiguration
  Resolved:       ResolvedPipe, Connection, Barrier, EquipmentPlacement,
                  ResolvedEquipment, MarkerBoundary, Perforation,
                  AnnulusSlot, Layer, BoundaryReason, Interval

VOLUME VOCABULARY:
  TUBING_INNER (legacy alias BORE) → TUBING_ANNULUS → ANNULUS_A .. ANNULUS_D
  → FORMATION_ANNULUS, plus the synthetic SURFACE sink.

Rows are tolerant on ingestion: garbled numbers become None and are filtered
later by the geometry resolver instead of raising.
"""

from __future__ import annotations
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from well_geometry.tolerance import (
    DEFAULT_CROSSOVER_EPSILON, BOUNDARY_TOLERANCE, parse_optional_number,
)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  ENUMERATIONS — Controlled Vocabularies
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class PipeType(str, Enum):
    """Pipe string families."""
    CASING = "casing"
    TUBING = "tubing"
    DRILL_STRING = "drillString"

    @classmethod
    def normalize(cls, value) -> "PipeType":
        token = str(value or "").strip().lower()
        if token == "tubing":
            return cls.TUBING
        if token in ("drillstring", "drill-string", "drill_string", "drill string"):
            return cls.DRILL_STRING
        return cls.CASING

    @property
    def display_name(self) -> str:
        return {"casing": "Casing", "tubing": "Tubing", "drillString": "Drill string"}[self.value]

    @property
    def is_transient(self) -> bool:
        return self is not PipeType.CASING


class HostType(str, Enum):
    """Pipe families that equipment and markers can attach to."""
    CASING = "casing"
    TUBING = "tubing"

    @classmethod
    def normalize(cls, value, fallback: Optional["HostType"] = None) -> Optional["HostType"]:
        token = str(value or "").strip().lower()
        if token == "casing":
            return cls.CASING
        if token == "tubing":
            return cls.TUBING
        return fallback


class OperationPhase(str, Enum):
    """Which transient string is in the hole."""
    PRODUCTION = "production"   # tubing active
    DRILLING = "drilling"       # drill string active

    @classmethod
    def normalize(cls, value) -> "OperationPhase":
        token = str(value or "").strip().lower()
        return cls.DRILLING if token == "drilling" else cls.PRODUCTION

    @property
    def transient_pipe_type(self) -> PipeType:
        return PipeType.DRILL_STRING if self is OperationPhase.DRILLING else PipeType.TUBING


class LinerMode(str, Enum):
    """Whether a casing row hangs as a liner."""
    AUTO = "auto"
    YES = "yes"
    NO = "no"

    @classmethod
    def normalize(cls, value) -> "LinerMode":
        token = str(value or "").strip().lower()
        if token in ("yes", "true", "1", "liner"):
            return cls.YES
        if token in ("no", "false", "0"):
            return cls.NO
        return cls.AUTO


class ConnectionType(str, Enum):
    """How two consecutive rows of the same string join."""
    SWAGE = "swage"
    CROSSOVER = "crossover"


class LayerRole(str, Enum):
    """Radial role of a layer in a depth stack."""
    CORE = "core"
    PIPE = "pipe"
    ANNULUS = "annulus"


class Material(str, Enum):
    """Material filling a layer."""
    WELLBORE = "wellbore"
    STEEL = "steel"
    CEMENT = "cement"
    FLUID = "fluid"
    MUD = "mud"
    PLUG = "plug"
    UNRESOLVED = "unresolved"


class MarkerType(str, Enum):
    """Depth-ranged marker categories that open radial paths."""
    PERFORATION = "perforation"
    LEAK = "leak"

    @classmethod
    def normalize(cls, value) -> Optional["MarkerType"]:
        token = str(value or "").strip().lower()
        if "perf" in token:
            return cls.PERFORATION
        if "leak" in token:
            return cls.LEAK
        return None


class VolumeKind(str, Enum):
    """Named fluid volumes a graph node can represent."""
    SURFACE = "SURFACE"
    TUBING_INNER = "TUBING_INNER"
    BORE = "TUBING_INNER"                # legacy alias
    TUBING_ANNULUS = "TUBING_ANNULUS"
    ANNULUS_A = "ANNULUS_A"
    ANNULUS_B = "ANNULUS_B"
    ANNULUS_C = "ANNULUS_C"
    ANNULUS_D = "ANNULUS_D"
    FORMATION_ANNULUS = "FORMATION_ANNULUS"

    @classmethod
    def normalize(cls, value) -> Optional["VolumeKind"]:
        """Map a loose volume token ("A-Annulus", "bore", "open hole") to a topology kind."""
        if isinstance(value, cls):
            return value
        token = re.sub(r"[\s\-]+", "_", str(value or "").strip().upper())
        if not token:
            return None
        compact = token.replace("_", "")

        if "TUBING_INNER" in token or compact == "TUBINGINNER":
            return cls.TUBING_INNER
        if (compact in _TUBING_ANNULUS_ALIASES
                or "TUBING_ANNULUS" in token or "PRIMARY_ANNULUS" in token):
            return cls.TUBING_ANNULUS
        if "BORE" in token:
            return cls.TUBING_INNER
        if (compact in ("FORMATION", "FORMATIONANNULUS", "OPENHOLE")
                or "FORMATION" in token or "OPEN_HOLE" in token):
            return cls.FORMATION_ANNULUS
        for kind in CASING_ANNULUS_KINDS:
            letter = kind.value[-1]
            if (kind.value in token
                    or compact in (f"ANNULUS{letter}", f"{letter}ANNULUS", f"CASINGANNULUS{letter}")):
                return kind
        return None

    @property
    def is_annulus(self) -> bool:
        return self in ANNULUS_VOLUME_KINDS


_TUBING_ANNULUS_ALIASES = {
    "TUBINGANNULUS", "TBGANNULUS", "PRIMARYANNULUS", "PRODUCTIONANNULUS", "PRODANNULUS",
}

CASING_ANNULUS_KINDS = (
    VolumeKind.ANNULUS_A, VolumeKind.ANNULUS_B, VolumeKind.ANNULUS_C, VolumeKind.ANNULUS_D,
)
ANNULUS_VOLUME_KINDS = (VolumeKind.TUBING_ANNULUS, *CASING_ANNULUS_KINDS, VolumeKind.FORMATION_ANNULUS)
TOPOLOGY_VOLUME_KINDS = (VolumeKind.TUBING_INNER, *ANNULUS_VOLUME_KINDS)
MAX_FORMATION_CASING_ORDINAL = 2     # deepest casing ordinal that still names a formation-bounded slot


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  INPUT ROWS
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def _text(value) -> str:
    return str(value).strip() if value is not None else ""


def _optional_text(value) -> Optional[str]:
    token = _text(value)
    return token or None


def _first(data: dict, *keys, default=None):
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _is_truthy_flag(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1", "y")
    return bool(value)


def _is_visible(data: dict) -> bool:
    return data.get("show") is not False


@dataclass
class PipeRow:
    """One segment of a casing, tubing or drill-string table."""
    od: Optional[float] = None                  # inches
    top: Optional[float] = None                 # ft MD
    bottom: Optional[float] = None              # ft MD
    weight: Optional[float] = None              # lb/ft
    id_override: Optional[float] = None         # inches, wins over the weight estimate
    grade: str = ""
    toc: Optional[float] = None                 # top of cement (casing only)
    boc: Optional[float] = None                 # bottom of cement (casing only)
    manual_hole_size: Optional[float] = None    # drilled hole diameter (casing only)
    manual_parent: Optional[float] = None       # 1-based row number of the parent string
    liner_mode: LinerMode = LinerMode.AUTO
    is_open_hole: bool = False
    label: str = ""
    row_id: Optional[str] = None
    component_type: str = "pipe"

    @classmethod
    def from_dict(cls, data: dict) -> "PipeRow":
        grade = _text(data.get("grade"))
        compact_grade = grade.upper().replace(" ", "").replace("-", "")
        explicit_open_hole = _is_truthy_flag(_first(data, "isOpenHole", "openHole", default=False))
        weight = parse_optional_number(data.get("weight"))
        # a casing row without steel weight is drilled hole
        weightless = weight is None or weight <= 0
        return cls(
            od=parse_optional_number(data.get("od")),
            top=parse_optional_number(data.get("top")),
            bottom=parse_optional_number(data.get("bottom")),
            weight=weight,
            id_override=parse_optional_number(_first(data, "idOverride", "id")),
            grade=grade,
            toc=parse_optional_number(data.get("toc")),
            boc=parse_optional_number(data.get("boc")),
            manual_hole_size=parse_optional_number(data.get("manualHoleSize")),
            manual_parent=parse_optional_number(data.get("manualParent")),
            liner_mode=LinerMode.normalize(data.get("linerMode")),
            is_open_hole=(explicit_open_hole or weightless
                          or "OPENHOLE" in compact_grade or "OH" in compact_grade),
            label=_text(data.get("label")),
            row_id=_optional_text(data.get("rowId")),
            component_type=_text(data.get("componentType")) or "pipe",
        )


@dataclass
class EquipmentRow:
    """A point-depth downhole tool (packer, safety valve, bridge plug ...)."""
    depth: Optional[float] = None
    type: str = "Packer"
    label: str = ""
    row_id: Optional[str] = None
    attach_to_host_type: Optional[str] = None
    attach_to_id: Optional[str] = None
    attach_to_row: Optional[str] = None
    attach_to_display: Optional[str] = None
    # Raw rule inputs, validated by the equipment rule engine
    annular_seal: Any = None
    bore_seal: Any = None
    seal_by_volume: Any = None
    actuation_state: Any = None
    integrity_status: Any = None
    show: bool = True

    @classmethod
    def from_dict(cls, data: dict) -> "EquipmentRow":
        raw_type = data.get("type")
        return cls(
            depth=parse_optional_number(_first(data, "depth", "md", "measuredDepth")),
            type="Packer" if raw_type is None else _text(raw_type),
            label=_text(data.get("label")),
            row_id=_optional_text(data.get("rowId")),
            attach_to_host_type=_optional_text(data.get("attachToHostType")),
            attach_to_id=_optional_text(data.get("attachToId")),
            attach_to_row=_optional_text(data.get("attachToRow")),
            attach_to_display=_optional_text(data.get("attachToDisplay")),
            annular_seal=_first(data, "annularSeal", "annulusSeal"),
            bore_seal=data.get("boreSeal"),
            seal_by_volume=_first(data, "sealByVolume", "volumeSealOverrides", "volumeSeals"),
            actuation_state=_first(data, "actuationState", "state"),
            integrity_status=_first(data, "integrityStatus", "integrity"),
            show=_is_visible(data),
        )

    @property
    def has_attach_input(self) -> bool:
        return any((self.attach_to_host_type, self.attach_to_id,
                    self.attach_to_row, self.attach_to_display))


@dataclass
class MarkerRow:
    """Perforation or leak marker spanning a depth range on a host pipe."""
    type: str = ""
    top: Optional[float] = None
    bottom: Optional[float] = None
    attach_to_host_type: Optional[str] = None
    attach_to_id: Optional[str] = None
    attach_to_row: Optional[str] = None
    label: str = ""
    row_id: Optional[str] = None
    show: bool = True

    @classmethod
    def from_dict(cls, data: dict) -> "MarkerRow":
        return cls(
            type=_text(data.get("type")),
            top=parse_optional_number(data.get("top")),
            bottom=parse_optional_number(data.get("bottom")),
            attach_to_host_type=_optional_text(data.get("attachToHostType")),
            attach_to_id=_optional_text(data.get("attachToId")),
            attach_to_row=_optional_text(data.get("attachToRow")),
            label=_text(data.get("label")),
            row_id=_optional_text(data.get("rowId")),
            show=_is_visible(data),
        )

    @property
    def marker_type(self) -> Optional[MarkerType]:
        return MarkerType.normalize(self.type)

    @property
    def has_valid_range(self) -> bool:
        return self.top is not None and self.bottom is not None and self.bottom >= self.top


@dataclass
class FluidRow:
    """Annular fluid column placed into a slot by placement token."""
    top: Optional[float] = None
    bottom: Optional[float] = None
    placement: str = ""                 # "Auto: A-Annulus", "Behind: 9 5/8 Casing", ...
    placement_ref_id: Optional[str] = None
    inner_ref: str = ""                 # legacy column, maps to "Behind: <ref>"
    manual_od: Optional[float] = None   # inches, shrinks the fluid's outer boundary
    label: str = ""
    row_id: Optional[str] = None
    show: bool = True

    @classmethod
    def from_dict(cls, data: dict) -> "FluidRow":
        return cls(
            top=parse_optional_number(data.get("top")),
            bottom=parse_optional_number(data.get("bottom")),
            placement=_text(_first(data, "placement", "Placement", "intent", "Intent")),
            placement_ref_id=_optional_text(data.get("placementRefId")),
            inner_ref=_text(_first(data, "innerRef", "inner_ref")),
            manual_od=parse_optional_number(data.get("manualOD")),
            label=_text(data.get("label")),
            row_id=_optional_text(data.get("rowId")),
            show=_is_visible(data),
        )


@dataclass
class PlugRow:
    """Cement plug across the bore between two depths."""
    top: Optional[float] = None
    bottom: Optional[float] = None
    manual_width: Optional[float] = None    # inches, explicit plug diameter
    attach_to_id: Optional[str] = None
    attach_to_row: Optional[str] = None
    label: str = ""
    row_id: Optional[str] = None
    show: bool = True

    @classmethod
    def from_dict(cls, data: dict) -> "PlugRow":
        return cls(
            top=parse_optional_number(data.get("top")),
            bottom=parse_optional_number(data.get("bottom")),
            manual_width=parse_optional_number(data.get("manualWidth")),
            attach_to_id=_optional_text(data.get("attachToId")),
            attach_to_row=_optional_text(data.get("attachToRow")),
            label=_text(data.get("label")),
            row_id=_optional_text(data.get("rowId")),
            show=_is_visible(data),
        )


@dataclass
class SourceRow:
    """Scenario row: an explicit source volume or a cross-annulus breakout."""
    volume_key: Optional[str] = None
    source_type: Optional[str] = None
    top: Optional[float] = None
    bottom: Optional[float] = None
    depth: Optional[float] = None
    from_volume_key: Optional[str] = None
    to_volume_key: Optional[str] = None
    label: str = ""
    row_id: Optional[str] = None
    show: bool = True
    enabled: bool = True

    @classmethod
    def from_dict(cls, data: dict) -> "SourceRow":
        return cls(
            volume_key=_optional_text(_first(data, "volumeKey", "volume", "targetVolume", "targetVolumeKey")),
            source_type=_optional_text(_first(data, "sourceType", "type")),
            top=parse_optional_number(_first(data, "top", "depthTop", "startDepth")),
            bottom=parse_optional_number(_first(data, "bottom", "depthBottom", "endDepth")),
            depth=parse_optional_number(_first(data, "depth", "md")),
            from_volume_key=_optional_text(_first(data, "fromVolumeKey", "fromVolume")),
            to_volume_key=_optional_text(_first(data, "toVolumeKey", "toVolume")),
            label=_text(data.get("label")),
            row_id=_optional_text(data.get("rowId")),
            show=_is_visible(data),
            enabled=data.get("enabled") is not False,
        )

    @property
    def is_visible(self) -> bool:
        return self.show and self.enabled

    @property
    def is_breakout(self) -> bool:
        return bool(self.from_volume_key or self.to_volume_key)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  CONFIGURATION
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@dataclass
class TopologyConfig:
    """Run options for geometry and topology resolution."""
    operation_phase: OperationPhase = OperationPhase.PRODUCTION
    crossover_epsilon: float = DEFAULT_CROSSOVER_EPSILON   # ft, max join gap
    boundary_tolerance: float = BOUNDARY_TOLERANCE         # ft, swage vs crossover
    use_illustrative_fluid_source: bool = False            # annulus fluids seed sources
    use_open_hole_source: bool = False                     # open-hole intervals seed sources

    def __post_init__(self):
        self.operation_phase = OperationPhase.normalize(self.operation_phase)
        epsilon = parse_optional_number(self.crossover_epsilon)
        self.crossover_epsilon = epsilon if epsilon is not None and epsilon >= 0 else DEFAULT_CROSSOVER_EPSILON

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "TopologyConfig":
        data = data or {}
        return cls(
            operation_phase=OperationPhase.normalize(data.get("operationPhase")),
            crossover_epsilon=data.get("crossoverEpsilon"),
            use_illustrative_fluid_source=data.get("topologyUseIllustrativeFluidSource") is True,
            use_open_hole_source=data.get("topologyUseOpenHoleSource") is True,
        )


@dataclass
class WellConfiguration:
    """Everything the topology pipeline needs for one well."""
    casing: list[PipeRow] = field(default_factory=list)
    tubing: list[PipeRow] = field(default_factory=list)
    drill_string: list[PipeRow] = field(default_factory=list)
    equipment: list[EquipmentRow] = field(default_factory=list)
    markers: list[MarkerRow] = field(default_factory=list)
    fluids: list[FluidRow] = field(default_factory=list)
    plugs: list[PlugRow] = field(default_factory=list)
    sources: list[SourceRow] = field(default_factory=list)
    config: TopologyConfig = field(default_factory=TopologyConfig)
    name: str = "Unnamed well"

    @classmethod
    def from_dict(cls, data: dict) -> "WellConfiguration":
        def rows(key, row_cls):
            return [row_cls.from_dict(item) for item in data.get(key) or [] if isinstance(item, dict)]

        return cls(
            casing=rows("casingData", PipeRow),
            tubing=rows("tubingData", PipeRow),
            drill_string=rows("drillStringData", PipeRow),
            equipment=rows("equipmentData", EquipmentRow),
            markers=rows("markers", MarkerRow),
            fluids=rows("annulusFluids", FluidRow),
            plugs=rows("cementPlugs", PlugRow),
            sources=rows("topologySources", SourceRow),
            config=TopologyConfig.from_dict(data.get("config")),
            name=_text(data.get("name")) or "Unnamed well",
        )


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  RESOLVED GEOMETRY
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@dataclass
class ResolvedPipe:
    """A validated pipe row with derived diameters. ``index`` is the table index."""
    index: int
    pipe_type: PipeType
    od: float
    top: float
    bottom: float
    inner_diameter: float
    toc: Optional[float] = None
    boc: Optional[float] = None
    manual_hole_size: Optional[float] = None
    manual_parent: Optional[float] = None
    is_open_hole: bool = False
    liner_mode: LinerMode = LinerMode.AUTO
    weight: Optional[float] = None
    label: str = ""
    row_id: Optional[str] = None
    component_type: str = "pipe"
    fallback_annulus_outer_radius: Optional[float] = None

    @property
    def outer_radius(self) -> float:
        return self.od / 2

    @property
    def inner_radius(self) -> float:
        return self.inner_diameter / 2

    @property
    def is_transient(self) -> bool:
        return self.pipe_type.is_transient

    @property
    def cement_bottom(self) -> Optional[float]:
        if self.toc is None:
            return None
        return self.boc if self.boc is not None else self.bottom

    def same_row(self, other: Optional["ResolvedPipe"]) -> bool:
        return other is not None and other.pipe_type is self.pipe_type and other.index == self.index

    def ref(self) -> dict:
        return {"pipeType": self.pipe_type.value, "index": self.index, "rowId": self.row_id}


@dataclass
class Connection:
    """A swage or crossover between two rows of the same string."""
    type: ConnectionType
    pipe_type: PipeType
    upper_index: int                # parent row (table index)
    lower_index: int                # child row (table index)
    depth_top: float
    depth_bottom: float
    is_sealed: bool = True

    @property
    def join_depth(self) -> float:
        return (self.depth_top + self.depth_bottom) / 2


@dataclass
class Barrier:
    """Implicit liner-top packer where a casing hangs inside a larger one."""
    row_index: int
    parent_index: int
    depth: float
    parent_inner_diameter: float
    child_outer_diameter: float
    type: str = "liner_packer"
    is_sealing: bool = True


@dataclass
class EquipmentPlacement:
    """Where a host-attached tool landed and which annulus slot it seals."""
    host_type: Optional[HostType] = None
    host_index: Optional[int] = None
    host_row_id: Optional[str] = None
    parent_casing_index: Optional[int] = None
    parent_inner_diameter: Optional[float] = None
    seal_node_kind: Optional[VolumeKind] = None
    seal_slot_index: Optional[int] = None
    seal_inner_diameter: Optional[float] = None
    seal_outer_diameter: Optional[float] = None
    is_orphaned: bool = False
    attach_warning_code: Optional[str] = None


@dataclass
class ResolvedEquipment:
    """An equipment row that passed depth validation, with its geometric placement."""
    row: EquipmentRow
    index: int                                  # table index
    tubing_parent_index: Optional[int] = None
    tubing_parent_od: Optional[float] = None
    tubing_parent_inner_diameter: Optional[float] = None
    placement: Optional[EquipmentPlacement] = None

    @property
    def depth(self) -> Optional[float]:
        return self.row.depth


@dataclass
class MarkerBoundary:
    """A visible marker range contributing critical depths."""
    index: int
    top: float
    bottom: float
    type: str               # "tubingLeak" | "marker"
    label: str


@dataclass
class Perforation:
    casing_index: int
    top: float
    bottom: float


@dataclass
class AnnulusSlot:
    """Space between steel pipe ``index`` and the next pipe (or formation)."""
    index: int
    inner_radius: float
    outer_radius: float
    inner_pipe: ResolvedPipe
    outer_pipe: Optional[ResolvedPipe] = None
    is_formation: bool = False
    volume_kind: Optional[VolumeKind] = None


@dataclass
class LayerSource:
    type: str                                   # "pipe" | "fluid" | "casing" | "plug"
    index: Optional[int] = None
    pipe_type: Optional[PipeType] = None


@dataclass
class ManualOdOverride:
    """Outcome of clamping a fluid row's manual OD into its annulus."""
    requested_od: float
    applied_od: float
    minimum_od: float
    maximum_od: float
    was_clamped: bool


@dataclass
class Layer:
    """One radial band in a depth stack, ordered from the axis outward."""
    role: LayerRole
    material: Material
    inner_radius: float
    outer_radius: float
    source: Optional[LayerSource] = None
    pipe_type: Optional[PipeType] = None
    component_type: Optional[str] = None
    is_perforated: bool = False
    slot_index: Optional[int] = None
    inner_pipe: Optional[ResolvedPipe] = None
    is_formation: bool = False
    is_open_hole_boundary: bool = False
    volume_kind: Optional[VolumeKind] = None
    label: str = ""
    placement: Optional[str] = None
    manual_od_override: Optional[ManualOdOverride] = None

    @property
    def thickness(self) -> float:
        return self.outer_radius - self.inner_radius

    def to_dict(self) -> dict:
        data = {
            "role": self.role.value,
            "material": self.material.value,
            "innerRadius": self.inner_radius,
            "outerRadius": self.outer_radius,
        }
        if self.source is not None:
            data["source"] = {
                "type": self.source.type,
                "index": self.source.index,
                "pipeType": self.source.pipe_type.value if self.source.pipe_type else None,
            }
        if self.role is LayerRole.PIPE:
            data["pipeType"] = self.pipe_type.value if self.pipe_type else None
            data["isPerforated"] = self.is_perforated
        if self.role is LayerRole.ANNULUS:
            data["slotIndex"] = self.slot_index
            data["isFormation"] = self.is_formation
            data["volumeKind"] = self.volume_kind.value if self.volume_kind else None
        if self.is_open_hole_boundary:
            data["isOpenHoleBoundary"] = True
        if self.label:
            data["label"] = self.label
        if self.manual_od_override is not None:
            data["manualODOverride"] = {
                "requestedOD": self.manual_od_override.requested_od,
                "appliedOD": self.manual_od_override.applied_od,
                "wasClamped": self.manual_od_override.was_clamped,
            }
        return data


@dataclass
class BoundaryReason:
    """Why a critical depth exists (casing start, swage, packer ...)."""
    type: str
    action: str
    label: str = ""
    source_index: Optional[int] = None

    @property
    def signature(self) -> tuple:
        return (self.type, self.action, self.label, self.source_index)

    def to_dict(self) -> dict:
        return {"type": self.type, "action": self.action,
                "label": self.label, "sourceIndex": self.source_index}


@dataclass
class Interval:
    """Depth slice between two consecutive critical depths."""
    index: int
    top: float
    bottom: float
    midpoint: float
    start_boundary_reasons: list[BoundaryReason] = field(default_factory=list)
    end_boundary_reasons: list[BoundaryReason] = field(default_factory=list)
    stack: list[Layer] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "intervalIndex": self.index,
            "top": self.top,
            "bottom": self.bottom,
            "midpoint": self.midpoint,
            "startBoundaryReasons": [r.to_dict() for r in self.start_boundary_reasons],
            "endBoundaryReasons": [r.to_dict() for r in self.end_boundary_reasons],
            "stack": [layer.to_dict() for layer in self.stack],
        }
