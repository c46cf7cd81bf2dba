"""
Wellbore Geometry — Tolerances & Numeric Parsing
=================================================
Every "near enough" comparison in the geometry and topology layers goes
through this module, so tie-breaks and boundary matching stay consistent.

COMPARISON DOMAINS:
  Depth:    DEPTH_EPSILON        (interval edges, row activity, marker points)
  Radial:   RADIAL_EPSILON       (layer thickness, slot collapse, plug trimming)
  Joins:    BOUNDARY_TOLERANCE   (swage vs crossover, duplicate active OD)
  Search:   DEFAULT_CROSSOVER_EPSILON (max parent-bottom/child-top gap)

Row cells arrive as loosely typed values (numbers, numeric strings with
thousands separators, blanks). parse_optional_number() is the one place
that turns them into floats.
"""

from __future__ import annotations
import math
from typing import Optional


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  CONSTANTS
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

DEPTH_EPSILON = 1e-6
RADIAL_EPSILON = 1e-6
BOUNDARY_TOLERANCE = 0.05            # ft, parent bottom vs child top for a swage
DEFAULT_CROSSOVER_EPSILON = 30.0     # ft, widest gap still treated as a join
HANGER_PROBE_OFFSET = 1e-3           # ft below a liner top when looking for its parent
LINER_TOP_OFFSET = 0.5               # ft, a liner must hang this far below its parent top
EQUIPMENT_BOUNDARY_EPSILON = 1e-3    # default match window for equipment depths

# Casing ID estimation (imperial units: OD in inches, weight in lb/ft)
STEEL_DENSITY_FACTOR_IMPERIAL = 10.68
DEFAULT_ID_RATIO = 0.90
MIN_WALL_RATIO = 0.01
MAX_WALL_RATIO = 0.15


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  COMPARISONS
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def is_finite(value) -> bool:
    """True for real, finite numbers (bools excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def approx_eq(a: Optional[float], b: Optional[float], eps: float = DEPTH_EPSILON) -> bool:
    if not is_finite(a) or not is_finite(b):
        return False
    return abs(a - b) <= eps


def within_range(value: Optional[float], top: Optional[float], bottom: Optional[float],
                 eps: float = DEPTH_EPSILON) -> bool:
    """Inclusive containment: top - eps <= value <= bottom + eps."""
    if not (is_finite(value) and is_finite(top) and is_finite(bottom)):
        return False
    return top - eps <= value <= bottom + eps


def strictly_within(value: Optional[float], top: Optional[float], bottom: Optional[float],
                    eps: float = DEPTH_EPSILON) -> bool:
    """Exclusive containment: top + eps < value < bottom - eps."""
    if not (is_finite(value) and is_finite(top) and is_finite(bottom)):
        return False
    return top + eps < value < bottom - eps


def ranges_overlap(top: float, bottom: float, other_top: float, other_bottom: float,
                   eps: float = DEPTH_EPSILON) -> bool:
    """Open overlap of two depth ranges; touching ends do not count."""
    if not all(is_finite(v) for v in (top, bottom, other_top, other_bottom)):
        return False
    return bottom > other_top + eps and top < other_bottom - eps


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  PARSING
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def parse_optional_number(value) -> Optional[float]:
    """
    Parse a table cell into a finite float.

    None, "" and anything that is not a finite number or numeric string
    return None. Strings may carry thousands separators and whitespace
    ("12,500 " -> 12500.0).
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    if isinstance(value, str):
        normalized = "".join(value.replace(",", "").split())
        if not normalized:
            return None
        try:
            parsed = float(normalized)
        except ValueError:
            return None
        return parsed if math.isfinite(parsed) else None
    return None
