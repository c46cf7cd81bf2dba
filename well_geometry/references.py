"""
Row Reference Resolution
========================
Tables reference pipe rows in several historical spellings. One resolver
handles all of them for casing and tubing rows:

  rowId                     "csg-prod"
  label                     "9 5/8 Production"
  1-based index             "3"
  hash index                "#3"
  legacy display token      '#3 9 5/8 Production (9.625")'

A preferred id (the row's ``attachToId`` column) always wins when it resolves.
Resolution never raises; an unknown reference returns None.
"""

from __future__ import annotations
import re
from dataclasses import dataclass
from typing import Iterable, Optional

from well_geometry.ontology import HostType, ResolvedPipe


_HASH_INDEX = re.compile(r"^#\s*(\d+)")
_PLAIN_INDEX = re.compile(r"^(\d+)$")

_DEFAULT_LABELS = {
    HostType.CASING: "Unnamed casing",
    HostType.TUBING: "Tubing",
}


@dataclass(frozen=True)
class ResolvedReference:
    row: ResolvedPipe
    host_type: HostType
    position: int           # 0-based position among the resolved rows of that host type


def legacy_reference_token(row: ResolvedPipe, position: int, host_type: HostType) -> str:
    label = row.label or _DEFAULT_LABELS[host_type]
    return f'#{position + 1} {label} ({row.od:.3f}")'


class RowReferenceResolver:
    """Resolve loose row references against resolved casing and tubing rows."""

    def __init__(self, casing_rows: Iterable[ResolvedPipe] = (), tubing_rows: Iterable[ResolvedPipe] = ()):
        self._rows: dict[HostType, list[ResolvedPipe]] = {
            HostType.CASING: list(casing_rows),
            HostType.TUBING: list(tubing_rows),
        }
        self._tokens: dict[HostType, dict[str, int]] = {
            host_type: self._build_token_map(rows, host_type)
            for host_type, rows in self._rows.items()
        }

    @staticmethod
    def _build_token_map(rows: list[ResolvedPipe], host_type: HostType) -> dict[str, int]:
        tokens: dict[str, int] = {}
        for position, row in enumerate(rows):
            if row.row_id:
                tokens.setdefault(row.row_id, position)
            tokens.setdefault(legacy_reference_token(row, position, host_type), position)
        return tokens

    def rows(self, host_type: HostType) -> list[ResolvedPipe]:
        return self._rows.get(host_type, [])

    # ── Lookup ───────────────────────────────────────────────

    def resolve(self, reference, host_type: HostType = HostType.CASING,
                preferred_id=None) -> Optional[ResolvedReference]:
        """
        Resolve ``reference`` among rows of ``host_type``.

        Order: preferred id (row id), exact row-id or legacy token, ``#N`` or
        bare ``N`` (1-based position), then exact label.
        """
        rows = self._rows.get(host_type, [])
        if not rows:
            return None

        preferred = str(preferred_id).strip() if preferred_id is not None else ""
        if preferred:
            position = self._tokens[host_type].get(preferred)
            if position is not None:
                return ResolvedReference(rows[position], host_type, position)

        token = str(reference).strip() if reference is not None else ""
        if not token:
            return None

        position = self._tokens[host_type].get(token)
        if position is None:
            match = _HASH_INDEX.match(token) or _PLAIN_INDEX.match(token)
            if match:
                candidate = int(match.group(1)) - 1
                if 0 <= candidate < len(rows):
                    position = candidate
        if position is None:
            position = next((i for i, row in enumerate(rows) if row.label and row.label == token), None)
        if position is None:
            return None
        return ResolvedReference(rows[position], host_type, position)

    def resolve_casing(self, reference, preferred_id=None) -> Optional[ResolvedPipe]:
        resolved = self.resolve(reference, HostType.CASING, preferred_id)
        return resolved.row if resolved else None
