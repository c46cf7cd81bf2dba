"""
Reference Well
==============
A fully-populated offshore producer used by the CLI demo and the test suite.

Layout (ft MD, mudline at 1400):
  20"      conductor      1400 – 2000
  13 3/8"  surface        1400 – 3500   TOC 1800
  9 5/8"   intermediate   1400 – 9000   TOC 3000
  7"       production     8000 – 12500  TOC 7900 (liner)
  6"       open hole     12500 – 14000
  3 1/2"   tubing         1400 – 11800

Equipment: safety valve at 2000, production packer at 11700 on the tubing.
Markers:   perforations 12000 – 12400 on the 7" liner, a leak on the 9 5/8"
           at 8000 – 8100.
Plugs:     cement plug 13000 – 13100 in the open hole.
Fluids:    packer fluid in the tubing annulus, brine behind the 9 5/8".
"""

from __future__ import annotations
import copy
from typing import Optional

from well_geometry.ontology import WellConfiguration


_REFERENCE_PROJECT: dict = {
    "name": "Reference offshore producer",
    "casingData": [
        {"rowId": "csg-conductor", "label": "Conductor", "od": 20, "weight": 94, "grade": "H40",
         "top": 1400, "bottom": 2000},
        {"rowId": "csg-surface", "label": "Surface", "od": 13.375, "weight": 54.5, "grade": "J55",
         "top": 1400, "bottom": 3500, "toc": 1800},
        {"rowId": "csg-intermediate", "label": "Intermediate", "od": 9.625, "weight": 40, "grade": "L80",
         "top": 1400, "bottom": 9000, "toc": 3000},
        {"rowId": "csg-production", "label": "Production liner", "od": 7, "weight": 29, "grade": "P110",
         "top": 8000, "bottom": 12500, "toc": 7900},
        {"rowId": "oh-reservoir", "label": "Open hole", "od": 6, "weight": 0, "grade": "OH",
         "top": 12500, "bottom": 14000},
    ],
    "tubingData": [
        {"rowId": "tbg-main", "label": "Production tubing", "od": 3.5, "weight": 9.3,
         "top": 1400, "bottom": 11800},
    ],
    "equipmentData": [
        {"rowId": "eq-sssv", "type": "Safety Valve", "depth": 2000, "label": "SSSV"},
        {"rowId": "eq-packer", "type": "Packer", "depth": 11700, "label": "Production packer",
         "attachToHostType": "tubing", "attachToId": "tbg-main"},
    ],
    "markers": [
        {"rowId": "mk-perf", "type": "Perforation", "top": 12000, "bottom": 12400,
         "attachToHostType": "casing", "attachToRow": "csg-production", "label": "Perforations"},
        {"rowId": "mk-leak", "type": "Leak", "top": 8000, "bottom": 8100,
         "attachToHostType": "casing", "attachToRow": "csg-intermediate", "label": "Casing leak"},
    ],
    "annulusFluids": [
        {"rowId": "fl-packer", "placement": "Auto: Production Annulus", "top": 1400, "bottom": 11700,
         "label": "Packer fluid"},
        {"rowId": "fl-brine", "placement": "Behind: csg-intermediate", "top": 3000, "bottom": 7900,
         "label": "Brine"},
    ],
    "cementPlugs": [
        {"rowId": "plug-oh", "top": 13000, "bottom": 13100, "label": "Open-hole plug",
         "attachToId": "oh-reservoir"},
    ],
    "topologySources": [],
    "config": {"operationPhase": "production"},
}


def reference_well_data(overrides: Optional[dict] = None) -> dict:
    """A deep copy of the reference project dict, with top-level keys replaced by ``overrides``."""
    data = copy.deepcopy(_REFERENCE_PROJECT)
    for key, value in (overrides or {}).items():
        data[key] = copy.deepcopy(value)
    return data


def build_reference_well(use_illustrative_fluid_source: bool = False,
                         use_open_hole_source: bool = False) -> WellConfiguration:
    well = WellConfiguration.from_dict(reference_well_data())
    well.config.use_illustrative_fluid_source = use_illustrative_fluid_source
    well.config.use_open_hole_source = use_open_hole_source
    return well
