"""Shared well fixtures. Wells are built from project dicts, the same shape the CLI reads."""

import pytest

from well_geometry.ontology import WellConfiguration


def build_well(casing=(), tubing=(), drill_string=(), equipment=(), markers=(), fluids=(),
               plugs=(), sources=(), config=None, name="Test well") -> WellConfiguration:
    return WellConfiguration.from_dict({
        "name": name,
        "casingData": list(casing),
        "tubingData": list(tubing),
        "drillStringData": list(drill_string),
        "equipmentData": list(equipment),
        "markers": list(markers),
        "annulusFluids": list(fluids),
        "cementPlugs": list(plugs),
        "topologySources": list(sources),
        "config": config or {},
    })


# 9 5/8" 40 lb/ft in a 12 1/4" hole, 0 - 5000 ft
PRODUCTION_CASING = {"rowId": "csg-prod", "label": "Production", "od": 9.625, "weight": 40,
                     "top": 0, "bottom": 5000, "manualHoleSize": 12.25}

# 3 1/2" 9.3 lb/ft, 0 - 4000 ft
TUBING = {"rowId": "tbg", "label": "Tubing", "od": 3.5, "weight": 9.3, "top": 0, "bottom": 4000}


@pytest.fixture
def make_well():
    return build_well


@pytest.fixture
def single_casing_well():
    """One casing, no hole size: only the bore is modeled."""
    return build_well(casing=[{"rowId": "csg-1", "od": 9.625, "weight": 40, "top": 0, "bottom": 5000}])


@pytest.fixture
def cased_hole_well():
    """One casing with a drilled hole: bore + formation-bounded ANNULUS_A."""
    return build_well(casing=[PRODUCTION_CASING])


@pytest.fixture
def tubing_completion_well():
    """Tubing hung inside the production casing, ending 1000 ft above the shoe."""
    return build_well(casing=[PRODUCTION_CASING], tubing=[TUBING])


@pytest.fixture
def packer_well():
    """Tubing completion with a packer set on the tubing at 3000 ft."""
    return build_well(
        casing=[PRODUCTION_CASING],
        tubing=[TUBING],
        equipment=[{"rowId": "pkr", "type": "Packer", "depth": 3000,
                    "attachToHostType": "tubing", "attachToId": "tbg"}],
    )


@pytest.fixture
def swage_pair_well():
    return build_well(casing=[
        {"rowId": "upper", "od": 9.625, "weight": 40, "top": 0, "bottom": 3000},
        {"rowId": "lower", "od": 7, "weight": 29, "top": 3000, "bottom": 6000},
    ])


@pytest.fixture
def cemented_casing_well():
    """
    Surface casing cemented 500 - 2000 ft outside production casing cemented 3000 - 5000 ft.

    Intervals: [0, 500] [500, 2000] [2000, 3000] [3000, 5000]
    """
    return build_well(casing=[
        {"rowId": "csg-surf", "label": "Surface", "od": 13.375, "weight": 54.5, "top": 0, "bottom": 2000,
         "manualHoleSize": 17.5, "toc": 500},
        {"rowId": "csg-prod", "label": "Production", "od": 9.625, "weight": 40, "top": 0, "bottom": 5000,
         "manualHoleSize": 12.25, "toc": 3000},
    ])


@pytest.fixture
def production_casing():
    return dict(PRODUCTION_CASING)


@pytest.fixture
def tubing_row():
    return dict(TUBING)
