#!/usr/bin/env python3
"""
Wellbore Topology — CLI Runner
==============================
Load a well project → Resolve geometry → Build the connectivity graph → Export.

Usage:
  # Topology for a saved project file
  python main.py --input well.json --output ./output

  # Built-in reference well
  python main.py --reference --output ./output

  # Let annulus fluids and open-hole intervals seed sources
  python main.py --reference --illustrative-fluids --open-hole-sources

  # Drilling phase: the drill string replaces the tubing
  python main.py --input well.json --phase drilling
"""

import sys
import json
import time
import argparse
from pathlib import Path

from loguru import logger

from well_geometry.ontology import OperationPhase, WellConfiguration
from well_geometry.reference_well import build_reference_well
from well_topology.graph import TopologyGraph


def configure_logging(verbose: bool):
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "INFO",
               format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}")


def load_well(args) -> WellConfiguration:
    """Read the project file (or the reference well) and apply CLI overrides."""
    logger.info("━" * 60)
    logger.info("PHASE 1: Loading Well Configuration")
    logger.info("━" * 60)

    if args.reference:
        well = build_reference_well()
        logger.info(f"  Source:       built-in reference well")
    else:
        path = Path(args.input)
        data = json.loads(path.read_text(encoding="utf-8"))
        well = WellConfiguration.from_dict(data)
        if not data.get("name"):
            well.name = path.stem
        logger.info(f"  Source:       {path}")

    if args.illustrative_fluids:
        well.config.use_illustrative_fluid_source = True
    if args.open_hole_sources:
        well.config.use_open_hole_source = True
    if args.phase:
        well.config.operation_phase = OperationPhase.normalize(args.phase)

    logger.info(f"  Well:         {well.name}")
    logger.info(f"  Phase:        {well.config.operation_phase.value}")
    logger.info(f"  Casing rows:  {len(well.casing)}")
    logger.info(f"  Tubing rows:  {len(well.tubing)}")
    logger.info(f"  Equipment:    {len(well.equipment)}")
    logger.info(f"  Markers:      {len(well.markers)}")
    logger.info("")
    return well


def build_graph(well: WellConfiguration) -> TopologyGraph:
    logger.info("━" * 60)
    logger.info("PHASE 2: Building Topology Graph")
    logger.info("━" * 60)

    graph = TopologyGraph.build(well)

    stats = graph.stats()
    logger.info("")
    logger.info("Topology Statistics:")
    logger.info(f"  Intervals:            {stats['intervals']}")
    logger.info(f"  Nodes:                {stats['nodes']} ({stats['blocked_nodes']} blocked)")
    logger.info(f"  Vertical edges:       {stats['vertical_edges']}")
    logger.info(f"  Radial edges:         {stats['radial_edges']}")
    logger.info(f"  Termination edges:    {stats['termination_edges']}")
    logger.info(f"  Closed edges:         {stats['closed_edges']}")
    logger.info(f"  Source nodes:         {stats['sources']}")
    logger.info(f"  Connections:          {stats['connections']}")
    logger.info(f"  Hanger barriers:      {stats['barriers']}")
    logger.info(f"  ─────────────────────────")
    logger.info(f"  WARNINGS:             {stats['warnings']}")
    logger.info(f"  Source policy:        {graph.result.source_policy.mode.value}")
    logger.info("")

    for warning in graph.result.validation_warnings:
        where = f" @ {warning.depth:g} ft" if warning.depth is not None else ""
        logger.warning(f"  {warning.code.value}{where}: {warning.message}")
    return graph


def main():
    parser = argparse.ArgumentParser(
        description="Wellbore Topology: geometry resolution + fluid connectivity graph",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py --input well.json --output ./output      # Project file
  python main.py --reference --output ./output            # Reference well
  python main.py --reference --illustrative-fluids        # Fluid-seeded sources
  python main.py --input well.json --phase drilling       # Drill string in hole
        """,
    )

    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--input", "-i", type=str,
                        help="Well project JSON (casingData, tubingData, equipmentData, ...)")
    source.add_argument("--reference", action="store_true",
                        help="Use the built-in reference well instead of a project file")
    parser.add_argument("--output", "-o", type=str, default="./output",
                        help="Output directory for the topology export (default: ./output)")
    parser.add_argument("--illustrative-fluids", action="store_true",
                        help="Seed sources from annulus fluid rows")
    parser.add_argument("--open-hole-sources", action="store_true",
                        help="Seed sources from open-hole intervals")
    parser.add_argument("--phase", choices=[p.value for p in OperationPhase],
                        help="Override the project's operation phase")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Log per-stage debug detail")

    args = parser.parse_args()
    configure_logging(args.verbose)

    output_path = Path(args.output)
    output_path.mkdir(parents=True, exist_ok=True)

    logger.info("╔════════════════════════════════════════════════════════╗")
    logger.info("║      Wellbore Topology Builder                         ║")
    logger.info("║      Geometry + Connectivity Graph Pipeline            ║")
    logger.info("╚════════════════════════════════════════════════════════╝")
    logger.info("")

    start_time = time.time()

    try:
        well = load_well(args)
    except FileNotFoundError:
        logger.error(f"Project file not found: {args.input}")
        sys.exit(1)
    except json.JSONDecodeError as e:
        logger.error(f"Project file is not valid JSON: {args.input} ({e})")
        sys.exit(1)

    graph = build_graph(well)
    graph.export_json(str(output_path / "topology.json"))
    graph.export_markdown(str(output_path / "topology_summary.md"))

    elapsed = time.time() - start_time
    logger.info("")
    logger.info("━" * 60)
    logger.info("TOPOLOGY COMPLETE")
    logger.info("━" * 60)
    logger.info(f"  Time elapsed:      {elapsed:.2f}s")
    logger.info(f"  Output directory:  {output_path.absolute()}")
    logger.info("")
    logger.info("Output files:")
    for f in sorted(output_path.glob("topology*")):
        size = f.stat().st_size
        if size > 1_000_000:
            size_str = f"{size / 1_000_000:.1f} MB"
        elif size > 1_000:
            size_str = f"{size / 1_000:.1f} KB"
        else:
            size_str = f"{size} B"
        logger.info(f"  {f.name: <40} {size_str: >10}")


if __name__ == "__main__":
    main()
