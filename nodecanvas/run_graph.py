"""
run_graph.py: run a saved NodeCanvas project from the command line
===================================================================
Loads a project file, executes the graph once and prints the output log.

Usage
-----
    nodecanvas-run <project.json> [options]

Options
-------
    --order  {insertion,topological}  Traversal order (default: from
                                      NODECANVAS_EXECUTION_ORDER, else insertion)
    --json                            Print the execution report as JSON
    --verbose                         Debug logging on stderr

Examples
--------
    nodecanvas-run examples/multiply.json
    nodecanvas-run examples/multiply.json --order topological --json
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from .config import Settings
from .core.Errors import ProjectFormatError
from .core.Executor import EXECUTION_ORDERS, ExecutionLog
from .serializers.graph_serializer import loads


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="nodecanvas-run",
        description="Execute a saved NodeCanvas project and print its log.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    p.add_argument(
        "project_json",
        metavar="project.json",
        help="Path to the project file to run.",
    )
    p.add_argument(
        "--order",
        choices=EXECUTION_ORDERS,
        default=None,
        help="Traversal order. insertion reproduces the editor's behaviour.",
    )
    p.add_argument(
        "--json",
        dest="as_json",
        action="store_true",
        help="Print the execution report as JSON instead of log lines.",
    )
    p.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging on stderr.",
    )
    return p


def main(argv=None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    json_path = Path(args.project_json)
    if not json_path.exists():
        print(f"[error] File not found: {json_path}", file=sys.stderr)
        return 1

    try:
        graph, _positions = loads(json_path.read_text(encoding="utf-8"), name=json_path.stem)
    except ProjectFormatError as exc:
        print(f"[error] Could not load project: {exc}", file=sys.stderr)
        return 1

    order = args.order or Settings.from_env().execution_order
    log = ExecutionLog()
    report = graph.execute(log, order=order)

    if args.as_json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        for line in log.lines:
            print(line)

    return 0 if report.ok else 2


if __name__ == "__main__":
    sys.exit(main())
