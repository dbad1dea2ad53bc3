import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Optional, Sequence

from dotenv import load_dotenv

from .api import calculate_estimate, generate_assignment
from .config import Config, load_config
from .errors import SurveyEstimateError
from .reporting import make_assignment_summary, make_summary_text
from .serialization import assignment_to_json, descriptor_from_dict, result_to_json

logger = logging.getLogger(__name__)


def _read_json(path: str) -> dict:
    with Path(path).expanduser().open("r", encoding="utf-8") as handle:
        return json.load(handle)


def _emit(text: str, cfg: Config) -> None:
    if cfg.output_path is None:
        sys.stdout.write(text + "\n")
        return
    cfg.output_path.parent.mkdir(parents=True, exist_ok=True)
    cfg.output_path.write_text(text + "\n", encoding="utf-8")
    logger.info("Wrote %s", cfg.output_path)


def run_assignment(args: argparse.Namespace, cfg: Config) -> int:
    project = _read_json(args.project)
    assignment = generate_assignment(project, options=cfg.engine_options())
    _emit(assignment_to_json(assignment), cfg)
    logger.info(make_assignment_summary(assignment))
    for warning in assignment.warnings:
        logger.warning(" - %s", warning)
    return 0


def run_estimate(args: argparse.Namespace, cfg: Config) -> int:
    work = descriptor_from_dict(_read_json(args.work))
    result = calculate_estimate(work, registry=cfg.build_registry())
    _emit(result_to_json(result), cfg)
    logger.info(make_summary_text(result))
    return 0


def run_tables(args: argparse.Namespace, cfg: Config) -> int:
    registry = cfg.build_registry()
    version = registry.resolve_active_version()
    tables = [
        {"section": section, "code": code, "available": registry.is_table_available(section, code, version)}
        for section, code in registry.available_tables(version)
    ]
    _emit(json.dumps({"normVersion": version, "tables": tables}, ensure_ascii=False, indent=2), cfg)
    for key in registry.missing_sources():
        logger.warning("Registered source without data file: %s", "/".join(key))
    return 0


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate survey work assignments and normative cost estimates")
    parser.add_argument("--norm-version", help="Price norm version to use instead of the date-resolved one")
    parser.add_argument("--data-dir", help="Directory containing versioned price tables")
    parser.add_argument("--strict", action="store_true", help="Warn about mandatory blocks without applicable variants")
    parser.add_argument("--output", help="Write JSON to this file instead of stdout")
    parser.add_argument("-v", "--verbose", action="store_true", help="Increase logging verbosity")
    commands = parser.add_subparsers(dest="command", required=True)

    assignment = commands.add_parser("assignment", help="Build a technical assignment from a project description")
    assignment.add_argument("project", help="Project description JSON file")
    assignment.set_defaults(handler=run_assignment)

    estimate = commands.add_parser("estimate", help="Price a single work descriptor")
    estimate.add_argument("work", help="Work descriptor JSON file")
    estimate.set_defaults(handler=run_estimate)

    tables = commands.add_parser("tables", help="List the registered price tables")
    tables.set_defaults(handler=run_tables)
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    load_dotenv()
    args = parse_args(argv)
    cfg = load_config(os.environ, args)
    log_level = logging.DEBUG if cfg.verbose else logging.INFO
    logging.basicConfig(level=log_level, format="%(message)s")
    try:
        return args.handler(args, cfg)
    except (SurveyEstimateError, OSError, json.JSONDecodeError) as exc:
        logger.error("%s", exc)
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
