"""Command-line entry point for the PHP Guardrails scanner."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from .config import build_rules, load_config
from .engine import RuleEngine
from .errors import ConfigError
from .result import ScanResult, combined_exit_code, format_summary_table
from .utils import iter_dump_files, load_token_stream

CONFIG_ERROR_EXIT = 3
INPUT_ERROR_EXIT = 4


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Scan tokenized PHP sources against the guardrail rules",
    )
    parser.add_argument(
        "paths",
        nargs="+",
        help="Token dump file, or directory of dumps (.json/.yaml), to scan.",
    )
    parser.add_argument(
        "--config",
        "-c",
        default=None,
        help="YAML file with per-rule settings.",
    )
    parser.add_argument(
        "--out",
        "--output",
        dest="output_path",
        type=str,
        default=None,
        help="Path to write the structured JSON report (e.g., artifacts/scan.json).",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log scan progress and rule failures in detail.",
    )
    return parser


def run_scan(paths: Sequence[str], config_path: Optional[str] = None) -> List[ScanResult]:
    config = load_config(Path(config_path) if config_path else None)
    engine = RuleEngine(build_rules(config))
    results: List[ScanResult] = []
    for dump_path in iter_dump_files(paths):
        stream = load_token_stream(dump_path)
        results.append(engine.scan(stream, path=str(dump_path)))
    return results


def write_output(results: Sequence[ScanResult], output_path: Optional[str]) -> None:
    print(format_summary_table(results))

    payload = json.dumps(
        {
            "passed": all(result.passed for result in results),
            "files": [result.to_dict() for result in results],
        },
        indent=2,
    )
    if output_path:
        output_file = Path(output_path)
        output_file.parent.mkdir(parents=True, exist_ok=True)
        output_file.write_text(payload, encoding="utf-8")
        print(f"\nReport written to {output_path}")
    else:
        print("\nJSON Report")
        print(payload)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        results = run_scan(args.paths, args.config)
    except ConfigError as exc:
        sys.stderr.write(f"Configuration error: {exc}\n")
        return CONFIG_ERROR_EXIT
    except FileNotFoundError as exc:
        sys.stderr.write(f"Input error: {exc}\n")
        return INPUT_ERROR_EXIT
    write_output(results, args.output_path)
    return combined_exit_code(results)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
