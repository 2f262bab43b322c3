from __future__ import annotations

import argparse
import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import List

from .core.config import load_config
from .core.orchestrator import build_discovery, build_governor, build_orchestrator
from .core.storage.writer import run_report_dict


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Discover and extract pharmaceutical pipeline data for companies."
    )
    parser.add_argument(
        "--params",
        type=Path,
        help="Optional path to params.yaml override.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Extract pipeline products for companies")
    run.add_argument("companies", nargs="*", metavar="COMPANY", help="Company names")
    run.add_argument(
        "--companies-file",
        type=Path,
        help="Text file with one company name per line ('#' starts a comment).",
    )
    run.add_argument(
        "--max-successes",
        type=int,
        help="Stop each company after this many successful extractions.",
    )

    disc = sub.add_parser("discover", help="Print candidate URLs for one company")
    disc.add_argument("company", help="Company name")

    quota = sub.add_parser("quota", help="Inspect or reset extraction quota")
    quota.add_argument(
        "action", choices=["status", "reset-session"], nargs="?", default="status"
    )
    return parser


def read_companies(path: Path) -> List[str]:
    names: List[str] = []
    with path.open("r", encoding="utf-8") as fh:
        for line in fh:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            names.append(line)
    return names


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_config(params_path=args.params) if args.params else load_config()

    if args.command == "quota":
        governor = build_governor(config)
        if args.action == "reset-session":
            governor.reset_session()
        print(json.dumps(governor.stats(), ensure_ascii=False, indent=2))
        return 0

    if args.command == "discover":
        candidates = build_discovery(config).discover(args.company)
        print(json.dumps([asdict(c) for c in candidates], ensure_ascii=False, indent=2))
        return 0 if candidates else 1

    companies = list(args.companies)
    if args.companies_file:
        companies.extend(read_companies(args.companies_file))
    if not companies:
        parser.error("run needs at least one COMPANY or --companies-file")

    orchestrator = build_orchestrator(config)
    report = orchestrator.run_batch(companies, max_successes=args.max_successes)
    print(json.dumps(run_report_dict(report), ensure_ascii=False, indent=2))
    if report.aborted:
        return 2
    return 0 if any(t.status == "success" for t in report.targets) else 1


if __name__ == "__main__":
    raise SystemExit(main())
