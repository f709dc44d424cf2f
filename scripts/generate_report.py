#!/usr/bin/env python3
"""Command-line front end for case reports, literature reviews and exports."""

import argparse
import json
import logging
import sys
from pathlib import Path

# Ensure project root is on sys.path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from casecite.agents.generation import TextGenerator
from casecite.core.database import CaseDatabase
from casecite.core.errors import CaseCiteError
from casecite.core.models import FocusFlags, User
from casecite.core.settings import Settings, load_settings
from casecite.core.usage_log import UsageLogger, usage_summary
from casecite.exporters import export_case
from casecite.reports.activity import build_case_activity
from casecite.reports.models import ComparisonReportRequest, LiteratureReviewRequest
from casecite.reports.orchestrator import ReportOrchestrator

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("casecite")

DEFAULT_CONFIG = PROJECT_ROOT / "config" / "casecite.yaml"


# ── Wiring ───────────────────────────────────────────────────────────


def build_orchestrator(settings: Settings, db: CaseDatabase) -> ReportOrchestrator:
    generator = TextGenerator(
        settings.generation, settings.pricing, usage_logger=UsageLogger(db)
    )
    return ReportOrchestrator(db, settings, generator)


def _print(payload) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


# ── Commands ─────────────────────────────────────────────────────────


def cmd_create_case(args, settings: Settings, db: CaseDatabase, user: User) -> None:
    focus = FocusFlags(**{name: True for name in args.focus or []})
    case = db.create_case(args.name, user.username, focus, args.focus_text or "")
    _print(case.model_dump(mode="json"))


def cmd_add_document(args, settings: Settings, db: CaseDatabase, user: User) -> None:
    path = Path(args.path)
    text = path.read_text(encoding="utf-8")
    doc = db.add_document(
        args.case_id,
        original_filename=args.filename or path.name,
        mime_type="text/plain",
        extracted_text=text,
        size_bytes=path.stat().st_size,
    )
    _print(doc.model_dump(mode="json", exclude={"extracted_text"}))


def cmd_initial(args, settings: Settings, db: CaseDatabase, user: User) -> None:
    outcome = build_orchestrator(settings, db).generate_initial_report(args.case_id, user)
    _print(outcome.model_dump(mode="json", exclude_none=True))


def cmd_comparison(args, settings: Settings, db: CaseDatabase, user: User) -> None:
    request = ComparisonReportRequest(report_a_id=args.report_a, report_b_id=args.report_b)
    outcome = build_orchestrator(settings, db).generate_comparison_report(
        args.case_id, user, request
    )
    _print(outcome.model_dump(mode="json", exclude_none=True))


def cmd_literature(args, settings: Settings, db: CaseDatabase, user: User) -> None:
    request = LiteratureReviewRequest(clinical_question=args.question)
    outcome = build_orchestrator(settings, db).run_literature_review(
        args.case_id, user, request
    )
    _print(outcome.model_dump(mode="json", exclude_none=True))


def cmd_claims(args, settings: Settings, db: CaseDatabase, user: User) -> None:
    outcome = build_orchestrator(settings, db).extract_document_claims(
        args.case_id, user, args.document_id
    )
    _print(outcome.model_dump(mode="json", exclude_none=True))


def cmd_activity(args, settings: Settings, db: CaseDatabase, user: User) -> None:
    events = build_case_activity(db, args.case_id, user)
    _print([e.model_dump(mode="json", exclude_none=True) for e in events])


def cmd_usage(args, settings: Settings, db: CaseDatabase, user: User) -> None:
    _print(usage_summary(db, args.range))


def cmd_export(args, settings: Settings, db: CaseDatabase, user: User) -> None:
    _print(export_case(db, args.case_id, args.output_dir))


# ── CLI ──────────────────────────────────────────────────────────────


def main():
    parser = argparse.ArgumentParser(description="Generate medical expert opinion reports")
    parser.add_argument(
        "--config",
        default=str(DEFAULT_CONFIG) if DEFAULT_CONFIG.exists() else None,
        help="Path to settings YAML file",
    )
    parser.add_argument("--user", default="admin", help="Acting username")
    parser.add_argument("--role", choices=("admin", "user"), default="admin")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("create-case", help="Create a new case")
    p.add_argument("name")
    p.add_argument(
        "--focus",
        nargs="*",
        choices=list(FocusFlags.model_fields),
        help="Focus flags to enable",
    )
    p.add_argument("--focus-text", default="")
    p.set_defaults(func=cmd_create_case)

    p = sub.add_parser("add-document", help="Attach an extracted-text document")
    p.add_argument("case_id")
    p.add_argument("path", help="UTF-8 text file holding the extracted text")
    p.add_argument("--filename", help="Original filename (defaults to the file name)")
    p.set_defaults(func=cmd_add_document)

    p = sub.add_parser("initial", help="Generate the initial report")
    p.add_argument("case_id")
    p.set_defaults(func=cmd_initial)

    p = sub.add_parser("comparison", help="Generate the comparison report")
    p.add_argument("case_id")
    p.add_argument("--report-a", required=True, help="Plaintiff opinion document id")
    p.add_argument("--report-b", required=True, help="Defense opinion document id")
    p.set_defaults(func=cmd_comparison)

    p = sub.add_parser("literature", help="Run an ad-hoc literature review")
    p.add_argument("case_id")
    p.add_argument("question")
    p.set_defaults(func=cmd_literature)

    p = sub.add_parser("claims", help="Extract claims from one document")
    p.add_argument("case_id")
    p.add_argument("document_id")
    p.set_defaults(func=cmd_claims)

    p = sub.add_parser("activity", help="Show the case activity timeline")
    p.add_argument("case_id")
    p.set_defaults(func=cmd_activity)

    p = sub.add_parser("usage", help="Summarize AI usage")
    p.add_argument("--range", type=int, default=30, help="Range in days (1-365)")
    p.set_defaults(func=cmd_usage)

    p = sub.add_parser("export", help="Export reports and usage log for a case")
    p.add_argument("case_id")
    p.add_argument("--output-dir", default=None)
    p.set_defaults(func=cmd_export)

    args = parser.parse_args()

    settings = load_settings(args.config)
    db = CaseDatabase(settings.database.path)
    user = User(username=args.user, role=args.role)
    try:
        args.func(args, settings, db, user)
    except CaseCiteError as exc:
        logger.error("%s (HTTP %d)", exc.message, exc.status_code)
        _print(exc.to_response())
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
