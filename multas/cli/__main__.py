"""
MULTAs CLI - diagnostics for storage and classification.

Usage:
    multas classify TEXT [--quick] [--provider P] [--json]
    multas submit TEXT [--user NAME] [--category N]
    multas list [--user NAME] [--limit N] [--json]
    multas status [--json]
    multas sync
    multas summary [--user NAME] [--category N] [--json]
    multas report [--user NAME]
"""

import argparse
import json
import logging
import sys
from typing import Optional, Sequence

from multas.classification.categories import category_name
from multas.classification.pipeline import ClassificationPipeline
from multas.classification.providers import ProviderClassifier
from multas.classification.summaries import ReflectionWriter, summarize_by_category
from multas.config import Settings, get_settings
from multas.logging_config import setup_multas_logging
from multas.models.auto import auto_configure_model
from multas.storage.factory import create_storage, resolve_storage_mode
from multas.storage.stats import category_counts, paginate, sort_by_timestamp, student_stats
from multas.submissions import ExperienceService

logger = logging.getLogger(__name__)


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def cmd_classify(args, settings: Settings):
    """Classify text without storing it."""
    if args.quick:
        result = ProviderClassifier(args.provider, settings).classify(args.text)
        if args.json:
            _print_json(result.to_dict())
        else:
            print(f"{result.category}: {category_name(result.category)} ({result.provider})")
            print(f"  {result.reason}")
        return

    pipeline = ClassificationPipeline(
        auto_configure_model(settings), default_category=settings.default_category
    )
    analysis = pipeline.analyze(args.text)
    if args.json:
        _print_json(analysis.to_dict())
        return
    for i, element in enumerate(analysis.elements, 1):
        prefix = f"[{i}] " if analysis.is_multiple else ""
        print(f"{prefix}{element.category}: {category_name(element.category)}")
        if analysis.is_multiple:
            print(f"    {element.text}")
        print(f"    {element.reason}")


def cmd_submit(args, settings: Settings):
    """Classify and store a submission, then flush pending sync."""
    storage = create_storage(settings, start_background=False)
    try:
        pipeline = ClassificationPipeline(
            auto_configure_model(settings), default_category=settings.default_category
        )
        service = ExperienceService(storage, pipeline, settings.default_category)
        result = service.submit(args.text, user_name=args.user, category=args.category)
        for record in result.records:
            print(f"✓ {record.id} → {record.category}: {category_name(record.category)}")
    finally:
        storage.close(flush=True)


def cmd_list(args, settings: Settings):
    """List stored records, newest first."""
    storage = create_storage(settings, start_background=False)
    try:
        records = storage.load_by_user(args.user) if args.user else storage.load_all_records()
    finally:
        storage.close(flush=False)

    records = sort_by_timestamp(records)
    shown = paginate(records, 0, args.limit)
    if args.json:
        _print_json(
            {
                "records": [r.to_dict() for r in shown],
                "student_stats": student_stats(records),
                "total_records": len(records),
            }
        )
        return

    if not records:
        print("No records.")
        return
    for record in shown:
        preview = record.text if len(record.text) <= 60 else record.text[:60] + "..."
        print(f"{record.timestamp}  {record.user_name}  [{record.category}] {preview}")
    print(f"\n{len(shown)} of {len(records)} record(s)")


def cmd_status(args, settings: Settings):
    """Show storage mode, sync state and category distribution."""
    storage = create_storage(settings, start_background=False)
    try:
        stats = storage.get_stats()
        records = storage.load_all_records()
    finally:
        storage.close(flush=False)

    status = {
        "mode": resolve_storage_mode(settings).value,
        "ai_provider": settings.ai_provider,
        "stats": stats,
        "category_counts": category_counts(records),
    }
    if args.json:
        _print_json(status)
        return

    print(f"Storage mode: {status['mode']}")
    print(f"AI provider:  {status['ai_provider']}")
    print(f"Records:      {stats.get('total_posts', 0)} ({stats.get('total_users', 0)} users)")
    sync = stats.get("sync_status")
    if sync:
        print(
            f"Sync queue:   {sync['queue_length']} pending "
            f"(remote mirror: {'yes' if sync['has_remote_mirror'] else 'no'})"
        )
    for category, count in status["category_counts"].items():
        if count:
            print(f"  {category:2d} {category_name(category)}: {count}")


def cmd_sync(args, settings: Settings):
    """Queue local records the mirror is missing, then drain the queue."""
    storage = create_storage(settings, start_background=False)
    try:
        queued = storage.reconcile()
        result = storage.force_sync()
    finally:
        storage.close(flush=False)
    print(f"Queued {queued} record(s) missing from the remote mirror")
    print(f"Pushed {result.pushed}, requeued {result.requeued}, dropped {result.dropped}")
    for error in result.errors:
        print(f"  ✗ {error}")
    if not result.success:
        sys.exit(1)


def _load_records(settings: Settings, user: Optional[str]):
    storage = create_storage(settings, start_background=False)
    try:
        return storage.load_by_user(user) if user else storage.load_all_records()
    finally:
        storage.close(flush=False)


def cmd_summary(args, settings: Settings):
    """Write a reflective summary per category."""
    records = _load_records(settings, args.user)
    if args.category is not None:
        records = [r for r in records if r.category == args.category]
    if not records:
        print("No records.")
        return

    summaries = summarize_by_category(ReflectionWriter(auto_configure_model(settings)), records)
    if args.json:
        _print_json(summaries)
        return
    for entry in summaries:
        print(f"[{entry['category']}] {entry['name']}")
        print(f"{entry['summary']}\n")


def cmd_report(args, settings: Settings):
    """Write a feedback report over the practice period."""
    records = sort_by_timestamp(_load_records(settings, args.user))
    print(ReflectionWriter(auto_configure_model(settings)).report(records))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="multas",
        description="Clinical experience log: classification and storage diagnostics",
    )
    parser.add_argument("--log-level", default=None, help="Logging level (default: INFO)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    p_classify = subparsers.add_parser("classify", help="Classify text without storing it")
    p_classify.add_argument("text", help="Experience text")
    p_classify.add_argument(
        "--quick", action="store_true", help="Single-shot classifier with keyword fallback"
    )
    p_classify.add_argument("--provider", help="Override the AI provider for --quick")
    p_classify.add_argument("--json", "-j", action="store_true")

    p_submit = subparsers.add_parser("submit", help="Classify and store an experience")
    p_submit.add_argument("text", help="Experience text")
    p_submit.add_argument("--user", "-u", help="Display name")
    p_submit.add_argument("--category", "-c", type=int, help="Skip classification")

    p_list = subparsers.add_parser("list", help="List stored experiences")
    p_list.add_argument("--user", "-u", help="Only this user's records")
    p_list.add_argument("--limit", "-n", type=int, default=None)
    p_list.add_argument("--json", "-j", action="store_true")

    p_status = subparsers.add_parser("status", help="Show storage and sync status")
    p_status.add_argument("--json", "-j", action="store_true")

    subparsers.add_parser("sync", help="Push local records missing from the remote mirror")

    p_summary = subparsers.add_parser("summary", help="Reflective summary per category")
    p_summary.add_argument("--user", "-u", help="Only this user's records")
    p_summary.add_argument("--category", "-c", type=int, help="Only this category")
    p_summary.add_argument("--json", "-j", action="store_true")

    p_report = subparsers.add_parser("report", help="Feedback report (10+ records)")
    p_report.add_argument("--user", "-u", help="Only this user's records")
    return parser


def main(argv: Optional[Sequence[str]] = None):
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    setup_multas_logging(args.log_level or settings.log_level)

    try:
        if args.command == "classify":
            cmd_classify(args, settings)
        elif args.command == "submit":
            cmd_submit(args, settings)
        elif args.command == "list":
            cmd_list(args, settings)
        elif args.command == "status":
            cmd_status(args, settings)
        elif args.command == "sync":
            cmd_sync(args, settings)
        elif args.command == "summary":
            cmd_summary(args, settings)
        elif args.command == "report":
            cmd_report(args, settings)
    except (ValueError, TypeError) as e:
        logger.error(f"Input validation error: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Command failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
