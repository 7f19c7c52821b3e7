"""Command-line runner: import feedback, analyze it, summarize topics and inquiries."""
import argparse
import asyncio
import re
from datetime import date
from pathlib import Path

from .app import Pipeline, build_pipeline
from .config import Settings, load_settings
from .csv_loader import load_feedback
from .logging_config import configure_logging
from .models import Inquiry, InquiryStatus
from .summarizer import summary_to_markdown


DATA_DIR = Path("data")


def _slug(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-") or "untitled"


async def _import_feedback(
    pipeline: Pipeline,
    csv_file: Path,
    start_date: date | None,
    end_date: date | None,
) -> int:
    print(f"Loading feedback from {csv_file}...")
    items = load_feedback(csv_file, start_date, end_date)
    print(f"Loaded {len(items)} feedback items\n")

    for inquiry_id in sorted({i.inquiry_id for i in items if i.inquiry_id}):
        if await pipeline.store.get_inquiry(inquiry_id) is None:
            await pipeline.store.add_inquiry(
                Inquiry(id=inquiry_id, title=inquiry_id, status=InquiryStatus.ACTIVE)
            )

    for item in items:
        await pipeline.store.add_item(item)
        await pipeline.scheduler.on_item_created(item.id)
    return len(items)


async def _write_reports(pipeline: Pipeline, report_dir: Path) -> list[Path]:
    report_dir.mkdir(parents=True, exist_ok=True)
    written = []

    for topic in await pipeline.store.list_topics():
        if topic.summary is None:
            continue
        path = report_dir / f"topic_{_slug(topic.name)}.md"
        path.write_text(summary_to_markdown(f"Topic: {topic.name}", topic.summary))
        written.append(path)

    for inquiry in await pipeline.store.list_inquiries():
        if inquiry.summary is None:
            continue
        path = report_dir / f"inquiry_{_slug(inquiry.title)}.md"
        path.write_text(summary_to_markdown(f"Inquiry: {inquiry.title}", inquiry.summary))
        written.append(path)

    return written


async def run_pipeline(
    csv_file: Path,
    settings: Settings,
    start_date: date | None = None,
    end_date: date | None = None,
    output_dir: Path = DATA_DIR / "reports",
) -> None:
    """Analyze every row of the CSV, then summarize each topic and inquiry."""
    print("=== Feedback Insight Pipeline ===\n")

    if not csv_file.exists():
        print(f"Error: {csv_file} not found")
        return

    pipeline = build_pipeline(settings)
    count = await _import_feedback(pipeline, csv_file, start_date, end_date)
    if not count:
        print("Nothing to analyze.")
        return

    print("Analyzing feedback...")
    pipeline.scheduler.start()
    try:
        await pipeline.queue.join()
    finally:
        await pipeline.scheduler.stop()
    stats = await pipeline.monitoring.processing_stats()
    print(f"✓ Analyzed {stats['processed_inputs']}/{stats['total_inputs']} items")
    if stats["pending_inputs"]:
        print(f"  {stats['pending_inputs']} items still awaiting analysis (see log for errors)")
    print()

    print("Generating executive summaries...")
    topics = await pipeline.jobs.summarize_all_topics()
    inquiries = await pipeline.jobs.summarize_all_inquiries()
    print(f"✓ {topics} topic summaries, {inquiries} inquiry summaries\n")

    print("Saving markdown reports...")
    for path in await _write_reports(pipeline, output_dir):
        print(f"✓ Saved {path}")

    usage = await pipeline.monitoring.usage_stats()
    summary = usage["summary"]
    print("\n" + "=" * 60)
    print("PROVIDER USAGE")
    print("=" * 60)
    print(f"  Requests: {summary['request_count']}")
    print(f"  Tokens:   {summary['total_tokens']} "
          f"({summary['prompt_tokens']} prompt / {summary['completion_tokens']} completion)")
    print(f"  Cost:     ${summary['cost_total']:.4f}")
    for row in usage["by_operation"]:
        print(f"    {row['operation']}: {row['request_count']} requests, ${row['cost']:.4f}")
    print("=" * 60)


async def serve(settings: Settings, csv_file: Path | None = None) -> None:
    """Run the worker pool with the recurring sweep and daily summaries until interrupted."""
    pipeline = build_pipeline(settings)
    if csv_file is not None:
        await _import_feedback(pipeline, csv_file, None, None)

    await pipeline.schedule_recurring()
    pipeline.scheduler.start()
    print(f"Workers running ({settings.worker_count}). Press Ctrl+C to stop.")
    try:
        await asyncio.Event().wait()
    finally:
        await pipeline.scheduler.stop()


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="insight-pipeline", description=__doc__)
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="analyze a CSV of feedback and write summary reports")
    run.add_argument("csv_file", type=Path)
    run.add_argument("--start-date", type=date.fromisoformat)
    run.add_argument("--end-date", type=date.fromisoformat)
    run.add_argument("--output-dir", type=Path, default=DATA_DIR / "reports")

    srv = sub.add_parser("serve", help="run workers and recurring jobs")
    srv.add_argument("--csv-file", type=Path)

    args = parser.parse_args(argv)
    settings = load_settings()
    configure_logging(settings.log_level, settings.log_format)

    if args.command == "run":
        asyncio.run(run_pipeline(
            args.csv_file, settings, args.start_date, args.end_date, args.output_dir
        ))
    else:
        try:
            asyncio.run(serve(settings, args.csv_file))
        except KeyboardInterrupt:
            print("\nStopped.")


if __name__ == "__main__":
    main()
