"""Command-line interface for docgate."""

import argparse
import asyncio
import logging
import sys

import structlog
import uvicorn

from docgate.config import get_settings
from docgate.errors import DocgateError
from docgate.models.source import load_sources
from docgate.observability.events import EventBus, LogForwarder, get_event_bus
from docgate.runtime import Runtime

logger = structlog.get_logger()


def configure_logging(verbose: bool = False, bus: EventBus | None = None) -> None:
    """Configure structlog; with a bus, log entries are also published as log.append events."""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if bus is not None:
        processors.append(LogForwarder(bus))
    processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG if verbose else logging.INFO),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def _run(coro):
    try:
        return asyncio.run(coro)
    except DocgateError as e:
        logger.error("command_failed", code=e.code, error=e.message)
        sys.exit(1)


async def _with_runtime(fn):
    runtime = Runtime()
    await runtime.start()
    try:
        return await fn(runtime)
    finally:
        await runtime.close()


def cmd_serve(args):
    """Start the API server."""
    settings = get_settings()
    host = args.host or settings.host
    port = args.port or settings.port

    logger.info("starting_server", host=host, port=port)

    uvicorn.run(
        "docgate.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=args.reload,
    )


def cmd_validate_config(args):
    """Validate the sources file."""
    path = args.sources or get_settings().sources_file
    try:
        sources = load_sources(path)
    except DocgateError as e:
        logger.error("config_invalid", path=str(path), error=e.message)
        sys.exit(1)

    for source in sources:
        logger.info(
            "source_ok",
            source_id=source.id,
            lang=source.lang,
            seeds=len(source.seeds),
            max_depth=source.max_depth,
            max_pages=source.max_pages,
        )
    logger.info("config_valid", path=str(path), sources=len(sources))


def cmd_crawl(args):
    """Crawl sources into the review queue."""
    try:
        sources = load_sources(args.sources or get_settings().sources_file)
    except DocgateError as e:
        logger.error("config_invalid", error=e.message)
        sys.exit(1)
    if args.source:
        wanted = set(args.source)
        unknown = wanted - {s.id for s in sources}
        if unknown:
            logger.error("unknown_sources", sources=sorted(unknown))
            sys.exit(1)
        sources = [s for s in sources if s.id in wanted]

    async def crawl(runtime: Runtime):
        return await runtime.crawl_service.run(sources)

    for stats in _run(_with_runtime(crawl)):
        logger.info(
            "crawl_summary",
            source=stats.source_id,
            fetched=stats.pages_fetched,
            failed=stats.pages_failed,
            queued=stats.documents_queued,
            skipped=stats.documents_skipped,
            duration=f"{stats.duration_seconds:.2f}s",
        )


def cmd_reviews(args):
    """List review records."""

    async def list_reviews(runtime: Runtime):
        return runtime.review_store.query(
            status=args.status, source_id=args.source, page=args.page, page_size=args.page_size
        )

    page = _run(_with_runtime(list_reviews))
    print(f"\n Reviews: {page.total} ({args.status or 'all'}) | page {page.page}/{max(page.pages, 1)}\n")
    for record in page.items:
        print(f"{record.id}  [{record.status}] {record.source_id} | {record.lang}")
        print(f"    {record.title}")
        print(f"    {record.url}")
        print(f"    {len(record.content)} chars")
        print()


def _review_ids(runtime: Runtime, args) -> list[str]:
    if args.all_pending:
        return runtime.review_store.ids(status="pending", source_id=args.source)
    return args.ids


def cmd_approve(args):
    """Approve reviews, optionally uploading the resulting chunks."""

    async def approve(runtime: Runtime):
        ids = _review_ids(runtime, args)
        if not ids:
            logger.info("nothing_to_approve")
            return

        chunk_ids = []
        for review_id in ids:
            try:
                result = runtime.review_service.approve(review_id)
            except DocgateError as e:
                logger.error("approve_failed", review_id=review_id, code=e.code, error=e.message)
                continue
            chunk_ids.extend(result.chunk_ids)

        if args.upload and chunk_ids:
            for start in range(0, len(chunk_ids), 100):
                summary = await runtime.upload_service.upload_chunks(chunk_ids[start : start + 100])
                logger.info(
                    "upload_summary",
                    operation_ids=summary.operation_ids,
                    processed=summary.processed,
                    failed=summary.failed,
                    duplicates=summary.duplicates,
                )

    _run(_with_runtime(approve))


def cmd_reject(args):
    """Reject reviews."""

    async def reject(runtime: Runtime):
        ids = _review_ids(runtime, args)
        if not ids:
            logger.info("nothing_to_reject")
            return
        for start in range(0, len(ids), 100):
            result = runtime.review_service.batch_reject(ids[start : start + 100])
            for entry in result.results:
                if entry.error:
                    logger.error("reject_failed", review_id=entry.review_id, code=entry.error.code)
            logger.info("reject_summary", processed=result.processed, failed=result.failed)

    _run(_with_runtime(reject))


def main():
    """Main CLI entrypoint."""
    parser = argparse.ArgumentParser(
        prog="docgate",
        description="Crawl documentation sources, review them, upload approved chunks",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # serve command
    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument("--host", type=str, help="Host to bind to")
    serve_parser.add_argument("--port", type=int, help="Port to bind to")
    serve_parser.add_argument("--reload", action="store_true", help="Enable auto-reload")
    serve_parser.set_defaults(func=cmd_serve)

    # validate-config command
    validate_parser = subparsers.add_parser("validate-config", help="Validate the sources file")
    validate_parser.add_argument("--sources", help="Path to sources JSON")
    validate_parser.set_defaults(func=cmd_validate_config)

    # crawl command
    crawl_parser = subparsers.add_parser("crawl", help="Crawl sources into the review queue")
    crawl_parser.add_argument("--sources", help="Path to sources JSON")
    crawl_parser.add_argument("--source", "-s", action="append", help="Only this source id (repeatable)")
    crawl_parser.set_defaults(func=cmd_crawl)

    # reviews command
    reviews_parser = subparsers.add_parser("reviews", help="List review records")
    reviews_parser.add_argument(
        "--status", choices=["pending", "approved", "rejected"], default="pending", help="Status filter"
    )
    reviews_parser.add_argument("--source", "-s", help="Source id filter")
    reviews_parser.add_argument("--page", type=int, default=1)
    reviews_parser.add_argument("--page-size", type=int, default=20)
    reviews_parser.set_defaults(func=cmd_reviews)

    # approve / reject commands
    for name, func, help_text in (
        ("approve", cmd_approve, "Approve reviews and chunk them"),
        ("reject", cmd_reject, "Reject reviews"),
    ):
        decision_parser = subparsers.add_parser(name, help=help_text)
        decision_parser.add_argument("ids", nargs="*", help="Review ids")
        decision_parser.add_argument("--all-pending", action="store_true", help="Every pending review")
        decision_parser.add_argument("--source", "-s", help="With --all-pending, only this source")
        decision_parser.set_defaults(func=func)
    subparsers.choices["approve"].add_argument(
        "--upload", action="store_true", help="Upload the new chunks right away"
    )

    args = parser.parse_args()
    if args.command in ("approve", "reject") and not args.ids and not args.all_pending:
        parser.error(f"{args.command}: give review ids or --all-pending")

    configure_logging(verbose=args.verbose, bus=get_event_bus())
    args.func(args)


if __name__ == "__main__":
    main()
