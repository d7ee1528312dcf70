"""Application entry point for slackdigest."""

import argparse
import asyncio
import signal
import sys
from dataclasses import dataclass
from pathlib import Path

from dateutil.parser import isoparse
from pydantic import ValidationError
from structlog.stdlib import BoundLogger

from slackdigest.application.services.digest_poster import (
    DigestPoster,
    NotConfiguredError,
)
from slackdigest.application.services.ingestion import IngestionOrchestrator
from slackdigest.application.services.model_summarizer import AgentSummarizer
from slackdigest.application.services.pipeline import DigestPipeline
from slackdigest.application.services.scheduler import DigestScheduler
from slackdigest.application.services.summary_generator import SummaryGenerator
from slackdigest.application.services.user_directory import UserDirectory
from slackdigest.config import (
    AppConfig,
    ConfigError,
    ConfigFileNotFoundError,
    load_config,
)
from slackdigest.domain.timestamps import TimeWindow, datetime_to_ts
from slackdigest.infrastructure.logging import get_logger, setup_logging
from slackdigest.infrastructure.persistence import (
    Database,
    SqliteConversationRepository,
    StoreUnavailableError,
)
from slackdigest.infrastructure.slack import SlackApiCallError, SlackClient
from slackdigest.presentation.http.server import HTTPServer

# Shutdown timeout in seconds
SHUTDOWN_TIMEOUT = 30

COMMANDS = ("serve", "run-once", "ingest", "summarize", "purge")


def parse_args(args: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Args:
        args: Command line arguments. If None, uses sys.argv.

    Returns:
        Parsed arguments namespace. command defaults to "serve".
    """
    parser = argparse.ArgumentParser(
        description="slackdigest - Slack conversation digests"
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("config.yaml"),
        help="Path to configuration file (default: config.yaml)",
    )
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("serve", help="Run the scheduler and HTTP server")
    subparsers.add_parser("run-once", help="Run one digest over the last closed window")

    ingest = subparsers.add_parser("ingest", help="Ingest new messages")
    ingest.add_argument(
        "--since", type=isoparse, help="Ignore messages before this ISO 8601 time"
    )

    summarize = subparsers.add_parser("summarize", help="Summarize one conversation")
    summarize.add_argument("--channel", required=True, help="Slack conversation ID")
    summarize.add_argument(
        "--hours", type=float, default=24.0, help="Window length ending now (default: 24)"
    )
    summarize.add_argument("--start", type=isoparse, help="Window start (ISO 8601)")
    summarize.add_argument("--end", type=isoparse, help="Window end (ISO 8601)")
    summarize.add_argument("--post", action="store_true", help="Post the digest")

    purge = subparsers.add_parser("purge", help="Delete old messages")
    purge.add_argument("--days", type=int, required=True, help="Retention in days")

    namespace = parser.parse_args(args)
    if namespace.command is None:
        namespace.command = "serve"
    if namespace.command == "summarize" and (namespace.start is None) != (
        namespace.end is None
    ):
        parser.error("--start and --end must be given together")
    return namespace


@dataclass
class Application:
    """Wired application components."""

    database: Database
    repository: SqliteConversationRepository
    pipeline: DigestPipeline
    scheduler: DigestScheduler


async def create_application(config: AppConfig) -> Application:
    """Initialize the database and wire every component from config.

    Raises:
        StoreUnavailableError: If the database cannot be opened.
    """
    database = Database(config.database.url)
    await database.initialize()
    repository = SqliteConversationRepository(database)

    slack = SlackClient.from_token(
        config.slack.bot_token,
        get_logger("slack"),
        max_retries=config.slack.max_retries,
        base_delay=config.slack.base_delay,
        page_size=config.slack.page_size,
    )
    users = UserDirectory(
        slack, repository, get_logger("users"), ttl=config.slack.user_cache_ttl
    )
    ingestion = IngestionOrchestrator(
        slack,
        repository,
        users,
        get_logger("ingestion"),
        conversation_types=config.slack.conversation_types,
        conversation_delay=config.slack.conversation_delay,
        preload_users=config.slack.preload_users,
    )

    summarizer = None
    if config.summary.llm is not None:
        summarizer = AgentSummarizer(
            config.summary.llm,
            get_logger("summarizer"),
            highlight_limit=config.summary.highlight_limit,
        )
    generator = SummaryGenerator(
        repository,
        get_logger("summary"),
        summarizer=summarizer,
        highlight_limit=config.summary.highlight_limit,
        mention_context_chars=config.summary.mention_context_chars,
        max_mention_contexts=config.summary.max_mention_contexts,
    )
    poster = DigestPoster(
        slack, repository, get_logger("poster"), channel_id=config.slack.digest_channel
    )

    pipeline = DigestPipeline(
        ingestion,
        generator,
        poster,
        repository,
        get_logger("pipeline"),
        retention_days=config.scheduler.retention_days,
    )
    scheduler = DigestScheduler(pipeline, config.scheduler.cron, get_logger("scheduler"))
    return Application(
        database=database, repository=repository, pipeline=pipeline, scheduler=scheduler
    )


async def serve(
    app: Application,
    config: AppConfig,
    logger: BoundLogger,
    shutdown_timeout: float = SHUTDOWN_TIMEOUT,
) -> int:
    """Run the scheduler loop and HTTP server until SIGINT/SIGTERM."""
    http_server: HTTPServer | None = None
    if config.server.enabled:
        http_server = HTTPServer(
            config=config.server,
            scheduler=app.scheduler,
            logger=get_logger("http_server"),
        )

    shutdown_event = asyncio.Event()

    def signal_handler(sig: signal.Signals) -> None:
        logger.info("Received signal, initiating shutdown", signal=sig.name)
        shutdown_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler, sig)

    try:
        if http_server is not None:
            await http_server.start()
        logger.info("slackdigest started successfully", cron=config.scheduler.cron)

        await app.scheduler.run_forever(shutdown_event)

    except asyncio.CancelledError:
        logger.info("Main loop cancelled")

    finally:
        logger.info("Shutting down")
        try:
            await asyncio.wait_for(
                _stop(app.scheduler, http_server), timeout=shutdown_timeout
            )
            logger.info("slackdigest stopped")
        except TimeoutError:
            logger.warning(
                "Shutdown timed out, forcing termination",
                timeout_seconds=shutdown_timeout,
            )
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)

    return 0


async def _stop(scheduler: DigestScheduler, http_server: HTTPServer | None) -> None:
    if http_server is not None:
        await http_server.stop()
    await scheduler.stop()


async def run_command(
    args: argparse.Namespace,
    app: Application,
    config: AppConfig,
    logger: BoundLogger,
    shutdown_timeout: float = SHUTDOWN_TIMEOUT,
) -> int:
    """Dispatch a parsed command.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    if args.command == "serve":
        return await serve(app, config, logger, shutdown_timeout)

    if args.command == "run-once":
        report = await app.pipeline.run_once(app.scheduler.window_for())
        return 1 if report.failed else 0

    if args.command == "ingest":
        since = datetime_to_ts(args.since) if args.since else None
        report = await app.pipeline.run_ingestion(since)
        logger.info(
            "Ingestion finished",
            conversations=len(report.conversations),
            skipped=len(report.skipped),
            messages_stored=report.messages_stored,
        )
        return 0

    if args.command == "summarize":
        if args.start is not None:
            window = TimeWindow(start=args.start, end=args.end)
        else:
            window = TimeWindow.last_hours(args.hours)
        result = await app.pipeline.run_summarization(
            args.channel, window.start, window.end, post=args.post
        )
        logger.info(
            "Summarization finished",
            conversation_id=args.channel,
            state=result.state.value,
            summary_id=result.summary.id if result.summary else None,
        )
        return 0

    if args.command == "purge":
        await app.pipeline.purge_older_than(args.days)
        return 0

    raise ValueError(f"Unknown command: {args.command}")


async def main_async(
    config_path: Path,
    args: argparse.Namespace | None = None,
    shutdown_timeout: float = SHUTDOWN_TIMEOUT,
) -> int:
    """Async main function.

    Args:
        config_path: Path to configuration file.
        args: Parsed command line arguments. Defaults to the serve command.
        shutdown_timeout: Maximum time in seconds to wait for graceful shutdown.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    if args is None:
        args = parse_args(["-c", str(config_path)])

    # 1. Load configuration
    config = load_config(config_path)

    # 2. Initialize logging
    setup_logging(config.logging)
    logger = get_logger(__name__)
    logger.info(
        "Starting slackdigest", config_path=str(config_path), command=args.command
    )

    # 3. Initialize components
    try:
        app = await create_application(config)
    except StoreUnavailableError as e:
        logger.error("Database unavailable", error=str(e))
        return 1

    try:
        return await run_command(args, app, config, logger, shutdown_timeout)
    except (
        StoreUnavailableError,
        SlackApiCallError,
        NotConfiguredError,
        LookupError,
        ValueError,
    ) as e:
        logger.error("Command failed", command=args.command, error=str(e))
        return 1
    finally:
        await app.database.close()


def main() -> None:
    """Main entry point."""
    args = parse_args()
    config_path = args.config

    try:
        exit_code = asyncio.run(main_async(config_path, args))
        sys.exit(exit_code)
    except ConfigFileNotFoundError:
        print(f"Error: {config_path} not found", file=sys.stderr)
        sys.exit(1)
    except ConfigError as e:
        print(f"Error: Configuration error: {e}", file=sys.stderr)
        sys.exit(1)
    except ValidationError as e:
        print(f"Error: Configuration validation error: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        sys.exit(0)


if __name__ == "__main__":
    main()
