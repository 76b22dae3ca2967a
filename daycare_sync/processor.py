"""Ingestion orchestrator: turn candidate report emails into stored daily reports.

Per message:
    1. Skip if a report for the message id is already stored
    2. Fetch the full message and extract its HTML body
    3. Resolve the parser strategy from the sender and provider bindings
    4. Parse the report and resolve the child
    5. Normalize the date and write the report in one idempotent call

Every message yields exactly one MessageResult; expected data problems are
skips, everything else is an error, and neither stops the batch.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import asdict, dataclass

from daycare_sync import child_resolver, html_extractor, normalize, parsers, provider_resolver
from daycare_sync.database import ReportStore
from daycare_sync.email_fetcher import get_sender
from daycare_sync.exceptions import (
    DataQualityError,
    MessageFetchError,
    MissingSender,
    NoHtmlFound,
    NoParserFound,
    ParseFailure,
    PersistenceError,
)
from daycare_sync.log_context import ContextLogger, get_logger
from daycare_sync.models import BatchResult, Child, MessageResult, ProcessingOutcome, ProviderBinding

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncContext:
    """Read-only snapshot of a user's configuration, taken once per batch."""

    user_id: str
    bindings: tuple[ProviderBinding, ...]
    children: tuple[Child, ...]


async def process_message(
    source,
    store: ReportStore,
    message_id: str,
    ctx: SyncContext,
    log: ContextLogger,
) -> MessageResult:
    """Run one message through the pipeline to its terminal outcome.

    Args:
        source: Message source with an async get_message(message_id).
        store: Report store (dedup check and idempotent write).
        message_id: Source message id, also the dedup key.
        ctx: The user's bindings and children.
        log: Context logger; message id, sender and strategy are bound onto it.
    """
    log = log.bind(message_id=message_id)
    try:
        if await store.report_exists(message_id):
            log.info("Report already stored; skipping")
            return MessageResult(message_id, ProcessingOutcome.SKIPPED_EXISTS)

        message = await source.get_message(message_id)
        html = html_extractor.extract_html(message.get("payload", {}))
        if not html:
            raise NoHtmlFound("Message has no HTML body")

        sender = get_sender(message)
        if not sender:
            raise MissingSender("Could not extract sender email")
        log = log.bind(sender=sender)
        strategy = provider_resolver.resolve_strategy(sender, list(ctx.bindings), log)
        if strategy is None:
            raise NoParserFound(f"No parser resolved for sender '{sender}'")

        log = log.bind(strategy=strategy)
        report = parsers.PARSERS[strategy](html, log)
        if report is None:
            raise ParseFailure("Parser could not extract the child name and report date")

        child = child_resolver.resolve_child(report.child_name, list(ctx.children), log)
        report_date = normalize.normalize_report_date(report.report_date)
        payload = normalize.build_report_payload(report, child.id, report_date, message_id)
        report_id, created = await store.save_report(payload)

    except DataQualityError as e:
        log.warning("Skipping message (%s): %s", e.outcome, e)
        return MessageResult(message_id, e.outcome, error=str(e))
    except (PersistenceError, MessageFetchError) as e:
        log.error("Failed to process message: %s", e)
        return MessageResult(message_id, ProcessingOutcome.ERROR, error=str(e))
    except Exception as e:
        log.exception("Unexpected error processing message")
        return MessageResult(message_id, ProcessingOutcome.ERROR, error=f"Unexpected error: {e}")

    if not created:
        # Another run stored this message between the check and the write
        log.info("Report %s already stored by another run; skipping", report_id)
        return MessageResult(message_id, ProcessingOutcome.SKIPPED_EXISTS, report_id=report_id)

    log.info(
        "Imported report %s for %s on %s (%d naps, %d meals, %d bathroom, %d activities, %d photos)",
        report_id, child.full_name, report_date, len(report.naps), len(report.meals),
        len(report.bathroom_events), len(report.activities), len(report.photos),
    )
    return MessageResult(message_id, ProcessingOutcome.SUCCESS, report_id=report_id)


async def process_batch(
    source,
    store: ReportStore,
    message_ids: list[str],
    ctx: SyncContext,
    log: ContextLogger,
    deadline: float | None = None,
    batch: BatchResult | None = None,
) -> BatchResult:
    """Process messages one at a time and count their outcomes.

    Args:
        deadline: time.monotonic() value after which no new message is
            started; the remaining ids are returned in batch.deferred.
        batch: Result to fill in, so a caller keeps partial results if the
            batch is cancelled.

    A message already in flight always finishes, including when the batch
    task is cancelled; the cancellation is re-raised once it has.
    """
    if batch is None:
        batch = BatchResult(total_found=len(message_ids))

    for index, message_id in enumerate(message_ids):
        if deadline is not None and time.monotonic() >= deadline:
            batch.deferred = list(message_ids[index:])
            log.warning("Sync deadline reached; deferring %d messages", len(batch.deferred))
            break

        task = asyncio.ensure_future(process_message(source, store, message_id, ctx, log))
        try:
            result = await asyncio.shield(task)
        except asyncio.CancelledError:
            log.warning("Sync cancelled; finishing message %s first", message_id)
            batch.record(await task)
            batch.deferred = list(message_ids[index + 1:])
            raise
        batch.record(result)

    return batch


def _outcomes(batch: BatchResult) -> list[dict]:
    return [asdict(result) for result in batch.results]


async def sync_user(
    source,
    store: ReportStore,
    user_id: str,
    query: str,
    max_results: int,
    deadline_seconds: float = 0,
) -> BatchResult:
    """Run one sync for a user and record it in the sync run log.

    Lists candidate message ids, snapshots the user's provider bindings and
    children, then processes the batch.

    Raises:
        MessageFetchError: If candidate messages cannot be listed.
        PersistenceError: If the bindings or children cannot be read.
    """
    run_id = uuid.uuid4().hex[:12]
    log = get_logger(__name__, run_id=run_id, user_id=user_id)
    await store.start_run(run_id, user_id)
    batch = BatchResult()

    try:
        message_ids = await source.list_message_ids(query, max_results)
        batch.total_found = len(message_ids)
        if not message_ids:
            log.info("No report emails found")

        ctx = SyncContext(
            user_id=user_id,
            bindings=tuple(await store.list_provider_bindings(user_id)),
            children=tuple(await store.list_children(user_id)),
        )
        if not ctx.bindings:
            log.warning("User has no provider bindings; every message will lack a parser")
        if not ctx.children:
            log.warning("User has no children configured")

        deadline = time.monotonic() + deadline_seconds if deadline_seconds > 0 else None
        await process_batch(source, store, message_ids, ctx, log, deadline=deadline, batch=batch)

    except asyncio.CancelledError:
        await store.finish_run(run_id, "cancelled", batch.stats(), _outcomes(batch))
        raise
    except Exception as e:
        log.exception("Sync failed")
        await store.finish_run(run_id, "failed", batch.stats(), _outcomes(batch), str(e))
        raise

    await store.finish_run(run_id, "success", batch.stats(), _outcomes(batch))
    log.info(
        "%s (found %d, skipped %d, errors %d, deferred %d)",
        batch.message, batch.total_found, batch.skipped, batch.errors, len(batch.deferred),
    )
    return batch
