"""CloudWatch Logs retrieval, tailing and analysis."""

import logging
import re
import time
from collections import Counter
from collections.abc import Callable, Iterable, Iterator
from datetime import UTC, datetime, timedelta

from fargate_ops.core.errors import (
    CloudAPIError,
    InvalidInputError,
    NoLogsFoundError,
    NotFoundError,
)
from fargate_ops.core.interfaces import CloudFacade
from fargate_ops.core.models import LogAnalysis, LogEvent, LogQuery

logger = logging.getLogger(__name__)

MAX_STREAMS = 50
TAIL_START_WINDOW = timedelta(minutes=1)

ERROR_PATTERN = re.compile(r"ERROR|FATAL|CRITICAL", re.IGNORECASE)
WARNING_PATTERN = re.compile(r"WARN|WARNING", re.IGNORECASE)
INFO_PATTERN = re.compile(r"INFO", re.IGNORECASE)
DEBUG_PATTERN = re.compile(r"DEBUG|TRACE", re.IGNORECASE)
HTTP_STATUS_PATTERN = re.compile(r"HTTP/[0-9.]+ ([0-9]{3})")


def validate_query(query: LogQuery) -> None:
    """Reject an invalid log query.

    Raises:
        InvalidInputError: If the query cannot be run.
    """
    if not query.log_group.strip():
        raise InvalidInputError("Log group is required. Use -g or --log-group option.")
    if query.limit < 1:
        raise InvalidInputError("Number of lines must be a positive integer")
    if query.duration_minutes < 1:
        raise InvalidInputError("Duration must be a positive integer")


def _epoch_ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def _resolve_streams(facade: CloudFacade, query: LogQuery) -> list[str] | None:
    """Return the stream names to restrict the query to, or None for all streams."""
    if not query.stream_pattern:
        return None
    streams = facade.list_log_streams(
        query.log_group, name_contains=query.stream_pattern, limit=MAX_STREAMS
    )
    if not streams:
        raise NoLogsFoundError(
            f"No log streams matching '{query.stream_pattern}' in {query.log_group}"
        )
    return streams


def fetch_logs(
    facade: CloudFacade,
    query: LogQuery,
    now: Callable[[], datetime] = lambda: datetime.now(UTC),
) -> list[LogEvent]:
    """Fetch recent events from a log group.

    Args:
        facade: Cloud facade.
        query: What to fetch.
        now: Clock used to compute the look-back window.

    Returns:
        Matching events, oldest first, at most ``query.limit``.

    Raises:
        NotFoundError: If the log group does not exist.
        NoLogsFoundError: If no stream or event matches.
    """
    validate_query(query)
    if not facade.log_group_exists(query.log_group):
        raise NotFoundError(f"Log group '{query.log_group}' not found")

    streams = _resolve_streams(facade, query)
    end = now()
    start = end - timedelta(minutes=query.duration_minutes)
    logger.info(
        "Fetching logs from %s between %s and %s (filter=%s)",
        query.log_group,
        start,
        end,
        query.effective_filter_pattern,
    )
    events = facade.filter_log_events(
        query.log_group,
        start_time_ms=_epoch_ms(start),
        end_time_ms=_epoch_ms(end),
        filter_pattern=query.effective_filter_pattern,
        log_stream_names=streams,
        limit=query.limit,
    )
    if not events:
        raise NoLogsFoundError(
            f"No log events found in the last {query.duration_minutes} minutes"
        )
    logger.info("Fetched %d log entries", len(events))
    return events


def fetch_analysis_window(
    facade: CloudFacade,
    query: LogQuery,
    now: Callable[[], datetime] = lambda: datetime.now(UTC),
) -> list[str]:
    """Return every message in the query's time window for analysis.

    The line limit, filter pattern and stream pattern do not apply, so the
    analysis covers the whole log group over ``duration_minutes``.

    Args:
        facade: Cloud facade.
        query: Supplies the log group and the look-back window.
        now: Clock used to compute the look-back window.

    Returns:
        Message texts, oldest first.
    """
    end = now()
    start = end - timedelta(minutes=query.duration_minutes)
    logger.info("Fetching %s for analysis since %s", query.log_group, start)
    events = facade.filter_log_events(
        query.log_group,
        start_time_ms=_epoch_ms(start),
        end_time_ms=_epoch_ms(end),
    )
    return [event.message for event in events]


def tail_logs(
    facade: CloudFacade,
    query: LogQuery,
    sleep: Callable[[float], None] = time.sleep,
    now: Callable[[], datetime] = lambda: datetime.now(UTC),
    poll_interval_seconds: int = 5,
    since_ms: int | None = None,
) -> Iterator[LogEvent]:
    """Yield new events from a log group as they arrive.

    Only events strictly newer than the last yielded event are returned. A poll
    that fails with an API error is skipped; a missing log group or a credential
    failure ends the tail.

    Args:
        facade: Cloud facade.
        query: What to tail; ``limit`` and ``duration_minutes`` are ignored.
        sleep: Blocking sleep, replaceable in tests.
        now: Clock used for poll windows.
        poll_interval_seconds: Delay between polls.
        since_ms: Timestamp of the last event already shown, if any.

    Yields:
        New log events, oldest first.

    Raises:
        NotFoundError: If the log group does not exist.
        NoLogsFoundError: If a stream pattern matches no stream.
    """
    if not query.log_group.strip():
        raise InvalidInputError("Log group is required. Use -g or --log-group option.")
    if not facade.log_group_exists(query.log_group):
        raise NotFoundError(f"Log group '{query.log_group}' not found")
    streams = _resolve_streams(facade, query)
    last_seen = since_ms or 0

    while True:
        end = now()
        start_ms = last_seen if last_seen else _epoch_ms(end - TAIL_START_WINDOW)
        try:
            events = facade.filter_log_events(
                query.log_group,
                start_time_ms=start_ms,
                end_time_ms=_epoch_ms(end),
                filter_pattern=query.effective_filter_pattern,
                log_stream_names=streams,
            )
        except CloudAPIError as exc:
            logger.warning("Log poll failed: %s", exc)
            events = []

        for event in events:
            if event.timestamp > last_seen:
                last_seen = event.timestamp
                yield event
        sleep(poll_interval_seconds)


def classify_level(message: str) -> str | None:
    """Return the log level a message appears to carry.

    Returns:
        One of ``error``, ``warning``, ``info``, ``debug``, or None.
    """
    if ERROR_PATTERN.search(message):
        return "error"
    if WARNING_PATTERN.search(message):
        return "warning"
    if INFO_PATTERN.search(message):
        return "info"
    if DEBUG_PATTERN.search(message):
        return "debug"
    return None


def format_timestamp(timestamp_ms: int) -> str:
    """Return an epoch-millisecond timestamp as ``YYYY-MM-DD HH:MM:SS`` UTC."""
    return datetime.fromtimestamp(timestamp_ms / 1000, UTC).strftime("%Y-%m-%d %H:%M:%S")


def format_event(event: LogEvent) -> str:
    """Return a plain-text line for an event."""
    return f"[{format_timestamp(event.timestamp)}] [{event.log_stream or '-'}] {event.message}"


def _error_signature(message: str) -> str:
    """Return the text of an error line from its last ERROR onwards."""
    index = message.rfind("ERROR")
    return message[index:] if index >= 0 else message


def analyze_logs(messages: Iterable[str]) -> LogAnalysis:
    """Count log levels, common error messages and HTTP status codes.

    Args:
        messages: Log message texts.

    Returns:
        The analysis summary.
    """
    analysis = LogAnalysis()
    error_patterns: Counter[str] = Counter()
    status_codes: Counter[str] = Counter()

    for message in messages:
        if ERROR_PATTERN.search(message):
            analysis.error_count += 1
            error_patterns[_error_signature(message).strip()] += 1
        if WARNING_PATTERN.search(message):
            analysis.warning_count += 1
        if INFO_PATTERN.search(message):
            analysis.info_count += 1
        status_codes.update(HTTP_STATUS_PATTERN.findall(message))

    analysis.top_error_patterns = error_patterns.most_common(5)
    analysis.http_status_codes = status_codes.most_common(10)
    return analysis
