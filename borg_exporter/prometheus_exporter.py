import datetime
import logging
from typing import NamedTuple

from borg_exporter.borg_api import BORG_COMMAND, RetryPolicy, borg_info, repository_label
from borg_exporter.errors import TimestampError
from borg_exporter.models import CacheStats, parse_info

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S"


class MetricSpec(NamedTuple):
    name: str
    type: str
    help: str
    stat: str | None


# Dashboards and alerts key on these names and types; keep the order stable.
METRICS = (
    MetricSpec("borg_total_chunks", "gauge", "Number of chunks in the repository, counting duplicates", "total_chunks"),
    MetricSpec("borg_total_csize", "gauge", "Compressed size of all chunks in bytes", "total_csize"),
    MetricSpec("borg_total_size", "gauge", "Original size of all chunks in bytes", "total_size"),
    MetricSpec("borg_total_unique_chunks", "gauge", "Number of distinct chunks in the repository", "total_unique_chunks"),
    MetricSpec("borg_unique_csize", "gauge", "Compressed size of distinct chunks in bytes", "unique_csize"),
    MetricSpec("borg_unique_size", "gauge", "Original size of distinct chunks in bytes", "unique_size"),
    MetricSpec("borg_last_modified", "counter", "Unix timestamp of the last repository modification", None),
)


def parse_last_modified(ts: str, tz: datetime.tzinfo | None = None) -> int:
    """Convert borg's local `last_modified` string to Unix seconds.

    The fractional part is dropped but must be present. Wall-clock times that
    fall into a DST gap or fold are rejected instead of guessed.
    """
    head, sep, _ = ts.partition(".")
    if not sep:
        raise TimestampError(f"Expected a `.` in the timestamp: {ts}")
    try:
        dt = datetime.datetime.strptime(head, TIMESTAMP_FORMAT)
    except ValueError as e:
        raise TimestampError(f"Failed to parse timestamp {ts!r}: {e}") from e

    if tz is not None:
        dt = dt.replace(tzinfo=tz)
    try:
        earlier = dt.replace(fold=0).timestamp()
        later = dt.replace(fold=1).timestamp()
    except (OverflowError, OSError, ValueError) as e:
        raise TimestampError(f"Failed to convert {ts!r} from local time: {e}") from e
    if earlier != later:
        raise TimestampError(f"Local time {head} is ambiguous or does not exist")
    return int(earlier)


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace("\n", "\\n").replace('"', '\\"')


def render_repository(label: str, stats: CacheStats, last_modified: int) -> str:
    lines = []
    label = _escape(label)
    for metric in METRICS:
        value = last_modified if metric.stat is None else getattr(stats, metric.stat)
        lines.append(f"# HELP {metric.name} {metric.help}")
        lines.append(f"# TYPE {metric.name} {metric.type}")
        lines.append(f'{metric.name}{{repository="{label}"}} {value}')
    return "\n".join(lines) + "\n"


def scrape_repository(repository, policy: RetryPolicy | None = None, command: str = BORG_COMMAND) -> str:
    logger.debug("Reading repo info for %s", repository)
    label = repository_label(repository)
    info = parse_info(borg_info(repository, policy=policy, command=command))
    last_modified = parse_last_modified(info.repository.last_modified)
    logger.debug("Parsed response for %s: %r, last_modified=%d", repository, info, last_modified)
    return render_repository(label, info.cache.stats, last_modified)


def scrape_all(repositories, policy: RetryPolicy | None = None, command: str = BORG_COMMAND) -> str:
    """Render every repository in order; the first failure aborts the whole scrape."""
    output = []
    for repository in repositories:
        output.append(scrape_repository(repository, policy=policy, command=command))
    return "".join(output)
