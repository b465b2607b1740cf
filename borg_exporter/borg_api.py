# Runs `borg info --json` against a repository, waiting out lock conflicts
import logging
import subprocess
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path, PurePath

from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, stop_never, wait_fixed

from borg_exporter.errors import CommandError, RepositoryLocked, RepositoryPathError, SpawnError

logger = logging.getLogger(__name__)

BORG_COMMAND = "borg"
LOCK_MARKER = b"Failed to create/acquire the lock"
LOCK_RETRY_DELAY = 5.0


@dataclass(frozen=True)
class RetryPolicy:
    """How long to wait between attempts on a locked repository.

    max_attempts=None keeps retrying until the repository is released.
    """

    delay: float = LOCK_RETRY_DELAY
    max_attempts: int | None = None
    sleep: Callable[[float], None] = field(default=time.sleep, compare=False)

    def retrying(self, before_sleep=None) -> Retrying:
        stop = stop_never if self.max_attempts is None else stop_after_attempt(self.max_attempts)
        return Retrying(
            retry=retry_if_exception_type(RepositoryLocked),
            wait=wait_fixed(self.delay),
            stop=stop,
            sleep=self.sleep,
            before_sleep=before_sleep,
            reraise=True,
        )


def repository_label(repository) -> str:
    name = PurePath(repository).name
    if name in ("", ".", ".."):
        raise RepositoryPathError(f"Invalid repo path: {repository!r}")
    try:
        name.encode("utf-8")
    except UnicodeEncodeError as e:
        raise RepositoryPathError(f"Invalid utf-8 in repo name: {repository!r}") from e
    return name


def _run_info(command: str, repository: Path) -> bytes:
    try:
        proc = subprocess.run(
            [command, "info", "--json", str(repository)],
            capture_output=True,
            check=False,
        )
    except OSError as e:
        raise SpawnError(f"Failed to run {command}: {e}") from e

    if proc.returncode == 0:
        return proc.stdout

    stderr = proc.stderr.decode("utf-8", errors="replace")
    if proc.stderr.startswith(LOCK_MARKER):
        raise RepositoryLocked(repository, proc.returncode, stderr)
    raise CommandError(repository, proc.returncode, stderr)


def borg_info(repository, policy: RetryPolicy | None = None, command: str = BORG_COMMAND) -> bytes:
    """Return the raw JSON printed by `borg info --json <repository>`."""
    policy = policy or RetryPolicy()
    repository = Path(repository)

    def _busy(retry_state):
        logger.warning(
            "Repository %s is busy (attempt %d). Retrying in %ss",
            repository,
            retry_state.attempt_number,
            policy.delay,
        )

    stdout = policy.retrying(before_sleep=_busy)(_run_info, command, repository)
    logger.debug(
        "`borg info` returned successfully for %s: %s",
        repository,
        stdout.decode("utf-8", errors="replace"),
    )
    return stdout
