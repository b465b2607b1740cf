"""Exceptions raised while scraping Borg repositories."""


class ExporterError(Exception):
    """Base class for everything the exporter raises on purpose."""


class ConfigError(ExporterError):
    pass


class RepositoryPathError(ExporterError):
    """The repository path has no usable base name to label metrics with."""


class SpawnError(ExporterError):
    """The borg binary could not be executed at all."""


class CommandError(ExporterError):
    """`borg info` exited with a non-zero status."""

    def __init__(self, repository, returncode, stderr):
        self.repository = repository
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(
            f"borg info failed for {repository} (exit {returncode}): {stderr.strip()}"
        )


class RepositoryLocked(CommandError):
    """Another borg process holds the repository lock."""


class ParseError(ExporterError):
    pass


class TimestampError(ExporterError):
    pass
