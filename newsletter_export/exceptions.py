"""
Export error hierarchy.

ConfigurationError and AllPostsFailedError abort a job before any output is written.
TransportError is recorded per post by the orchestrator. CoverError never fails a job.
"""


class ExportError(Exception):
    """Base class for export pipeline errors."""
    pass


class ConfigurationError(ExportError):
    """Bad or missing job input, raised before any network activity."""
    pass


class TransportError(ExportError):
    """Network or HTTP failure after exhausting retries."""
    pass


class AssemblyError(ExportError):
    """Failure writing an output file or e-book archive."""
    pass


class CoverError(ExportError):
    """Cover image could not be acquired or decoded."""
    pass


class DiscoveryError(ExportError):
    """Neither the feed nor the archive page produced any posts."""
    pass


class AllPostsFailedError(ExportError):
    """Every selected post failed to download; nothing was exported."""

    def __init__(self, failures: list | None = None):
        self.failures = failures or []
        super().__init__("All post downloads failed; no output generated.")
