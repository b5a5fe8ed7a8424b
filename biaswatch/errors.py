"""Error taxonomy shared by the extractor, analyzer, news search and routes."""


class BiasWatchError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code = 500


class ValidationError(BiasWatchError):
    """The request is missing fields or carries malformed ones."""

    status_code = 400


class ExtractionError(BiasWatchError):
    """Article text could not be obtained from a URL."""


class FetchError(ExtractionError):
    """The HTTP GET for an article page did not succeed."""


class UpstreamError(BiasWatchError):
    """The completion service or the news search API failed."""


class ConfigError(BiasWatchError):
    """A required credential or setting is not configured."""


class StorageError(BiasWatchError):
    """The backing database rejected or failed an operation."""
