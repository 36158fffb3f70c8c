"""Error types raised (or absorbed) by the candle cache."""


class KlineCacheError(Exception):
    """Base class for every kline-cache error."""


class InvalidIdFormat(KlineCacheError, ValueError):
    """A data source id is not of the form ``source-symbol``."""

    def __init__(self, data_source_id: str):
        self.data_source_id = data_source_id
        super().__init__(
            f"Invalid data source ID format: {data_source_id!r}. "
            "Expected format: source-symbol"
        )


class UnknownSource(KlineCacheError, LookupError):
    """No fetcher is registered for the requested source."""

    def __init__(self, source: str, available: list[str] | None = None):
        self.source = source
        self.available = available or []
        super().__init__(
            f"Unknown data source: {source}. "
            f"Available sources: {', '.join(self.available) or 'none'}"
        )


class DuplicateSource(KlineCacheError, ValueError):
    """A source name is registered twice without ``replace=True``."""

    def __init__(self, source: str):
        self.source = source
        super().__init__(f"Data source {source!r} is already registered")


class RemoteApiError(KlineCacheError, ConnectionError):
    """The remote API answered with a non-success status or could not be reached.

    Attributes:
        status: HTTP status code, or None for transport failures.
        status_text: Reason phrase or transport error message.
    """

    def __init__(self, status: int | None, status_text: str, source: str = "remote"):
        self.status = status
        self.status_text = status_text
        self.source = source
        if status is None:
            message = f"{source} API request failed: {status_text}"
        else:
            message = f"{source} API error: {status} {status_text}"
        super().__init__(message)


class MalformedShard(KlineCacheError):
    """A shard file exists but does not match the shard schema."""

    def __init__(self, name: str, reason: str = ""):
        self.name = name
        self.reason = reason
        super().__init__(f"Malformed shard file {name}: {reason}")


class StorageUnavailable(KlineCacheError):
    """No persistence backend has been configured."""


class EntryNotFound(KlineCacheError, FileNotFoundError):
    """A named entry does not exist in the storage directory."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Entry not found: {name}")
