class TrackerError(Exception):
    """Base class for tracker failures."""


class PersistenceError(TrackerError):
    """A write to the key/value store failed after all retries."""


class StorageUnavailable(TrackerError):
    """No usable storage or location backend is configured."""
