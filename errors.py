"""Error kinds raised by the recurrence engine and its stores."""
from __future__ import annotations


class UnknownTimezone(ValueError):
    """A zone name that the zone database does not recognise."""

    def __init__(self, name: str | None):
        self.name = name
        super().__init__(f"Unknown timezone: {name!r}")


class MalformedStoredRecord(ValueError):
    """Persisted JSON that fails to parse or does not have the expected shape."""

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Malformed stored record {key!r}: {reason}")


class InvalidRule(ValueError):
    """A recurrence rule that cannot be created as given."""


class MutationFailed(RuntimeError):
    """A series mutation could not be applied; none of its writes took effect."""
