"""Exception types raised by the versioning stack."""


class VersioningError(Exception):
    """Base class for versioning errors."""


class ConstraintViolation(VersioningError):
    """The backing store rejected a write (unique, NOT NULL, CHECK or trigger)."""


class SnapshotEncodingError(VersioningError, TypeError):
    """A tracked field value cannot be stored in a snapshot."""


class UnknownEntityType(VersioningError, LookupError):
    """No loader is registered for an entity type tag."""
