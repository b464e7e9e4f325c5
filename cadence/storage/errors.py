"""Errors raised by object store adapters."""

from __future__ import annotations


class ObjectStoreError(Exception):
    """Base class for object store failures.

    Attributes
    ----------
    key
        Object key involved in the failed operation, if any.

    """

    def __init__(self, message: str, *, key: str | None = None) -> None:
        """Initialise the error with a message and optional object key."""
        self.key = key
        super().__init__(message)

    @classmethod
    def operation_failed(
        cls, operation: str, key: str, detail: str
    ) -> ObjectStoreError:
        """Create an error for a failed backend operation.

        Parameters
        ----------
        operation
            Store operation name (``put``, ``get``, ``delete`` and so on).
        key
            Object key the operation targeted.
        detail
            Backend error description.

        Returns
        -------
        ObjectStoreError
            Error carrying the object key.

        """
        return cls(f"Object store {operation} failed for {key!r}: {detail}", key=key)

    @classmethod
    def invalid_key(cls, key: str) -> ObjectStoreError:
        """Create an error for keys that would escape the store root."""
        return cls(f"Invalid object key: {key!r}", key=key)


class ObjectStoreConfigError(ObjectStoreError):
    """Raised when the object store backend cannot be configured."""

    @classmethod
    def invalid_backend(
        cls, name: str, valid: frozenset[str]
    ) -> ObjectStoreConfigError:
        """Create an error for an unrecognised backend name."""
        options = ", ".join(f"'{backend}'" for backend in sorted(valid))
        return cls(f"Invalid storage backend '{name}'. Valid options are: {options}")

    @classmethod
    def missing_setting(cls, name: str) -> ObjectStoreConfigError:
        """Create an error for a required backend setting that is absent."""
        return cls(f"{name} is required for the selected storage backend")
