from collections.abc import Generator, Mapping
from contextlib import contextmanager
from typing import Any, Optional

__all__ = (
    "AlreadyExistsError",
    "CancellationError",
    "ConfigKeyNotFoundError",
    "ConfigParseError",
    "DiskNotConfiguredError",
    "DiskOpenError",
    "DiskSpecError",
    "DuplicateDriverError",
    "ImproperConfigurationError",
    "InvalidArgumentError",
    "InvalidKeyError",
    "MaxRetriesExceededError",
    "MissingDependencyError",
    "NoDefaultConfiguredError",
    "NotFoundError",
    "NotInitializedError",
    "PermissionDeniedError",
    "StorageClosedError",
    "StorageCloseError",
    "StorageError",
    "StorageNotImplementedError",
    "StorageOperationFailedError",
    "UnknownDriverError",
    "is_not_found",
    "is_permission_error",
    "wrap_storage_errors",
)


class DiskSpecError(Exception):
    """Base exception class from which all diskspec exceptions inherit."""

    detail: str

    def __init__(self, *args: Any, detail: str = "") -> None:
        """Initialize ``DiskSpecError``.

        Args:
            *args: args are converted to :class:`str` before passing to :class:`Exception`
            detail: detail of the exception.
        """
        str_args = [str(arg) for arg in args if arg]
        if not detail:
            if str_args:
                detail, *str_args = str_args
            elif hasattr(self, "detail"):
                detail = self.detail
        self.detail = detail
        super().__init__(*str_args)

    def __repr__(self) -> str:
        if self.detail:
            return f"{self.__class__.__name__} - {self.detail}"
        return self.__class__.__name__

    def __str__(self) -> str:
        return " ".join((*self.args, self.detail)).strip()


class MissingDependencyError(DiskSpecError, ImportError):
    """Missing optional dependency.

    This exception is raised only when a module depends on a dependency that has not been installed.
    """

    def __init__(self, package: str, install_package: Optional[str] = None) -> None:
        super().__init__(
            f"Package {package!r} is not installed but required. You can install it by running "
            f"'pip install diskspec[{install_package or package}]' to install diskspec with the required extra "
            f"or 'pip install {install_package or package}' to install the package separately",
        )


class InvalidArgumentError(DiskSpecError, ValueError):
    """A caller passed a value the operation cannot accept."""


# -- Storage operation errors --
class StorageError(DiskSpecError):
    """Base class for errors raised by a storage backend operation.

    Carries the driver, operation and key so callers can report where a failure
    happened without parsing the message.
    """

    driver: str
    operation: str
    key: str

    def __init__(self, message: str = "", *, driver: str = "", operation: str = "", key: str = "") -> None:
        self.driver = driver
        self.operation = operation
        self.key = key
        message = message or getattr(self, "default_message", "storage operation failed")
        location = " ".join(part for part in (driver, operation) if part)
        if key:
            location = f"{location} [{key}]" if location else f"[{key}]"
        super().__init__(detail=f"storage: {location}: {message}" if location else f"storage: {message}")


class NotFoundError(StorageError):
    """The requested object does not exist."""

    default_message = "file not found"


class AlreadyExistsError(StorageError):
    """The object already exists."""

    default_message = "file already exists"


class PermissionDeniedError(StorageError):
    """The backend refused the operation."""

    default_message = "permission denied"


class InvalidKeyError(StorageError):
    """The object key is empty or not acceptable to the backend."""

    default_message = "invalid key"


class StorageNotImplementedError(StorageError, NotImplementedError):
    """The active backend does not offer the requested capability."""

    default_message = "not implemented"


class StorageClosedError(StorageError):
    """The backend has been closed."""

    default_message = "storage is closed"


class StorageOperationFailedError(StorageError):
    """Any other backend failure, chained to the underlying exception."""


# -- Configuration errors --
class ImproperConfigurationError(DiskSpecError):
    """Improper Configuration error.

    Raised when the storage configuration cannot be used as given.
    """


class ConfigParseError(ImproperConfigurationError):
    """The configuration could not be read or does not have the expected shape."""


class ConfigKeyNotFoundError(ConfigParseError):
    """An embedded configuration key path is absent."""

    key: str

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"storage: config key {key!r} not found")


class DuplicateDriverError(DiskSpecError):
    """A driver name was registered twice."""

    name: str

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"storage: driver {name!r} is already registered")


class UnknownDriverError(ImproperConfigurationError):
    """No factory is registered under the driver name."""

    name: str

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(
            f"storage: unknown driver {name!r} (forgotten import? the module that registers it must be imported first)"
        )


class DiskNotConfiguredError(ImproperConfigurationError):
    """The requested disk name is absent from the configuration."""

    disk: str

    def __init__(self, disk: str) -> None:
        self.disk = disk
        super().__init__(f"storage: disk {disk!r} not configured")


class NoDefaultConfiguredError(ImproperConfigurationError):
    """No disk name was given and the configuration has no default."""

    def __init__(self) -> None:
        super().__init__("storage: no default storage configured")


class NotInitializedError(DiskSpecError):
    """The process-wide default manager has not been set up."""

    def __init__(self) -> None:
        super().__init__("storage: not initialized (call setup first)")


class DiskOpenError(DiskSpecError):
    """The driver factory failed to build the backend of a disk."""

    disk: str

    def __init__(self, disk: str, error: BaseException) -> None:
        self.disk = disk
        super().__init__(f"storage: failed to open disk {disk!r}: {error}")


class StorageCloseError(DiskSpecError):
    """One or more backends failed to close."""

    errors: "dict[str, BaseException]"

    def __init__(self, errors: "Mapping[str, BaseException]") -> None:
        self.errors = dict(errors)
        joined = "; ".join(f"{name!r}: {error}" for name, error in self.errors.items())
        super().__init__(f"storage: failed to close {joined}")


# -- Execution control errors --
class CancellationError(DiskSpecError):
    """The cancellation signal fired before the work could start or finish."""

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or "storage: operation cancelled")


class MaxRetriesExceededError(DiskSpecError):
    """Every attempt of a retried operation failed."""

    attempts: int
    last_error: BaseException

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"storage: max retries exceeded after {attempts} attempts: {last_error}")


def _walk_chain(error: Optional[BaseException]) -> "Generator[BaseException, None, None]":
    seen: set[int] = set()
    while error is not None and id(error) not in seen:
        seen.add(id(error))
        yield error
        error = error.__cause__ or error.__context__


def is_not_found(error: Optional[BaseException]) -> bool:
    """Check whether an error, or any error it was raised from, means "object not found".

    Args:
        error: The error to inspect.

    Returns:
        True for :class:`NotFoundError` and :class:`FileNotFoundError` anywhere in the chain.
    """
    return any(isinstance(exc, (NotFoundError, FileNotFoundError)) for exc in _walk_chain(error))


def is_permission_error(error: Optional[BaseException]) -> bool:
    """Check whether an error, or any error it was raised from, is a permission failure."""
    return any(isinstance(exc, (PermissionDeniedError, PermissionError)) for exc in _walk_chain(error))


@contextmanager
def wrap_storage_errors(driver: str, operation: str, key: str = "") -> Generator[None, None, None]:
    """Translate exceptions raised by a backend call into the storage taxonomy.

    Args:
        driver: Driver name of the backend.
        operation: Name of the operation being performed.
        key: Object key the operation targets.

    Raises:
        StorageError: The translated error, chained to the original one.
    """
    try:
        yield
    except StorageError:
        raise
    except FileNotFoundError as exc:
        raise NotFoundError(driver=driver, operation=operation, key=key) from exc
    except FileExistsError as exc:
        raise AlreadyExistsError(driver=driver, operation=operation, key=key) from exc
    except PermissionError as exc:
        raise PermissionDeniedError(str(exc), driver=driver, operation=operation, key=key) from exc
    except NotImplementedError as exc:
        raise StorageNotImplementedError(str(exc), driver=driver, operation=operation, key=key) from exc
    except Exception as exc:
        message = str(exc) or type(exc).__name__
        raise StorageOperationFailedError(message, driver=driver, operation=operation, key=key) from exc
