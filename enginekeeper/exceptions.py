"""
Custom exception hierarchy for enginekeeper.

This module defines structured exception types used across enginekeeper.
All exceptions inherit from :class:`EngineKeeperError` and support optional
structured metadata via the ``details`` attribute to improve diagnostics
and logging.
"""

from __future__ import annotations

from typing import Any, Mapping, MutableMapping, Optional, Sequence


class EngineKeeperError(Exception):
    """Base exception for all enginekeeper errors.

    All enginekeeper-specific exceptions should inherit from this class.
    It supports structured metadata via ``details`` for richer error
    reporting and debugging.

    Args:
        message: Human-readable error message.
        details: Optional structured metadata describing the error.
    """

    __slots__ = ("message", "details")

    def __init__(
        self,
        message: str,
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self.message: str = message
        # Internally normalize to a mutable dict
        self.details: MutableMapping[str, Any] = dict(details) if details else {}
        super().__init__(message)

    def __str__(self) -> str:
        if not self.details:
            return self.message
        formatted = ", ".join(f"{k}={v}" for k, v in self.details.items())
        return f"{self.message} ({formatted})"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, details={dict(self.details)!r})"
        )


def _add_if(details: MutableMapping[str, Any], key: str, value: Any) -> None:
    """Add a key to ``details`` only if ``value`` is not ``None``."""
    if value is not None:
        details[key] = value


def _truncate(text: str, max_length: int = 200) -> str:
    """Truncate long text for safe logging or error reporting."""
    if len(text) <= max_length:
        return text
    return text[:max_length] + "..."


class ConfigError(EngineKeeperError):
    """Raised when a configuration file is missing, unreadable or invalid.

    Args:
        message: Error description.
        config_path: Path to the configuration file involved.
        option: Name of the offending option, if any.
    """

    __slots__ = ("config_path", "option")

    def __init__(
        self,
        message: str,
        *,
        config_path: Optional[str] = None,
        option: Optional[str] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "path", config_path)
        _add_if(details, "option", option)

        super().__init__(message, details)

        self.config_path = config_path
        self.option = option


class ParseError(EngineKeeperError):
    """Raised when a manifest or lockfile cannot be parsed.

    Args:
        message: Error description.
        file_path: Path to the file being parsed.
        key: JSON key (or lockfile entry) where parsing failed.
    """

    __slots__ = ("file_path", "key")

    def __init__(
        self,
        message: str,
        *,
        file_path: Optional[str] = None,
        key: Optional[str] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "file", file_path)
        _add_if(details, "key", key)

        super().__init__(message, details)

        self.file_path = file_path
        self.key = key


class InventoryError(EngineKeeperError):
    """Raised when the dependency inventory cannot be built.

    Args:
        message: Error description.
        project_path: Project directory being inspected.
        mode: Tree loading mode in effect.
    """

    __slots__ = ("project_path", "mode")

    def __init__(
        self,
        message: str,
        *,
        project_path: Optional[str] = None,
        mode: Optional[str] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "project", project_path)
        _add_if(details, "mode", mode)

        super().__init__(message, details)

        self.project_path = project_path
        self.mode = mode


class NetworkError(EngineKeeperError):
    """Raised when HTTP or network operations fail.

    Args:
        message: Error description.
        url: URL being accessed.
        status_code: HTTP status code, if available.
        response_body: Raw response body, truncated for safety.
    """

    __slots__ = ("url", "status_code", "response_body")

    def __init__(
        self,
        message: str,
        *,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "url", url)
        _add_if(details, "status_code", status_code)

        if response_body is not None:
            details["response"] = _truncate(response_body)

        super().__init__(message, details)

        self.url = url
        self.status_code = status_code
        self.response_body = response_body


class RegistryError(NetworkError):
    """Raised for failures related to a version catalog or the npm registry.

    Args:
        message: Error description.
        engine: Engine whose catalog was requested, if any.
        package_name: npm package whose manifest was requested, if any.
        **kwargs: Additional arguments forwarded to ``NetworkError``.
    """

    __slots__ = ("engine", "package_name")

    def __init__(
        self,
        message: str,
        *,
        engine: Optional[str] = None,
        package_name: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)

        self.engine = engine
        self.package_name = package_name
        if engine is not None:
            self.details["engine"] = engine
        if package_name is not None:
            self.details["package"] = package_name


class FileOperationError(EngineKeeperError):
    """Raised when file system operations fail.

    Args:
        message: Error description.
        file_path: Path to the file involved.
        operation: Operation being performed (read/write/backup).
        original_error: Original exception that triggered this error.
    """

    __slots__ = ("file_path", "operation", "original_error")

    def __init__(
        self,
        message: str,
        *,
        file_path: Optional[str] = None,
        operation: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "path", file_path)
        _add_if(details, "operation", operation)
        _add_if(
            details,
            "original_error",
            str(original_error) if original_error else None,
        )

        super().__init__(message, details)

        self.file_path = file_path
        self.operation = operation
        self.original_error = original_error


class InvalidRangeError(EngineKeeperError):
    """Raised when a declared range expression cannot be parsed.

    Callers resolving a dependency graph treat the affected constraint as
    absent and surface the error as a diagnostic.

    Args:
        message: Error description.
        range_expression: The raw expression that failed to parse.
        source: Package (or ``"root"``) that declared the range.
    """

    __slots__ = ("range_expression", "source")

    def __init__(
        self,
        message: str,
        *,
        range_expression: Optional[str] = None,
        source: Optional[str] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "range", range_expression)
        _add_if(details, "source", source)

        super().__init__(message, details)

        self.range_expression = range_expression
        self.source = source


class RangeConsistencyError(EngineKeeperError):
    """Raised when a synthesized range does not denote its version set.

    This is an internal invariant violation, never a user error: it means
    the range synthesizer produced an expression that, re-applied to the
    catalog, selects a different set of versions than the one it was
    built from.

    Args:
        engine: Engine being resolved.
        versions: The version set the range was synthesized from.
        expression: The candidate range expression.
        matched: Versions the expression actually selected.
    """

    __slots__ = ("engine", "versions", "expression", "matched")

    def __init__(
        self,
        *,
        engine: str,
        versions: Sequence[str],
        expression: str,
        matched: Optional[Sequence[str]] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {
            "engine": engine,
            "expression": expression,
            "versions": ", ".join(versions),
        }
        if matched is not None:
            details["matched"] = ", ".join(matched)

        super().__init__(
            f"Synthesized range {expression!r} does not match the valid "
            f"{engine} versions; please report this as a bug",
            details,
        )

        self.engine = engine
        self.versions = list(versions)
        self.expression = expression
        self.matched = list(matched) if matched is not None else None
