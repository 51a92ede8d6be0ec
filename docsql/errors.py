"""Wire protocol errors and checks for unsupported or ignored command fields."""

from __future__ import annotations

import enum
import logging
from typing import Any, Mapping

_log = logging.getLogger(__name__)


class ErrorCode(enum.IntEnum):
    """Error codes reported to clients in error documents."""

    INTERNAL_ERROR = 1
    BAD_VALUE = 2
    NAMESPACE_NOT_FOUND = 26
    NAMESPACE_EXISTS = 48
    COMMAND_NOT_FOUND = 59
    NOT_IMPLEMENTED = 238
    SORT_BAD_VALUE = 15974
    PROJECTION_IN_EX = 31253
    PROJECTION_EX_IN = 31254
    REGEX_OPTIONS = 51075

    @property
    def code_name(self) -> str:
        """The name clients see in the ``codeName`` field."""
        return _CODE_NAMES[self]


_CODE_NAMES = {
    ErrorCode.INTERNAL_ERROR: "InternalError",
    ErrorCode.BAD_VALUE: "BadValue",
    ErrorCode.NAMESPACE_NOT_FOUND: "NamespaceNotFound",
    ErrorCode.NAMESPACE_EXISTS: "NamespaceExists",
    ErrorCode.COMMAND_NOT_FOUND: "CommandNotFound",
    ErrorCode.NOT_IMPLEMENTED: "NotImplemented",
    ErrorCode.SORT_BAD_VALUE: "SortBadValue",
    ErrorCode.PROJECTION_IN_EX: "Location31253",
    ErrorCode.PROJECTION_EX_IN: "Location31254",
    ErrorCode.REGEX_OPTIONS: "Location51075",
}


class ProtocolError(Exception):
    """An error carrying a wire protocol error code."""

    def __init__(self, code: ErrorCode | int, message: str) -> None:
        if not code:
            raise ValueError("code is 0")
        if not message:
            raise ValueError("message is empty")
        self.code = ErrorCode(code)
        self.message = str(message)
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"{self.code.code_name} ({int(self.code)}): {self.message}"

    def document(self) -> dict[str, Any]:
        """Return the error document sent back to the client."""
        return {
            "ok": 0.0,
            "errmsg": self.message,
            "code": int(self.code),
            "codeName": self.code.code_name,
        }


def protocol_error(err: BaseException) -> tuple[ProtocolError, bool]:
    """Convert any exception to a ProtocolError.

    A ProtocolError found in the exception or its cause chain is returned
    with True; anything else is wrapped as InternalError and returned with False.
    """
    if err is None:
        raise ValueError("err is None")

    seen: set[int] = set()
    current: BaseException | None = err
    while current is not None and id(current) not in seen:
        if isinstance(current, ProtocolError):
            return current, True
        seen.add(id(current))
        current = current.__cause__

    return ProtocolError(ErrorCode.INTERNAL_ERROR, str(err) or type(err).__name__), False


def _command(doc: Mapping[str, Any]) -> str:
    return next(iter(doc), "")


def unimplemented(doc: Mapping[str, Any], *fields: str) -> None:
    """Raise NotImplemented if the document holds any of the given fields."""
    for field in fields:
        if field in doc:
            raise ProtocolError(
                ErrorCode.NOT_IMPLEMENTED,
                f'{_command(doc)}: support for field "{field}" is not implemented yet',
            )


def ignored(doc: Mapping[str, Any], logger: logging.Logger | None, *fields: str) -> None:
    """Log a debug message for each of the given fields the document holds."""
    log = logger or _log
    for field in fields:
        if field in doc:
            log.debug("ignoring field: command=%s field=%s", _command(doc), field)