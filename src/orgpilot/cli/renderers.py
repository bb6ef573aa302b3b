"""
JSON output for ``--json`` mode.

Every command emits one envelope:

    {"meta": {"command": ..., "status": "success" | "error"}, "data": ...}
    {"meta": {"command": ..., "status": "error"}, "error": {"code": ..., "message": ...}}

While a command runs under ``capture()`` anything printed to stdout is
redirected to stderr so the envelope stays the only thing on stdout.
"""

import contextlib
import json
import sys
from typing import Any, Iterator

from pydantic import BaseModel

from ..core.exceptions import (
    AuthenticationError,
    DescribeError,
    GenerationError,
    OrgPilotError,
    QueryError,
    TransportError,
)

_ERROR_CODES = [
    (AuthenticationError, "AUTH_FAILED"),
    (DescribeError, "DESCRIBE_FAILED"),
    (QueryError, "QUERY_FAILED"),
    (TransportError, "TRANSPORT_FAILED"),
    (GenerationError, "GENERATION_FAILED"),
    (OrgPilotError, "ORGPILOT_ERROR"),
    (KeyError, "NOT_FOUND"),
    (ValueError, "INVALID_INPUT"),
]


def error_code(error: Exception) -> str:
    for exc_type, code in _ERROR_CODES:
        if isinstance(error, exc_type):
            return code
    return "INTERNAL_ERROR"


def error_message(error: Exception) -> str:
    if isinstance(error, OrgPilotError):
        return error.message
    if isinstance(error, KeyError) and error.args:
        return str(error.args[0])
    return str(error)


class JsonRenderer:
    def __init__(self, command: str):
        self.command = command

    @contextlib.contextmanager
    def capture(self) -> Iterator[None]:
        with contextlib.redirect_stdout(sys.stderr):
            yield

    def _emit(self, payload: dict) -> None:
        print(json.dumps(payload, indent=2, default=str))

    def render_success(self, data: Any) -> None:
        if isinstance(data, BaseModel):
            data = data.model_dump(mode="json")
        self._emit({
            "meta": {"command": self.command, "status": "success"},
            "data": data,
        })

    def render_error(self, error: Exception) -> None:
        self._emit({
            "meta": {"command": self.command, "status": "error"},
            "error": {"code": error_code(error), "message": error_message(error)},
        })
