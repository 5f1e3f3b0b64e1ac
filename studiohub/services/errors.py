"""Structured service errors.

Services return ``(value, error)`` tuples where ``error`` is either ``None``
or a :class:`ServiceError`. Callers branch on ``error.kind``; the message is
for humans only.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, TypeVar

T = TypeVar("T")


class ErrorKind(Enum):
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    CONFLICT = "conflict"
    BAD_REQUEST = "bad_request"
    EXHAUSTED_RETRIES = "exhausted_retries"
    INTERNAL = "internal"


HTTP_STATUS = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.CONFLICT: 409,
    ErrorKind.BAD_REQUEST: 400,
    ErrorKind.EXHAUSTED_RETRIES: 500,
    ErrorKind.INTERNAL: 500,
}


@dataclass(frozen=True)
class ServiceError:
    kind: ErrorKind
    message: str

    @property
    def http_status(self) -> int:
        return HTTP_STATUS[self.kind]

    def to_dict(self) -> dict:
        return {'kind': self.kind.value, 'message': self.message}


Result = Tuple[Optional[T], Optional[ServiceError]]


def not_found(message: str) -> ServiceError:
    return ServiceError(ErrorKind.NOT_FOUND, message)


def forbidden(message: str) -> ServiceError:
    return ServiceError(ErrorKind.FORBIDDEN, message)


def conflict(message: str) -> ServiceError:
    return ServiceError(ErrorKind.CONFLICT, message)


def bad_request(message: str) -> ServiceError:
    return ServiceError(ErrorKind.BAD_REQUEST, message)


def exhausted_retries(message: str) -> ServiceError:
    return ServiceError(ErrorKind.EXHAUSTED_RETRIES, message)


def internal(message: str) -> ServiceError:
    return ServiceError(ErrorKind.INTERNAL, message)


__all__ = [
    'ErrorKind',
    'ServiceError',
    'Result',
    'not_found',
    'forbidden',
    'conflict',
    'bad_request',
    'exhausted_retries',
    'internal',
]
