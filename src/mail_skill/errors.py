"""Transport-level outcomes a request can end with besides a spoken reply."""
from __future__ import annotations


class SkillError(Exception):
    """Base class; the HTTP layer answers with ``status_code`` and an empty body."""

    status_code = 500

    def __init__(self, detail: str = "") -> None:
        super().__init__(detail or self.__class__.__name__)
        self.detail = detail


class BadRequest(SkillError):
    status_code = 400


class MethodNotAllowed(SkillError):
    status_code = 405


class UnsupportedRequestType(SkillError):
    status_code = 422


class DecodeFailure(SkillError):
    """The platform sent a body we could not decode."""

    status_code = 500


class InternalError(SkillError):
    status_code = 500
