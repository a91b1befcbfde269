"""Validation errors raised by site operations."""

from __future__ import annotations


class SiteBudgetError(Exception):
    """Base class for user-facing validation failures."""

    status_code = 400
    default_message = "Invalid request."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class InvalidDomain(SiteBudgetError):
    default_message = "Unable to parse that website. Try something like example.com"


class InvalidLimit(SiteBudgetError):
    default_message = (
        "Time limit must be a positive number of minutes or 0 for unlimited tracking."
    )


class DuplicateDomain(SiteBudgetError):
    status_code = 409
    default_message = "Domain already configured."


class NotFound(SiteBudgetError):
    status_code = 404
    default_message = "Site not found."


class MissingIdentifier(SiteBudgetError):
    default_message = "Missing site identifier."
