"""
Error Types
===========

Exceptions raised inside the assistant core.

Only RequestValidationError is allowed to reach the caller of
Orchestrator.process(); everything else is caught at an agent, tool or
store boundary and folded into the Response.
"""


class MavensError(Exception):
    """Base class for all assistant errors."""

    def user_message(self) -> str:
        """A short, human-readable description suitable for the terminal."""
        return str(self)


class RequestValidationError(MavensError):
    """The inbound request is malformed (missing message or working directory)."""

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid request: {field} {reason}")


class StoreError(MavensError):
    """The context or learning store could not be read or written."""
