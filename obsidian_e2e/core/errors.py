"""
Error taxonomy for the E2E core.

Precondition, timeout and remote-reported failures are fatal to the current
test and propagate unchanged. Partial plugin failures and cleanup failures are
logged where they happen and never reach this module.
"""

from __future__ import annotations

from typing import Any, Optional


class E2EError(Exception):
    """Base class for every error raised by the toolkit."""


class PreconditionError(E2EError):
    """A required file or directory is missing. Raised before any process starts."""

    def __init__(self, what: str, path: Optional[str] = None, hint: Optional[str] = None):
        self.what = what
        self.path = path
        self.hint = hint
        message = f"{what} not found" + (f" at: {path}" if path else "")
        if hint:
            message = f"{message}. {hint}"
        super().__init__(message)


class LauncherStateError(E2EError):
    """An operation was requested in a lifecycle state that does not allow it."""

    def __init__(self, operation: str, state: Any, message: Optional[str] = None):
        self.operation = operation
        self.state = state
        state_name = getattr(state, "value", state)
        super().__init__(message or f"Cannot {operation} while launcher is '{state_name}'")


class ReadinessTimeoutError(E2EError):
    """A readiness predicate did not become true within its bound."""

    def __init__(self, predicate: str, target: str, timeout: float):
        self.predicate = predicate
        self.target = target
        self.timeout = timeout
        super().__init__(
            f"Timed out after {timeout:.1f}s waiting for {predicate} ({target})"
        )


class RemoteOperationError(E2EError):
    """The controlled process answered with a failure instead of success."""

    def __init__(self, operation: str, reply: Any, message: Optional[str] = None):
        self.operation = operation
        self.reply = reply
        super().__init__(message or f"{operation} failed: {reply}")


class CommandFailedError(RemoteOperationError):
    """``executeCommandById`` did not report success."""

    def __init__(self, command_id: str, reply: Any):
        self.command_id = command_id
        super().__init__(
            "execute-command",
            reply,
            message=f"Command '{command_id}' did not succeed (returned {reply!r})",
        )


class CommunityPluginsError(E2EError):
    """Restricted mode is still on after the enabling flow ran."""


class StaleHandleError(E2EError):
    """A remote handle was used after the session that issued it closed."""

    def __init__(self, token: str, owner_pid: Optional[int]):
        self.token = token
        self.owner_pid = owner_pid
        super().__init__(
            f"Remote handle {token} (process {owner_pid}) was invalidated when its session closed"
        )


__all__ = [
    "E2EError",
    "PreconditionError",
    "LauncherStateError",
    "ReadinessTimeoutError",
    "RemoteOperationError",
    "CommandFailedError",
    "CommunityPluginsError",
    "StaleHandleError",
]
