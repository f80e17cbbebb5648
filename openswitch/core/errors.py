"""Error types shared by the mapper, validators, orchestrator and hosts."""

from __future__ import annotations

from typing import Optional


class OpenSwitchError(Exception):
    """Base error with a stable error code."""

    error_code = "openswitch_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(OpenSwitchError):
    """User-fixable form problem, scoped to an entity type and field."""

    error_code = "validation_error"

    def __init__(self, entity: str, field: str, message: str) -> None:
        super().__init__(message)
        self.entity = entity
        self.field = field


class MalformedStructuredField(ValidationError):
    """A JSON-edited field (headers, environment) did not parse as a string map."""

    error_code = "malformed_structured_field"


class HostCallFailure(OpenSwitchError):
    """The host collaborator rejected a command or could not be reached.

    The host's own message is kept verbatim as ``str(error)``.
    """

    error_code = "host_call_failure"

    def __init__(self, command: str, message: str) -> None:
        super().__init__(message)
        self.command = command


class CredentialWriteFailure(HostCallFailure):
    """Storing an API key failed after its provider was already persisted."""

    error_code = "credential_write_failure"

    def __init__(self, provider_id: str, message: str) -> None:
        super().__init__("set_credential", message)
        self.provider_id = provider_id


class ExclusivityViolation(OpenSwitchError):
    """Attempted to delete the currently active prompt."""

    error_code = "exclusivity_violation"

    def __init__(self, prompt_id: str) -> None:
        super().__init__(f"Prompt '{prompt_id}' is active and cannot be deleted")
        self.prompt_id = prompt_id


class MutationInProgress(OpenSwitchError):
    """The same mutation is still in flight."""

    error_code = "mutation_in_progress"

    def __init__(self, operation: str) -> None:
        super().__init__(f"'{operation}' is already in progress")
        self.operation = operation


class NothingToConfirm(OpenSwitchError):
    """A delete was confirmed without first marking a candidate."""

    error_code = "nothing_to_confirm"

    def __init__(self, entity: str) -> None:
        super().__init__(f"No {entity} is pending deletion")
        self.entity = entity


class HostError(OpenSwitchError):
    """Failure inside the local host implementation (missing entry, I/O, bad JSON)."""

    error_code = "host_error"

    def __init__(self, message: str, *, path: Optional[str] = None) -> None:
        super().__init__(message)
        self.path = path


class EntryNotFound(OpenSwitchError):
    """A provider, MCP server, prompt or form row looked up by key does not exist."""

    error_code = "entry_not_found"

    def __init__(self, kind: str, key: str) -> None:
        super().__init__(f"{kind} '{key}' not found")
        self.kind = kind
        self.key = key
