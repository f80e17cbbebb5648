"""Per-operation mutation state plus the dialog and delete-confirmation state it drives."""

from __future__ import annotations

from enum import Enum
from typing import Awaitable, Callable, Generic, Iterable, Optional, TypeVar

from openswitch.core.errors import MutationInProgress, NothingToConfirm

T = TypeVar("T")
FormT = TypeVar("FormT")


class MutationState(str, Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class Mutation:
    """State machine for one kind of host write.

    ``Idle -> Submitting -> Succeeded | Failed``; a finished mutation may be
    started again, which passes back through ``Idle``. Starting one that is
    still submitting raises ``MutationInProgress``.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self.state = MutationState.IDLE
        self.error: Optional[BaseException] = None

    @property
    def is_pending(self) -> bool:
        return self.state == MutationState.SUBMITTING

    async def run(self, operation: Callable[[], Awaitable[T]]) -> T:
        if self.is_pending:
            raise MutationInProgress(self.name)
        self.reset()
        self.state = MutationState.SUBMITTING
        try:
            result = await operation()
        except Exception as exc:
            self.state = MutationState.FAILED
            self.error = exc
            raise
        self.state = MutationState.SUCCEEDED
        return result

    def reset(self) -> None:
        if self.is_pending:
            return
        self.state = MutationState.IDLE
        self.error = None


class Dialog(Generic[FormT]):
    """Add/edit dialog state.

    The editing key is what tells an update apart from a create. Closing
    the dialog returns the mutations it submits through to ``Idle``.
    """

    def __init__(
        self, form_factory: Callable[[], FormT], mutations: Iterable[Mutation] = ()
    ) -> None:
        self._form_factory = form_factory
        self.mutations = tuple(mutations)
        self.is_open = False
        self.editing: Optional[str] = None
        self.form: FormT = form_factory()

    @property
    def is_editing(self) -> bool:
        return self.editing is not None

    def open_create(self) -> FormT:
        self.form = self._form_factory()
        self.editing = None
        self.is_open = True
        return self.form

    def open_edit(self, key: str, form: FormT) -> FormT:
        self.form = form
        self.editing = key
        self.is_open = True
        return self.form

    def close(self) -> None:
        self.is_open = False
        self.editing = None
        self.form = self._form_factory()
        for mutation in self.mutations:
            mutation.reset()


class DeleteConfirmation:
    """Two-phase delete: mark a candidate, then confirm it."""

    def __init__(self, entity: str) -> None:
        self.entity = entity
        self.candidate: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.candidate is not None

    def mark(self, key: str) -> None:
        self.candidate = key

    def cancel(self) -> None:
        self.candidate = None

    def require_candidate(self) -> str:
        if self.candidate is None:
            raise NothingToConfirm(self.entity)
        return self.candidate
