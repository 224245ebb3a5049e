"""Error taxonomy - Pure data structures.

Engine errors are returned as values inside result objects rather than
raised. Only the shell's store adapters raise, and the coordinator maps
those exceptions onto the same ErrorKind values.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar


T = TypeVar("T")


class ErrorKind(str, Enum):
    """Category of an engine error.

    INVALID_TRANSITION and TERMINAL_STATE_VIOLATION are never retried.
    CONFLICT is retried with freshly read state. NOT_FOUND is surfaced.
    """
    INVALID_TRANSITION = "invalid_transition"
    TERMINAL_STATE_VIOLATION = "terminal_state_violation"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"

    @property
    def retryable(self) -> bool:
        return self is ErrorKind.CONFLICT


@dataclass(frozen=True)
class EngineError:
    """An error returned by an engine operation.

    Attributes:
        kind: Error category
        message: Human-readable description
    """
    kind: ErrorKind
    message: str


@dataclass(frozen=True)
class TransitionResult(Generic[T]):
    """Result of a pure state transition.

    On failure ``entity`` is the original, unmodified input.

    Attributes:
        entity: New entity snapshot, or the original on failure
        error: Error if the transition was rejected
    """
    entity: T
    error: EngineError | None = None

    @property
    def success(self) -> bool:
        """Returns True if the transition was applied."""
        return self.error is None


def invalid_transition(message: str) -> EngineError:
    return EngineError(ErrorKind.INVALID_TRANSITION, message)


def terminal_state_violation(message: str) -> EngineError:
    return EngineError(ErrorKind.TERMINAL_STATE_VIOLATION, message)
