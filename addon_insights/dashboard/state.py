"""
Page load state
Each dashboard fetch resolves a `Loading` state to either `Live(data)` or `Offline(reason)`
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Generic, Iterable, Mapping, Optional, TypeVar, Union

from addon_insights.dashboard.schemas import Decoded, Envelope

T = TypeVar("T")


class OfflineKind(str, Enum):
    # Backend could not be reached
    TRANSPORT = "transport"
    # Backend answered but reported `ok: false`
    REJECTED = "rejected"
    # Backend answered with a body we could not decode
    INVALID = "invalid"


@dataclass(frozen=True)
class OfflineReason:
    kind: OfflineKind
    code: str
    message: str

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "code": self.code, "message": self.message}


@dataclass(frozen=True)
class Loading:
    pass


@dataclass(frozen=True)
class Live(Generic[T]):
    data: T


@dataclass(frozen=True)
class Offline:
    reason: OfflineReason


LoadState = Union[Loading, Live, Offline]


@dataclass(frozen=True)
class FetchOutcome:
    """What came back from one backend call"""

    envelope: Optional[Envelope] = None
    failure: Optional[OfflineReason] = None
    status_code: Optional[int] = None

    @classmethod
    def received(cls, envelope: Envelope, status_code: int = 200) -> "FetchOutcome":
        return cls(envelope=envelope, status_code=status_code)

    @classmethod
    def unreachable(cls, message: str) -> "FetchOutcome":
        return cls(failure=OfflineReason(OfflineKind.TRANSPORT, "NETWORK_ERROR", message))

    @classmethod
    def malformed(cls, message: str, status_code: Optional[int] = None) -> "FetchOutcome":
        return cls(
            failure=OfflineReason(OfflineKind.INVALID, "MALFORMED_ENVELOPE", message),
            status_code=status_code,
        )


def transition(
    state: LoadState,
    outcome: FetchOutcome,
    decoder: Optional[Callable[[Any], Decoded]] = None,
) -> LoadState:
    """
    Resolve a loading state with a fetch outcome. Live and Offline are
    terminal for a page load, so any other state is returned unchanged.
    """
    if not isinstance(state, Loading):
        return state

    if outcome.failure is not None:
        return Offline(outcome.failure)

    envelope = outcome.envelope
    if envelope is None:
        return Offline(OfflineReason(OfflineKind.INVALID, "MALFORMED_ENVELOPE", "Empty response"))

    if not envelope.ok:
        if envelope.error is not None:
            return Offline(OfflineReason(OfflineKind.REJECTED, envelope.error.code, envelope.error.message))
        return Offline(OfflineReason(OfflineKind.REJECTED, "NOT_OK", "Backend reported ok=false"))

    if envelope.data is None:
        return Offline(OfflineReason(OfflineKind.INVALID, "EMPTY_DATA", "Backend sent no data"))

    if decoder is None:
        return Live(envelope.data)

    decoded = decoder(envelope.data)
    if not decoded.ok:
        return Offline(
            OfflineReason(
                OfflineKind.INVALID,
                "DECODE_ERROR",
                f"{decoded.error.schema}: {decoded.error.message}",
            )
        )
    return Live(decoded.value)


def resolve(outcome: FetchOutcome, decoder: Optional[Callable[[Any], Decoded]] = None) -> LoadState:
    """Shortcut for a fresh page load: Loading -> Live | Offline"""
    return transition(Loading(), outcome, decoder)


def is_live(state: LoadState) -> bool:
    return isinstance(state, Live)


def all_offline(states: Iterable[LoadState]) -> bool:
    states = list(states)
    return bool(states) and all(isinstance(state, Offline) for state in states)


def combine(states: Mapping[str, LoadState], critical: Optional[str] = None) -> bool:
    """
    Page-level offline flag. With a critical source the page is offline unless
    that source is live; otherwise only when every source is offline.
    """
    if critical is not None:
        return not is_live(states[critical])
    return all_offline(states.values())


def describe(state: LoadState) -> dict:
    """JSON-friendly summary of a state for view payloads"""
    if isinstance(state, Live):
        return {"status": "live"}
    if isinstance(state, Offline):
        return {"status": "offline", "reason": state.reason.to_dict()}
    return {"status": "loading"}
