"""Events emitted by the registry."""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, ClassVar, MutableMapping


@dataclass(frozen=True)
class Event:
    name: ClassVar[str] = "Event"

    def as_dict(self) -> MutableMapping[str, Any]:
        payload: MutableMapping[str, Any] = {"event": self.name}
        for key, value in asdict(self).items():
            payload[key] = "0x" + value.hex() if isinstance(value, bytes) else value
        return payload


@dataclass(frozen=True)
class OperatorSet(Event):
    name: ClassVar[str] = "OperatorSet"

    operator: str
    expiry: int


@dataclass(frozen=True)
class OperatorRemoved(Event):
    name: ClassVar[str] = "OperatorRemoved"

    operator: str


@dataclass(frozen=True)
class Deployed(Event):
    name: ClassVar[str] = "Deployed"

    address: str
    salt: bytes
    value: int


@dataclass(frozen=True)
class Upgraded(Event):
    name: ClassVar[str] = "Upgraded"

    implementation: str


@dataclass(frozen=True)
class LogEntry:
    """An event together with the address that emitted it."""

    emitter: str
    event: Event

    def as_dict(self) -> MutableMapping[str, Any]:
        payload = self.event.as_dict()
        payload["emitter"] = self.emitter
        return payload


__all__ = ["Deployed", "Event", "LogEntry", "OperatorRemoved", "OperatorSet", "Upgraded"]
