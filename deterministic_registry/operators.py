"""Operator registry: principals holding time-bounded deployment rights."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Union

from .addresses import AddressLike, ZERO_ADDRESS, normalise_address
from .errors import InvalidAddress, InvalidDelay, OutOfRange
from .events import Event, OperatorRemoved, OperatorSet

_LOGGER = logging.getLogger(__name__)

WEEK = 7 * 24 * 60 * 60
# Keeps ``now + delay`` far from overflow and bounds how long a forgotten grant survives.
MAX_OPERATOR_DELAY = 100 * 52 * WEEK


@dataclass(frozen=True)
class Operator:
    identity: str
    expiry: int

    def is_active(self, now: int) -> bool:
        return self.expiry > now

    def as_dict(self) -> Dict[str, Union[str, int]]:
        return {"identity": self.identity, "expiry": self.expiry}


class OperatorTable:
    """Enumerable mapping of operator identity to expiry timestamp.

    Expired entries stay enumerable until removed; whether an operator is active
    is decided when queried. Removal moves the last entry into the freed
    position, so indices are only meaningful within a single enumeration pass.
    """

    def __init__(self) -> None:
        self._entries: List[Operator] = []
        self._positions: Dict[str, int] = {}

    def set(self, identity: AddressLike, delay: int, now: int) -> Optional[Event]:
        """Grant, renew or revoke ``identity``.

        ``delay == 0`` removes the entry; removing an unknown identity changes
        nothing and returns ``None``. Otherwise the expiry becomes ``now + delay``
        and an :class:`OperatorSet` event is returned, even if the expiry is
        unchanged.
        """

        operator = normalise_address(identity)
        if operator == ZERO_ADDRESS:
            raise InvalidAddress(operator)
        if isinstance(delay, bool) or not isinstance(delay, int) or delay < 0:
            raise InvalidDelay(delay, MAX_OPERATOR_DELAY, f"Delay must be a non-negative integer, got {delay!r}")

        if delay == 0:
            if not self._remove(operator):
                return None
            _LOGGER.info("Removed operator %s", operator)
            return OperatorRemoved(operator=operator)

        if delay > MAX_OPERATOR_DELAY:
            raise InvalidDelay(delay, MAX_OPERATOR_DELAY)

        expiry = now + delay
        entry = Operator(identity=operator, expiry=expiry)
        position = self._positions.get(operator)
        if position is None:
            self._positions[operator] = len(self._entries)
            self._entries.append(entry)
        else:
            self._entries[position] = entry
        _LOGGER.info("Set operator %s with expiry %d", operator, expiry)
        return OperatorSet(operator=operator, expiry=expiry)

    def _remove(self, operator: str) -> bool:
        position = self._positions.pop(operator, None)
        if position is None:
            return False
        last = self._entries.pop()
        if position < len(self._entries):
            self._entries[position] = last
            self._positions[last.identity] = position
        return True

    def expiry_of(self, identity: AddressLike) -> Optional[int]:
        position = self._positions.get(normalise_address(identity))
        if position is None:
            return None
        return self._entries[position].expiry

    def is_active(self, identity: AddressLike, now: int) -> bool:
        expiry = self.expiry_of(identity)
        return expiry is not None and expiry > now

    def at(self, index: int) -> Operator:
        if index < 0 or index >= len(self._entries):
            raise OutOfRange(index, len(self._entries))
        return self._entries[index]

    def count(self) -> int:
        return len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, identity: object) -> bool:
        if not isinstance(identity, (str, bytes)):
            return False
        return normalise_address(identity) in self._positions

    def __iter__(self) -> Iterator[Operator]:
        return iter(list(self._entries))


__all__ = ["MAX_OPERATOR_DELAY", "Operator", "OperatorTable", "WEEK"]
