"""Execution environment seam and an in-memory ledger implementing it.

The registry never executes code itself. It asks an environment to create
objects (sequenced or salted creation), to call them, and to persist storage.
:class:`InMemoryLedger` stands in for a chain: accounts hold Python programs
instead of bytecode, and every top-level call either commits completely or is
rolled back.
"""
from __future__ import annotations

import copy
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Protocol, Sequence, Tuple

from .addresses import AddressLike, SaltLike, create2_address, create_address, init_code_hash, normalise_address
from .errors import AddressCollision, InsufficientFunds, UnsupportedOperation
from .events import Event, LogEntry

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallContext:
    """Who is calling, on whose storage, with how much value, and when."""

    caller: str
    this: str
    value: int
    timestamp: int
    delegated: bool = False


class Program(Protocol):
    """Runtime behaviour installed at an address."""

    def execute(
        self,
        environment: "ExecutionEnvironment",
        context: CallContext,
        method: str,
        args: Sequence[Any],
    ) -> Any:
        ...


# (environment, new address, ABI-encoded constructor arguments) -> program
Constructor = Callable[["ExecutionEnvironment", str, bytes], Program]


class ExecutionEnvironment(Protocol):
    timestamp: int

    def code_at(self, address: AddressLike) -> bytes:
        ...

    def program_at(self, address: AddressLike) -> Optional[Program]:
        ...

    def is_occupied(self, address: AddressLike) -> bool:
        ...

    def nonce_of(self, address: AddressLike) -> int:
        ...

    def balance_of(self, address: AddressLike) -> int:
        ...

    def create(self, sender: AddressLike, init_code: bytes, value: int = 0) -> str:
        ...

    def create2(self, sender: AddressLike, salt: SaltLike, init_code: bytes, value: int = 0) -> str:
        ...

    def call(self, sender: AddressLike, to: AddressLike, method: str, *args: Any, value: int = 0) -> Any:
        ...

    def storage_get(self, address: AddressLike, slot: bytes) -> Any:
        ...

    def storage_set(self, address: AddressLike, slot: bytes, value: Any) -> None:
        ...

    def emit(self, emitter: AddressLike, event: Event) -> None:
        ...


@dataclass
class Account:
    code: bytes = b""
    program: Optional[Program] = None
    balance: int = 0
    nonce: int = 0
    storage: Dict[bytes, Any] = field(default_factory=dict)

    @property
    def occupied(self) -> bool:
        return bool(self.code) or self.program is not None or self.nonce > 0


class InMemoryLedger:
    """Serial, all-or-nothing execution environment kept in memory."""

    def __init__(self, timestamp: int = 0) -> None:
        self.timestamp = timestamp
        self.logs: List[LogEntry] = []
        self._accounts: Dict[str, Account] = {}
        self._links: List[Tuple[bytes, Constructor]] = []

    # -- clock and balances -------------------------------------------------

    def warp(self, timestamp: int) -> None:
        self.timestamp = timestamp

    def advance(self, seconds: int) -> int:
        self.timestamp += seconds
        return self.timestamp

    def fund(self, address: AddressLike, amount: int) -> None:
        if amount < 0:
            raise ValueError("Cannot fund a negative amount")
        self._account(address).balance += amount

    # -- queries ------------------------------------------------------------

    def _peek(self, address: AddressLike) -> Optional[Account]:
        return self._accounts.get(normalise_address(address))

    def _account(self, address: AddressLike) -> Account:
        key = normalise_address(address)
        account = self._accounts.get(key)
        if account is None:
            account = self._accounts[key] = Account()
        return account

    def code_at(self, address: AddressLike) -> bytes:
        account = self._peek(address)
        return account.code if account else b""

    def program_at(self, address: AddressLike) -> Optional[Program]:
        account = self._peek(address)
        return account.program if account else None

    def is_occupied(self, address: AddressLike) -> bool:
        account = self._peek(address)
        return account is not None and account.occupied

    def nonce_of(self, address: AddressLike) -> int:
        account = self._peek(address)
        return account.nonce if account else 0

    def balance_of(self, address: AddressLike) -> int:
        account = self._peek(address)
        return account.balance if account else 0

    def storage_get(self, address: AddressLike, slot: bytes) -> Any:
        account = self._peek(address)
        return account.storage.get(slot) if account else None

    def storage_set(self, address: AddressLike, slot: bytes, value: Any) -> None:
        self._account(address).storage[slot] = value

    def emit(self, emitter: AddressLike, event: Event) -> None:
        self.logs.append(LogEntry(emitter=normalise_address(emitter), event=event))

    def events_of(self, emitter: AddressLike) -> List[Event]:
        address = normalise_address(emitter)
        return [entry.event for entry in self.logs if entry.emitter == address]

    # -- code registration --------------------------------------------------

    def link(self, creation_code: bytes, constructor: Constructor) -> None:
        """Run ``constructor`` whenever init code starts with ``creation_code``."""

        if not creation_code:
            raise ValueError("Cannot link an empty creation code")
        self._links = [(code, ctor) for code, ctor in self._links if code != creation_code]
        self._links.append((bytes(creation_code), constructor))

    def install(self, address: AddressLike, program: Program, code: bytes = b"\x00") -> str:
        """Place ``program`` at ``address`` as if it had existed since genesis."""

        account = self._account(address)
        account.program = program
        account.code = code
        account.nonce = max(account.nonce, 1)
        return normalise_address(address)

    def _resolve(self, init_code: bytes) -> Optional[Tuple[bytes, Constructor]]:
        matches = [(code, ctor) for code, ctor in self._links if init_code.startswith(code)]
        if not matches:
            return None
        return max(matches, key=lambda item: len(item[0]))

    # -- transactions -------------------------------------------------------

    @contextmanager
    def atomic(self) -> Iterator[None]:
        """Restore accounts and logs if the block raises."""

        memo = {id(account.program): account.program for account in self._accounts.values() if account.program}
        accounts = copy.deepcopy(self._accounts, memo)
        log_length = len(self.logs)
        try:
            yield
        except BaseException:
            self._accounts = accounts
            del self.logs[log_length:]
            raise

    def _transfer(self, source: str, destination: str, amount: int) -> None:
        if amount < 0:
            raise ValueError("Cannot transfer a negative amount")
        if not amount:
            return
        payer = self._account(source)
        if payer.balance < amount:
            raise InsufficientFunds(source, payer.balance, amount)
        payer.balance -= amount
        self._account(destination).balance += amount

    def _create_at(self, sender: str, address: str, init_code: bytes, value: int, salt: Optional[bytes]) -> str:
        with self.atomic():
            self._account(sender).nonce += 1
            target = self._peek(address)
            if target is not None and target.occupied:
                raise AddressCollision(address, salt)
            target = self._account(address)
            target.nonce = 1
            self._transfer(sender, address, value)
            linked = self._resolve(bytes(init_code))
            if linked is None:
                target.code = bytes(init_code)
            else:
                creation_code, constructor = linked
                target.code = creation_code
                target.program = constructor(self, address, bytes(init_code[len(creation_code):]))
        _LOGGER.debug("%s created %s (value=%d)", sender, address, value)
        return address

    def create(self, sender: AddressLike, init_code: bytes, value: int = 0) -> str:
        creator = normalise_address(sender)
        address = create_address(creator, self.nonce_of(creator))
        return self._create_at(creator, address, init_code, value, None)

    def create2(self, sender: AddressLike, salt: SaltLike, init_code: bytes, value: int = 0) -> str:
        creator = normalise_address(sender)
        address = create2_address(creator, salt, init_code_hash(init_code))
        return self._create_at(creator, address, init_code, value, bytes(salt) if isinstance(salt, bytes) else None)

    def call(self, sender: AddressLike, to: AddressLike, method: str, *args: Any, value: int = 0) -> Any:
        caller = normalise_address(sender)
        target = normalise_address(to)
        with self.atomic():
            program = self.program_at(target)
            if program is None:
                raise UnsupportedOperation(method, f"no program at {target}")
            self._transfer(caller, target, value)
            context = CallContext(caller=caller, this=target, value=value, timestamp=self.timestamp)
            return program.execute(self, context, method, args)


__all__ = [
    "Account",
    "CallContext",
    "Constructor",
    "ExecutionEnvironment",
    "InMemoryLedger",
    "Program",
]
