"""Typed failures raised by the registry and its collaborators."""
from __future__ import annotations

from typing import Optional


class RegistryError(RuntimeError):
    """Base class for every failure the registry reports."""


class Unauthorized(RegistryError):
    """Raised when the caller is neither the owner nor an active operator."""

    def __init__(self, caller: str) -> None:
        super().__init__(f"{caller} is not authorized for this action")
        self.caller = caller


class InvalidDelay(RegistryError):
    def __init__(self, delay: object, max_delay: int, reason: Optional[str] = None) -> None:
        super().__init__(reason or f"Operator delay {delay} exceeds the maximum of {max_delay} seconds")
        self.delay = delay
        self.max_delay = max_delay


class InvalidAddress(RegistryError):
    def __init__(self, address: str) -> None:
        super().__init__(f"Invalid target address {address}")
        self.address = address


class ValueMismatch(RegistryError):
    """Raised when the declared transfer amount differs from the attached amount."""

    def __init__(self, expected: int, received: int) -> None:
        super().__init__(f"Declared value {expected} but received {received}")
        self.expected = expected
        self.received = received


class UpgradeRejected(RegistryError):
    def __init__(self, target: str, reason: str) -> None:
        super().__init__(f"Refusing to upgrade to {target}: {reason}")
        self.target = target
        self.reason = reason


class CreationFailed(RegistryError):
    """Raised by an execution environment when a creation primitive fails."""

    def __init__(self, address: Optional[str], reason: str) -> None:
        super().__init__(f"Creation at {address or 'unknown address'} failed: {reason}")
        self.address = address
        self.reason = reason


class AddressCollision(CreationFailed):
    """Raised when the target address of a creation is already occupied."""

    def __init__(self, address: str, salt: Optional[bytes] = None) -> None:
        super().__init__(address, "address already occupied")
        self.salt = salt


class InsufficientFunds(RegistryError):
    def __init__(self, account: str, balance: int, required: int) -> None:
        super().__init__(f"{account} holds {balance} but {required} is required")
        self.account = account
        self.balance = balance
        self.required = required


class OutOfRange(RegistryError):
    def __init__(self, index: int, count: int) -> None:
        super().__init__(f"Index {index} is out of range for {count} entries")
        self.index = index
        self.count = count


class InternalConsistencyFailure(RegistryError):
    """The created object did not land at the predicted address.

    This indicates a defect in the address derivation, not a recoverable condition.
    """

    def __init__(self, expected: str, actual: Optional[str]) -> None:
        if actual is None:
            message = f"Predicted {expected} but the environment created nothing there"
        else:
            message = f"Predicted {expected} but the environment created {actual}"
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class UnsupportedOperation(RegistryError):
    def __init__(self, operation: str, reason: str = "not supported by the active logic") -> None:
        super().__init__(f"{operation}: {reason}")
        self.operation = operation


class TransactionFailed(RegistryError):
    def __init__(self, tx_hash: str, status: object) -> None:
        super().__init__(f"Transaction {tx_hash} failed with status {status}")
        self.tx_hash = tx_hash
        self.status = status


__all__ = [
    "AddressCollision",
    "CreationFailed",
    "InsufficientFunds",
    "InternalConsistencyFailure",
    "InvalidAddress",
    "InvalidDelay",
    "OutOfRange",
    "RegistryError",
    "TransactionFailed",
    "Unauthorized",
    "UnsupportedOperation",
    "UpgradeRejected",
    "ValueMismatch",
]
