"""Domain error codes for the competitions module."""

from dataclasses import dataclass
from enum import Enum


class ErrorCode(Enum):
    """Domain error codes."""

    EVENT_NOT_FOUND = "EVENT_NOT_FOUND"
    ENTRY_NOT_FOUND = "ENTRY_NOT_FOUND"
    DANCER_NOT_FOUND = "DANCER_NOT_FOUND"
    PAYMENT_NOT_FOUND = "PAYMENT_NOT_FOUND"
    INVALID_ID = "INVALID_ID"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    PARTICIPANT_COUNT_MISMATCH = "PARTICIPANT_COUNT_MISMATCH"
    DANCER_DISABLED = "DANCER_DISABLED"
    UNTRUSTED_HOST = "UNTRUSTED_HOST"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"


@dataclass(frozen=True)
class DomainError(Exception):
    """Base domain error with code and user-safe message."""

    code: ErrorCode
    message: str

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class EventNotFoundError(DomainError):
    """Raised when an event is not found."""

    def __init__(self, event_id: str) -> None:
        super().__init__(code=ErrorCode.EVENT_NOT_FOUND, message="Event not found")
        self.event_id = event_id


class EntryNotFoundError(DomainError):
    """Raised when an event entry is not found."""

    def __init__(self, entry_id: str) -> None:
        super().__init__(code=ErrorCode.ENTRY_NOT_FOUND, message="Event entry not found")
        self.entry_id = entry_id


class DancerNotFoundError(DomainError):
    """Raised when a dancer cannot be found by internal or public id."""

    def __init__(self, dancer_id: str) -> None:
        super().__init__(code=ErrorCode.DANCER_NOT_FOUND, message="Dancer not found")
        self.dancer_id = dancer_id


class PaymentNotFoundError(DomainError):
    """Raised when no payment matches a provider-correlated id."""

    def __init__(self, payment_id: str) -> None:
        super().__init__(code=ErrorCode.PAYMENT_NOT_FOUND, message="Payment not found")
        self.payment_id = payment_id


class InvalidIdError(DomainError):
    """Raised when an identifier is malformed."""

    def __init__(self) -> None:
        super().__init__(code=ErrorCode.INVALID_ID, message="Invalid ID format")


class InvalidInputError(DomainError):
    """Raised when caller input breaks a business rule. Never retried."""

    def __init__(self, message: str, **details) -> None:
        super().__init__(code=ErrorCode.VALIDATION_FAILED, message=message)
        self.details = details


class ParticipantCountMismatchError(DomainError):
    """Raised when a performance type does not match the participant count."""

    def __init__(self, performance_type: str, participant_count: int) -> None:
        super().__init__(
            code=ErrorCode.PARTICIPANT_COUNT_MISMATCH,
            message=f"{performance_type} cannot have {participant_count} participant(s)",
        )


class DancerDisabledError(DomainError):
    """Raised when a participant's account has been disabled."""

    def __init__(self, dancer_id: str, public_id: str) -> None:
        super().__init__(
            code=ErrorCode.DANCER_DISABLED,
            message=f"Dancer {public_id} account has been disabled. Please contact support.",
        )
        self.dancer_id = dancer_id


class UntrustedHostError(DomainError):
    """Raised when a notification does not come from a known provider host."""

    def __init__(self, client_ip: str) -> None:
        super().__init__(code=ErrorCode.UNTRUSTED_HOST, message="Invalid host")
        self.client_ip = client_ip


class InvalidSignatureError(DomainError):
    """Raised when a notification signature does not verify."""

    def __init__(self) -> None:
        super().__init__(code=ErrorCode.INVALID_SIGNATURE, message="Invalid signature")
