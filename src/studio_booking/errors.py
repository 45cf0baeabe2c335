"""Domain exceptions for the booking engine.

Services raise these; the web and CLI layers turn them into typed
result payloads via ``to_dict()``.
"""

from typing import Any


class StudioError(Exception):
    """Base class for all engine errors."""

    http_status = 500

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to a result payload."""
        return {
            "success": False,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(StudioError):
    """Malformed input. No state was changed."""

    http_status = 400


class NotFoundError(StudioError):
    """A referenced entity does not exist."""

    http_status = 404


class ClassNotFound(NotFoundError):
    def __init__(self, class_id: str):
        super().__init__(f"Class {class_id} not found", details={"class_id": class_id})


class BookingNotFound(NotFoundError):
    def __init__(self, booking_id: str):
        super().__init__(
            f"Booking {booking_id} not found", details={"booking_id": booking_id}
        )


class PackageNotFound(NotFoundError):
    def __init__(self, package_id: str):
        super().__init__(
            f"Package {package_id} not found", details={"package_id": package_id}
        )


class PackageTemplateNotFound(NotFoundError):
    def __init__(self, template_id: str):
        super().__init__(
            f"Package template {template_id} not found",
            details={"template_id": template_id},
        )


class PackageBundleNotFound(NotFoundError):
    def __init__(self, bundle_id: str):
        super().__init__(
            f"Package bundle {bundle_id} not found", details={"bundle_id": bundle_id}
        )


class PrivateRequestNotFound(NotFoundError):
    def __init__(self, request_id: str):
        super().__init__(
            f"Private class request {request_id} not found",
            details={"request_id": request_id},
        )


class UserNotFound(NotFoundError):
    def __init__(self, user_id: str):
        super().__init__(f"User {user_id} not found", details={"user_id": user_id})


class AccountNotFound(NotFoundError):
    def __init__(self, user_id: str, category: str):
        super().__init__(
            f"No credit account for user {user_id} ({category})",
            details={"user_id": user_id, "category": category},
        )


class BusinessRuleViolation(StudioError):
    """The request is well formed but breaks a ledger rule."""

    http_status = 409


class ClassFull(BusinessRuleViolation):
    pass


class AlreadyBooked(BusinessRuleViolation):
    pass


class InvalidOccurrence(BusinessRuleViolation):
    pass


class ClassNotBookable(BusinessRuleViolation):
    pass


class AlreadyCancelled(BusinessRuleViolation):
    pass


class InvalidBookingState(BusinessRuleViolation):
    pass


class ClassNotCancelled(BusinessRuleViolation):
    pass


class RequestAlreadyResolved(BusinessRuleViolation):
    pass


class NotExpired(BusinessRuleViolation):
    pass


class NotActive(BusinessRuleViolation):
    pass


class OverdraftExceeded(BusinessRuleViolation):
    """A deduction would take the balance below its floor."""

    def __init__(self, user_id: str, category: str, balance: int, floor: int):
        super().__init__(
            f"Deduction would take balance below {floor}",
            details={
                "user_id": user_id,
                "category": category,
                "current_balance": balance,
                "floor": floor,
            },
        )


class InsufficientCredits(BusinessRuleViolation):
    """Some users would need a credit they do not have."""

    def __init__(self, user_ids: list[str], category: str):
        super().__init__(
            f"{len(user_ids)} user(s) have no {category} credits left",
            code="INSUFFICIENT_CREDITS",
            details={"user_ids": user_ids, "category": category},
        )


class OverdraftWarning(BusinessRuleViolation):
    """Booking needs explicit overdraft confirmation from the caller."""

    def __init__(self, current_balance: int, would_be_balance: int, category: str):
        super().__init__(
            "Booking will put the account into overdraft; resubmit with confirmation",
            code="OVERDRAFT_WARNING",
            details={
                "current_balance": current_balance,
                "would_be_balance": would_be_balance,
                "category": category,
            },
        )

    @property
    def current_balance(self) -> int:
        return self.details["current_balance"]

    @property
    def would_be_balance(self) -> int:
        return self.details["would_be_balance"]


class MaxOverdraftReached(BusinessRuleViolation):
    def __init__(self, current_balance: int, would_be_balance: int, max_overdraft: int):
        super().__init__(
            "Maximum overdraft reached",
            code="MAX_OVERDRAFT_REACHED",
            details={
                "current_balance": current_balance,
                "would_be_balance": would_be_balance,
                "max_overdraft": max_overdraft,
            },
        )


class TransientStoreError(StudioError):
    """The store was busy or unavailable. Callers may retry."""

    http_status = 503
