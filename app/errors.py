from __future__ import annotations

from enum import StrEnum

from fastapi import HTTPException, status


class ErrorKind(StrEnum):
    VALIDATION = "validation"  # malformed or out-of-range input
    AUTH = "auth"  # no session, wrong role, foreign booking
    NOT_FOUND = "not_found"
    BUSINESS_LOGIC = "business_logic"  # well-formed input that breaks a domain rule
    NETWORK = "network"
    SERVER = "server"
    STORAGE = "storage"
    PAYMENT = "payment"
    UNKNOWN = "unknown"


class AppError(Exception):
    """
    The single exception type of the service.
    What went wrong is carried by `kind`, never by a subclass.
    """

    def __init__(self, kind: ErrorKind, message: str, code: str | None = None) -> None:
        self.kind = kind
        self.message = message
        self.code = code
        super().__init__(message)

    def __repr__(self) -> str:
        return f"AppError(kind={self.kind.value!r}, message={self.message!r}, code={self.code!r})"

    def to_dict(self) -> dict[str, str | None]:
        return {"kind": self.kind.value, "message": self.message, "code": self.code}


def validation_error(message: str, code: str | None = None) -> AppError:
    return AppError(ErrorKind.VALIDATION, message, code)


def auth_error(message: str, code: str | None = None) -> AppError:
    return AppError(ErrorKind.AUTH, message, code)


def not_found_error(message: str, code: str | None = None) -> AppError:
    return AppError(ErrorKind.NOT_FOUND, message, code)


def business_logic_error(message: str, code: str | None = None) -> AppError:
    return AppError(ErrorKind.BUSINESS_LOGIC, message, code)


# ---------------------------------------------------------------------------
# Dispatch on kind
# ---------------------------------------------------------------------------


def user_message(error: AppError) -> str:
    """Text safe to show to an end user."""
    match error.kind:
        case ErrorKind.VALIDATION | ErrorKind.BUSINESS_LOGIC | ErrorKind.NOT_FOUND:
            return error.message
        case ErrorKind.AUTH:
            return _AUTH_MESSAGES.get(error.code or "", error.message)
        case ErrorKind.NETWORK:
            return "Network error. Please check your connection and try again."
        case ErrorKind.PAYMENT:
            return "Payment failed. Please try again or use a different payment method."
        case ErrorKind.STORAGE:
            return "Saving your data failed. Please try again."
        case _:
            return "Something went wrong. Please try again."


_AUTH_MESSAGES: dict[str, str] = {
    "user-not-found": "No account found with this email address.",
    "wrong-password": "Incorrect password. Please try again.",
    "email-already-in-use": "An account already exists with this email address.",
    "weak-password": "Password is too weak. Please choose a stronger password.",
    "invalid-email": "Please enter a valid email address.",
    "user-disabled": "This account has been disabled. Please contact support.",
    "too-many-requests": "Too many failed attempts. Please try again later.",
}


def http_status(error: AppError) -> int:
    match error.kind:
        case ErrorKind.VALIDATION:
            return status.HTTP_422_UNPROCESSABLE_ENTITY
        case ErrorKind.AUTH if error.code == "unauthenticated":
            return status.HTTP_401_UNAUTHORIZED
        case ErrorKind.AUTH:
            return status.HTTP_403_FORBIDDEN
        case ErrorKind.NOT_FOUND:
            return status.HTTP_404_NOT_FOUND
        case ErrorKind.BUSINESS_LOGIC:
            return status.HTTP_409_CONFLICT
        case ErrorKind.NETWORK | ErrorKind.SERVER | ErrorKind.PAYMENT:
            return status.HTTP_502_BAD_GATEWAY
        case _:
            return status.HTTP_500_INTERNAL_SERVER_ERROR


def to_http_exception(error: AppError) -> HTTPException:
    return HTTPException(status_code=http_status(error), detail=error.to_dict())
