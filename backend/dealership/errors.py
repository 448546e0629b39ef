# Overview: Typed business errors shared by services and routes.

"""
Error taxonomy for the purchase engine.

Every business-rule failure is raised as a DealershipError subclass. Each class
carries a stable machine-readable code and the HTTP status the routes return,
so the same failure always maps to the same caller-visible outcome.

- InputError: malformed identifiers/codes (caller's fault, never audited)
- NotAuthorized: subject cannot be resolved to an account
- Conflict: duplicate pending request / duplicate registration
- InvalidOtp: wrong code, wrong purpose, wrong vehicle, expired or consumed
- VehicleUnavailable: vehicle sold or missing at the point of check
- AlreadyDecided: purchase request is no longer PENDING
- NotFound: unknown request/vehicle/customer id
- ServiceUnavailable: storage failure, distinct from business errors
"""

from __future__ import annotations


class DealershipError(Exception):
    """Base class for business errors raised by the service layer."""

    code = "ERROR"
    status_code = 400
    default_message = "Request failed"

    def __init__(self, message: str | None = None, details: dict | None = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code, "details": self.details}


class InputError(DealershipError):
    code = "INPUT_ERROR"
    status_code = 400
    default_message = "Invalid input"


class NotAuthorized(DealershipError):
    code = "NOT_AUTHORIZED"
    status_code = 401
    default_message = "Not authorized"


class Conflict(DealershipError):
    code = "CONFLICT"
    status_code = 409
    default_message = "Conflicting request"


class InvalidOtp(DealershipError):
    # One message for every cause so callers cannot tell which check failed
    code = "INVALID_OTP"
    status_code = 400
    default_message = "Invalid or expired OTP"


class VehicleUnavailable(DealershipError):
    code = "VEHICLE_UNAVAILABLE"
    status_code = 409
    default_message = "Vehicle is no longer available"


class AlreadyDecided(DealershipError):
    code = "ALREADY_DECIDED"
    status_code = 409
    default_message = "Request already decided"


class NotFound(DealershipError):
    code = "NOT_FOUND"
    status_code = 404
    default_message = "Not found"


class ServiceUnavailable(DealershipError):
    code = "SERVICE_UNAVAILABLE"
    status_code = 503
    default_message = "Service temporarily unavailable"
