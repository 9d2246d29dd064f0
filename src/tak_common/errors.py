"""Unified error codes and custom exceptions.

Every error falls into one of five categories, each a subclass of AppError:

  InvalidArgumentError  422  malformed or out-of-range input (not retryable)
  NotFoundError         404  referenced entity absent (not retryable)
  ConflictError         409  illegal in current state (retry after refetch)
  AdapterFailureError   502  settlement backend failed (operator intervention)
  InternalError         500  storage or unexpected fault

Error code ranges:
  1xxx: Request
  2xxx: Offer
  3xxx: Deal
  4xxx: Agent
  5xxx: Execution
  9xxx: System
"""

from typing import Any


class AppError(Exception):
    """Base application error.

    ``data`` is returned to the caller alongside the message and carries the
    authoritative state needed to decide on a retry (e.g. current_status).
    """

    category = "internal"

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
        data: dict[str, Any] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        self.data = data
        super().__init__(message)


class InvalidArgumentError(AppError):
    category = "invalid_argument"

    def __init__(self, code: int, message: str, data: dict[str, Any] | None = None) -> None:
        super().__init__(code, message, 422, data)


class NotFoundError(AppError):
    category = "not_found"

    def __init__(self, code: int, message: str, data: dict[str, Any] | None = None) -> None:
        super().__init__(code, message, 404, data)


class ConflictError(AppError):
    category = "conflict"

    def __init__(self, code: int, message: str, data: dict[str, Any] | None = None) -> None:
        super().__init__(code, message, 409, data)


# --- 1xxx: Request ---

class RequestNotFoundError(NotFoundError):
    def __init__(self, request_id: str) -> None:
        super().__init__(1001, f"Request not found: {request_id}", {"request_id": request_id})


class RequestNotOpenError(ConflictError):
    def __init__(self, request_id: str, status: str) -> None:
        super().__init__(
            1002,
            f"Request {request_id} is {status}; it must be 'open'",
            {"request_id": request_id, "current_status": status},
        )


class InvalidServiceQueryError(InvalidArgumentError):
    def __init__(self) -> None:
        super().__init__(1003, "service_query must be a non-empty string")


class RequestInUseError(ConflictError):
    def __init__(self, request_id: str, status: str, live_offers: int) -> None:
        super().__init__(
            1004,
            f"Request {request_id} still has {live_offers} pending or accepted offer(s)",
            {"request_id": request_id, "current_status": status, "live_offers": live_offers},
        )


# --- 2xxx: Offer ---

class OfferNotFoundError(NotFoundError):
    def __init__(self, offer_id: str) -> None:
        super().__init__(2001, f"Offer not found: {offer_id}", {"offer_id": offer_id})


class OfferNotPendingError(ConflictError):
    def __init__(self, offer_id: str, status: str) -> None:
        super().__init__(
            2002,
            f"Offer {offer_id} is already {status}; it must be 'pending'",
            {"offer_id": offer_id, "current_status": status},
        )


class PriceExceedsCeilingError(InvalidArgumentError):
    def __init__(self, price_nano: int, max_price_nano: int) -> None:
        super().__init__(
            2003,
            f"Offer price {price_nano} exceeds request ceiling {max_price_nano}",
            {"price_nano": price_nano, "max_price_nano": max_price_nano},
        )


class OfferAlreadyAcceptedError(ConflictError):
    def __init__(self, offer_id: str, action: str = "rejected") -> None:
        super().__init__(
            2004,
            f"Offer {offer_id} is already accepted and cannot be {action}",
            {"offer_id": offer_id, "current_status": "accepted"},
        )


class EmptyOfferRevisionError(InvalidArgumentError):
    def __init__(self) -> None:
        super().__init__(2005, "At least one of price_nano or terms must be provided")


# --- 3xxx: Deal ---

class DealNotFoundError(NotFoundError):
    def __init__(self, deal_id: str) -> None:
        super().__init__(3001, f"Deal not found: {deal_id}", {"deal_id": deal_id})


class IllegalDealTransitionError(ConflictError):
    def __init__(self, deal_id: str, status: str, target: str, required: str) -> None:
        super().__init__(
            3002,
            f"Cannot move deal {deal_id} from '{status}' to '{target}'. Must be '{required}'.",
            {"deal_id": deal_id, "current_status": status},
        )


class OfferNotAcceptedError(ConflictError):
    def __init__(self, offer_id: str, status: str) -> None:
        super().__init__(
            3003,
            f"Only accepted offers can be used to create a deal; offer {offer_id} is {status}",
            {"offer_id": offer_id, "current_status": status},
        )


class OfferRequestMismatchError(ConflictError):
    def __init__(self, offer_id: str, request_id: str) -> None:
        super().__init__(
            3004,
            f"Offer {offer_id} does not belong to request {request_id}",
            {"offer_id": offer_id, "request_id": request_id},
        )


class DealAlreadyExistsError(ConflictError):
    def __init__(self, offer_id: str, deal_id: str | None = None) -> None:
        super().__init__(
            3005,
            f"A deal for offer {offer_id} already exists",
            {"offer_id": offer_id, "deal_id": deal_id},
        )


class DealNotDeletableError(ConflictError):
    def __init__(self, deal_id: str, status: str) -> None:
        super().__init__(
            3006,
            f"Deal {deal_id} is {status}; only cancelled deals can be deleted",
            {"deal_id": deal_id, "current_status": status},
        )


# --- 4xxx: Agent ---

class UnknownRequesterError(InvalidArgumentError):
    def __init__(self, agent_id: str) -> None:
        super().__init__(4001, f"Requester agent does not exist: {agent_id}", {"agent_id": agent_id})


class ProviderNotFoundError(NotFoundError):
    def __init__(self, agent_id: str) -> None:
        super().__init__(4002, f"Provider agent not found: {agent_id}", {"agent_id": agent_id})


# --- 5xxx: Execution ---

class AdapterFailureError(AppError):
    category = "adapter_failure"

    def __init__(self, deal_id: str, detail: str, deal: dict[str, Any] | None = None) -> None:
        super().__init__(
            5001,
            f"Execution failed for deal {deal_id}: {detail}",
            502,
            {"deal_id": deal_id, "deal_status": "failed", "detail": detail, "deal": deal},
        )


class UnknownExecutionAdapterError(AppError):
    def __init__(self, name: str) -> None:
        super().__init__(5002, f"Unknown execution adapter: {name}", 500)


# --- 9xxx: System ---

class InvalidAmountError(InvalidArgumentError):
    def __init__(self, field: str, value: object) -> None:
        super().__init__(
            9001,
            f"{field} must be a positive 64-bit integer (nano-units), got {value!r}",
            {"field": field},
        )


class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)


class RequestValidationFailedError(InvalidArgumentError):
    def __init__(self, errors: list[dict[str, Any]]) -> None:
        super().__init__(9003, "Request validation failed", {"errors": errors})


class IdempotencyKeyInUseError(ConflictError):
    def __init__(self, key: str) -> None:
        super().__init__(
            9004,
            f"A call with idempotency key {key!r} is still in progress; retry later",
            {"idempotency_key": key},
        )
