"""
Typed errors raised by the orchestration engine.

Each error carries a machine-readable ``code`` and the HTTP status the
request layer should answer with. Best-effort delivery failures use
``ExternalDeliveryError`` and never leave the dispatcher.

    OrderflowError
    +-- ValidationError
    +-- NotFoundError
    +-- ConflictError
    |   +-- AlreadyApprovedError
    |   +-- InvalidStateError
    |   +-- ConcurrentUpdateError
    +-- PersistenceError
    +-- ExternalDeliveryError
"""
from __future__ import annotations

from typing import Optional


class OrderflowError(Exception):
    code = "ORDERFLOW_ERROR"
    status_code = 500
    retryable = False

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(OrderflowError):
    code = "VALIDATION_ERROR"
    status_code = 400


class NotFoundError(OrderflowError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, entity: str, entity_id: Optional[str]):
        super().__init__(f"{entity} not found: {entity_id}", entity=entity, entity_id=entity_id)
        self.entity = entity
        self.entity_id = entity_id


class ConflictError(OrderflowError):
    code = "CONFLICT"
    status_code = 409


class AlreadyApprovedError(ConflictError):
    code = "ALREADY_APPROVED"

    def __init__(self, submission_id: str):
        super().__init__(f"Submission already approved: {submission_id}", submission_id=submission_id)
        self.submission_id = submission_id


class InvalidStateError(ConflictError):
    code = "INVALID_STATE"


class ConcurrentUpdateError(ConflictError):
    code = "CONCURRENT_UPDATE"
    retryable = True


class PersistenceError(OrderflowError):
    code = "PERSISTENCE_FAILURE"
    status_code = 500


class ExternalDeliveryError(OrderflowError):
    code = "EXTERNAL_DELIVERY_FAILURE"
    status_code = 502

    def __init__(self, channel: str, message: str):
        super().__init__(f"[{channel}] {message}", channel=channel)
        self.channel = channel
