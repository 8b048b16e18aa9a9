"""
Typed exception hierarchy for the procurement kernel.

Every rejection the workflow can produce is a legitimate business outcome,
not a transient fault, so each one is a distinct type carrying:

  1. A ``code`` class attribute (machine-readable, stable across releases).
  2. Structured attributes (pending id, SKU, status ...) for callers and logs.
  3. A human-readable message.

Catch by type, never by message:

    try:
        engine.approve(pending_id, actor_role="manager", actor=email)
    except AlreadyProcessedError as e:
        show_banner(f"Already {e.status}")
    except WrongApproverRoleError as e:
        show_banner(f"Waiting on {e.required_role}")

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ProcurementKernelError (base)
    |
    +-- ValidationError
    |   +-- EmptyRequestError
    |   +-- InvalidQuantityError
    |   +-- ReasonRequiredError
    |   +-- InvalidStatusChangeError
    |   +-- UnsupportedRequestTypeError
    |
    +-- NotFoundError
    |   +-- RequestNotFoundError
    |   +-- ItemNotFoundError
    |   +-- UserNotFoundError
    |
    +-- AuthorizationError
    |   +-- WrongApproverRoleError
    |   +-- SelfApprovalError
    |   +-- NotRequesterError
    |   +-- NotApproverError
    |
    +-- AlreadyProcessedError
    |
    +-- InventoryError
    |   +-- StockInsufficientError
    |   +-- ItemNotActiveError
    |   +-- ItemRetiredError
    |   +-- RetireWithStockError
    |
    +-- TokenError
    |   +-- MalformedTokenError
    |   +-- TokenSignatureError
    |   +-- TokenMissingFieldsError
    |   +-- TokenExpiredError
    |   +-- TokenRecipientMismatchError
    |
    +-- RecordStoreError
        +-- UnknownTableError
        +-- UnknownColumnError
        +-- ImmutableRecordError
        +-- LedgerEntryMissingError

Only notification delivery failures are caught inside the kernel; everything
above propagates to the caller unchanged.
"""


class ProcurementKernelError(Exception):
    """
    Base exception for all procurement kernel errors.

    All subclasses must define a ``code`` class attribute.
    """

    code: str = "PROCUREMENT_KERNEL_ERROR"


# Validation


class ValidationError(ProcurementKernelError):
    """Bad input shape or quantities. Raised before anything is persisted."""

    code: str = "VALIDATION_ERROR"


class EmptyRequestError(ValidationError):
    """A movement request must carry at least one item."""

    code: str = "EMPTY_REQUEST"

    def __init__(self, request_type: str):
        self.request_type = request_type
        super().__init__(f"{request_type} request has no items")


class InvalidQuantityError(ValidationError):
    """Quantity must be a positive whole number."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, sku: str, quantity: object):
        self.sku = sku
        self.quantity = quantity
        super().__init__(
            f"Quantity for {sku} must be a positive whole number, got {quantity!r}"
        )


class ReasonRequiredError(ValidationError):
    """Decline, void and cancel all require a non-empty reason."""

    code: str = "REASON_REQUIRED"

    def __init__(self, action: str):
        self.action = action
        super().__init__(f"A reason is required to {action}")


class InvalidStatusChangeError(ValidationError):
    """Catalog status change not allowed through a modify."""

    code: str = "INVALID_STATUS_CHANGE"

    def __init__(self, sku: str, requested_status: str):
        self.sku = sku
        self.requested_status = requested_status
        super().__init__(
            f"Cannot set {sku} to status {requested_status!r} via modify"
        )


class UnsupportedRequestTypeError(ValidationError):
    """Request type not valid for the called operation."""

    code: str = "UNSUPPORTED_REQUEST_TYPE"

    def __init__(self, request_type: str, operation: str):
        self.request_type = request_type
        self.operation = operation
        super().__init__(f"{request_type} is not supported by {operation}")


# Lookup


class NotFoundError(ProcurementKernelError):
    """Referenced record does not exist."""

    code: str = "NOT_FOUND"


class RequestNotFoundError(NotFoundError):
    """Pending request with given ID was not found."""

    code: str = "REQUEST_NOT_FOUND"

    def __init__(self, pending_id: str):
        self.pending_id = pending_id
        super().__init__(f"Pending request not found: {pending_id}")


class ItemNotFoundError(NotFoundError):
    """Catalog item with given SKU was not found."""

    code: str = "ITEM_NOT_FOUND"

    def __init__(self, sku: str):
        self.sku = sku
        super().__init__(f"Item not found: {sku}")


class UserNotFoundError(NotFoundError):
    code: str = "USER_NOT_FOUND"

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"User not found: {email}")


# Authorization


class AuthorizationError(ProcurementKernelError):
    """Actor may not perform this action on this request."""

    code: str = "AUTHORIZATION_ERROR"


class WrongApproverRoleError(AuthorizationError):
    """Actor role does not match the request's current NextRole."""

    code: str = "WRONG_APPROVER_ROLE"

    def __init__(self, pending_id: str, actor_role: str, required_role: str):
        self.pending_id = pending_id
        self.actor_role = actor_role
        self.required_role = required_role
        super().__init__(
            f"Request {pending_id} is waiting on {required_role or 'nobody'}, "
            f"not {actor_role}"
        )


class SelfApprovalError(AuthorizationError):
    """Requesters cannot approve or decline their own requests."""

    code: str = "SELF_APPROVAL"

    def __init__(self, pending_id: str, actor: str):
        self.pending_id = pending_id
        self.actor = actor
        super().__init__(f"{actor} cannot act on their own request {pending_id}")


class NotRequesterError(AuthorizationError):
    """Only the original requester may edit or cancel."""

    code: str = "NOT_REQUESTER"

    def __init__(self, pending_id: str, actor: str):
        self.pending_id = pending_id
        self.actor = actor
        super().__init__(f"{actor} did not submit request {pending_id}")


class NotApproverError(AuthorizationError):
    """Action restricted to approver (or controller) roles."""

    code: str = "NOT_APPROVER"

    def __init__(self, actor_role: str, action: str):
        self.actor_role = actor_role
        self.action = action
        super().__init__(f"Role {actor_role!r} may not {action}")


# Lifecycle


class AlreadyProcessedError(ProcurementKernelError):
    """Request is no longer Pending. Carries the resolved status for display."""

    code: str = "ALREADY_PROCESSED"

    def __init__(self, pending_id: str, status: str):
        self.pending_id = pending_id
        self.status = status
        super().__init__(f"Request {pending_id} already processed (status: {status})")


# Inventory


class InventoryError(ProcurementKernelError):
    """Base exception for item stock and status preconditions."""

    code: str = "INVENTORY_ERROR"


class StockInsufficientError(InventoryError):
    """Applying the delta would take on-hand quantity below zero."""

    code: str = "STOCK_INSUFFICIENT"

    def __init__(self, sku: str, on_hand: int, requested: int):
        self.sku = sku
        self.on_hand = on_hand
        self.requested = requested
        super().__init__(
            f"Insufficient stock for {sku}: on hand {on_hand}, requested {requested}"
        )


class ItemNotActiveError(InventoryError):
    """Outbound movement against an item that is not Active."""

    code: str = "ITEM_NOT_ACTIVE"

    def __init__(self, sku: str, status: str):
        self.sku = sku
        self.status = status
        super().__init__(f"Item {sku} is {status}, not Active")


class ItemRetiredError(InventoryError):
    """Retired items cannot be modified."""

    code: str = "ITEM_RETIRED"

    def __init__(self, sku: str):
        self.sku = sku
        super().__init__(f"Item {sku} is retired and cannot be modified")


class RetireWithStockError(InventoryError):
    """An item can only be retired once its quantity is zero."""

    code: str = "RETIRE_WITH_STOCK"

    def __init__(self, sku: str, on_hand: int):
        self.sku = sku
        self.on_hand = on_hand
        super().__init__(f"Cannot retire {sku}: {on_hand} still on hand")


# Action tokens


class TokenError(ProcurementKernelError):
    """Base exception for action token verification failures."""

    code: str = "TOKEN_ERROR"


class MalformedTokenError(TokenError):
    code: str = "TOKEN_MALFORMED"

    def __init__(self, detail: str = "bad format"):
        self.detail = detail
        super().__init__(f"Malformed action token: {detail}")


class TokenSignatureError(TokenError):
    code: str = "TOKEN_BAD_SIGNATURE"

    def __init__(self):
        super().__init__("Action token signature does not match")


class TokenMissingFieldsError(TokenError):
    code: str = "TOKEN_MISSING_FIELDS"

    def __init__(self, missing: tuple[str, ...]):
        self.missing = missing
        super().__init__(f"Action token is missing field(s): {', '.join(missing)}")


class TokenExpiredError(TokenError):
    code: str = "TOKEN_EXPIRED"

    def __init__(self, expired_at: str):
        self.expired_at = expired_at
        super().__init__(f"Action token expired at {expired_at}")


class TokenRecipientMismatchError(TokenError):
    """Personalized token presented by a different identity."""

    code: str = "TOKEN_RECIPIENT_MISMATCH"

    def __init__(self, recipient: str, presented: str):
        self.recipient = recipient
        self.presented = presented
        super().__init__(
            f"Action token was issued to {recipient}, presented by {presented or 'anonymous'}"
        )


# Record store


class RecordStoreError(ProcurementKernelError):
    code: str = "RECORD_STORE_ERROR"


class UnknownTableError(RecordStoreError):
    code: str = "UNKNOWN_TABLE"

    def __init__(self, table: str):
        self.table = table
        super().__init__(f"Unknown record table: {table}")


class UnknownColumnError(RecordStoreError):
    code: str = "UNKNOWN_COLUMN"

    def __init__(self, table: str, column: str):
        self.table = table
        self.column = column
        super().__init__(f"Unknown column {column!r} on table {table}")


class ImmutableRecordError(RecordStoreError):
    """Ledger rows are never deleted and resolved requests never reopened."""

    code: str = "IMMUTABLE_RECORD"

    def __init__(self, table: str, key: str, detail: str):
        self.table = table
        self.key = key
        self.detail = detail
        super().__init__(f"{table}[{key}]: {detail}")


class LedgerEntryMissingError(RecordStoreError):
    """A request exists but the ledger entry for its LinkID does not."""

    code: str = "LEDGER_ENTRY_MISSING"

    def __init__(self, link_id: str):
        self.link_id = link_id
        super().__init__(f"No ledger entry for {link_id}")
