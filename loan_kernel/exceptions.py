"""
Typed Exception Hierarchy for the Loan Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Every rejection in the request lifecycle is a local validation failure that
a caller has to turn into a user-facing message. Parsing message strings for
that is fragile, so:
  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (request id, item id, attempted value)

Example:
    try:
        controller.pack(request_id, actor="warehouse")
    except MissingJustificationError as e:
        api_response(code=e.code, request=str(e.request_id))

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from LoanKernelError:

    LoanKernelError (base)
    |
    +-- SelectionError
    |   +-- OutOfRangeError
    |   +-- EmptySelectionError
    |   +-- MissingJustificationError
    |   +-- KitSelectionError
    |
    +-- TransitionError
    |   +-- IllegalTransitionError
    |
    +-- ReturnError
    |   +-- UnknownItemError
    |   +-- OverReturnError
    |   +-- DuplicateReturnError
    |   +-- ConsumableReturnError
    |   +-- InvalidReturnError
    |
    +-- KitError
    |   +-- EmptyKitError
    |
    +-- RequestError
    |   +-- EmptyRequestError
    |   +-- RequestNotFoundError
    |   +-- RequestAlreadyExistsError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Selection       | OUT_OF_RANGE                | Quantity < 0 or above requested
                | EMPTY_SELECTION             | Nothing selected for a split
                | MISSING_JUSTIFICATION       | Reduced quantity without a note
                | KIT_SELECTION               | Partial selection on a kit order
----------------|-----------------------------|-----------------------------------------
Transition      | ILLEGAL_TRANSITION          | Move not in the lifecycle table
----------------|-----------------------------|-----------------------------------------
Return          | UNKNOWN_ITEM                | Item id not on the request
                | OVER_RETURN                 | good + defective above requested
                | DUPLICATE_RETURN            | Return record id already applied
                | CONSUMABLE_RETURN           | Return entry for a consumable
                | INVALID_RETURN              | Blank returner / empty record
----------------|-----------------------------|-----------------------------------------
Kit             | EMPTY_KIT                   | Kit template has no items
----------------|-----------------------------|-----------------------------------------
Request         | EMPTY_REQUEST               | Request created without items
                | REQUEST_NOT_FOUND           | Unknown request id
                | REQUEST_ALREADY_EXISTS      | Duplicate id or request number
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | Stored return history modified

None of these are transient: callers must not retry them automatically.
"""

from uuid import UUID


class LoanKernelError(Exception):
    """
    Base exception for all loan kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "LOAN_KERNEL_ERROR"


# Selection-related exceptions


class SelectionError(LoanKernelError):
    """Base exception for item selection and split errors."""

    code: str = "SELECTION_ERROR"


class OutOfRangeError(SelectionError):
    """A quantity falls outside its allowed range."""

    code: str = "OUT_OF_RANGE"

    def __init__(
        self,
        request_id: UUID | None,
        item_id: UUID | None,
        value: int,
        minimum: int,
        maximum: int | None,
    ):
        self.request_id = request_id
        self.item_id = item_id
        self.value = value
        self.minimum = minimum
        self.maximum = maximum
        bound = f"[{minimum}, {maximum}]" if maximum is not None else f">= {minimum}"
        super().__init__(
            f"Quantity {value} out of range {bound} "
            f"for item {item_id} on request {request_id}"
        )


class EmptySelectionError(SelectionError):
    """A split was attempted with nothing selected."""

    code: str = "EMPTY_SELECTION"

    def __init__(self, request_id: UUID):
        self.request_id = request_id
        super().__init__(f"No items selected on request {request_id}")


class MissingJustificationError(SelectionError):
    """Quantities were changed but no justification note was given."""

    code: str = "MISSING_JUSTIFICATION"

    def __init__(self, request_id: UUID, item_ids: tuple[UUID, ...]):
        self.request_id = request_id
        self.item_ids = item_ids
        super().__init__(
            f"Request {request_id} packs reduced quantities for "
            f"{len(item_ids)} item(s) without a justification note"
        )


class KitSelectionError(SelectionError):
    """Kit orders can only be selected as a whole."""

    code: str = "KIT_SELECTION"

    def __init__(self, request_id: UUID, request_number: str, reason: str):
        self.request_id = request_id
        self.request_number = request_number
        self.reason = reason
        super().__init__(f"Kit order {request_number}: {reason}")


# Transition-related exceptions


class TransitionError(LoanKernelError):
    """Base exception for lifecycle transition errors."""

    code: str = "TRANSITION_ERROR"


class IllegalTransitionError(TransitionError):
    """The requested status change is not in the lifecycle table."""

    code: str = "ILLEGAL_TRANSITION"

    def __init__(
        self,
        request_id: UUID,
        current_status: str,
        requested_status: str,
        reason: str | None = None,
    ):
        self.request_id = request_id
        self.current_status = current_status
        self.requested_status = requested_status
        self.reason = reason
        message = (
            f"Request {request_id} cannot move from "
            f"'{current_status}' to '{requested_status}'"
        )
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


# Return-related exceptions


class ReturnError(LoanKernelError):
    """Base exception for partial-return errors."""

    code: str = "RETURN_ERROR"


class UnknownItemError(ReturnError):
    """The referenced item does not belong to the request."""

    code: str = "UNKNOWN_ITEM"

    def __init__(self, request_id: UUID, item_id: UUID):
        self.request_id = request_id
        self.item_id = item_id
        super().__init__(f"Item {item_id} not found on request {request_id}")


class OverReturnError(ReturnError):
    """A return would exceed the item's requested quantity."""

    code: str = "OVER_RETURN"

    def __init__(
        self,
        request_id: UUID,
        item_id: UUID,
        requested_quantity: int,
        already_returned: int,
        attempted: int,
    ):
        self.request_id = request_id
        self.item_id = item_id
        self.requested_quantity = requested_quantity
        self.already_returned = already_returned
        self.attempted = attempted
        super().__init__(
            f"Returning {attempted} of item {item_id} on request {request_id} "
            f"exceeds outstanding {requested_quantity - already_returned}"
        )


class DuplicateReturnError(ReturnError):
    """The return record was already applied to this request."""

    code: str = "DUPLICATE_RETURN"

    def __init__(self, request_id: UUID, return_id: UUID):
        self.request_id = request_id
        self.return_id = return_id
        super().__init__(
            f"Return record {return_id} already recorded on request {request_id}"
        )


class ConsumableReturnError(ReturnError):
    """Consumable items are settled at delivery and are never returned."""

    code: str = "CONSUMABLE_RETURN"

    def __init__(self, request_id: UUID, item_id: UUID):
        self.request_id = request_id
        self.item_id = item_id
        super().__init__(
            f"Item {item_id} on request {request_id} is consumable and cannot be returned"
        )


class InvalidReturnError(ReturnError):
    """The return record itself is malformed."""

    code: str = "INVALID_RETURN"

    def __init__(self, request_id: UUID, return_id: UUID, reason: str):
        self.request_id = request_id
        self.return_id = return_id
        self.reason = reason
        super().__init__(f"Invalid return {return_id} on request {request_id}: {reason}")


# Kit-related exceptions


class KitError(LoanKernelError):
    """Base exception for kit template errors."""

    code: str = "KIT_ERROR"


class EmptyKitError(KitError):
    """A kit template with no items cannot produce a request."""

    code: str = "EMPTY_KIT"

    def __init__(self, kit_id: UUID, bin_code: str):
        self.kit_id = kit_id
        self.bin_code = bin_code
        super().__init__(f"Kit {bin_code} ({kit_id}) has no items")


# Request-related exceptions


class RequestError(LoanKernelError):
    """Base exception for request catalog errors."""

    code: str = "REQUEST_ERROR"


class EmptyRequestError(RequestError):
    """A request must carry at least one item."""

    code: str = "EMPTY_REQUEST"

    def __init__(self, requester: str):
        self.requester = requester
        super().__init__(f"Request for {requester} has no items")


class RequestNotFoundError(RequestError):
    """Request with given id was not found."""

    code: str = "REQUEST_NOT_FOUND"

    def __init__(self, request_id: UUID):
        self.request_id = request_id
        super().__init__(f"Request not found: {request_id}")


class RequestAlreadyExistsError(RequestError):
    """A request with this id or request number is already in the catalog."""

    code: str = "REQUEST_ALREADY_EXISTS"

    def __init__(self, request_id: UUID, request_number: str):
        self.request_id = request_id
        self.request_number = request_number
        super().__init__(
            f"Request {request_number} ({request_id}) already exists"
        )


# Immutability-related exceptions


class ImmutabilityError(LoanKernelError):
    """Base exception for immutability violations."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Stored return records and their entries are append-only.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
