"""Core enumerations for the CartPilot worker orchestration core."""
from enum import Enum


class SessionStatus(str, Enum):
    """
    Coordinator session lifecycle states.

    State flow:
        INITIALIZING → AUTHENTICATING → LOADING_CART → GENERATING_REVIEW → REVIEW_READY → COMPLETED
             CANCELLED (from any non-terminal state)
    """

    INITIALIZING = "initializing"
    AUTHENTICATING = "authenticating"
    LOADING_CART = "loading_cart"
    GENERATING_REVIEW = "generating_review"
    REVIEW_READY = "review_ready"
    CANCELLED = "cancelled"
    COMPLETED = "completed"

    def __str__(self) -> str:
        """Return string representation of the enum value."""
        return self.value


class ErrorSeverity(str, Enum):
    """
    Severity of a coordinator error.

    - INFO: Informational, does not affect the run
    - WARNING: May affect results but the session continues
    - ERROR: Significant issue, recovery was attempted
    - FATAL: Session cannot continue
    """

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    FATAL = "fatal"

    def __str__(self) -> str:
        """Return string representation of the enum value."""
        return self.value


class ErrorSource(str, Enum):
    """Phase or worker that produced a coordinator error."""

    COORDINATOR = "coordinator"
    CART_BUILDER = "cart_builder"
    SUBSTITUTION = "substitution"
    STOCK_PRUNER = "stock_pruner"
    SLOT_SCOUT = "slot_scout"
    LOGIN = "login"

    def __str__(self) -> str:
        """Return string representation of the enum value."""
        return self.value


class WorkerTaskState(str, Enum):
    """
    Final state of a worker task.

    BLOCKED means the task never ran because an earlier task failed.
    """

    SUCCESS = "success"
    FAILED = "failed"
    BLOCKED = "blocked"

    def __str__(self) -> str:
        """Return string representation of the enum value."""
        return self.value


class ExecutionStrategy(str, Enum):
    """
    Scheduling strategy for a set of worker tasks.

    - SEQUENTIAL: One at a time, in priority order
    - PARALLEL: All tasks at once, no concurrency cap
    - PARALLEL_LIMITED: Fixed-size batches of max_concurrency tasks
    """

    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"
    PARALLEL_LIMITED = "parallel-limited"

    def __str__(self) -> str:
        """Return string representation of the enum value."""
        return self.value


class RetryPolicy(str, Enum):
    """
    Retry backoff policies for failed worker attempts.

    - IMMEDIATE: Retry without delay
    - FIXED: Retry with fixed delay
    - EXPONENTIAL: Retry with exponentially increasing delay
    - JITTER: Retry with exponential delay plus random jitter
    """

    IMMEDIATE = "immediate"
    FIXED = "fixed"
    EXPONENTIAL = "exponential"
    JITTER = "jitter"

    def __str__(self) -> str:
        """Return string representation of the enum value."""
        return self.value


class CartWarningType(str, Enum):
    """Warning types reported by the cart builder worker."""

    ITEM_UNAVAILABLE = "item_unavailable"
    PRICE_CHANGED = "price_changed"
    QUANTITY_ADJUSTED = "quantity_adjusted"
    ORDER_LOAD_PARTIAL = "order_load_partial"
    REORDER_FAILED = "reorder_failed"

    def __str__(self) -> str:
        """Return string representation of the enum value."""
        return self.value


class ReviewWarningType(str, Enum):
    """Warning taxonomy shown in the Review Pack."""

    OUT_OF_STOCK = "out_of_stock"
    PRICE_CHANGE = "price_change"
    DATA_QUALITY = "data_quality"
    MISSING_ITEM = "missing_item"
    PARTIAL_ORDER_LOAD = "partial_order_load"

    def __str__(self) -> str:
        """Return string representation of the enum value."""
        return self.value


class UserActionType(str, Enum):
    """Actions a reviewer can take on a Review Pack."""

    REVIEW_ITEM = "review_item"
    APPROVE_CART = "approve_cart"
    REJECT_CART = "reject_cart"
    REMOVE_ITEM = "remove_item"
    MODIFY_QUANTITY = "modify_quantity"
    REQUEST_SUBSTITUTION = "request_substitution"

    def __str__(self) -> str:
        """Return string representation of the enum value."""
        return self.value


class MergeStrategy(str, Enum):
    """How the cart builder combines past orders into the cart."""

    LATEST = "latest"
    COMBINED = "combined"
    MOST_FREQUENT = "most_frequent"

    def __str__(self) -> str:
        """Return string representation of the enum value."""
        return self.value
