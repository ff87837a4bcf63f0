"""Pydantic schemas for worker reports stored in a coordinator session."""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field
from cartpilot.schemas.cart import CartDiffReport


class WorkerPayload(BaseModel):
    """Base for collaborator payloads: known fields typed, extra fields kept."""

    model_config = ConfigDict(extra="allow")


# Substitution

class AvailabilityResult(WorkerPayload):
    """Availability check for one cart item."""

    product_id: Optional[str] = None
    product_name: str
    status: str
    quantity_available: Optional[int] = Field(default=None, ge=0)
    checked_at: Optional[datetime] = None
    note: Optional[str] = None


class SubstitutionResult(WorkerPayload):
    """Substitute candidates found for an unavailable item."""

    original_product: Dict[str, Any] = Field(default_factory=dict)
    substitutes: List[Dict[str, Any]] = Field(default_factory=list)
    search_query: Optional[str] = None


class SubstitutionSummary(BaseModel):
    """Counts reported by the substitution worker."""

    total_items: int = Field(default=0, ge=0)
    available_items: int = Field(default=0, ge=0)
    unavailable_items: int = Field(default=0, ge=0)
    items_with_substitutes: int = Field(default=0, ge=0)
    items_without_substitutes: int = Field(default=0, ge=0)


class SubstitutionReport(WorkerPayload):
    """Structured output of the substitution worker."""

    availability_results: List[AvailabilityResult] = Field(default_factory=list)
    substitution_results: List[SubstitutionResult] = Field(default_factory=list)
    summary: Optional[SubstitutionSummary] = None


# Stock pruning

class RecommendedPrune(WorkerPayload):
    """Cart item the stock pruner suggests removing."""

    product_name: str
    reason: Optional[str] = None
    confidence: float = Field(default=0.0, ge=0, le=1)
    last_purchased_at: Optional[datetime] = None


class UncertainItem(WorkerPayload):
    """Cart item the stock pruner could not decide on."""

    product_name: str
    reason: Optional[str] = None
    confidence: float = Field(default=0.0, ge=0, le=1)
    last_purchased_at: Optional[datetime] = None


class StockPrunerSummary(BaseModel):
    """Counts reported by the stock pruner."""

    total_items: int = Field(default=0, ge=0)
    suggested_for_pruning: int = Field(default=0, ge=0)
    keep_in_cart: int = Field(default=0, ge=0)
    low_confidence_decisions: int = Field(default=0, ge=0)


class StockPrunerReport(WorkerPayload):
    """Structured output of the stock pruner worker."""

    recommended_removals: List[RecommendedPrune] = Field(default_factory=list)
    uncertain_items: List[UncertainItem] = Field(default_factory=list)
    summary: Optional[StockPrunerSummary] = None
    overall_confidence: float = Field(default=0.5, ge=0, le=1)


# Slot discovery

class DeliverySlot(WorkerPayload):
    """A delivery slot offered by the retailer."""

    slot_id: Optional[str] = None
    date: datetime
    start_time: str
    end_time: str
    status: str
    delivery_cost: Optional[float] = Field(default=None, ge=0)
    delivery_type: str = "standard"


class DaySlotGroup(WorkerPayload):
    """Delivery slots of one day."""

    date: datetime
    date_string: Optional[str] = None
    day_name: Optional[str] = None
    slots: List[DeliverySlot] = Field(default_factory=list)
    available_count: int = Field(default=0, ge=0)
    has_availability: bool = False


class RankedSlot(WorkerPayload):
    """Delivery slot ranked against household preferences."""

    slot: DeliverySlot
    rank: int = Field(..., gt=0)
    reason: Optional[str] = None
    score: Dict[str, float] = Field(default_factory=dict)


class SlotScoutSummary(BaseModel):
    """Counts reported by the slot scout."""

    days_checked: int = Field(default=0, ge=0)
    total_slots: int = Field(default=0, ge=0)
    available_slots: int = Field(default=0, ge=0)
    earliest_available: Optional[datetime] = None
    cheapest_delivery: Optional[float] = Field(default=None, ge=0)
    free_delivery_available: bool = False


class SlotScoutReport(WorkerPayload):
    """Structured output of the slot scout worker."""

    slots_by_day: List[DaySlotGroup] = Field(default_factory=list)
    ranked_slots: List[RankedSlot] = Field(default_factory=list)
    summary: Optional[SlotScoutSummary] = None
    minimum_order: Optional[float] = Field(default=None, ge=0)


# Session worker slots

class WorkerRunRecord(BaseModel):
    """Last execution of a worker kind, as stored in the session."""

    success: bool
    duration_ms: int = Field(default=0, ge=0)
    attempts: int = Field(default=0, ge=0)
    error_message: Optional[str] = None


class CartBuilderRecord(WorkerRunRecord):
    """Cart builder slot."""

    report: Optional[CartDiffReport] = None


class SubstitutionRecord(WorkerRunRecord):
    """Substitution slot."""

    report: Optional[SubstitutionReport] = None


class StockPrunerRecord(WorkerRunRecord):
    """Stock pruner slot."""

    report: Optional[StockPrunerReport] = None


class SlotScoutRecord(WorkerRunRecord):
    """Slot scout slot."""

    report: Optional[SlotScoutReport] = None


class WorkerSlots(BaseModel):
    """One slot per known worker kind, None until that worker runs."""

    cart_builder: Optional[CartBuilderRecord] = None
    substitution: Optional[SubstitutionRecord] = None
    stock_pruner: Optional[StockPrunerRecord] = None
    slot_scout: Optional[SlotScoutRecord] = None
