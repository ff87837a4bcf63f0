"""Pydantic schemas for the Review Pack."""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field
from cartpilot.core.enums import ReviewWarningType, UserActionType
from cartpilot.schemas.cart import CartDiffSummary
from cartpilot.schemas.workers import (
    AvailabilityResult,
    DaySlotGroup,
    RankedSlot,
    RecommendedPrune,
    SlotScoutSummary,
    SubstitutionResult,
    SubstitutionSummary,
    UncertainItem,
)


class ReviewCartItem(BaseModel):
    """Cart item as shown to the reviewer."""

    name: str
    quantity: int = Field(..., gt=0)
    unit_price: float = Field(..., ge=0)
    total_price: float = Field(..., ge=0)
    image_url: Optional[str] = None
    available: bool = True


class ReviewDiffItem(BaseModel):
    """Added or removed item with the orders it came from."""

    name: str
    quantity: int = Field(..., gt=0)
    unit_price: float = Field(..., ge=0)
    source_orders: List[str] = Field(default_factory=list)


class ReviewQuantityChange(BaseModel):
    """Item whose quantity changed."""

    name: str
    previous_quantity: int = Field(..., ge=0)
    new_quantity: int = Field(..., gt=0)
    unit_price: float = Field(..., ge=0)
    reason: Optional[str] = None


class ReviewCartDiff(BaseModel):
    """Cart diff for display."""

    added: List[ReviewDiffItem] = Field(default_factory=list)
    removed: List[ReviewDiffItem] = Field(default_factory=list)
    quantity_changed: List[ReviewQuantityChange] = Field(default_factory=list)
    summary: CartDiffSummary = Field(default_factory=CartDiffSummary)


class ReviewWarning(BaseModel):
    """Warning shown to the reviewer."""

    type: ReviewWarningType
    message: str
    severity: str = Field(default="warning", pattern="^(info|warning|error)$")
    item_name: Optional[str] = None
    order_id: Optional[str] = None


class UserAction(BaseModel):
    """Action the reviewer can take."""

    id: str
    type: UserActionType
    description: str
    target_item: Optional[str] = None
    enabled: bool = True


class ReviewConfidence(BaseModel):
    """Confidence scores for the prepared cart."""

    cart_accuracy: float = Field(..., ge=0, le=1)
    data_quality: float = Field(..., ge=0, le=1)
    source_orders: List[str] = Field(default_factory=list)


class CartSummary(BaseModel):
    """Item count and total of the prepared cart."""

    item_count: int = Field(..., ge=0)
    total_price: float = Field(..., ge=0)
    currency: str = "EUR"


class ReviewCart(BaseModel):
    """Cart section of the Review Pack."""

    summary: CartSummary
    diff: ReviewCartDiff
    before: List[ReviewCartItem] = Field(default_factory=list)
    after: List[ReviewCartItem] = Field(default_factory=list)


class SubstitutionsSection(BaseModel):
    """Availability and substitute suggestions."""

    availability_results: List[AvailabilityResult] = Field(default_factory=list)
    substitution_results: List[SubstitutionResult] = Field(default_factory=list)
    summary: SubstitutionSummary


class PruningSummary(BaseModel):
    """Counts shown in the pruning section."""

    total_items: int = Field(default=0, ge=0)
    suggested_for_pruning: int = Field(default=0, ge=0)
    keep_in_cart: int = Field(default=0, ge=0)


class PruningSection(BaseModel):
    """Stock pruning recommendations."""

    recommended_removals: List[RecommendedPrune] = Field(default_factory=list)
    uncertain_items: List[UncertainItem] = Field(default_factory=list)
    summary: PruningSummary
    overall_confidence: float = Field(..., ge=0, le=1)


class SlotsSection(BaseModel):
    """Delivery slot options."""

    slots_by_day: List[DaySlotGroup] = Field(default_factory=list)
    ranked_slots: List[RankedSlot] = Field(default_factory=list)
    summary: SlotScoutSummary
    minimum_order: Optional[float] = Field(default=None, ge=0)


class ReviewPack(BaseModel):
    """
    Deliverable of a coordinator session.

    Built once and never modified afterwards. Optional sections are
    None when the matching worker did not run or did not succeed.
    """

    model_config = ConfigDict(frozen=True)

    session_id: str
    generated_at: datetime
    household_id: str
    cart: ReviewCart
    warnings: List[ReviewWarning] = Field(default_factory=list)
    actions: List[UserAction] = Field(default_factory=list)
    confidence: ReviewConfidence
    substitutions: Optional[SubstitutionsSection] = None
    pruning: Optional[PruningSection] = None
    slots: Optional[SlotsSection] = None
