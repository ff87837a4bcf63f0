"""Pydantic schemas for the cart builder worker report."""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field
from cartpilot.core.enums import CartWarningType


class CartItem(BaseModel):
    """Item in a cart snapshot."""

    product_id: Optional[str] = None
    name: str = Field(..., min_length=1)
    product_url: Optional[str] = None
    quantity: int = Field(..., gt=0)
    unit_price: float = Field(..., ge=0)
    available: bool = True
    availability_note: Optional[str] = None


class CartSnapshot(BaseModel):
    """State of the cart at a point in time."""

    timestamp: datetime
    items: List[CartItem] = Field(default_factory=list)
    item_count: int = Field(..., ge=0)
    total_price: float = Field(..., ge=0)


class CartDiffItem(BaseModel):
    """Item added, removed or unchanged between two snapshots."""

    name: str
    quantity: int = Field(..., gt=0)
    unit_price: float = Field(..., ge=0)
    source_orders: List[str] = Field(default_factory=list)


class CartDiffQuantityChange(BaseModel):
    """Item whose quantity changed between two snapshots."""

    name: str
    previous_quantity: int = Field(..., ge=0)
    new_quantity: int = Field(..., gt=0)
    unit_price: float = Field(..., ge=0)
    reason: Optional[str] = None


class CartDiffSummary(BaseModel):
    """Counts and price totals of a cart diff."""

    added_count: int = Field(default=0, ge=0)
    removed_count: int = Field(default=0, ge=0)
    changed_count: int = Field(default=0, ge=0)
    unchanged_count: int = Field(default=0, ge=0)
    total_items: int = Field(default=0, ge=0)
    price_difference: float = 0.0
    new_total_price: float = Field(default=0.0, ge=0)


class CartDiff(BaseModel):
    """Changes the cart builder made to the cart."""

    added: List[CartDiffItem] = Field(default_factory=list)
    removed: List[CartDiffItem] = Field(default_factory=list)
    quantity_changed: List[CartDiffQuantityChange] = Field(default_factory=list)
    unchanged: List[CartDiffItem] = Field(default_factory=list)
    summary: CartDiffSummary = Field(default_factory=CartDiffSummary)


class CartBuilderWarning(BaseModel):
    """Typed warning reported by the cart builder."""

    type: CartWarningType
    message: str
    item_name: Optional[str] = None
    order_id: Optional[str] = None


class CartBeforeAfter(BaseModel):
    """Cart snapshots taken before and after the cart builder ran."""

    before: CartSnapshot
    after: CartSnapshot


class CartDiffReport(BaseModel):
    """Structured output of the cart builder worker."""

    model_config = ConfigDict(extra="ignore")

    timestamp: datetime
    session_id: str
    orders_analyzed: List[str] = Field(default_factory=list)
    cart: CartBeforeAfter
    diff: CartDiff = Field(default_factory=CartDiff)
    confidence: float = Field(..., ge=0, le=1)
    warnings: List[CartBuilderWarning] = Field(default_factory=list)
    screenshots: List[str] = Field(default_factory=list)
