"""Review Pack assembly from worker reports."""
from datetime import datetime, timezone
from typing import Dict, List, Optional
from cartpilot.core.enums import CartWarningType, ReviewWarningType, UserActionType
from cartpilot.schemas.cart import CartBuilderWarning, CartDiffReport, CartItem
from cartpilot.schemas.review import (
    CartSummary,
    PruningSection,
    PruningSummary,
    ReviewCart,
    ReviewCartDiff,
    ReviewCartItem,
    ReviewConfidence,
    ReviewDiffItem,
    ReviewPack,
    ReviewQuantityChange,
    ReviewWarning,
    SlotsSection,
    SubstitutionsSection,
    UserAction,
)
from cartpilot.schemas.workers import SlotScoutRecord, StockPrunerRecord, SubstitutionRecord

WARNING_TYPE_MAP: Dict[CartWarningType, ReviewWarningType] = {
    CartWarningType.ITEM_UNAVAILABLE: ReviewWarningType.OUT_OF_STOCK,
    CartWarningType.PRICE_CHANGED: ReviewWarningType.PRICE_CHANGE,
    CartWarningType.QUANTITY_ADJUSTED: ReviewWarningType.DATA_QUALITY,
    CartWarningType.ORDER_LOAD_PARTIAL: ReviewWarningType.PARTIAL_ORDER_LOAD,
    CartWarningType.REORDER_FAILED: ReviewWarningType.MISSING_ITEM,
}


def calculate_data_quality(warning_count: int) -> float:
    """Each warning costs 0.1, floored at 0.5."""
    return max(0.5, 1.0 - 0.1 * warning_count)


def create_default_actions() -> List[UserAction]:
    return [
        UserAction(
            id="approve",
            type=UserActionType.APPROVE_CART,
            description="Approve cart and proceed to checkout review",
        ),
        UserAction(
            id="reject",
            type=UserActionType.REJECT_CART,
            description="Reject cart and start over",
        ),
    ]


def _to_review_item(item: CartItem) -> ReviewCartItem:
    return ReviewCartItem(
        name=item.name,
        quantity=item.quantity,
        unit_price=item.unit_price,
        total_price=item.quantity * item.unit_price,
        available=item.available,
    )


def _to_review_warning(warning: CartBuilderWarning) -> ReviewWarning:
    return ReviewWarning(
        type=WARNING_TYPE_MAP[warning.type],
        message=warning.message,
        severity="warning",
        item_name=warning.item_name,
        order_id=warning.order_id,
    )


def _build_cart(report: CartDiffReport) -> ReviewCart:
    after = report.cart.after
    diff = report.diff
    return ReviewCart(
        summary=CartSummary(item_count=after.item_count, total_price=after.total_price),
        diff=ReviewCartDiff(
            added=[
                ReviewDiffItem(
                    name=item.name,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    source_orders=list(item.source_orders),
                )
                for item in diff.added
            ],
            removed=[
                ReviewDiffItem(
                    name=item.name,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    source_orders=list(item.source_orders),
                )
                for item in diff.removed
            ],
            quantity_changed=[
                ReviewQuantityChange(
                    name=change.name,
                    previous_quantity=change.previous_quantity,
                    new_quantity=change.new_quantity,
                    unit_price=change.unit_price,
                    reason=change.reason,
                )
                for change in diff.quantity_changed
            ],
            summary=diff.summary,
        ),
        before=[_to_review_item(item) for item in report.cart.before.items],
        after=[_to_review_item(item) for item in after.items],
    )


def _build_substitutions(record: Optional[SubstitutionRecord]) -> Optional[SubstitutionsSection]:
    if record is None or not record.success or record.report is None:
        return None
    if record.report.summary is None:
        return None
    return SubstitutionsSection(
        availability_results=record.report.availability_results,
        substitution_results=record.report.substitution_results,
        summary=record.report.summary,
    )


def _build_pruning(record: Optional[StockPrunerRecord]) -> Optional[PruningSection]:
    if record is None or not record.success or record.report is None:
        return None
    summary = record.report.summary
    if summary is None:
        return None
    return PruningSection(
        recommended_removals=record.report.recommended_removals,
        uncertain_items=record.report.uncertain_items,
        summary=PruningSummary(
            total_items=summary.total_items,
            suggested_for_pruning=summary.suggested_for_pruning,
            keep_in_cart=summary.keep_in_cart,
        ),
        overall_confidence=record.report.overall_confidence,
    )


def _build_slots(record: Optional[SlotScoutRecord]) -> Optional[SlotsSection]:
    if record is None or not record.success or record.report is None:
        return None
    if record.report.summary is None:
        return None
    return SlotsSection(
        slots_by_day=record.report.slots_by_day,
        ranked_slots=record.report.ranked_slots,
        summary=record.report.summary,
        minimum_order=record.report.minimum_order,
    )


def build_review_pack(
    session_id: str,
    household_id: str,
    report: CartDiffReport,
    substitution: Optional[SubstitutionRecord] = None,
    stock_pruner: Optional[StockPrunerRecord] = None,
    slot_scout: Optional[SlotScoutRecord] = None,
) -> ReviewPack:
    """
    Assemble the Review Pack for a session.

    Pure transform: reads the cart builder report and whichever optional
    worker records ran and succeeded with a summary. The other sections
    are left out entirely.

    Args:
        session_id: Session the pack belongs to
        household_id: Household the cart was prepared for
        report: Cart builder report
        substitution: Substitution worker record, if it ran
        stock_pruner: Stock pruner worker record, if it ran
        slot_scout: Slot scout worker record, if it ran

    Returns:
        ReviewPack: Immutable review pack
    """
    warnings = [_to_review_warning(w) for w in report.warnings]

    return ReviewPack(
        session_id=session_id,
        generated_at=datetime.now(timezone.utc),
        household_id=household_id,
        cart=_build_cart(report),
        warnings=warnings,
        actions=create_default_actions(),
        confidence=ReviewConfidence(
            cart_accuracy=report.confidence,
            data_quality=calculate_data_quality(len(report.warnings)),
            source_orders=list(report.orders_analyzed),
        ),
        substitutions=_build_substitutions(substitution),
        pruning=_build_pruning(stock_pruner),
        slots=_build_slots(slot_scout),
    )
