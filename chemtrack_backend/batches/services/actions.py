# batches/services/actions.py

"""
BATCH ACTIONS (CLOSED SET)

Every create/update request carries at most one action. The wire tag is
parsed ONCE into exactly one variant; downstream code dispatches on the
variant type, never on strings.

    "none"              -> NoAction()
    "create_work_order" -> CreateWorkOrder(quantity)
    "submit_review"     -> SubmitReview(confirmation)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Union

from batches.services.exceptions import InvalidBatchActionError

TAG_NONE = "none"
TAG_CREATE_WORK_ORDER = "create_work_order"
TAG_SUBMIT_REVIEW = "submit_review"

ACTION_TAGS = (TAG_NONE, TAG_CREATE_WORK_ORDER, TAG_SUBMIT_REVIEW)


def parse_decimal(value, *, field_name: str) -> Decimal | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise InvalidBatchActionError(f"{field_name} must be a number")
    try:
        qty = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidBatchActionError(f"{field_name} must be a number")
    if not qty.is_finite():
        raise InvalidBatchActionError(f"{field_name} must be a finite number")
    return qty.quantize(Decimal("0.0001"))


def _to_text(value) -> str:
    return str(value).strip() if value is not None else ""


@dataclass(frozen=True)
class ConfirmedComponent:
    item_id: str
    lot_number: str
    planned_amount: Decimal | None = None
    actual_amount: Decimal | None = None
    unit: str = ""

    @property
    def consumed_amount(self) -> Decimal | None:
        return self.actual_amount if self.actual_amount is not None else self.planned_amount

    def as_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "lot_number": self.lot_number,
            "planned_amount": str(self.planned_amount) if self.planned_amount is not None else None,
            "actual_amount": str(self.actual_amount) if self.actual_amount is not None else None,
            "unit": self.unit,
        }

    @classmethod
    def from_dict(cls, raw) -> "ConfirmedComponent":
        if not isinstance(raw, dict):
            raise InvalidBatchActionError("Each confirmed component must be an object")

        item = raw.get("item_id", raw.get("item"))
        if isinstance(item, dict):
            item = item.get("id")

        return cls(
            item_id=_to_text(item),
            lot_number=_to_text(raw.get("lot_number")),
            planned_amount=parse_decimal(raw.get("planned_amount", raw.get("amount")), field_name="planned_amount"),
            actual_amount=parse_decimal(raw.get("actual_amount"), field_name="actual_amount"),
            unit=_to_text(raw.get("unit")),
        )


@dataclass(frozen=True)
class Confirmation:
    components: tuple[ConfirmedComponent, ...] = ()
    solution_lot_number: str = ""
    solution_quantity: Decimal | None = None
    solution_unit: str = ""

    @classmethod
    def from_dict(cls, raw) -> "Confirmation":
        if raw is None:
            return cls()
        if not isinstance(raw, dict):
            raise InvalidBatchActionError("confirmation must be an object")

        components = raw.get("components") or []
        if not isinstance(components, (list, tuple)):
            raise InvalidBatchActionError("confirmation.components must be a list")

        return cls(
            components=tuple(ConfirmedComponent.from_dict(c) for c in components),
            solution_lot_number=_to_text(raw.get("solution_lot_number")),
            solution_quantity=parse_decimal(raw.get("solution_quantity"), field_name="solution_quantity"),
            solution_unit=_to_text(raw.get("solution_unit")),
        )


@dataclass(frozen=True)
class NoAction:
    tag: str = field(default=TAG_NONE, init=False)


@dataclass(frozen=True)
class CreateWorkOrder:
    quantity: Decimal | None = None
    tag: str = field(default=TAG_CREATE_WORK_ORDER, init=False)


@dataclass(frozen=True)
class SubmitReview:
    confirmation: Confirmation
    tag: str = field(default=TAG_SUBMIT_REVIEW, init=False)


BatchAction = Union[NoAction, CreateWorkOrder, SubmitReview]


def parse_action(tag, payload: dict | None = None) -> BatchAction:
    """
    Map a wire tag (+ its payload) to exactly one action variant.

    payload keys:
    - create_work_order: "quantity" (optional; engine falls back to the recipe)
    - submit_review:     "confirmation" {components, solution_lot_number,
                         solution_quantity, solution_unit}
    """
    payload = payload or {}
    tag = _to_text(tag) or TAG_NONE

    if tag == TAG_NONE:
        return NoAction()

    if tag == TAG_CREATE_WORK_ORDER:
        quantity = parse_decimal(payload.get("quantity"), field_name="quantity")
        if quantity is not None and quantity <= 0:
            raise InvalidBatchActionError("quantity must be greater than zero")
        return CreateWorkOrder(quantity=quantity)

    if tag == TAG_SUBMIT_REVIEW:
        return SubmitReview(confirmation=Confirmation.from_dict(payload.get("confirmation")))

    raise InvalidBatchActionError(
        f"Unknown batch action '{tag}'. Expected one of: {', '.join(ACTION_TAGS)}"
    )
