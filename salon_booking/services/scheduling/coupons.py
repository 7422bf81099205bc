"""Coupon catalog and discount calculation.

The catalog is reached only through ``CouponRepository``; callers receive
immutable ``CouponRecord`` values, never ORM rows.
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ...models import Coupon
from .errors import ConflictError, InvalidCouponError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

COUPON_TYPES = ("percentage", "fixed")
CENT = Decimal("0.01")


def to_money(value: Any) -> Decimal:
    try:
        return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"'{value}' is not a valid amount")


def normalize_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()


@dataclass(frozen=True)
class CouponRecord:
    code: str
    type: str
    value: Decimal
    min_amount: Decimal
    expiry_date: date
    description: str
    customer_id: Optional[int] = None

    @property
    def is_public(self) -> bool:
        return self.customer_id is None

    def is_expired(self, today: date) -> bool:
        return self.expiry_date < today

    def to_dict(self, today: Optional[date] = None) -> Dict[str, Any]:
        data = {
            "code": self.code,
            "type": self.type,
            "value": float(self.value),
            "min_amount": float(self.min_amount),
            "expiry_date": self.expiry_date.isoformat(),
            "description": self.description,
            "customer_id": self.customer_id,
        }
        if today is not None:
            data["is_expired"] = self.is_expired(today)
        return data


@dataclass(frozen=True)
class CouponResult:
    code: str
    discount: Decimal
    final_amount: Decimal
    description: str

    @property
    def message(self) -> str:
        return f"Coupon '{self.code}' applied successfully! Discount: {self.discount:,.0f}"


def _record(row: Coupon) -> CouponRecord:
    return CouponRecord(
        code=row.code,
        type=row.type,
        value=Decimal(row.value),
        min_amount=Decimal(row.min_amount),
        expiry_date=row.expiry_date,
        description=row.description,
        customer_id=row.customer_id,
    )


class CouponRepository:
    """Table-backed coupon catalog keyed by normalized code."""

    def __init__(self, session: Session):
        self.session = session

    def _row(self, code: str) -> Optional[Coupon]:
        return self.session.scalar(select(Coupon).where(Coupon.code == normalize_code(code)))

    def get(self, code: str) -> Optional[CouponRecord]:
        row = self._row(code)
        return _record(row) if row is not None else None

    def list_all(self, including_expired: bool, today: date) -> List[CouponRecord]:
        stmt = select(Coupon).order_by(Coupon.code)
        if not including_expired:
            stmt = stmt.where(Coupon.expiry_date >= today)
        return [_record(row) for row in self.session.scalars(stmt)]

    def create(self, record: CouponRecord) -> CouponRecord:
        if self._row(record.code) is not None:
            raise ConflictError(
                "Coupon code already exists", error="Duplicate coupon", code=record.code
            )
        row = Coupon(
            code=normalize_code(record.code),
            type=record.type,
            value=record.value,
            min_amount=record.min_amount,
            expiry_date=record.expiry_date,
            description=record.description,
            customer_id=record.customer_id,
        )
        self.session.add(row)
        self.session.flush()
        return _record(row)

    def update(self, code: str, changes: Dict[str, Any]) -> CouponRecord:
        row = self._row(code)
        if row is None:
            raise NotFoundError("Coupon not found", code=normalize_code(code))
        for field in ("type", "value", "min_amount", "expiry_date", "description", "customer_id"):
            if field in changes:
                setattr(row, field, changes[field])
        self.session.flush()
        return _record(row)

    def delete(self, code: str) -> None:
        row = self._row(code)
        if row is None:
            raise NotFoundError("Coupon not found", code=normalize_code(code))
        self.session.delete(row)
        self.session.flush()


class CouponEngine:
    def __init__(self, repository: CouponRepository, today: Callable[[], date] = date.today):
        self.repository = repository
        self.today = today

    @staticmethod
    def compute_discount(coupon: CouponRecord, total_amount: Decimal) -> Decimal:
        if coupon.type == "percentage":
            discount = total_amount * coupon.value / Decimal(100)
        else:
            discount = coupon.value
        discount = min(max(discount, Decimal("0")), total_amount)
        return discount.quantize(CENT, rounding=ROUND_HALF_UP)

    def validate(self, code: str, total_amount, client_id: Optional[int]) -> CouponResult:
        total = to_money(total_amount)
        normalized = normalize_code(code)
        if not normalized:
            raise InvalidCouponError("Coupon code is required")

        coupon = self.repository.get(normalized)
        if coupon is None:
            raise InvalidCouponError("Invalid coupon code", code=normalized)

        if not coupon.is_public and coupon.customer_id != client_id:
            raise InvalidCouponError(
                "This coupon is not available for your account", code=normalized
            )

        if coupon.is_expired(self.today()):
            raise InvalidCouponError(
                "Coupon has expired",
                code=normalized,
                expiry_date=coupon.expiry_date.isoformat(),
            )

        if total < coupon.min_amount:
            raise InvalidCouponError(
                f"Minimum order amount is {coupon.min_amount:,.0f}",
                code=normalized,
                min_amount=float(coupon.min_amount),
                total_amount=float(total),
            )

        discount = self.compute_discount(coupon, total)
        final_amount = max(total - discount, Decimal("0"))
        logger.info("Coupon %s applied: discount %s on %s", normalized, discount, total)
        return CouponResult(
            code=normalized,
            discount=discount,
            final_amount=final_amount,
            description=coupon.description,
        )

    # --- catalog administration --------------------------------------------

    def build_record(self, data: Dict[str, Any], existing: Optional[CouponRecord] = None) -> CouponRecord:
        """Validate admin input into a record; ``existing`` supplies defaults for updates."""
        errors = {}

        code = normalize_code(data.get("code") if existing is None else existing.code)
        if not code:
            errors["code"] = "Coupon code is required"
        elif len(code) > 50:
            errors["code"] = "Coupon code must be at most 50 characters"

        type_ = data.get("type", existing.type if existing else None)
        if type_ not in COUPON_TYPES:
            errors["type"] = "Type must be one of: percentage, fixed"

        value = data.get("value", existing.value if existing else None)
        min_amount = data.get("min_amount")
        if min_amount is None:
            min_amount = existing.min_amount if existing else 0
        try:
            value = to_money(value)
            if value < 0:
                errors["value"] = "Value must be zero or more"
            elif type_ == "percentage" and value > 100:
                errors["value"] = "Percentage value cannot exceed 100"
        except ValidationError:
            errors["value"] = "Value must be a number"
        try:
            min_amount = to_money(min_amount)
            if min_amount < 0:
                errors["min_amount"] = "Minimum amount must be zero or more"
        except ValidationError:
            errors["min_amount"] = "Minimum amount must be a number"

        expiry = data.get("expiry_date", existing.expiry_date if existing else None)
        if isinstance(expiry, str):
            try:
                expiry = date.fromisoformat(expiry)
            except ValueError:
                expiry = None
        if not isinstance(expiry, date):
            errors["expiry_date"] = "Expiry date must be YYYY-MM-DD"
        elif existing is None and expiry <= self.today():
            errors["expiry_date"] = "Expiry date must be after today"

        description = data.get("description", existing.description if existing else None)
        if not description or not str(description).strip():
            errors["description"] = "Description is required"
        elif len(str(description)) > 255:
            errors["description"] = "Description must be at most 255 characters"

        customer_id = data.get("customer_id", existing.customer_id if existing else None)
        if customer_id is not None:
            try:
                customer_id = int(customer_id)
            except (TypeError, ValueError):
                errors["customer_id"] = "customer_id must be an integer"

        if errors:
            raise ValidationError("Invalid coupon data", errors=errors)

        return CouponRecord(
            code=code,
            type=type_,
            value=value,
            min_amount=min_amount,
            expiry_date=expiry,
            description=str(description).strip(),
            customer_id=customer_id,
        )

    def create(self, data: Dict[str, Any]) -> CouponRecord:
        return self.repository.create(self.build_record(data))

    def update(self, code: str, data: Dict[str, Any]) -> CouponRecord:
        existing = self.repository.get(code)
        if existing is None:
            raise NotFoundError("Coupon not found", code=normalize_code(code))
        record = self.build_record(data, existing)
        return self.repository.update(
            code,
            {
                "type": record.type,
                "value": record.value,
                "min_amount": record.min_amount,
                "expiry_date": record.expiry_date,
                "description": record.description,
                "customer_id": record.customer_id,
            },
        )

    def delete(self, code: str) -> None:
        self.repository.delete(code)

    def list_available(self) -> List[CouponRecord]:
        return self.repository.list_all(including_expired=False, today=self.today())

    def list_all(self) -> List[CouponRecord]:
        return self.repository.list_all(including_expired=True, today=self.today())
