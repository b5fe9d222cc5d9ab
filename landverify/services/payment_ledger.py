"""Payment ledger rules: fee table and status derivation.

Amounts are ``Decimal`` throughout and carry at most two decimal places.
"""
from decimal import Decimal
from typing import Iterable, Optional

from landverify.core.constants import (
    BASE_VERIFICATION_FEE, URGENCY_SURCHARGES, Urgency, PaymentStatus,
)
from landverify.core.exceptions import InvalidAmountError, InvalidStateError

ZERO = Decimal("0")
CENT = Decimal("0.01")

# Statuses set explicitly by an operator; never recomputed from history.
EXPLICIT_STATUSES = (PaymentStatus.REFUNDED, PaymentStatus.WAIVED)


def to_money(value) -> Optional[Decimal]:
    if value is None or isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def calculate_total_amount(urgency: Urgency) -> Decimal:
    return Decimal(BASE_VERIFICATION_FEE + URGENCY_SURCHARGES[urgency])


def total_paid(amounts: Iterable[Decimal]) -> Decimal:
    return sum((to_money(a) for a in amounts), ZERO)


def derive_payment_status(
    total_amount: Decimal,
    amounts: Iterable[Decimal],
    current: Optional[PaymentStatus] = None,
) -> PaymentStatus:
    if current in EXPLICIT_STATUSES:
        return current
    paid = total_paid(amounts)
    if paid >= to_money(total_amount):
        return PaymentStatus.PAID
    if paid > 0:
        return PaymentStatus.PARTIAL
    return PaymentStatus.PENDING


def _validate_amount(amount) -> None:
    amount = to_money(amount)
    if amount is None or not amount.is_finite() or amount <= 0:
        raise InvalidAmountError(amount=amount)
    if amount != amount.quantize(CENT):
        raise InvalidAmountError("Amount cannot have more than two decimal places", amount=amount)


def validate_payment(amount: Decimal, current: PaymentStatus) -> None:
    _validate_amount(amount)
    if current in EXPLICIT_STATUSES:
        raise InvalidStateError(
            f"Cannot record a payment on a {current.value} ledger",
            details={"payment_status": current.value},
        )


def validate_refund(amount: Decimal, current: PaymentStatus, amount_paid: Decimal) -> None:
    if current != PaymentStatus.PAID:
        raise InvalidStateError(
            "Only a fully paid ledger can be refunded",
            details={"payment_status": current.value},
        )
    _validate_amount(amount)
    if to_money(amount) > to_money(amount_paid):
        raise InvalidAmountError("Refund exceeds the amount paid", amount=amount)


def validate_waiver(current: PaymentStatus) -> None:
    if current in (PaymentStatus.PAID, PaymentStatus.REFUNDED, PaymentStatus.WAIVED):
        raise InvalidStateError(
            f"Cannot waive a {current.value} ledger",
            details={"payment_status": current.value},
        )
