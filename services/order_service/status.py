"""
Order and payment status state machines.

Every member of each enum has an explicit entry in its transition table;
anything not listed is rejected with InvalidTransitionError. Nothing in
this module changes state on its own: callers ask for a transition and
apply the result.
"""
import enum

from shared.errors import InvalidTransitionError


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


ORDER_TRANSITIONS = {
    OrderStatus.PENDING: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED, OrderStatus.REFUNDED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.REFUNDED}),
    OrderStatus.DELIVERED: frozenset({OrderStatus.REFUNDED}),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.REFUNDED: frozenset(),
}

PAYMENT_TRANSITIONS = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.PAID, PaymentStatus.FAILED}),
    # A failed attempt can be retried on the same intent
    PaymentStatus.FAILED: frozenset({PaymentStatus.PAID}),
    PaymentStatus.PAID: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.REFUNDED: frozenset(),
}


def can_transition_order(current: OrderStatus, target: OrderStatus, payment_status: PaymentStatus) -> bool:
    if target not in ORDER_TRANSITIONS[current]:
        return False
    # Refunded is only reachable from a paid order
    if target is OrderStatus.REFUNDED:
        return payment_status is PaymentStatus.PAID
    return True


def can_transition_payment(current: PaymentStatus, target: PaymentStatus) -> bool:
    return target in PAYMENT_TRANSITIONS[current]


def order_transition(current: OrderStatus, target: OrderStatus, payment_status: PaymentStatus) -> OrderStatus:
    current, target, payment_status = OrderStatus(current), OrderStatus(target), PaymentStatus(payment_status)
    if not can_transition_order(current, target, payment_status):
        raise InvalidTransitionError(
            f"Cannot move order from {current.value} to {target.value}",
            current=current.value,
            target=target.value,
        )
    return target


def payment_transition(current: PaymentStatus, target: PaymentStatus) -> PaymentStatus:
    current, target = PaymentStatus(current), PaymentStatus(target)
    if not can_transition_payment(current, target):
        raise InvalidTransitionError(
            f"Cannot move payment from {current.value} to {target.value}",
            current=current.value,
            target=target.value,
        )
    return target


def status_after_payment(current: OrderStatus) -> OrderStatus:
    """Order status once payment is confirmed: Pending advances to Processing, anything later is kept."""
    current = OrderStatus(current)
    if current is OrderStatus.PENDING:
        return OrderStatus.PROCESSING
    return current
