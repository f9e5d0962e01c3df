"""Custom metrics for the campus storefront."""

from decimal import Decimal

from opentelemetry import metrics

meter = metrics.get_meter("campus-storefront")

orders_placed_counter = meter.create_counter(
    name="storefront_orders_placed_total",
    description="Total number of orders placed by payment method",
    unit="1",
)

order_value_histogram = meter.create_histogram(
    name="storefront_order_value",
    description="Order totals by payment method",
    unit="INR",
)

checkout_failure_counter = meter.create_counter(
    name="storefront_checkout_failures_total",
    description="Total number of rejected or failed checkouts by reason",
    unit="1",
)

order_status_counter = meter.create_counter(
    name="storefront_order_status_changes_total",
    description="Order status transitions made from the admin dashboard",
    unit="1",
)

cart_additions_counter = meter.create_counter(
    name="storefront_cart_additions_total",
    description="Items added to carts by time window",
    unit="1",
)


def record_order_placed(payment_method: str, total: Decimal) -> None:
    """Record a successfully placed order.

    Args:
        payment_method: Payment method of the order ("cod" or "upi")
        total: Order total
    """
    orders_placed_counter.add(1, {"payment_method": payment_method})
    order_value_histogram.record(float(total), {"payment_method": payment_method})


def record_checkout_failure(reason: str) -> None:
    """Record a checkout that did not produce an order.

    Args:
        reason: Short failure category (e.g., "empty_cart", "order_insert")
    """
    checkout_failure_counter.add(1, {"reason": reason})


def record_order_status_change(status: str) -> None:
    """Record an order moved to a new status."""
    order_status_counter.add(1, {"status": status})


def record_cart_addition(time_window: str, discounted: bool) -> None:
    """Record an item added to a cart.

    Args:
        time_window: Time window the price was resolved in
        discounted: Whether a pricing rule changed the price
    """
    cart_additions_counter.add(1, {"time_window": time_window, "discounted": discounted})
