"""Time-of-day pricing resolution.

Classifies an instant into a time window and picks the pricing rule that
applies to a menu item in that window. Everything here is a pure function of
its arguments: no I/O, no caching, safe to call once per item per request or
inside sort keys.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from campus_storefront.models.menu_models import MenuItem, PricingRule, TimeWindow


def classify_time_window(instant: datetime | int) -> TimeWindow:
    """Classify a wall-clock instant into a time window.

    Lower bounds are inclusive: 6 is morning, 12 afternoon, 18 evening and
    22 night. Hours 23 and 0-5 are night.

    Args:
        instant: A datetime, or an hour of day in [0, 23]

    Returns:
        TimeWindow: The window the hour falls in
    """
    hour = instant if isinstance(instant, int) else instant.hour

    if 6 <= hour < 12:
        return TimeWindow.MORNING
    if 12 <= hour < 18:
        return TimeWindow.AFTERNOON
    if 18 <= hour < 22:
        return TimeWindow.EVENING
    return TimeWindow.NIGHT


def find_pricing_rule(
    menu_item_id: str, all_rules: Iterable[PricingRule], window: TimeWindow
) -> PricingRule | None:
    """Return the first rule for the item in the given window.

    Duplicate (menu_item_id, time_of_day) rules are a data-integrity problem
    upstream; the first one in input order wins.
    """
    for rule in all_rules:
        if rule.menu_item_id == menu_item_id and rule.time_of_day == window:
            return rule
    return None


def apply_pricing_rule(base_price: Decimal, rule: PricingRule | None) -> Decimal:
    """Compute the price a rule yields for a base price."""
    if rule is None:
        return base_price
    if rule.fixed_price is not None:
        return rule.fixed_price
    return base_price * rule.price_multiplier


def resolve_price(
    base_price: Decimal,
    menu_item_id: str,
    all_rules: Iterable[PricingRule],
    instant: datetime | int,
) -> Decimal:
    """Compute the effective price of a menu item at an instant.

    Args:
        base_price: Non-negative catalog price
        menu_item_id: Item to price
        all_rules: Pricing rules for all items, in fetch order
        instant: Reference instant, normally now

    Returns:
        Decimal: ``fixed_price`` of the matching rule if set, otherwise
        ``base_price * price_multiplier``, or ``base_price`` when no rule
        matches
    """
    window = classify_time_window(instant)
    rule = find_pricing_rule(menu_item_id, all_rules, window)
    return apply_pricing_rule(base_price, rule)


@dataclass
class PricedMenuItem:
    """A menu item together with its effective price for one time window.

    Attributes:
        item: The catalog item
        effective_price: Price after applying the matching rule
        time_window: Window the price was resolved for
        rule_id: Identifier of the applied rule, None if the base price applies
    """

    item: MenuItem
    effective_price: Decimal
    time_window: TimeWindow
    rule_id: str | None = None

    @property
    def base_price(self) -> Decimal:
        return self.item.base_price

    @property
    def has_discount(self) -> bool:
        return self.effective_price != self.item.base_price

    @property
    def savings(self) -> Decimal:
        """Base price minus effective price; negative when a rule raises the price."""
        return self.item.base_price - self.effective_price


def price_menu_item(
    item: MenuItem, all_rules: Iterable[PricingRule], instant: datetime | int
) -> PricedMenuItem:
    """Resolve the effective price of a catalog item, keeping the applied rule id."""
    window = classify_time_window(instant)
    rule = find_pricing_rule(item.id, all_rules, window)
    return PricedMenuItem(
        item=item,
        effective_price=apply_pricing_rule(item.base_price, rule),
        time_window=window,
        rule_id=rule.id if rule else None,
    )
