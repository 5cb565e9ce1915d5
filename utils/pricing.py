"""
Pricing Engine

Pure functions that price a meal plan: the base plan (per-meal rate with a
duration discount), add-ons (once or daily, with the kefir duration
discount) and the delivery fee. Nothing here touches the database.

All money is in whole currency units. Intermediate values are Decimals and
are rounded half away from zero, so 0.5 always rounds up for the positive
amounts handled here.
"""

from collections import namedtuple
from decimal import Decimal, ROUND_HALF_UP

# Add-ons whose display name contains this text (any case) get the kefir
# duration discount. The rule is name based: there is no catalog flag for it.
KEFIR_NAME_MARKER = 'kefir'

# (minimum days, discount percent), checked from the longest plan down.
MEAL_DISCOUNT_TIERS = (
    (19, Decimal('7')),
    (13, Decimal('5')),
    (7, Decimal('3')),
)

KEFIR_DISCOUNT_TIERS = (
    (19, Decimal('27.5')),
    (13, Decimal('20')),
    (7, Decimal('10')),
)

DELIVERY_FEE_PER_DAY = 50
# Plans longer than this pay the flat fee instead of the per-day fee.
DELIVERY_PER_DAY_MAX_DAYS = 5
DELIVERY_FLAT_FEE = 300

FREQUENCY_ONCE = 'once'
FREQUENCY_DAILY = 'daily'
FREQUENCIES = (FREQUENCY_ONCE, FREQUENCY_DAILY)

AddOnSelection = namedtuple('AddOnSelection', ['quantity', 'frequency'])

PriceBreakdown = namedtuple('PriceBreakdown', ['base_plan_price', 'addon_total', 'delivery_fee', 'grand_total'])


def round_currency(amount):
    """Round a Decimal (or int) to a whole currency unit, half away from zero."""
    return int(Decimal(amount).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def _tiered_percentage(days, tiers):
    for min_days, percent in tiers:
        if days >= min_days:
            return percent
    return Decimal('0')


def meal_discount_percentage(days):
    """Duration discount on the base plan: 0% up to 6 days, then 3%, 5% and 7% from 7, 13 and 19 days."""
    return _tiered_percentage(days, MEAL_DISCOUNT_TIERS)


def kefir_discount_percentage(days):
    """Duration discount for kefir add-ons: 0% up to 6 days, then 10%, 20% and 27.5%."""
    return _tiered_percentage(days, KEFIR_DISCOUNT_TIERS)


def is_kefir_addon(name):
    """True when the add-on name contains the kefir marker, ignoring case."""
    return KEFIR_NAME_MARKER in (name or '').lower()


def _apply_discount(amount, percent):
    return Decimal(amount) * (Decimal('100') - percent) / Decimal('100')


def compute_base_plan_price(unit_price, days, meals_per_day):
    """
    Price of the meals themselves.

    Args:
        unit_price (int): Price of one meal of the chosen menu item.
        days (int): Plan length in days.
        meals_per_day (int): 1 or 2.

    Returns:
        int: unit_price * days * meals_per_day less the duration discount, rounded.
    """
    gross = Decimal(unit_price) * days * meals_per_day
    return round_currency(_apply_discount(gross, meal_discount_percentage(days)))


def addon_unit_price(addon, days):
    """Per-unit price of an add-on for a plan of `days`, after the kefir discount if it applies."""
    price = Decimal(addon.price)
    if is_kefir_addon(addon.name):
        return _apply_discount(price, kefir_discount_percentage(days))
    return price


def compute_addon_total(selections, addon_catalog, days):
    """
    Total for the selected add-ons.

    Args:
        selections (dict): add-on id -> AddOnSelection(quantity, frequency).
        addon_catalog (dict): add-on id -> object with `name` and `price`.
            Keys are compared as strings so JSON ids and integer primary keys match.
        days (int): Plan length, used for daily add-ons and the kefir discount.

    Returns:
        int: Sum of the rounded line totals. Zero-quantity lines and ids missing
             from the catalog are skipped.
    """
    catalog = {str(key): addon for key, addon in (addon_catalog or {}).items()}
    total = 0
    for addon_id, selection in (selections or {}).items():
        if selection.quantity <= 0:
            continue
        addon = catalog.get(str(addon_id))
        if addon is None:
            continue
        line = addon_unit_price(addon, days) * selection.quantity
        if selection.frequency == FREQUENCY_DAILY:
            line = line * days
        total += round_currency(line)
    return total


def compute_delivery_fee(days):
    """50 per day for plans of up to 5 days, then a flat 300 however long the plan is."""
    if days <= DELIVERY_PER_DAY_MAX_DAYS:
        return DELIVERY_FEE_PER_DAY * days
    return DELIVERY_FLAT_FEE


def compute_price_breakdown(unit_price, days, meals_per_day, selections=None, addon_catalog=None):
    """Base plan, add-ons, delivery and the grand total for one plan."""
    base_plan_price = compute_base_plan_price(unit_price, days, meals_per_day)
    addon_total = compute_addon_total(selections, addon_catalog, days)
    delivery_fee = compute_delivery_fee(days)
    return PriceBreakdown(
        base_plan_price=base_plan_price,
        addon_total=addon_total,
        delivery_fee=delivery_fee,
        grand_total=base_plan_price + addon_total + delivery_fee,
    )
