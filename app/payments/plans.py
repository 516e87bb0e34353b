"""
Plan catalog lookups.

The catalog lives in settings.STRIPE_PLANS and is read-only here: plan
management happens in the Stripe dashboard and the environment.

Usage:
    from payments.plans import get_plan

    plan = get_plan("premium")
    plan.price_id       # "price_..."
    plan.major_amount   # Decimal("599.00")
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal

from django.conf import settings

from payments.exceptions import InvalidPlanError, PaymentValidationError
from payments.state_machines import BillingCycle

BILLING_CYCLE_DAYS = {
    BillingCycle.MONTHLY: 30,
    BillingCycle.QUARTERLY: 90,
    BillingCycle.YEARLY: 365,
}


@dataclass(frozen=True)
class Plan:
    """One catalog entry. ``amount`` is in minor units."""

    plan_type: str
    name: str
    price_id: str
    amount: int
    currency: str
    interval: str = "month"
    features: dict = field(default_factory=dict)

    @property
    def major_amount(self) -> Decimal:
        return to_major_units(self.amount)


def to_major_units(minor: int) -> Decimal:
    """Convert an amount in minor units (cents) to a 2-place Decimal."""
    return (Decimal(int(minor)) / Decimal(100)).quantize(Decimal("0.01"))


def get_plan(plan_type: str) -> Plan:
    """
    Look up a plan by type.

    Raises:
        InvalidPlanError: If the plan is not in the catalog
    """
    config = settings.STRIPE_PLANS.get(plan_type)
    if config is None:
        raise InvalidPlanError(
            f"Unknown plan: {plan_type}",
            details={"plan_type": plan_type, "available": sorted(settings.STRIPE_PLANS)},
        )
    return Plan(
        plan_type=plan_type,
        name=config["name"],
        price_id=config.get("price_id", ""),
        amount=int(config["amount"]),
        currency=config.get("currency", settings.STRIPE_CURRENCY),
        interval=config.get("interval", "month"),
        features=dict(config.get("features", {})),
    )


def list_plans() -> list[Plan]:
    """All plans in catalog order."""
    return [get_plan(plan_type) for plan_type in settings.STRIPE_PLANS]


def validate_billing_cycle(billing_cycle: str) -> str:
    """
    Check a billing cycle value.

    Raises:
        PaymentValidationError: If the cycle is unknown
    """
    if billing_cycle not in BillingCycle.values:
        raise PaymentValidationError(
            f"Unknown billing cycle: {billing_cycle}",
            error_code="INVALID_BILLING_CYCLE",
            details={"billing_cycle": billing_cycle, "available": BillingCycle.values},
        )
    return billing_cycle


def billing_cycle_length(billing_cycle: str) -> timedelta:
    """Fallback period length when Stripe does not report a period end."""
    return timedelta(days=BILLING_CYCLE_DAYS.get(billing_cycle, 30))


def plan_display_name(plan_type: str | None) -> str:
    """Catalog name of a plan, or the raw type when it is not in the catalog."""
    if not plan_type:
        return ""
    try:
        return get_plan(plan_type).name
    except InvalidPlanError:
        return plan_type
