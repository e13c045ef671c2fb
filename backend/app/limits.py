"""
Plan limits.

Domain code treats a limit as Optional[int] where None means unlimited.
The -1 sentinel only exists in database columns; convert at the boundary
with limit_from_column / limit_to_column.
"""
from __future__ import annotations

from dataclasses import dataclass

UNLIMITED = -1

RESOURCE_PRODUCTS = "products"
RESOURCE_ORDERS = "orders"
RESOURCE_TEAM_MEMBERS = "team_members"
RESOURCE_ADS = "daily_ads"

RESOURCES = (RESOURCE_PRODUCTS, RESOURCE_ORDERS, RESOURCE_TEAM_MEMBERS, RESOURCE_ADS)


class LimitExceededError(Exception):
    """A plan limit blocks the requested action. Recoverable by upgrading."""

    def __init__(self, resource: str, used: int, limit: int):
        super().__init__(f"{resource} limit reached ({used}/{limit}). Upgrade your plan.")
        self.resource = resource
        self.used = used
        self.limit = limit

    def to_dict(self) -> dict:
        return {
            "error": str(self),
            "code": "LIMIT_EXCEEDED",
            "resource": self.resource,
            "used": self.used,
            "limit": self.limit,
        }


def limit_from_column(value: int | None) -> int | None:
    if value is None or value == UNLIMITED:
        return None
    return value


def limit_to_column(value: int | None) -> int:
    return UNLIMITED if value is None else value


def check_limit(used: int, limit: int | None) -> bool:
    """True when one more unit is allowed. None and -1 both mean unlimited."""
    if limit is None or limit == UNLIMITED:
        return True
    return used < limit


def remaining(used: int, limit: int | None) -> int | None:
    if limit is None or limit == UNLIMITED:
        return None
    return max(0, limit - used)


@dataclass(frozen=True)
class EffectiveLimits:
    products: int | None
    orders: int | None
    team_members: int | None
    daily_ads: int | None

    @classmethod
    def unlimited(cls) -> "EffectiveLimits":
        return cls(products=None, orders=None, team_members=None, daily_ads=None)

    def for_resource(self, resource: str) -> int | None:
        if resource not in RESOURCES:
            raise KeyError(resource)
        return getattr(self, resource)

    def to_dict(self) -> dict:
        # -1 on the wire, matching what clients already display as "unlimited"
        return {name: limit_to_column(getattr(self, name)) for name in RESOURCES}
