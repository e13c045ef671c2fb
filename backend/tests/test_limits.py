# Overview: Pytest coverage for plan limit checks and the unlimited sentinel.

import pytest

from app.limits import (
    EffectiveLimits,
    LimitExceededError,
    UNLIMITED,
    check_limit,
    limit_from_column,
    limit_to_column,
    remaining,
)


class TestCheckLimit:
    @pytest.mark.parametrize("used", [0, 1, 25, 10_000_000])
    def test_unlimited_always_allows(self, used):
        assert check_limit(used, None)
        assert check_limit(used, UNLIMITED)

    def test_under_limit(self):
        assert check_limit(24, 25)

    def test_at_limit(self):
        assert not check_limit(25, 25)

    def test_zero_limit_blocks(self):
        assert not check_limit(0, 0)


class TestSentinelBoundary:
    def test_column_to_domain(self):
        assert limit_from_column(-1) is None
        assert limit_from_column(None) is None
        assert limit_from_column(25) == 25
        assert limit_from_column(0) == 0

    def test_domain_to_column(self):
        assert limit_to_column(None) == -1
        assert limit_to_column(5) == 5

    def test_remaining(self):
        assert remaining(3, 5) == 2
        assert remaining(7, 5) == 0
        assert remaining(7, None) is None


class TestEffectiveLimits:
    def test_unlimited(self):
        limits = EffectiveLimits.unlimited()
        assert limits.to_dict() == {"products": -1, "orders": -1, "team_members": -1, "daily_ads": -1}

    def test_for_resource(self):
        limits = EffectiveLimits(products=25, orders=50, team_members=1, daily_ads=0)
        assert limits.for_resource("products") == 25
        assert limits.for_resource("daily_ads") == 0
        with pytest.raises(KeyError):
            limits.for_resource("widgets")


def test_limit_exceeded_error_payload():
    err = LimitExceededError("products", 25, 25)
    assert err.resource == "products"
    assert err.used == 25
    assert err.limit == 25
    body = err.to_dict()
    assert body["code"] == "LIMIT_EXCEEDED"
    assert body["resource"] == "products"
    assert body["used"] == 25 and body["limit"] == 25
