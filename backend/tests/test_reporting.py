# tests/test_reporting.py
from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from app.core.creators import revenue_stats

from factories import NOW, create_creator, days, seed_paid_users


@pytest.mark.asyncio
async def test_revenue_stats_totals_and_six_month_window(db):
    creator = await create_creator(db)
    await seed_paid_users(db, creator, 3, when=NOW)
    await seed_paid_users(db, creator, 2, when=NOW - days(40))
    # outside the six-month window but still in the all-time total
    await seed_paid_users(db, creator, 1, when=datetime(2025, 6, 15, tzinfo=timezone.utc))

    stats = await revenue_stats(db, now=NOW)

    assert stats.total_revenue == Decimal("6000.00")
    assert stats.total_commission == Decimal("480.00")
    assert stats.this_month_revenue == Decimal("3000.00")
    assert [m.month for m in stats.monthly] == [
        date(2025, 10, 1),
        date(2025, 11, 1),
        date(2025, 12, 1),
        date(2026, 1, 1),
        date(2026, 2, 1),
        date(2026, 3, 1),
    ]
    by_month = {m.month: m for m in stats.monthly}
    assert by_month[date(2026, 3, 1)].revenue == Decimal("3000.00")
    assert by_month[date(2026, 3, 1)].payments == 3
    assert by_month[date(2026, 2, 1)].revenue == Decimal("2000.00")
    assert by_month[date(2026, 2, 1)].commission == Decimal("160.00")
    assert by_month[date(2025, 10, 1)].revenue == Decimal("0.00")
    assert by_month[date(2025, 10, 1)].payments == 0


@pytest.mark.asyncio
async def test_revenue_stats_empty_and_across_year_boundary(db):
    stats = await revenue_stats(db, now=datetime(2026, 1, 15, tzinfo=timezone.utc))

    assert stats.total_revenue == Decimal("0.00")
    assert stats.this_month_revenue == Decimal("0.00")
    assert stats.monthly[0].month == date(2025, 8, 1)
    assert stats.monthly[-1].month == date(2026, 1, 1)
    assert all(m.revenue == Decimal("0.00") for m in stats.monthly)
