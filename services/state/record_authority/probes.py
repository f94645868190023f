"""Convenience builders for common search predicates."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from services.state.record_authority.domain import (
    ContainmentProbe,
    PathRangeProbe,
    RelationalOp,
    RelationalPredicate,
    RelationalProbe,
)


def key_value_probe(field: str, key: str, value: Any) -> ContainmentProbe:
    """Match documents whose top-level ``key`` equals ``value``.

    Works for any object field, e.g. ``specifications``, ``profile``,
    ``data`` or ``context``.
    """
    return ContainmentProbe(field=field, probe={key: value})


def city_probe(city: str, *, field: str = "address") -> ContainmentProbe:
    """Match user addresses (or order ``shipping_address``) in one city."""
    return ContainmentProbe(field=field, probe={"city": city})


def tag_probe(tag: str) -> ContainmentProbe:
    """Match products carrying ``tag``."""
    return ContainmentProbe(field="tags", probe=[tag])


def item_name_probe(name: str) -> ContainmentProbe:
    """Match orders holding at least one item called ``name``."""
    return ContainmentProbe(field="items", probe=[{"name": name}])


def age_range_probe(
    minimum: int | None = None, maximum: int | None = None
) -> PathRangeProbe:
    """Match users whose ``profile.age`` lies inside the inclusive bounds."""
    return PathRangeProbe(
        field="profile",
        path=("age",),
        minimum=None if minimum is None else Decimal(minimum),
        maximum=None if maximum is None else Decimal(maximum),
    )


def message_probe(text: str) -> RelationalProbe:
    """Match log entries whose message contains ``text`` (case-sensitive)."""
    return RelationalProbe(
        field="message",
        predicate=RelationalPredicate(op=RelationalOp.CONTAINS_TEXT, value=text),
    )


def time_window_probe(start: datetime, end: datetime) -> RelationalProbe:
    """Match log entries timestamped inside ``[start, end]``."""
    return RelationalProbe(
        field="timestamp",
        predicate=RelationalPredicate(op=RelationalOp.BETWEEN, value=start, upper=end),
    )



def price_range_probe(
    minimum: Decimal | int | str | None = None,
    maximum: Decimal | int | str | None = None,
) -> PathRangeProbe:
    """Match products whose ``specifications.price`` lies inside the bounds.

    The price lives inside a document, so this is a full-scan range search.
    Products without a numeric ``specifications.price`` never match.
    """
    return PathRangeProbe(
        field="specifications",
        path=("price",),
        minimum=None if minimum is None else Decimal(minimum),
        maximum=None if maximum is None else Decimal(maximum),
    )


def total_range_probe(
    minimum: Decimal | int | str | None = None,
    maximum: Decimal | int | str | None = None,
) -> RelationalProbe:
    """Match orders whose ``total_amount`` column lies inside the bounds."""
    if minimum is None and maximum is None:
        raise ValueError("total_range_probe requires at least one bound")
    if maximum is None:
        predicate = RelationalPredicate(op=RelationalOp.GTE, value=Decimal(minimum))
    elif minimum is None:
        predicate = RelationalPredicate(op=RelationalOp.LTE, value=Decimal(maximum))
    else:
        predicate = RelationalPredicate(
            op=RelationalOp.BETWEEN, value=Decimal(minimum), upper=Decimal(maximum)
        )
    return RelationalProbe(field="total_amount", predicate=predicate)
