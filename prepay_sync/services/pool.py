from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from ..models.config_models import PoolLimits

"""Bounded task pools.

A ``BoundedPool`` admits at most ``limit`` units of work at a time; excess
units wait on a semaphore and are admitted in submission order as capacity
frees up. Completion order is not constrained. ``map`` is the fan-out /
fan-in helper: one failing unit never cancels its siblings, each unit's
outcome (value or exception) is returned individually, in input order.

Pools are created once per run (``Pools.from_limits``) and passed into each
stage so the ceilings cap outstanding remote calls across all partitions.
"""

__all__ = [
    "BoundedPool",
    "Pools",
    "UnitResult",
]

T = TypeVar("T")
I = TypeVar("I")


@dataclass(frozen=True)
class UnitResult(Generic[I, T]):
    item: I
    value: T | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class BoundedPool:
    def __init__(self, name: str, limit: int) -> None:
        if limit < 1:
            raise ValueError(f"pool '{name}' limit must be >= 1, got {limit}")
        self.name = name
        self.limit = limit
        self._sem = asyncio.Semaphore(limit)
        self.active = 0
        self.peak = 0  # 同時実行数の最大値 (テスト / 診断用)

    def __repr__(self) -> str:  # pragma: no cover (trivial)
        return f"BoundedPool(name={self.name!r}, limit={self.limit}, active={self.active})"

    async def run(self, fn: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        async with self._sem:
            self.active += 1
            self.peak = max(self.peak, self.active)
            try:
                return await fn(*args, **kwargs)
            finally:
                self.active -= 1

    async def _capture(self, fn: Callable[[I], Awaitable[T]], item: I) -> UnitResult[I, T]:
        try:
            return UnitResult(item=item, value=await self.run(fn, item))
        except Exception as e:
            return UnitResult(item=item, error=e)

    async def map(self, fn: Callable[[I], Awaitable[T]], items: Iterable[I]) -> list[UnitResult[I, T]]:
        return list(await asyncio.gather(*(self._capture(fn, item) for item in items)))


@dataclass(frozen=True)
class Pools:
    """The three process-wide pools, one per lookup kind."""
    sales_order_items: BoundedPool
    accounting_documents: BoundedPool
    flags: BoundedPool

    @classmethod
    def from_limits(cls, limits: PoolLimits) -> Pools:
        return cls(
            sales_order_items=BoundedPool("sales_order_items", limits.sales_order_items),
            accounting_documents=BoundedPool("accounting_documents", limits.accounting_documents),
            flags=BoundedPool("flags", limits.flags),
        )
