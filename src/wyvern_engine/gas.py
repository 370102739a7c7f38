"""Gas estimation with bounded retry and a static fallback limit."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from .errors import (
    ContractCallReverted,
    GasEstimationFailure,
    TransactionWillRevert,
    TransientRpcError,
)

logger = logging.getLogger(__name__)

EstimateFn = Callable[[], Awaitable[int]]


@dataclass(frozen=True)
class GasEstimate:
    limit: int
    estimated: bool
    error: Optional[GasEstimationFailure] = None


class GasEstimator:
    """Estimate gas, retrying node failures, and fall back when estimation breaks."""

    def __init__(self, retries: int = 2, delay_seconds: float = 0.0) -> None:
        self.retries = max(0, retries)
        self.delay_seconds = delay_seconds

    async def estimate(self, fn: EstimateFn, fallback: int, *, label: str = "transaction") -> GasEstimate:
        """
        Run ``fn`` and return its estimate, or ``fallback`` on failure.

        A revert during estimation means the transaction itself would revert,
        so it raises ``TransactionWillRevert`` instead of falling back.
        """
        attempts = self.retries + 1
        for attempt in range(1, attempts + 1):
            try:
                limit = int(await fn())
            except ContractCallReverted as exc:
                raise TransactionWillRevert(f"Transaction will fail: {exc}") from exc
            except TransientRpcError as exc:
                if attempt < attempts:
                    logger.warning(
                        "Gas estimation for %s failed (attempt %d/%d): %s",
                        label,
                        attempt,
                        attempts,
                        exc,
                    )
                    if self.delay_seconds:
                        await asyncio.sleep(self.delay_seconds)
                    continue
                return self._fallback(label, fallback, exc)
            except Exception as exc:
                return self._fallback(label, fallback, exc)
            return GasEstimate(limit=limit, estimated=True)
        raise AssertionError("unreachable")  # pragma: no cover

    def _fallback(self, label: str, fallback: int, exc: Exception) -> GasEstimate:
        logger.warning("Using fallback gas limit %d for %s: %s", fallback, label, exc)
        failure = GasEstimationFailure(f"Gas estimation for {label} failed: {exc}")
        failure.__cause__ = exc
        return GasEstimate(limit=fallback, estimated=False, error=failure)


__all__ = ["GasEstimate", "GasEstimator"]
