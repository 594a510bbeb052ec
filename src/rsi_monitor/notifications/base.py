"""Abstract notification sink interface.

The trigger engine only needs a yes/no delivery result: dedup state is
mutated solely on confirmed delivery, so implementations must return False
rather than raise on any transport or remote failure.
"""

from abc import ABC, abstractmethod
from decimal import Decimal


class NotificationSink(ABC):
    """Renders and delivers alert messages."""

    @abstractmethod
    async def send_single_alert(
        self,
        symbol: str,
        signal: Decimal,
        timeframe: str,
        funding_rate: Decimal | None = None,
        bias: str = "SHORT",
    ) -> bool:
        """Deliver a single-timeframe alert. Returns True on confirmed delivery."""
        ...

    @abstractmethod
    async def send_composite_alert(
        self,
        symbol: str,
        signal_fast: Decimal,
        signal_other: Decimal,
        pair_label: str,
        funding_rate: Decimal | None = None,
        bias: str = "SHORT",
    ) -> bool:
        """Deliver a multi-timeframe alert for ``pair_label`` ("<other>+<fast>")."""
        ...

    async def close(self) -> None:
        """Release transport resources (no-op by default)."""
        return None
