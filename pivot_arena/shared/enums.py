from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Tuple


class Horizon(str, Enum):
    M15 = "15m"
    H1 = "1h"
    H4 = "4h"
    H24 = "24h"

    def __str__(self) -> str:
        return self.value


# Evaluation order used by every per-horizon report.
HORIZONS: Tuple[Horizon, ...] = (Horizon.M15, Horizon.H1, Horizon.H4, Horizon.H24)


class Side(str, Enum):
    NO_NEW_LOW = "no_new_low"
    NO_NEW_HIGH = "no_new_high"
    BID_FILL = "bid_fill"
    ASK_FILL = "ask_fill"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ContractKey:
    """Key identifying one forecast contract: a side on a horizon.

    Prediction sources address contracts as ``"{side}-{horizon}"``; inside
    the package the key is always this tuple so maps are keyed structurally.
    """

    side: Side
    horizon: Horizon

    def __str__(self) -> str:
        return f"{self.side.value}-{self.horizon.value}"

    @classmethod
    def parse(cls, raw: str) -> "ContractKey":
        """Parse the external ``side-horizon`` form.

        Raises ValueError if either part is unknown.
        """
        side_raw, sep, horizon_raw = raw.rpartition("-")
        if not sep:
            raise ValueError(f"contract key must look like 'side-horizon': {raw!r}")
        return cls(side=Side(side_raw), horizon=Horizon(horizon_raw))


def contract_keys(side: Side) -> Iterator[ContractKey]:
    """Yield the contract key for ``side`` on every horizon, in order."""
    for horizon in HORIZONS:
        yield ContractKey(side=side, horizon=horizon)


__all__ = ["Horizon", "HORIZONS", "Side", "ContractKey", "contract_keys"]
