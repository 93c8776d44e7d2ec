"""Minimum gas price that block authors may nudge once per block."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Optional

from .runtime import Origin, RuntimeDbWeight, ensure_none

U256_MAX = 2**256 - 1
INHERENT_IDENTIFIER = b"dynfee0_"


@dataclass(frozen=True)
class NoteMinGasPriceTarget:
    """The inherent call noting the block author's minimum gas price target."""

    target: int


@dataclass
class DynamicFeePallet:
    """Moves the minimum gas price towards a per-block target within a bound."""

    min_gas_price_bound_divisor: int
    genesis_min_gas_price: int = 0
    db_weight: RuntimeDbWeight = field(default_factory=RuntimeDbWeight)
    current_min_gas_price: int = field(init=False)
    target_min_gas_price: Optional[int] = field(init=False, default=None)

    def __post_init__(self):
        self.current_min_gas_price = self.genesis_min_gas_price

    def on_initialize(self, block_number: int) -> int:
        self.target_min_gas_price = None
        return self.db_weight.writes(1)

    def on_finalize(self, block_number: int) -> None:
        target, self.target_min_gas_price = self.target_min_gas_price, None
        if target is None:
            return
        current = self.current_min_gas_price
        bound = current // self.min_gas_price_bound_divisor + 1
        upper_limit = min(current + bound, U256_MAX)
        lower_limit = max(current - bound, 0)
        self.current_min_gas_price = min(upper_limit, max(lower_limit, target))

    def note_min_gas_price_target(self, origin: Origin, target: int) -> None:
        ensure_none(origin)
        if self.target_min_gas_price is not None:
            raise RuntimeError("TargetMinGasPrice must be updated only once in the block")
        self.target_min_gas_price = target

    def create_inherent(self, data: Mapping) -> Optional[NoteMinGasPriceTarget]:
        target = data.get(INHERENT_IDENTIFIER)
        if not isinstance(target, int) or isinstance(target, bool):
            return None
        return NoteMinGasPriceTarget(target)

    def check_inherent(self, call: NoteMinGasPriceTarget, data: Mapping) -> None:
        """Accept any noted target; reject calls that are not this pallet's inherent."""
        if not self.is_inherent(call):
            raise TypeError(f"not a minimum gas price inherent: {call!r}")

    def is_inherent(self, call: object) -> bool:
        return isinstance(call, NoteMinGasPriceTarget)

    def min_gas_price(self) -> tuple[int, int]:
        return self.current_min_gas_price, self.db_weight.reads(1)