"""EIP-1559 style base fee adjusted by block fullness."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from .runtime import Origin, RuntimeDbWeight, ensure_root

U256_MAX = 2**256 - 1
ACCURACY = 1_000_000


@dataclass(frozen=True, order=True)
class Permill:
    """A fraction in parts per million, saturating at one."""

    parts: int = 0

    def __post_init__(self):
        object.__setattr__(self, "parts", max(0, min(self.parts, ACCURACY)))

    @classmethod
    def from_parts(cls, parts: int) -> "Permill":
        return cls(parts)

    @classmethod
    def from_rational(cls, numerator: int, denominator: int) -> "Permill":
        """Return numerator/denominator rounded down; one if it exceeds one."""
        if denominator == 0 or numerator >= denominator:
            return cls(ACCURACY)
        return cls(numerator * ACCURACY // denominator)

    def deconstruct(self) -> int:
        return self.parts

    def mul_floor(self, value: int) -> int:
        return value * self.parts // ACCURACY

    def clamp(self, lower: "Permill", upper: "Permill") -> "Permill":
        return max(lower, min(self, upper))

    def __sub__(self, other: "Permill") -> "Permill":
        return Permill(max(0, self.parts - other.parts))

    def __truediv__(self, other: "Permill") -> "Permill":
        return Permill.from_rational(self.parts, other.parts)

    def __mul__(self, other: "Permill") -> "Permill":
        return Permill(self.parts * other.parts // ACCURACY)


@dataclass(frozen=True)
class BaseFeeThreshold:
    """Block fullness bounds and the ideal fullness where the fee stays put."""

    lower: Permill = Permill(0)
    ideal: Permill = Permill(500_000)
    upper: Permill = Permill(1_000_000)


@dataclass(frozen=True)
class BaseFeeGenesis:
    base_fee_per_gas: int
    is_active: bool = True
    elasticity: Permill = Permill(125_000)


@dataclass(frozen=True)
class BaseFeeEvent:
    """An event emitted by the pallet: kind is one of the event names."""

    kind: str
    value: object = None

    NEW_BASE_FEE_PER_GAS = "NewBaseFeePerGas"
    BASE_FEE_OVERFLOW = "BaseFeeOverflow"
    IS_ACTIVE = "IsActive"
    NEW_ELASTICITY = "NewElasticity"


@dataclass
class BaseFeePallet:
    """Keeps the base fee per gas and moves it after every block."""

    threshold: BaseFeeThreshold = field(default_factory=BaseFeeThreshold)
    default_base_fee_per_gas: int = 0
    default_is_active: bool = True
    db_weight: RuntimeDbWeight = field(default_factory=RuntimeDbWeight)
    genesis: Optional[BaseFeeGenesis] = None
    base_fee_per_gas: int = field(init=False)
    is_active: bool = field(init=False)
    elasticity: Permill = field(init=False)
    events: list = field(init=False, default_factory=list)

    def __post_init__(self):
        self.base_fee_per_gas = self.default_base_fee_per_gas
        self.is_active = self.default_is_active
        self.elasticity = Permill(125_000)
        if self.genesis is not None:
            self.base_fee_per_gas = self.genesis.base_fee_per_gas
            self.is_active = self.genesis.is_active

    def on_initialize(self, block_number: int) -> int:
        return self.db_weight.reads_writes(2, 1)

    def on_finalize(self, block_weight: int, max_block_weight: int) -> None:
        """Adjust the base fee from the weight used by the block just built."""
        if not self.is_active:
            return
        lower, upper, target = self.threshold.lower, self.threshold.upper, self.threshold.ideal
        weight_used = Permill.from_rational(block_weight, max_block_weight).clamp(lower, upper)
        usage = (weight_used - lower) / (upper - lower)
        if usage == target:
            return
        coef = self.elasticity * Permill((abs(usage.parts - target.parts)) * 2)
        scaled = self.base_fee_per_gas * coef.deconstruct()
        if scaled > U256_MAX:
            self.events.append(BaseFeeEvent(BaseFeeEvent.BASE_FEE_OVERFLOW))
            return
        delta = scaled // ACCURACY
        if usage > target:
            self.base_fee_per_gas = min(self.base_fee_per_gas + delta, U256_MAX)
        else:
            self.base_fee_per_gas = max(self.base_fee_per_gas - delta, 0)

    def on_runtime_upgrade(self) -> int:
        self.is_active = self.default_is_active
        return self.db_weight.write

    def set_base_fee_per_gas(self, origin: Origin, fee: int) -> None:
        ensure_root(origin)
        self.set_base_fee_per_gas_inner(fee)
        self.events.append(BaseFeeEvent(BaseFeeEvent.NEW_BASE_FEE_PER_GAS, fee))

    def set_is_active(self, origin: Origin, is_active: bool) -> None:
        ensure_root(origin)
        self.set_is_active_inner(is_active)
        self.events.append(BaseFeeEvent(BaseFeeEvent.IS_ACTIVE, is_active))

    def set_elasticity(self, origin: Origin, elasticity: Permill) -> None:
        ensure_root(origin)
        self.set_elasticity_inner(elasticity)
        self.events.append(BaseFeeEvent(BaseFeeEvent.NEW_ELASTICITY, elasticity))

    def set_base_fee_per_gas_inner(self, value: int) -> int:
        self.base_fee_per_gas = value
        return self.db_weight.write

    def set_is_active_inner(self, value: bool) -> int:
        self.is_active = value
        return self.db_weight.write

    def set_elasticity_inner(self, value: Permill) -> int:
        self.elasticity = value
        return self.db_weight.write

    def min_gas_price(self) -> tuple[int, int]:
        return self.base_fee_per_gas, self.db_weight.reads(1)