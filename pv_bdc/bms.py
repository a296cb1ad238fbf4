"""
Battery Management System.

Inspects the commanded battery current against voltage, current, temperature and SOC
limits and overrides it. Negative current is charging, positive is discharging.

Checks run in a fixed order and a later check overrides an earlier one:
    1. Overvoltage            5. Overtemperature       9. Low SOC
    2. Undervoltage           6. Undertemperature
    3. Charge overcurrent     7. Reverse polarity
    4. Discharge overcurrent  8. High SOC
Every condition is tested against the commanded current, not the running limited value.
"""

from dataclasses import dataclass, fields
from enum import Enum
from typing import List, NamedTuple

from .config import BatteryParameters


class BmsStatus(str, Enum):
    NORMAL = "Normal"
    OVERVOLTAGE = "Overvoltage Protection"
    UNDERVOLTAGE = "Undervoltage Protection"
    CHARGE_CURRENT_LIMIT = "Charge Current Limiting"
    DISCHARGE_CURRENT_LIMIT = "Discharge Current Limiting"
    OVERTEMPERATURE = "Overtemperature Protection"
    UNDERTEMPERATURE = "Undertemperature Protection"
    REVERSE_POLARITY = "Reverse Polarity Protection"
    HIGH_SOC = "High SOC Current Limiting"
    LOW_SOC = "Low SOC Current Limiting"


@dataclass
class ProtectionFlags:
    """Independent protection flags. Several may be raised at once."""
    overvoltage: bool = False
    undervoltage: bool = False
    overcurrent_charge: bool = False
    overcurrent_discharge: bool = False
    overtemperature: bool = False
    undertemperature: bool = False
    high_soc: bool = False
    low_soc: bool = False
    reverse_polarity: bool = False

    def raised(self) -> List[str]:
        """Names of all raised flags, in declaration order."""
        return [f.name for f in fields(self) if getattr(self, f.name)]

    def any(self) -> bool:
        return bool(self.raised())


@dataclass(frozen=True)
class BmsThresholds:
    overvoltage: float
    undervoltage: float
    max_charge_current: float
    max_discharge_current: float
    max_temperature: float = 45.0
    min_temperature: float = 0.0
    max_soc: float = 95.0
    min_soc: float = 10.0

    @classmethod
    def for_battery(cls, nominal_voltage: float, capacity: float) -> "BmsThresholds":
        """
        Thresholds for a battery system.
        24 V -> 28.8 / 21.0 V, 48 V -> 57.6 / 42.0 V. Charge at 0.5C, discharge at 1C.
        """
        return cls.from_parameters(BatteryParameters(nominal_voltage=nominal_voltage, capacity_ah=capacity))

    @classmethod
    def from_parameters(cls, params: BatteryParameters) -> "BmsThresholds":
        return cls(
            overvoltage=params.charging_voltage,
            undervoltage=params.discharge_cutoff,
            max_charge_current=0.5 * params.capacity_ah,
            max_discharge_current=1.0 * params.capacity_ah,
        )


class BmsResult(NamedTuple):
    limited_current: float
    status: BmsStatus
    flags: ProtectionFlags


class BatteryManagementSystem:
    """
    Protection state machine for one battery.
    Pure clamp-and-report: never raises, never keeps state between calls.
    """

    def __init__(self, nominal_voltage: float, capacity: float):
        self.thresholds = BmsThresholds.for_battery(nominal_voltage, capacity)

    def evaluate(self,
                 voltage: float,
                 current: float,
                 soc: float,
                 temperature: float) -> BmsResult:
        """
        Apply all protection checks to the commanded current.

        Args:
            voltage: [arg] Battery terminal voltage in V.
            current: [arg] Commanded battery current in A (negative = charging).
            soc: [arg] State of charge in %.
            temperature: [arg] Battery temperature in degC.

        Returns:
            BmsResult(limited_current, status, flags).
        """
        th = self.thresholds
        flags = ProtectionFlags()
        limited = current
        status = BmsStatus.NORMAL

        charging = current < 0
        discharging = current > 0

        # Voltage
        if voltage >= th.overvoltage:
            flags.overvoltage = True
            if charging:
                limited = 0.0
                status = BmsStatus.OVERVOLTAGE

        if voltage <= th.undervoltage:
            flags.undervoltage = True
            if discharging:
                limited = 0.0
                status = BmsStatus.UNDERVOLTAGE

        # Current
        if current < -th.max_charge_current:
            flags.overcurrent_charge = True
            limited = -th.max_charge_current
            status = BmsStatus.CHARGE_CURRENT_LIMIT

        if current > th.max_discharge_current:
            flags.overcurrent_discharge = True
            limited = th.max_discharge_current
            status = BmsStatus.DISCHARGE_CURRENT_LIMIT

        # Temperature
        if temperature >= th.max_temperature:
            flags.overtemperature = True
            limited = 0.0
            status = BmsStatus.OVERTEMPERATURE

        if temperature <= th.min_temperature:
            flags.undertemperature = True
            if charging:
                limited = 0.0
                status = BmsStatus.UNDERTEMPERATURE

        # Negative terminal voltage or an implausibly large charge current
        if voltage < 0 or (voltage > 0 and current < -1.5 * th.max_charge_current):
            flags.reverse_polarity = True
            limited = 0.0
            status = BmsStatus.REVERSE_POLARITY

        # SOC soft limits
        if soc >= th.max_soc:
            flags.high_soc = True
            if charging:
                soc_factor = (100.0 - soc) / (100.0 - th.max_soc)
                # Trickle charge stays allowed
                limited = max(current * soc_factor, -0.05 * th.max_charge_current)
                status = BmsStatus.HIGH_SOC

        if soc <= th.min_soc:
            flags.low_soc = True
            if discharging:
                soc_factor = soc / th.min_soc
                limited = min(current * soc_factor, 0.2 * th.max_discharge_current)
                status = BmsStatus.LOW_SOC

        return BmsResult(limited, status, flags)


def evaluate(voltage: float,
             current: float,
             soc: float,
             temperature: float,
             nominal_voltage: float,
             capacity: float) -> BmsResult:
    """One-shot BMS evaluation for a battery described by nominal voltage and capacity."""
    return BatteryManagementSystem(nominal_voltage, capacity).evaluate(voltage, current, soc, temperature)
