"""
Battery electrical core module.

Handles the candidate current from the power balance, terminal voltage and SOC tracking.
Sign convention: negative current charges the battery, positive current discharges it.
"""

import numpy as np
from .config import BatteryParameters
from .converter import ConverterMode

T_REF = 25.0
SECONDS_PER_DAY = 86400.0


class BatteryModel:
    """
    Resistive battery model with Coulomb counting.

    With temperature_aware=True the internal resistance, usable capacity and self-discharge
    follow the battery temperature.
    """

    def __init__(self, params: BatteryParameters, temperature_aware: bool = False):
        self.params = params
        self.temperature_aware = temperature_aware

    def get_resistance(self, temperature: float) -> float:
        """
        Effective internal resistance.
        R_eff = R * exp(alpha * (25 - T))
        """
        R = self.params.internal_resistance
        if not self.temperature_aware:
            return R
        return R * np.exp(self.params.alpha_r * (T_REF - temperature))

    def get_capacity(self, temperature: float) -> float:
        """Usable capacity in Ah. Reduced linearly below 25 degC."""
        capacity = self.params.capacity_ah
        if self.temperature_aware and temperature < T_REF:
            capacity *= 1.0 - self.params.beta_cap * (T_REF - temperature)
        return capacity

    def get_self_discharge(self, temperature: float, dt: float) -> float:
        """
        SOC lost to self-discharge over dt, in %.
        Only applied above 25 degC, growing exponentially with temperature.
        """
        if not self.temperature_aware or temperature <= T_REF:
            return 0.0
        rate = self.params.self_discharge_per_day / SECONDS_PER_DAY
        return rate * np.exp(self.params.gamma_sd * (temperature - T_REF)) * dt

    def candidate_current(self,
                          pv_power: float,
                          load_power: float,
                          batt_voltage: float,
                          mode: ConverterMode) -> float:
        """
        Battery current that balances PV and load power for the given mode.

        Charging takes the PV surplus (negative current), discharging covers the
        deficit (positive current), idle carries no current.
        """
        if batt_voltage <= 0:
            return 0.0
        if mode is ConverterMode.CHARGING:
            return -(pv_power - load_power) / batt_voltage
        if mode is ConverterMode.DISCHARGING:
            return (load_power - pv_power) / batt_voltage
        return 0.0

    def get_soc_derivative(self, current: float, temperature: float) -> float:
        """
        dSOC/dt in %/s (Coulomb counting).
        """
        capacity_C = self.get_capacity(temperature) * 3600.0
        return -current / capacity_C * 100.0

    def step(self,
             voltage: float,
             current: float,
             soc: float,
             temperature: float,
             dt: float) -> tuple[float, float]:
        """
        Advance terminal voltage and SOC by one time step.

        Args:
            voltage: [arg] Battery voltage in V.
            current: [arg] Battery current in A (after BMS limiting).
            soc: [arg] State of charge in %.
            temperature: [arg] Battery temperature in degC.
            dt: [arg] Time step in s.

        Returns:
            (voltage, soc) at the next tick. SOC is clamped to [0, 100].
        """
        voltage_new = voltage - current * self.get_resistance(temperature)

        soc_new = soc + self.get_soc_derivative(current, temperature) * dt
        soc_new -= self.get_self_discharge(temperature, dt)
        soc_new = min(100.0, max(0.0, soc_new))

        return float(voltage_new), float(soc_new)
