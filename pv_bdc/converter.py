"""
Bidirectional DC-DC converter at the control level.

The converter is an ideal voltage-ratio device:
    Charging (buck, PV -> battery):      V_pv = V_batt / (1 - D)
    Discharging (boost, battery -> load): V_pv = V_batt * (1 - D)
"""

from enum import IntEnum
from typing import NamedTuple

from .config import ConverterParameters
from .mppt import clamp_duty


class ConverterMode(IntEnum):
    CHARGING = 1
    DISCHARGING = -1
    IDLE = 0


class ConverterStep(NamedTuple):
    pv_voltage: float
    mode: ConverterMode
    duty: float


def select_mode(pv_power: float,
                load_power: float,
                soc: float,
                soc_min: float,
                soc_max: float) -> ConverterMode:
    """Operating mode from the instantaneous power balance and battery SOC."""
    if pv_power > load_power and soc < soc_max:
        return ConverterMode.CHARGING
    if pv_power < load_power and soc > soc_min:
        return ConverterMode.DISCHARGING
    return ConverterMode.IDLE


def discharge_duty(pv_voltage: float, batt_voltage: float) -> float:
    """Boost duty that maps the present PV voltage onto the battery voltage (unclamped)."""
    return 1.0 - pv_voltage / batt_voltage


def _clip(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class ConverterModeArbiter:
    """
    Picks the converter mode and the PV-side voltage the converter imposes.

    With windowed=True the input voltage is kept inside the converter input window and a
    single corrective pass re-derives the duty when the battery-side voltage would leave
    the output window.
    """

    def __init__(self, params: ConverterParameters, windowed: bool = True):
        self.params = params
        self.windowed = windowed

    def _clip_input(self, v: float) -> float:
        if not self.windowed:
            return v
        return _clip(v, self.params.input_voltage_min, self.params.input_voltage_max)

    def _buck(self, batt_voltage: float, duty: float):
        p = self.params
        v_in = self._clip_input(batt_voltage / (1.0 - duty))
        if not self.windowed:
            return v_in, duty

        v_out = v_in * (1.0 - duty)
        if v_out > p.output_voltage_max:
            duty = clamp_duty(1.0 - p.output_voltage_max / v_in)
            v_in = self._clip_input(p.output_voltage_max / (1.0 - duty))
        return v_in, duty

    def _boost(self, batt_voltage: float, duty: float):
        p = self.params
        v_in = self._clip_input(batt_voltage * (1.0 - duty))
        if not self.windowed:
            return v_in, duty

        v_out = v_in / (1.0 - duty)
        if v_out < p.output_voltage_min or v_out > p.output_voltage_max:
            target = _clip(v_out, p.output_voltage_min, p.output_voltage_max)
            duty = clamp_duty(1.0 - v_in / target)
            v_in = self._clip_input(target * (1.0 - duty))
        return v_in, duty

    def step(self,
             pv_power: float,
             load_power: float,
             batt_voltage: float,
             soc: float,
             pv_voltage: float,
             duty: float,
             soc_min: float,
             soc_max: float) -> ConverterStep:
        """
        Recompute the PV-side voltage for the next tick.

        Args:
            pv_power: [arg] PV power at this tick in W.
            load_power: [arg] Load power at this tick in W.
            batt_voltage: [arg] Battery voltage in V.
            soc: [arg] Battery SOC in %.
            pv_voltage: [arg] Present PV voltage in V.
            duty: [arg] Duty cycle in [0.1, 0.9].
            soc_min, soc_max: [arg] SOC window for mode selection.

        Returns:
            ConverterStep(pv_voltage, mode, duty) where duty is the one actually applied.
        """
        mode = select_mode(pv_power, load_power, soc, soc_min, soc_max)

        if mode is ConverterMode.CHARGING:
            new_voltage, duty = self._buck(batt_voltage, duty)
        elif mode is ConverterMode.DISCHARGING:
            new_voltage, duty = self._boost(batt_voltage, duty)
        else:
            new_voltage = self._clip_input(pv_voltage)

        return ConverterStep(new_voltage, mode, duty)
