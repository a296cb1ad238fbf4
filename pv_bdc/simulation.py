"""
Main Simulation Engine.

Integrates the PV array, MPPT, converter, battery, thermal and BMS modules
to perform the time-domain simulation of the closed control loop.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from .config import SimulationConfig
from .pv_array import PvArrayModel
from .mppt import MpptController, clamp_duty
from .converter import ConverterMode, ConverterModeArbiter, discharge_duty, select_mode
from .battery import BatteryModel
from .thermal import BatteryThermalModel
from .bms import BatteryManagementSystem, BmsStatus, ProtectionFlags
from .stochastic import PerturbationSource, UniformPerturbation

logger = logging.getLogger(__name__)

PV_VOLTAGE_MIN = 0.1


@dataclass
class SimulationResult:
    """Stores time-series results. All arrays share length N."""
    time: np.ndarray
    irradiance: np.ndarray
    pv_voltage: np.ndarray
    pv_current: np.ndarray
    pv_power: np.ndarray
    pv_max_power: np.ndarray
    batt_voltage: np.ndarray
    batt_current: np.ndarray
    batt_power: np.ndarray
    batt_soc: np.ndarray
    batt_temperature: np.ndarray
    load_voltage: np.ndarray
    load_current: np.ndarray
    load_power: np.ndarray
    duty_cycle: np.ndarray
    converter_mode: np.ndarray
    mppt_efficiency: np.ndarray
    bms_status: List[BmsStatus] = field(default_factory=list)
    protection_flags: List[ProtectionFlags] = field(default_factory=list)
    mode_mismatches: int = 0
    avg_mppt_efficiency: Optional[float] = None

    @classmethod
    def allocate(cls, n: int, dt: float) -> "SimulationResult":
        zeros = lambda: np.zeros(n)
        return cls(
            time=np.arange(n) * dt,
            irradiance=zeros(),
            pv_voltage=zeros(),
            pv_current=zeros(),
            pv_power=zeros(),
            pv_max_power=zeros(),
            batt_voltage=zeros(),
            batt_current=zeros(),
            batt_power=zeros(),
            batt_soc=zeros(),
            batt_temperature=zeros(),
            load_voltage=zeros(),
            load_current=zeros(),
            load_power=zeros(),
            duty_cycle=zeros(),
            converter_mode=np.zeros(n, dtype=int),
            mppt_efficiency=zeros(),
            bms_status=[BmsStatus.NORMAL] * n,
            protection_flags=[ProtectionFlags() for _ in range(n)],
        )

    def __len__(self) -> int:
        return len(self.time)

    def compute_average_mppt_efficiency(self) -> Optional[float]:
        """
        Mean of pv_power / pv_max_power * 100 over charging ticks with a defined ratio.
        None if no such tick exists.
        """
        valid = (self.converter_mode == ConverterMode.CHARGING) & (self.pv_max_power > 0)
        if not np.any(valid):
            return None
        return float(np.mean(self.pv_power[valid] / self.pv_max_power[valid] * 100.0))


class SimulationEngine:
    """
    Orchestrates the PV / converter / battery closed-loop simulation.

    The engine exclusively owns the result arrays; every model it calls is stateless.
    """

    def __init__(self,
                 config: SimulationConfig = None,
                 perturbation: Optional[PerturbationSource] = None):
        self.config = config if config else SimulationConfig()
        self.config.validate()

        cfg = self.config
        extended = cfg.extended

        # Modules
        self.pv_model = PvArrayModel(cfg.pv)
        self.mppt = MpptController(cfg.control.mppt_step)
        self.arbiter = ConverterModeArbiter(cfg.converter, windowed=extended)
        self.battery_model = BatteryModel(cfg.battery, temperature_aware=extended)
        self.thermal_model = BatteryThermalModel(cfg.battery) if extended else None
        self.bms = (BatteryManagementSystem(cfg.battery.nominal_voltage, cfg.battery.capacity_ah)
                    if extended else None)
        self.perturbation = perturbation if perturbation is not None else UniformPerturbation()

        self.results = SimulationResult.allocate(cfg.n_steps, cfg.dt)
        self._set_initial_conditions()

    def _set_initial_conditions(self):
        cfg = self.config
        r = self.results
        r.pv_voltage[0] = cfg.initial_pv_voltage
        r.batt_voltage[0] = cfg.battery.nominal_voltage
        r.batt_soc[0] = cfg.battery.initial_soc
        r.batt_temperature[0] = cfg.battery.initial_temperature
        r.duty_cycle[0] = cfg.control.initial_duty

    def _evaluate_sources(self, k: int):
        """PV and load operating point at tick k."""
        r = self.results
        cfg = self.config

        g = cfg.irradiance_at(r.time[k])
        r.irradiance[k] = g
        r.pv_current[k] = self.pv_model.current(r.pv_voltage[k], g)
        r.pv_power[k] = r.pv_voltage[k] * r.pv_current[k]
        r.pv_max_power[k] = self.pv_model.max_power(g)

        r.load_voltage[k] = r.batt_voltage[k]
        r.load_current[k] = r.load_voltage[k] / cfg.load.r_load
        r.load_power[k] = r.load_voltage[k] * r.load_current[k]

    def _efficiency(self, k: int) -> float:
        r = self.results
        if r.pv_max_power[k] > 0 and r.converter_mode[k] == ConverterMode.CHARGING:
            return r.pv_power[k] / r.pv_max_power[k] * 100.0
        return 0.0

    def step(self, k: int) -> None:
        """
        Execute one tick: state at k -> state at k+1.
        """
        cfg = self.config
        ctrl = cfg.control
        dt = cfg.dt
        r = self.results

        # 1. Sources
        self._evaluate_sources(k)

        # 2. Mode and duty cycle
        mode = select_mode(r.pv_power[k], r.load_power[k], r.batt_soc[k], ctrl.soc_min, ctrl.soc_max)
        r.converter_mode[k] = mode
        duty_prev = r.duty_cycle[k - 1] if k > 0 else ctrl.initial_duty

        if mode is ConverterMode.CHARGING:
            if k > 0:
                duty = self.mppt.next_duty(r.pv_voltage[k], r.pv_current[k],
                                           r.pv_voltage[k - 1], r.pv_current[k - 1], duty_prev)
            else:
                duty = duty_prev
        elif mode is ConverterMode.DISCHARGING:
            duty = discharge_duty(r.pv_voltage[k], r.batt_voltage[k])
        else:
            duty = duty_prev

        # 3. Battery current, limited by the BMS
        current = self.battery_model.candidate_current(r.pv_power[k], r.load_power[k],
                                                       r.batt_voltage[k], mode)
        if self.bms is not None:
            current, status, flags = self.bms.evaluate(r.batt_voltage[k], current,
                                                       r.batt_soc[k], r.batt_temperature[k])
            r.bms_status[k] = status
            r.protection_flags[k] = flags
            if k > 0 and status != r.bms_status[k - 1]:
                logger.debug("BMS status %s -> %s at t=%.5fs (flags: %s)",
                             r.bms_status[k - 1].value, status.value, r.time[k],
                             ", ".join(flags.raised()) or "none")
        r.batt_current[k] = current

        r.mppt_efficiency[k] = self._efficiency(k)
        duty = clamp_duty(duty)

        # 4. Battery state
        r.batt_power[k] = r.batt_voltage[k] * current
        r.batt_voltage[k + 1], r.batt_soc[k + 1] = self.battery_model.step(
            r.batt_voltage[k], current, r.batt_soc[k], r.batt_temperature[k], dt)

        if self.thermal_model is not None:
            r.batt_temperature[k + 1] = self.thermal_model.step(r.batt_temperature[k], current, dt)
        else:
            r.batt_temperature[k + 1] = r.batt_temperature[k]

        # 5. PV operating point for the next tick
        conv = self.arbiter.step(r.pv_power[k], r.load_power[k], r.batt_voltage[k], r.batt_soc[k],
                                 r.pv_voltage[k], duty, ctrl.soc_min, ctrl.soc_max)
        if conv.mode != mode:
            # Known inconsistency: the loop keeps its own mode, nothing is reconciled this tick.
            r.mode_mismatches += 1
            logger.warning("Converter mode mismatch at t=%.5fs: loop %s, arbiter %s",
                           r.time[k], mode.name, ConverterMode(conv.mode).name)
        r.duty_cycle[k] = conv.duty

        pv_voltage_new = conv.pv_voltage
        if mode is not ConverterMode.CHARGING:
            pv_voltage_new += self.perturbation.sample(ctrl.mppt_step)
        r.pv_voltage[k + 1] = max(PV_VOLTAGE_MIN, min(cfg.pv.voc, pv_voltage_new))

    def _finalize(self) -> None:
        """Evaluate the last sample; controller outputs are held from the previous tick."""
        r = self.results
        last = len(r) - 1

        self._evaluate_sources(last)
        r.converter_mode[last] = r.converter_mode[last - 1]
        r.duty_cycle[last] = r.duty_cycle[last - 1]
        r.bms_status[last] = r.bms_status[last - 1]
        r.protection_flags[last] = r.protection_flags[last - 1]
        r.mppt_efficiency[last] = self._efficiency(last)

    def run(self) -> SimulationResult:
        """
        Run the simulation over the configured time span.
        """
        cfg = self.config
        n = cfg.n_steps
        logger.info("Starting %s run: %d steps of %gs (%.1fV battery, %.0fAh)",
                    cfg.variant.value, n, cfg.dt, cfg.battery.nominal_voltage, cfg.battery.capacity_ah)

        for k in range(n - 1):
            self.step(k)
        self._finalize()

        r = self.results
        r.avg_mppt_efficiency = r.compute_average_mppt_efficiency()
        if r.avg_mppt_efficiency is not None:
            logger.info("Average MPPT efficiency: %.2f%%", r.avg_mppt_efficiency)
        else:
            logger.info("No valid MPPT efficiency data available.")
        if r.mode_mismatches:
            logger.warning("%d converter mode mismatches during the run", r.mode_mismatches)

        return r


def run_simulation(config: SimulationConfig = None,
                   perturbation: Optional[PerturbationSource] = None) -> SimulationResult:
    """Build an engine for config and run it to the end."""
    return SimulationEngine(config, perturbation).run()
