"""
PV bidirectional converter configuration module.

This module contains the physical constants and run parameters for the PV array,
battery, converter, load and controller, plus the irradiance profile.
All parameter sets are immutable once a run is configured.
"""

from dataclasses import dataclass, field, fields
from enum import Enum
from pathlib import Path
from typing import Optional, Sequence, Tuple
import json

import numpy as np

# Supported battery systems (nominal voltage in V)
SUPPORTED_NOMINAL_VOLTAGES = (24.0, 48.0)

# Default irradiance step when no profile is supplied
DEFAULT_STEP_TIME = 1.0
DEFAULT_STEP_IRRADIANCE = 800.0

ABSOLUTE_ZERO_C = -273.15


class ConfigurationError(ValueError):
    """Raised when a configuration cannot be used to start a run."""
    pass


class RunVariant(Enum):
    """
    Capability set of a run.

    BASIC: ideal converter relations, no thermal model, no BMS.
    EXTENDED: thermal model, BMS, temperature-aware battery and converter voltage windows.
    """
    BASIC = "basic"
    EXTENDED = "extended"


@dataclass(frozen=True)
class PvParameters:
    """PV array parameters."""

    voc: float = 42.0
    """Open circuit voltage in V."""

    isc: float = 10.0
    """Short circuit current in A."""

    vmp: float = 35.0
    """Maximum power point voltage in V."""

    imp: float = 9.0
    """Maximum power point current in A."""

    ns: int = 20
    """Number of series cells."""

    np_: int = 2
    """Number of parallel strings."""

    temperature: float = 25.0
    """Cell temperature in degC."""

    irradiance: float = 1000.0
    """Initial solar irradiance in W/m^2."""

    @property
    def power_rating(self) -> float:
        """Rated MPP power at STC in W."""
        return self.vmp * self.imp


@dataclass(frozen=True)
class BatteryParameters:
    """
    Battery electrical and thermal parameters.
    Charge/discharge voltage thresholds are derived from the nominal voltage.
    """

    nominal_voltage: float = 24.0
    """Nominal voltage in V. Either 24 or 48."""

    capacity_ah: float = 75.0
    """Capacity in Ah."""

    initial_soc: float = 50.0
    """Initial state of charge in %."""

    internal_resistance: float = 0.01
    """Internal resistance in Ohm."""

    initial_temperature: float = 25.0
    """Initial battery temperature in degC."""

    ambient_temperature: float = 20.0
    """Ambient temperature in degC."""

    thermal_resistance: float = 10.0
    """Thermal resistance battery -> ambient in degC/W."""

    thermal_capacitance: float = 1000.0
    """Thermal capacitance in J/degC."""

    # --- Temperature-aware electrical model ---
    alpha_r: float = 0.01
    """Resistance temperature coefficient (exponential, 1/degC)."""

    beta_cap: float = 0.005
    """Capacity loss per degC below 25 degC."""

    self_discharge_per_day: float = 2.0
    """Self-discharge at 25 degC in %/day."""

    gamma_sd: float = 0.05
    """Self-discharge growth coefficient above 25 degC (1/degC)."""

    @property
    def charging_voltage(self) -> float:
        """Maximum charging voltage (1.2 x nominal)."""
        return 1.2 * self.nominal_voltage

    @property
    def discharge_cutoff(self) -> float:
        """Discharge cut-off voltage (0.875 x nominal)."""
        return 0.875 * self.nominal_voltage


@dataclass(frozen=True)
class ConverterParameters:
    """
    Bidirectional buck-boost converter parameters.
    Only the voltage windows take part in the control-level model. The circuit values
    (inductance, capacitors, switching frequency, current rating, efficiency) describe the
    hardware and are validated, but nothing in the ideal voltage-ratio model reads them.
    """

    inductance: float = 1e-3
    """Inductor value in H."""

    c_in: float = 470e-6
    """Input capacitor in F."""

    c_out: float = 470e-6
    """Output capacitor in F."""

    f_sw: float = 50e3
    """Switching frequency in Hz."""

    max_current: float = 15.0
    """Maximum converter current in A."""

    efficiency: float = 0.92
    """Nominal conversion efficiency."""

    input_voltage_min: float = 25.0
    input_voltage_max: float = 50.0
    output_voltage_min: float = 24.0
    output_voltage_max: float = 48.0


@dataclass(frozen=True)
class LoadParameters:
    r_load: float = 10.0
    """Load resistance in Ohm."""


@dataclass(frozen=True)
class ControlParameters:
    """Controller parameters."""

    mppt_step: float = 0.01
    """Perturb & Observe duty step."""

    soc_min: float = 20.0
    """SOC below which discharging is inhibited (%)."""

    soc_max: float = 90.0
    """SOC above which charging is inhibited (%)."""

    initial_duty: float = 0.5

    initial_pv_voltage: Optional[float] = None
    """Initial PV operating voltage in V. Defaults to the PV MPP voltage."""


@dataclass(frozen=True)
class IrradianceProfile:
    """
    Piecewise-constant irradiance keyed by time breakpoints.

    The value in effect at time t is the one of the latest breakpoint with time <= t.
    """

    times: Tuple[float, ...]
    values: Tuple[float, ...]

    def __post_init__(self):
        # Accept any sequence, store tuples so the profile stays hashable and immutable
        object.__setattr__(self, "times", tuple(float(t) for t in self.times))
        object.__setattr__(self, "values", tuple(float(v) for v in self.values))

        if len(self.times) == 0:
            raise ConfigurationError("Irradiance profile needs at least one breakpoint.")
        if len(self.times) != len(self.values):
            raise ConfigurationError(
                f"Irradiance profile has {len(self.times)} times but {len(self.values)} values."
            )
        if np.any(np.diff(self.times) <= 0):
            raise ConfigurationError("Irradiance profile times must be strictly increasing.")
        if any(v < 0 for v in self.values):
            raise ConfigurationError("Irradiance values must be non-negative.")

    def value_at(self, t: float, default: float) -> float:
        """
        Look up the irradiance in effect at time t.

        Args:
            t: [arg] Simulation time in seconds.
            default: [arg] Value returned before the first breakpoint.
        """
        idx = int(np.searchsorted(self.times, t, side="right")) - 1
        if idx < 0:
            return default
        return self.values[idx]


@dataclass(frozen=True)
class SimulationConfig:
    """Root configuration of a simulation run."""

    pv: PvParameters = field(default_factory=PvParameters)
    battery: BatteryParameters = field(default_factory=BatteryParameters)
    converter: ConverterParameters = field(default_factory=ConverterParameters)
    load: LoadParameters = field(default_factory=LoadParameters)
    control: ControlParameters = field(default_factory=ControlParameters)

    simulation_time: float = 2.0
    """Total simulated time in seconds."""

    dt: float = 1e-5
    """Sampling time in seconds."""

    variant: RunVariant = RunVariant.EXTENDED

    irradiance_profile: Optional[IrradianceProfile] = None

    @property
    def n_steps(self) -> int:
        """Number of samples N, including t=0 and t=simulation_time."""
        return int(round(self.simulation_time / self.dt)) + 1

    @property
    def extended(self) -> bool:
        return self.variant is RunVariant.EXTENDED

    @property
    def initial_pv_voltage(self) -> float:
        if self.control.initial_pv_voltage is not None:
            return self.control.initial_pv_voltage
        return self.pv.vmp

    def irradiance_at(self, t: float) -> float:
        """
        Irradiance in effect at time t.
        Without a profile the base irradiance drops to 800 W/m^2 after t = 1 s.
        """
        if self.irradiance_profile is not None:
            return self.irradiance_profile.value_at(t, self.pv.irradiance)
        if t > DEFAULT_STEP_TIME:
            return DEFAULT_STEP_IRRADIANCE
        return self.pv.irradiance

    def validate(self) -> None:
        """
        Check the configuration before a run starts.

        Raises:
            ConfigurationError: On any parameter that would make the run meaningless.
        """
        bat = self.battery
        ctrl = self.control

        if float(bat.nominal_voltage) not in SUPPORTED_NOMINAL_VOLTAGES:
            raise ConfigurationError(
                f"Unsupported nominal voltage {bat.nominal_voltage} V, "
                f"expected one of {SUPPORTED_NOMINAL_VOLTAGES}."
            )
        if bat.capacity_ah <= 0:
            raise ConfigurationError(f"Battery capacity must be positive, got {bat.capacity_ah}.")
        if not 0.0 <= bat.initial_soc <= 100.0:
            raise ConfigurationError(f"Initial SOC {bat.initial_soc} outside [0, 100].")
        if not -20.0 <= bat.initial_temperature <= 60.0:
            raise ConfigurationError(
                f"Initial battery temperature {bat.initial_temperature} outside [-20, 60] degC."
            )
        if bat.thermal_resistance <= 0 or bat.thermal_capacitance <= 0:
            raise ConfigurationError("Thermal resistance and capacitance must be positive.")

        if self.pv.temperature <= ABSOLUTE_ZERO_C:
            raise ConfigurationError(f"PV temperature {self.pv.temperature} is below absolute zero.")
        if self.pv.ns <= 0 or self.pv.np_ <= 0:
            raise ConfigurationError("PV series/parallel counts must be positive.")
        if self.load.r_load <= 0:
            raise ConfigurationError(f"Load resistance must be positive, got {self.load.r_load}.")

        if not 0.1 <= ctrl.initial_duty <= 0.9:
            raise ConfigurationError(f"Initial duty cycle {ctrl.initial_duty} outside [0.1, 0.9].")
        if not 0.0 <= ctrl.soc_min < ctrl.soc_max <= 100.0:
            raise ConfigurationError(
                f"SOC window [{ctrl.soc_min}, {ctrl.soc_max}] is not a valid range."
            )
        if ctrl.mppt_step <= 0:
            raise ConfigurationError("MPPT step must be positive.")

        conv = self.converter
        if not conv.input_voltage_min < conv.input_voltage_max:
            raise ConfigurationError("Converter input voltage window is empty.")
        if not 0 < conv.output_voltage_min < conv.output_voltage_max:
            raise ConfigurationError("Converter output voltage window is empty.")
        for name in ("inductance", "c_in", "c_out", "f_sw", "max_current"):
            if getattr(conv, name) <= 0:
                raise ConfigurationError(f"Converter {name} must be positive, got {getattr(conv, name)}.")
        if not 0 < conv.efficiency <= 1:
            raise ConfigurationError(f"Converter efficiency {conv.efficiency} outside (0, 1].")

        if self.dt <= 0:
            raise ConfigurationError(f"Time step must be positive, got {self.dt}.")
        if self.simulation_time < self.dt:
            raise ConfigurationError("Simulation time must cover at least one time step.")


# --- Loading ---

_SECTIONS = {
    "pv": PvParameters,
    "battery": BatteryParameters,
    "converter": ConverterParameters,
    "load": LoadParameters,
    "control": ControlParameters,
}


def _build_section(cls, data: dict, name: str):
    known = {f.name for f in fields(cls)}
    unknown = set(data) - known
    if unknown:
        raise ConfigurationError(f"Unrecognized {name} options: {sorted(unknown)}")
    return cls(**data)


def config_from_dict(data: dict) -> SimulationConfig:
    """
    Build a SimulationConfig from a nested dictionary.

    Missing sections and keys fall back to their defaults.
    """
    kwargs = {}
    for name, cls in _SECTIONS.items():
        if name in data:
            kwargs[name] = _build_section(cls, data[name], name)

    if "simulation" in data:
        sim = dict(data["simulation"])
        unknown = set(sim) - {"simulation_time", "dt", "variant"}
        if unknown:
            raise ConfigurationError(f"Unrecognized simulation options: {sorted(unknown)}")
        if "variant" in sim:
            try:
                sim["variant"] = RunVariant(sim["variant"])
            except ValueError as e:
                raise ConfigurationError(f"Unknown run variant {sim['variant']!r}") from e
        kwargs.update(sim)

    if "irradiance_profile" in data:
        profile = data["irradiance_profile"]
        kwargs["irradiance_profile"] = IrradianceProfile(
            times=profile.get("times", ()),
            values=profile.get("values", ()),
        )

    extra = set(data) - set(_SECTIONS) - {"simulation", "irradiance_profile"}
    if extra:
        raise ConfigurationError(f"Unrecognized configuration sections: {sorted(extra)}")

    return SimulationConfig(**kwargs)


def load_config(path: Optional[Path] = None) -> SimulationConfig:
    """
    Load configuration from a JSON file or return defaults.

    Args:
        path: [arg] Path to config JSON file. If None, returns defaults.

    Returns:
        Validated configuration object.
    """
    if path is None:
        return SimulationConfig()

    with open(path) as f:
        data = json.load(f)

    config = config_from_dict(data)
    config.validate()
    return config


def profile_from_pairs(pairs: Sequence[Tuple[float, float]]) -> IrradianceProfile:
    """Build an IrradianceProfile from (time, irradiance) pairs."""
    times = [p[0] for p in pairs]
    values = [p[1] for p in pairs]
    return IrradianceProfile(times=tuple(times), values=tuple(values))
