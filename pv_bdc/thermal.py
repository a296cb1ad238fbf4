"""
Thermal dynamics module.

Implements the lumped single-node battery thermal model.
"""

from .config import BatteryParameters

T_MIN = -20.0
T_MAX = 60.0


class BatteryThermalModel:
    """
    Lumped thermal-capacitance model for battery temperature.

    Equation:
        C_th * dT/dt = I^2*R_int - (T - T_amb)/R_th
    """

    def __init__(self, params: BatteryParameters):
        self.params = params

    def get_temp_derivative(self, temperature: float, current: float) -> float:
        """
        Calculate dT/dt.

        Args:
            temperature: [arg] Battery temperature (degC).
            current: [arg] Battery current (A). Sign does not matter.

        Returns:
            dT/dt in degC/s.
        """
        p = self.params
        q_joule = (current ** 2) * p.internal_resistance
        q_amb = (temperature - p.ambient_temperature) / p.thermal_resistance
        return (q_joule - q_amb) / p.thermal_capacitance

    def step(self, temperature: float, current: float, dt: float) -> float:
        """Forward Euler update, limited to the [-20, 60] degC operating range."""
        t_new = temperature + self.get_temp_derivative(temperature, current) * dt
        return max(T_MIN, min(T_MAX, t_new))
