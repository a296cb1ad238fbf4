import pytest
from pv_bdc.config import BatteryParameters
from pv_bdc.thermal import BatteryThermalModel

def test_thermal_derivative():
    params = BatteryParameters(
        internal_resistance=0.01,
        ambient_temperature=20.0,
        thermal_resistance=10.0,
        thermal_capacitance=1000.0,
    )
    thermal = BatteryThermalModel(params)

    # q_joule = 20^2 * 0.01 = 4.0
    # q_amb = (30 - 20) / 10 = 1.0
    # dT = (4.0 - 1.0) / 1000 = 0.003
    dT = thermal.get_temp_derivative(30.0, 20.0)
    assert abs(dT - 0.003) < 1e-12

    # Current direction does not matter
    assert thermal.get_temp_derivative(30.0, -20.0) == dT

def test_thermal_equilibrium():
    """Temperature stays constant at ambient with no current."""
    params = BatteryParameters(ambient_temperature=20.0)
    thermal = BatteryThermalModel(params)

    assert thermal.get_temp_derivative(20.0, 0.0) == 0.0
    assert thermal.step(20.0, 0.0, 1.0) == 20.0

def test_thermal_steady_state():
    """Joule heating balances ambient loss at T_amb + I^2 * R * R_th."""
    params = BatteryParameters(
        internal_resistance=0.01,
        ambient_temperature=20.0,
        thermal_resistance=10.0,
    )
    thermal = BatteryThermalModel(params)

    # 10 A -> 1 W -> +10 degC
    assert abs(thermal.get_temp_derivative(30.0, 10.0)) < 1e-12

def test_thermal_forward_euler():
    params = BatteryParameters(ambient_temperature=20.0)
    thermal = BatteryThermalModel(params)

    t_new = thermal.step(30.0, 20.0, 2.0)
    assert abs(t_new - (30.0 + 2.0 * 0.003)) < 1e-12

def test_thermal_clamp():
    hot = BatteryThermalModel(BatteryParameters(ambient_temperature=20.0))
    assert hot.step(59.0, 500.0, 1000.0) == 60.0

    cold = BatteryThermalModel(BatteryParameters(ambient_temperature=-100.0))
    assert cold.step(-19.0, 0.0, 1e6) == -20.0
