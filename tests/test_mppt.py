import pytest
from hypothesis import given, strategies as st

from pv_bdc.mppt import MpptController, clamp_duty, next_duty

def test_power_up_voltage_up_decreases_duty():
    # dP = 35*9 - 34*8.5 = 315 - 289 = 26 > 0, dV = 1 > 0
    duty = next_duty(35.0, 9.0, 34.0, 8.5, 0.5, 0.01)
    assert duty == pytest.approx(0.49)

def test_power_up_voltage_down_increases_duty():
    # dP = 306 - 280 > 0, dV < 0
    duty = next_duty(34.0, 9.0, 35.0, 8.0, 0.5, 0.01)
    assert duty == pytest.approx(0.51)

def test_power_down_voltage_up_increases_duty():
    # dP = 280 - 306 < 0, dV > 0
    duty = next_duty(35.0, 8.0, 34.0, 9.0, 0.5, 0.01)
    assert duty == pytest.approx(0.51)

def test_power_down_voltage_down_decreases_duty():
    # dP = 272 - 315 < 0, dV < 0
    duty = next_duty(34.0, 8.0, 35.0, 9.0, 0.5, 0.01)
    assert duty == pytest.approx(0.49)

def test_no_power_change_holds_duty():
    # 10 * 2 == 20 * 1
    assert next_duty(10.0, 2.0, 20.0, 1.0, 0.37, 0.01) == 0.37

def test_duty_limits():
    assert next_duty(34.0, 9.0, 35.0, 8.0, 0.9, 0.05) == 0.9
    assert next_duty(35.0, 9.0, 34.0, 8.5, 0.1, 0.05) == 0.1

    assert clamp_duty(-0.7) == 0.1
    assert clamp_duty(1.5) == 0.9
    assert clamp_duty(0.42) == 0.42

def test_controller_binds_step():
    mppt = MpptController(step_size=0.02)
    assert mppt.next_duty(34.0, 9.0, 35.0, 8.0, 0.5) == pytest.approx(0.52)

finite = st.floats(min_value=-100.0, max_value=100.0, allow_nan=False, allow_infinity=False)

@given(finite, finite, finite, finite,
       st.floats(min_value=-1.0, max_value=2.0),
       st.floats(min_value=0.0, max_value=0.5))
def test_duty_always_in_range(v, i, v_prev, i_prev, duty_prev, step):
    duty = next_duty(v, i, v_prev, i_prev, duty_prev, step)
    assert 0.1 <= duty <= 0.9
