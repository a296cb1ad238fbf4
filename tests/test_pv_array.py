import pytest
import numpy as np
from pv_bdc.config import PvParameters
from pv_bdc.pv_array import PvArrayModel, pv_current

def test_short_circuit_current():
    # At V = 0 the diode term vanishes: I = Np * Isc_T = 2 * 10
    i = pv_current(0.0, 1000.0, 25.0, isc=10.0, voc=42.0, ns=20, np_=2)
    assert i == pytest.approx(20.0)

def test_irradiance_scaling():
    i = pv_current(0.0, 500.0, 25.0, isc=10.0, voc=42.0, ns=20, np_=2)
    assert i == pytest.approx(10.0)

    assert pv_current(0.0, 0.0, 25.0, 10.0, 42.0, 20, 2) == 0.0

def test_temperature_correction():
    # Isc_T = 10 * (1 + 0.0017 * 10) = 10.17
    i = pv_current(0.0, 1000.0, 35.0, isc=10.0, voc=42.0, ns=20, np_=2)
    assert i == pytest.approx(20.34)

def test_open_circuit():
    # I0 * (exp(Voc/(A*Vt)) - 1) == Isc_T at V = Voc
    i = pv_current(42.0, 1000.0, 25.0, isc=10.0, voc=42.0, ns=20, np_=2)
    assert i == pytest.approx(0.0, abs=1e-6)

def test_no_reverse_current():
    i = pv_current(45.0, 1000.0, 25.0, isc=10.0, voc=42.0, ns=20, np_=2)
    assert i == 0.0

def test_single_cell_string_stays_finite():
    # Voc / (A*Vt) ~ 1360: exp() of it would overflow
    voltages = np.linspace(0.0, 42.0, 50)
    currents = [pv_current(v, 1000.0, 25.0, isc=10.0, voc=42.0, ns=1, np_=2) for v in voltages]

    assert all(np.isfinite(c) for c in currents)
    assert currents[0] == 20.0
    # Almost ideal current source up to Voc
    assert currents[-2] == pytest.approx(20.0, abs=1e-6)
    assert currents[-1] == pytest.approx(0.0, abs=1e-6)
    assert np.all(np.diff(currents) <= 0.0)

def test_iv_curve_monotonic():
    model = PvArrayModel(PvParameters())
    voltages = np.linspace(0.0, 42.0, 50)
    currents = [model.current(v, 1000.0) for v in voltages]

    assert all(c >= 0.0 for c in currents)
    assert np.all(np.diff(currents) <= 0.0)

def test_power_near_mpp():
    model = PvArrayModel(PvParameters())

    # Knee of the curve: still close to full current at Vmp
    p = model.power(35.0, 1000.0)
    assert p == pytest.approx(35.0 * model.current(35.0, 1000.0))
    assert p > 0.95 * 35.0 * 20.0

    assert model.power(35.0, 1000.0) > model.power(10.0, 1000.0)

def test_max_power_reference():
    model = PvArrayModel(PvParameters(vmp=35.0, imp=9.0))

    assert model.max_power(1000.0) == pytest.approx(315.0)
    assert model.max_power(800.0) == pytest.approx(252.0)
    assert model.max_power(0.0) == 0.0
