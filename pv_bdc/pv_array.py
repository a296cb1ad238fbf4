"""
PV array module.

Single-diode approximation of the PV array output current.
"""

import numpy as np
from .config import PvParameters

BOLTZMANN = 1.380649e-23
ELEMENTARY_CHARGE = 1.602176634e-19
IDEALITY_FACTOR = 1.2

STC_IRRADIANCE = 1000.0
STC_TEMPERATURE = 25.0

# Temperature coefficients (per degC)
ISC_TEMP_COEFF = 0.0017
VOC_TEMP_COEFF = 0.0023


def pv_current(voltage: float,
               irradiance: float,
               temperature: float,
               isc: float,
               voc: float,
               ns: int,
               np_: int) -> float:
    """
    PV array current at a given operating voltage.

    Args:
        voltage: [arg] Operating voltage in V.
        irradiance: [arg] Irradiance in W/m^2.
        temperature: [arg] Cell temperature in degC (must be above absolute zero).
        isc: [arg] Short circuit current at STC in A.
        voc: [arg] Open circuit voltage at STC in V.
        ns: [arg] Series cells.
        np_: [arg] Parallel strings.

    Returns:
        Current in A, never negative (no reverse conduction).
    """
    dT = temperature - STC_TEMPERATURE

    isc_t = isc * (irradiance / STC_IRRADIANCE) * (1.0 + ISC_TEMP_COEFF * dT)
    voc_t = voc * (1.0 - VOC_TEMP_COEFF * dT)

    # Thermal voltage of the whole string
    vt = ns * BOLTZMANN * (temperature + 273.15) / ELEMENTARY_CHARGE
    a_vt = IDEALITY_FACTOR * vt

    # I0 * (exp(V/aVt) - 1) = Isc_T * expm1(V/aVt) / expm1(Voc/aVt), rewritten so that
    # neither exponential overflows when Voc >> aVt (few series cells)
    diode_ratio = np.exp((voltage - voc_t) / a_vt) * np.expm1(-voltage / a_vt) / np.expm1(-voc_t / a_vt)

    current = np_ * isc_t * (1.0 - diode_ratio)
    return max(0.0, float(current))


class PvArrayModel:
    """
    PV array bound to a parameter set.
    Irradiance is supplied per call since it may follow a profile.
    """

    def __init__(self, params: PvParameters):
        self.params = params

    def current(self, voltage: float, irradiance: float) -> float:
        p = self.params
        return pv_current(voltage, irradiance, p.temperature, p.isc, p.voc, p.ns, p.np_)

    def power(self, voltage: float, irradiance: float) -> float:
        return voltage * self.current(voltage, irradiance)

    def max_power(self, irradiance: float) -> float:
        """
        Theoretical maximum power at the given irradiance.
        MPP power rating scaled by the irradiance ratio; used as the MPPT efficiency reference.
        """
        return self.params.power_rating * (irradiance / STC_IRRADIANCE)
