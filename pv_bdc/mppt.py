"""
Maximum power point tracking.

Perturb & Observe with a fixed duty step.
"""

DUTY_MIN = 0.1
DUTY_MAX = 0.9


def clamp_duty(duty: float) -> float:
    """Limit duty cycle to [0.1, 0.9] so buck/boost ratios stay finite."""
    return max(DUTY_MIN, min(DUTY_MAX, duty))


def next_duty(v: float,
              i: float,
              v_prev: float,
              i_prev: float,
              duty_prev: float,
              step: float) -> float:
    """
    One Perturb & Observe update.

    Args:
        v, i: [arg] PV voltage and current at this tick.
        v_prev, i_prev: [arg] PV voltage and current at the previous tick.
        duty_prev: [arg] Duty cycle of the previous tick.
        step: [arg] Fixed perturbation step.

    Returns:
        New duty cycle, clamped.
    """
    delta_p = v * i - v_prev * i_prev
    delta_v = v - v_prev

    if delta_p == 0:
        return clamp_duty(duty_prev)

    if (delta_p > 0 and delta_v < 0) or (delta_p < 0 and delta_v > 0):
        duty = duty_prev + step
    else:
        duty = duty_prev - step

    return clamp_duty(duty)


class MpptController:
    """P&O tracker with a bound step size. Holds no state between ticks."""

    def __init__(self, step_size: float):
        self.step_size = step_size

    def next_duty(self, v: float, i: float, v_prev: float, i_prev: float, duty_prev: float) -> float:
        return next_duty(v, i, v_prev, i_prev, duty_prev, self.step_size)
