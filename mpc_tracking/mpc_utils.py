import math
import logging

import numpy as np

from mpc_tracking.exceptions import InvalidInputError, LatencyError
from mpc_tracking.layout import n_states

logger = logging.getLogger(__name__)


def polyeval(coeffs, x):
    """
    Evaluate the reference polynomial at x.

    Args:
        coeffs: coefficients, lowest degree first (floats or casadi symbols)
        x: float or casadi expression
    Returns:
        f(x), same kind as x
    """
    result = 0.0
    for c in reversed(coeffs):
        result = result * x + c
    return result


def d_polyeval(coeffs, x):
    """
    Evaluate the analytic derivative f'(x) of the reference polynomial.
    """
    result = 0.0
    for i in range(len(coeffs) - 1, 0, -1):
        result = result * x + i * coeffs[i]
    return result


def predict_state(state, actuators, dt, lf):
    """
    Advance a numeric state one step with the kinematic bicycle model.

    Uses the same update as the equality constraints, with the path
    polynomial folded into cte/epsi by the caller.

    Args:
        state: (x, y, psi, v, cte, epsi)
        actuators: (delta, a)
        dt: time tick
        lf: front axle to CG distance
    Returns:
        (x, y, psi, v) after dt
    """
    x, y, psi, v = state[:4]
    delta, a = actuators
    x += v * math.cos(psi) * dt
    y += v * math.sin(psi) * dt
    psi += v * delta * dt / lf
    v += a * dt
    return x, y, psi, v


def rollout(state, coeffs, deltas, accels, dt, lf):
    """
    Roll a full state trajectory forward from `state` under the given actuations.

    Returns an array of shape (len(deltas) + 1, 6). A trajectory built this
    way satisfies every dynamics constraint exactly.
    """
    traj = [tuple(float(s) for s in state)]
    for delta, a in zip(deltas, accels):
        x0, y0, psi0, v0, cte0, epsi0 = traj[-1]
        x1, y1, psi1, v1 = predict_state(traj[-1], (delta, a), dt, lf)
        cte1 = (polyeval(coeffs, x0) - y0) + v0 * math.sin(epsi0) * dt
        epsi1 = (psi0 - math.atan(d_polyeval(coeffs, x0))) + v0 * delta * dt / lf
        traj.append((x1, y1, psi1, v1, cte1, epsi1))
    return np.array(traj)


def validate_state(state):
    state = np.asarray(state, dtype=float).ravel()
    if state.size != n_states:
        raise InvalidInputError(f"state must have {n_states} values (x, y, psi, v, cte, epsi), got {state.size}")
    if not np.all(np.isfinite(state)):
        raise InvalidInputError(f"state contains non-finite values: {state.tolist()}")
    return state


def validate_coeffs(coeffs):
    coeffs = np.asarray(coeffs, dtype=float).ravel()
    if coeffs.size == 0:
        raise InvalidInputError("reference polynomial has no coefficients")
    if not np.all(np.isfinite(coeffs)):
        raise InvalidInputError(f"reference polynomial contains non-finite coefficients: {coeffs.tolist()}")
    return coeffs


def latency_offset(latency, horizon, dt, scale=1.0):
    """
    Number of horizon steps that elapse during the actuation latency.

    Only exact for latencies that are a multiple of dt; the reference
    polynomial is not re-evaluated at the offset pose.

    Args:
        latency: measured latency, in units of `scale` * dt
        horizon: N
        dt: time tick
        scale: latency units per unit of dt (1000 for ms latency, s dt)
    Returns:
        offset in [0, N-2]
    """
    latency = float(latency)
    if not math.isfinite(latency) or latency < 0:
        raise LatencyError(f"latency must be a non-negative number, got {latency!r}")

    steps = latency / (scale * dt)
    offset = int(math.floor(steps))
    # representation error only, e.g. 0.3 / 0.1 = 2.9999999999999996
    if math.isclose(steps, offset + 1, rel_tol=1e-12):
        offset += 1
    if offset >= horizon - 1:
        raise LatencyError(
            f"latency {latency:g} gives offset {offset}, horizon of {horizon} steps "
            f"only allows offsets up to {horizon - 2}")
    logger.debug("Latency %g maps to actuation offset %d", latency, offset)
    return offset
