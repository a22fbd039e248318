import time
import logging
from collections import namedtuple

import numpy as np
import casadi as ca

from mpc_tracking.config import MPCConfig
from mpc_tracking.exceptions import NonFiniteSolutionError
from mpc_tracking.layout import STATE_FIELDS, build_layout
from mpc_tracking.mpc_utils import (polyeval, d_polyeval, latency_offset,
                                    validate_state, validate_coeffs)

logger = logging.getLogger(__name__)

MPCProblem = namedtuple("MPCProblem", ["x0", "lbx", "ubx", "lbg", "ubg"])
SolverResult = namedtuple("SolverResult", ["success", "status", "x", "cost", "solve_time"])


class FGEval:
    """
    Cost and constraints of the tracking problem for one reference polynomial.

    Calling the object on a decision vector (casadi SX/MX or floats) returns
    the scalar cost and the list of N*6 constraint residuals. The first
    state of every quantity is returned as is, so its constraint bounds pin
    it to the measured state; the remaining entries are the multiple-shooting
    gaps of the kinematic bicycle model and must be zero.
    """

    def __init__(self, coeffs, layout, config):
        self.coeffs = [float(c) for c in coeffs]
        self.layout = layout
        self.config = config
        self._fg = None
        self._grad = None

    def __call__(self, vars, coeffs=None):
        """
        Cost and constraint residuals at `vars`. `coeffs` overrides the
        stored polynomial, e.g. with a casadi parameter vector.
        """
        if coeffs is None:
            coeffs = self.coeffs
        ly = self.layout
        N = ly.horizon
        dt = self.config.dt
        lf = self.config.lf
        ref_v = self.config.ref_v

        cost = 0
        # reference state
        for t in range(N):
            cost += vars[ly.cte_start + t] ** 2
            cost += vars[ly.epsi_start + t] ** 2
            cost += (vars[ly.v_start + t] - ref_v) ** 2

        # actuator use
        for t in range(N - 1):
            cost += vars[ly.delta_start + t] ** 2
            cost += vars[ly.a_start + t] ** 2

        # sequential actuations
        for t in range(N - 2):
            cost += self.config.steer_weight * (vars[ly.delta_start + t + 1] - vars[ly.delta_start + t]) ** 2
            cost += (vars[ly.a_start + t + 1] - vars[ly.a_start + t]) ** 2

        g = [None] * ly.n_constraints
        for field in STATE_FIELDS:
            g[ly.start(field)] = vars[ly.start(field)]

        for t in range(1, N):
            x1 = vars[ly.x_start + t]
            y1 = vars[ly.y_start + t]
            psi1 = vars[ly.psi_start + t]
            v1 = vars[ly.v_start + t]
            cte1 = vars[ly.cte_start + t]
            epsi1 = vars[ly.epsi_start + t]

            x0 = vars[ly.x_start + t - 1]
            y0 = vars[ly.y_start + t - 1]
            psi0 = vars[ly.psi_start + t - 1]
            v0 = vars[ly.v_start + t - 1]
            epsi0 = vars[ly.epsi_start + t - 1]

            delta0 = vars[ly.delta_start + t - 1]
            a0 = vars[ly.a_start + t - 1]

            f0 = polyeval(coeffs, x0)
            psides0 = ca.atan(d_polyeval(coeffs, x0))

            g[ly.x_start + t] = x1 - (x0 + v0 * ca.cos(psi0) * dt)
            g[ly.y_start + t] = y1 - (y0 + v0 * ca.sin(psi0) * dt)
            g[ly.psi_start + t] = psi1 - (psi0 + v0 * delta0 * dt / lf)
            g[ly.v_start + t] = v1 - (v0 + a0 * dt)
            g[ly.cte_start + t] = cte1 - ((f0 - y0) + v0 * ca.sin(epsi0) * dt)
            g[ly.epsi_start + t] = epsi1 - ((psi0 - psides0) + v0 * delta0 * dt / lf)

        return cost, g

    def _build_functions(self):
        z = ca.SX.sym("z", self.layout.n_vars)
        cost, g = self(z)
        self._fg = ca.Function("fg", [z], [cost, ca.vertcat(*g)], ["vars"], ["cost", "g"])
        self._grad = ca.Function("grad_f", [z], [ca.gradient(cost, z)], ["vars"], ["grad"])

    def evaluate(self, vars):
        """
        Numeric cost and constraint residuals for a decision vector.
        """
        if self._fg is None:
            self._build_functions()
        cost, g = self._fg(np.asarray(vars, dtype=float))
        return float(cost), np.asarray(g.full()).ravel()

    def gradient(self, vars):
        """Exact cost gradient with respect to the decision vector."""
        if self._grad is None:
            self._build_functions()
        return np.asarray(self._grad(np.asarray(vars, dtype=float)).full()).ravel()


def build_problem(state, layout, config):
    """
    Initial guess and bounds for one control cycle.

    Args:
        state: current (x, y, psi, v, cte, epsi)
        layout: decision vector layout
        config: MPCConfig with actuator limits
    Returns:
        MPCProblem(x0, lbx, ubx, lbg, ubg)
    """
    x0 = np.zeros(layout.n_vars)
    for i, field in enumerate(STATE_FIELDS):
        x0[layout.start(field)] = state[i]

    # non-actuators are free
    lbx = np.full(layout.n_vars, np.finfo(float).min)
    ubx = np.full(layout.n_vars, np.finfo(float).max)

    lbx[layout.delta_start:layout.a_start] = -config.max_steer
    ubx[layout.delta_start:layout.a_start] = config.max_steer

    lbx[layout.a_start:] = -config.max_accel
    ubx[layout.a_start:] = config.max_accel

    # zero besides the initial state
    lbg = np.zeros(layout.n_constraints)
    ubg = np.zeros(layout.n_constraints)
    for i, field in enumerate(STATE_FIELDS):
        lbg[layout.start(field)] = state[i]
        ubg[layout.start(field)] = state[i]

    logger.debug("Built problem with %d variables and %d constraints", layout.n_vars, layout.n_constraints)
    return MPCProblem(x0, lbx, ubx, lbg, ubg)


class IpoptSolver:
    """
    Solve the problem with IPOPT through casadi.

    casadi differentiates the expression graph of the evaluator and hands
    IPOPT sparse jacobians and hessians. The reference polynomial enters as
    the parameter `p`, so one nlpsol instance is built per layout, polynomial
    order and config and reused by every later cycle.
    """

    def __init__(self, **extra_opts):
        self.extra_opts = extra_opts
        self._solvers = {}

    def options(self, config):
        # honor_original_bounds keeps results inside lbx/ubx after bound relaxation
        opts_setting = {'ipopt.print_level': config.print_level, 'print_time': 0, 'ipopt.sb': 'yes',
                        'ipopt.max_cpu_time': config.max_cpu_time, 'ipopt.max_iter': config.max_iter,
                        'ipopt.honor_original_bounds': 'yes', 'error_on_fail': False}
        opts_setting.update(self.extra_opts)
        return opts_setting

    def get_solver(self, fg_eval, config):
        key = (fg_eval.layout, len(fg_eval.coeffs), config)
        solver = self._solvers.get(key)
        if solver is None:
            z = ca.SX.sym("z", fg_eval.layout.n_vars)
            p = ca.SX.sym("p", len(fg_eval.coeffs))
            cost, g = fg_eval(z, [p[i] for i in range(p.numel())])
            nlp_prob = {'x': z, 'f': cost, 'p': p, 'g': ca.vertcat(*g)}
            solver = ca.nlpsol('solver', 'ipopt', nlp_prob, self.options(config))
            self._solvers[key] = solver
            logger.debug("Built IPOPT solver for %d variables, polynomial of order %d",
                         fg_eval.layout.n_vars, len(fg_eval.coeffs) - 1)
        return solver

    def __call__(self, fg_eval, problem, config):
        solver = self.get_solver(fg_eval, config)

        start_time = time.time()
        res = solver(x0=problem.x0, p=fg_eval.coeffs, lbx=problem.lbx, ubx=problem.ubx,
                     lbg=problem.lbg, ubg=problem.ubg)
        cost_time = time.time() - start_time

        stats = solver.stats()
        return SolverResult(success=bool(stats['success']),
                            status=stats.get('return_status', 'unknown'),
                            x=np.asarray(res['x'].full()).ravel(),
                            cost=float(res['f']),
                            solve_time=cost_time)


def extract_actuations(vars, layout, offset):
    """
    Actuation at the latency offset followed by the predicted path.

    Returns:
        [delta, a, x1, y1, ..., x_{N-1}, y_{N-1}]
    """
    fields = layout.unpack(vars)
    bad = [name for name, values in fields.items() if not np.all(np.isfinite(values))]
    if bad:
        raise NonFiniteSolutionError(f"solution contains non-finite values in {', '.join(bad)}")

    actuations = [float(fields["delta"][offset]), float(fields["a"][offset])]
    for x, y in zip(fields["x"][1:], fields["y"][1:]):
        actuations.append(float(x))
        actuations.append(float(y))
    return actuations


class MPC:
    """
    Path tracking MPC over a kinematic bicycle model.

    Each call to `solve` is a full, independent control cycle.
    """

    def __init__(self, config=None, solver=None):
        self.config = config if config is not None else MPCConfig()
        self.layout = build_layout(self.config.horizon)
        self.solver = solver if solver is not None else IpoptSolver()
        self.last_result = None

    def solve(self, state, coeffs, latency=0):
        """
        Compute the actuation for one control cycle.

        Args:
            state: (x, y, psi, v, cte, epsi) in vehicle coordinates
            coeffs: reference polynomial coefficients, lowest degree first
            latency: actuation latency in `config.latency_scale` * dt units
        Returns:
            [delta, a, x1, y1, ...], or [] if the solver failed
        Raises:
            InvalidInputError: malformed state or polynomial
            LatencyError: latency leaves no actuation in the horizon
            NonFiniteSolutionError: successful solve with NaN/inf values
        """
        state = validate_state(state)
        coeffs = validate_coeffs(coeffs)
        offset = latency_offset(latency, self.layout.horizon, self.config.dt, self.config.latency_scale)

        problem = build_problem(state, self.layout, self.config)
        fg_eval = FGEval(coeffs, self.layout, self.config)

        result = self.solver(fg_eval, problem, self.config)
        self.last_result = result
        if not result.success:
            logger.warning("MPC solve failed with status %s", result.status)
            return []

        logger.debug("MPC solved in %.4f s, cost %.4f", result.solve_time, result.cost)
        return extract_actuations(result.x, self.layout, offset)
