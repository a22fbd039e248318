from collections import namedtuple

import numpy as np

STATE_FIELDS = ("x", "y", "psi", "v", "cte", "epsi")
ACTUATOR_FIELDS = ("delta", "a")

n_states = len(STATE_FIELDS)
n_actuators = len(ACTUATOR_FIELDS)

_Layout = namedtuple("_Layout", ["horizon"] + [f + "_start" for f in STATE_FIELDS + ACTUATOR_FIELDS]
                     + ["n_vars", "n_constraints"])


class VariableLayout(_Layout):
    """
    Offsets of every quantity inside the flat decision vector.

    States take N entries each in the order x, y, psi, v, cte, epsi,
    followed by N-1 steering and N-1 acceleration entries.
    """
    __slots__ = ()

    def start(self, field):
        return getattr(self, field + "_start")

    def size(self, field):
        return self.horizon if field in STATE_FIELDS else self.horizon - 1

    def block(self, field):
        """Index range of one quantity."""
        begin = self.start(field)
        return range(begin, begin + self.size(field))

    def unpack(self, vars):
        """Split a decision vector into one array per quantity."""
        vars = np.asarray(vars, dtype=float).ravel()
        if vars.size != self.n_vars:
            raise ValueError(f"decision vector has {vars.size} entries, layout expects {self.n_vars}")
        return {field: vars[self.start(field):self.start(field) + self.size(field)]
                for field in STATE_FIELDS + ACTUATOR_FIELDS}

    def pack(self, states, deltas, accels):
        """
        Build a decision vector from a (N, 6) state trajectory and N-1 actuations.
        """
        states = np.asarray(states, dtype=float)
        vars = np.zeros(self.n_vars)
        for i, field in enumerate(STATE_FIELDS):
            vars[self.start(field):self.start(field) + self.horizon] = states[:, i]
        vars[self.delta_start:self.a_start] = deltas
        vars[self.a_start:] = accels
        return vars


def build_layout(horizon):
    """
    Compute the decision vector layout for a horizon of `horizon` steps.
    """
    if int(horizon) != horizon or horizon < 2:
        raise ValueError(f"horizon must be an integer >= 2, got {horizon!r}")
    horizon = int(horizon)

    starts = []
    offset = 0
    for _ in STATE_FIELDS:
        starts.append(offset)
        offset += horizon
    for _ in ACTUATOR_FIELDS:
        starts.append(offset)
        offset += horizon - 1

    return VariableLayout(horizon, *starts,
                          n_vars=offset,
                          n_constraints=horizon * n_states)
