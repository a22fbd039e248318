import numpy as np
import pytest

from mpc_tracking.layout import ACTUATOR_FIELDS, STATE_FIELDS, build_layout

ALL_FIELDS = STATE_FIELDS + ACTUATOR_FIELDS


@pytest.mark.parametrize("horizon", [2, 3, 10, 25])
def test_blocks_partition_vector(horizon):
    ly = build_layout(horizon)
    assert ly.n_vars == horizon * 6 + (horizon - 1) * 2
    assert ly.n_constraints == horizon * 6

    seen = []
    for field in ALL_FIELDS:
        seen.extend(ly.block(field))
    assert sorted(seen) == list(range(ly.n_vars))
    assert sum(ly.size(field) for field in ALL_FIELDS) == ly.n_vars


def test_default_offsets():
    ly = build_layout(10)
    assert (ly.x_start, ly.y_start, ly.psi_start, ly.v_start, ly.cte_start, ly.epsi_start) == (0, 10, 20, 30, 40, 50)
    assert ly.delta_start == 60
    assert ly.a_start == 69
    assert ly.n_vars == 78


@pytest.mark.parametrize("horizon", [0, 1, 2.5, -3])
def test_rejects_short_horizon(horizon):
    with pytest.raises(ValueError):
        build_layout(horizon)


def test_layout_is_immutable():
    ly = build_layout(5)
    with pytest.raises(AttributeError):
        ly.x_start = 3


def test_pack_and_unpack_place_values_in_blocks():
    ly = build_layout(4)
    states = np.arange(24, dtype=float).reshape(4, 6)
    z = ly.pack(states, [0.1, 0.2, 0.3], [-1.0, 0.0, 1.0])

    assert z.size == ly.n_vars
    np.testing.assert_array_equal(z[ly.y_start:ly.y_start + 4], states[:, 1])
    fields = ly.unpack(z)
    np.testing.assert_array_equal(fields["epsi"], states[:, 5])
    np.testing.assert_array_equal(fields["delta"], [0.1, 0.2, 0.3])
    np.testing.assert_array_equal(fields["a"], [-1.0, 0.0, 1.0])


def test_unpack_rejects_wrong_length():
    ly = build_layout(4)
    with pytest.raises(ValueError):
        ly.unpack(np.zeros(ly.n_vars + 1))
