import math
import dataclasses
from dataclasses import dataclass

import yaml

from mpc_tracking.exceptions import ConfigurationError

# Horizon
N = 10  # number of timesteps
DT = 0.1  # time tick [s]

# Vehicle
LF = 2.67  # front axle to center of gravity [m]
REF_V = 30.0  # target speed

# Actuator limits
MAX_STEER = math.radians(25.0)  # maximum steering angle [rad]
MAX_ACCEL = 1.0  # normalized throttle/brake

# Cost weights
STEER_WEIGHT = 200.0  # weight of sequential steering change

# Solver
MAX_CPU_TIME = 0.5  # [s]
MAX_ITER = 3000
PRINT_LEVEL = 0

# Latency is reported in milliseconds, dt in seconds
LATENCY_SCALE = 1000.0


@dataclass(frozen=True)
class MPCConfig:
    """Immutable configuration shared by the problem builder, evaluator and solver."""
    horizon: int = N
    dt: float = DT
    ref_v: float = REF_V
    lf: float = LF
    steer_weight: float = STEER_WEIGHT
    max_steer: float = MAX_STEER
    max_accel: float = MAX_ACCEL
    max_cpu_time: float = MAX_CPU_TIME
    max_iter: int = MAX_ITER
    print_level: int = PRINT_LEVEL
    latency_scale: float = LATENCY_SCALE

    def __post_init__(self):
        if int(self.horizon) != self.horizon or self.horizon < 2:
            raise ConfigurationError(f"horizon must be an integer >= 2, got {self.horizon!r}")
        for name in ("dt", "lf", "max_steer", "max_accel", "max_cpu_time", "latency_scale"):
            value = getattr(self, name)
            if not math.isfinite(value) or value <= 0:
                raise ConfigurationError(f"{name} must be positive, got {value!r}")
        if self.max_iter < 1:
            raise ConfigurationError(f"max_iter must be positive, got {self.max_iter!r}")

    @classmethod
    def from_dict(cls, params):
        """
        Build a config from a mapping, missing keys take the module defaults.
        """
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = set(params) - known
        if unknown:
            raise ConfigurationError(f"unknown config keys: {sorted(unknown)}")
        return cls(**params)

    @classmethod
    def from_yaml(cls, path):
        """
        Load a config from a YAML file. The options may sit at the top level
        or under an `mpc` key.
        """
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"{path} does not contain a mapping")
        if "mpc" in data:
            data = data["mpc"] or {}
        return cls.from_dict(data)

    def replace(self, **changes):
        return dataclasses.replace(self, **changes)

    @property
    def latency_step(self):
        """Latency units covered by one horizon step."""
        return self.latency_scale * self.dt
