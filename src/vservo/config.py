"""
Servo Configuration

Tunable parameters of a servoing session. Every field defaults to an
environment variable so a control loop can be retuned without code changes:

    SERVO_GAIN=0.5 SERVO_INTERACTION=mean vservo-sim
"""

import os
from dataclasses import dataclass, field
from typing import Optional

from vservo.gain import AdaptiveGain
from vservo.linalg import DEFAULT_PINV_THRESHOLD
from vservo.task import InteractionMatrixType, InversionType, ServoScheme


def _env(name, default, cast=str):
    """Read an environment variable, falling back to default when unset or empty."""
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError as exc:
        raise ValueError(f"Invalid value for {name}: {raw!r}") from exc


def _optional_float(raw):
    return None if raw.lower() in ("none", "") else float(raw)


@dataclass
class ServoConfig:

    # Gain: constant unless the adaptive parameters are given
    gain: float = field(default_factory=lambda: _env("SERVO_GAIN", 1.0, float))
    gain_at_zero: Optional[float] = field(default_factory=lambda: _env("SERVO_GAIN_ZERO", None, _optional_float))
    gain_at_infinity: Optional[float] = field(default_factory=lambda: _env("SERVO_GAIN_INF", None, _optional_float))
    gain_slope: Optional[float] = field(default_factory=lambda: _env("SERVO_GAIN_SLOPE", None, _optional_float))

    # Control law
    scheme: str = field(default_factory=lambda: _env("SERVO_SCHEME", ServoScheme.EYE_IN_HAND_CAMERA.value))
    interaction: str = field(default_factory=lambda: _env("SERVO_INTERACTION", InteractionMatrixType.CURRENT.value))
    inversion: str = field(default_factory=lambda: _env("SERVO_INVERSION", InversionType.PSEUDO_INVERSE.value))
    pinv_threshold: float = field(default_factory=lambda: _env("SERVO_PINV_THRESHOLD", DEFAULT_PINV_THRESHOLD, float))
    dls_lambda: float = field(default_factory=lambda: _env("SERVO_DLS_LAMBDA", 0.01, float))

    # Loop
    sampling_time: float = field(default_factory=lambda: _env("SERVO_SAMPLING_TIME", 0.04, float))
    max_iterations: int = field(default_factory=lambda: _env("SERVO_MAX_ITER", 200, int))
    error_threshold: float = field(default_factory=lambda: _env("SERVO_ERROR_THRESHOLD", 0.0, float))
    convergence_window: int = field(default_factory=lambda: _env("SERVO_CONVERGENCE_WINDOW", 10, int))

    def __post_init__(self):
        # Fail early on typos rather than at the first control cycle
        ServoScheme(self.scheme)
        InteractionMatrixType(self.interaction)
        InversionType(self.inversion)
        if self.sampling_time <= 0:
            raise ValueError(f"sampling_time must be positive, got {self.sampling_time}")
        if self.max_iterations < 0:
            raise ValueError(f"max_iterations must be non-negative, got {self.max_iterations}")
        if self.convergence_window < 1:
            raise ValueError(f"convergence_window must be >= 1, got {self.convergence_window}")
        self.build_gain()

    @property
    def is_adaptive(self):
        return self.gain_at_zero is not None and self.gain_at_infinity is not None

    def build_gain(self):
        """Gain law described by this configuration."""
        if self.is_adaptive:
            slope = self.gain_slope if self.gain_slope is not None else AdaptiveGain.DEFAULT_SLOPE_AT_ZERO
            return AdaptiveGain(self.gain_at_zero, self.gain_at_infinity, slope)
        return AdaptiveGain.constant(self.gain)

    def configure(self, task):
        """Apply the control law settings to a ServoTask and return it."""
        task.set_servo(self.scheme)
        task.set_interaction_matrix_type(self.interaction, self.inversion)
        task.set_lambda(self.build_gain())
        task.set_pinv_threshold(self.pinv_threshold)
        task.set_damping(self.dls_lambda)
        return task
