"""
Control Gain

The gain λ scaling the control law v = -λ · J⁺ · e can be constant or adapt
to the size of the task error:

    λ(x) = (λ₀ - λ∞) · exp(-λ'₀ · x / (λ₀ - λ∞)) + λ∞

where:
    - λ₀: gain when the error is zero (fine convergence)
    - λ∞: gain for very large errors (keeps the first steps gentle)
    - λ'₀: slope of λ at x = 0
    - x: infinity norm of the task error
"""

import numpy as np


class AdaptiveGain:
    """
    Exponentially saturating gain.

    A constant gain is the special case λ₀ == λ∞.
    """

    DEFAULT_GAIN_AT_ZERO = 1.666
    DEFAULT_GAIN_AT_INFINITY = 0.1666
    DEFAULT_SLOPE_AT_ZERO = 1.666

    def __init__(
        self,
        gain_at_zero=DEFAULT_GAIN_AT_ZERO,
        gain_at_infinity=DEFAULT_GAIN_AT_INFINITY,
        slope_at_zero=DEFAULT_SLOPE_AT_ZERO,
    ):
        """
        Args:
            gain_at_zero: λ₀, must be >= λ∞
            gain_at_infinity: λ∞, must be >= 0
            slope_at_zero: λ'₀, must be >= 0
        """
        for name, val in (
            ("gain_at_zero", gain_at_zero),
            ("gain_at_infinity", gain_at_infinity),
            ("slope_at_zero", slope_at_zero),
        ):
            if not np.isfinite(val) or val < 0:
                raise ValueError(f"{name} must be a finite non-negative number, got {val}")
        # λ₀ < λ∞ would make the exponential term grow and the gain go negative
        if gain_at_zero < gain_at_infinity:
            raise ValueError(
                f"gain_at_zero ({gain_at_zero}) must be >= gain_at_infinity ({gain_at_infinity})"
            )

        self.gain_at_zero = float(gain_at_zero)
        self.gain_at_infinity = float(gain_at_infinity)
        self.slope_at_zero = float(slope_at_zero)

        self._a = self.gain_at_zero - self.gain_at_infinity
        self._b = self.slope_at_zero / self._a if self._a != 0.0 else 0.0

    @classmethod
    def constant(cls, gain):
        """Gain that does not depend on the error."""
        return cls(gain, gain, 0.0)

    @property
    def is_constant(self):
        return self._a == 0.0

    def value(self, x):
        """Gain for an error magnitude x >= 0."""
        if self._a == 0.0:
            return self.gain_at_infinity
        return self._a * np.exp(-self._b * x) + self.gain_at_infinity

    def __call__(self, x=0.0):
        """Evaluate the gain on a scalar or on the infinity norm of a vector."""
        x = np.asarray(x, dtype=float)
        if x.ndim > 0:
            x = np.max(np.abs(x)) if x.size else 0.0
        return float(self.value(float(x)))

    def __repr__(self):
        if self.is_constant:
            return f"AdaptiveGain.constant({self.gain_at_infinity})"
        return (
            f"AdaptiveGain(gain_at_zero={self.gain_at_zero}, "
            f"gain_at_infinity={self.gain_at_infinity}, slope_at_zero={self.slope_at_zero})"
        )
