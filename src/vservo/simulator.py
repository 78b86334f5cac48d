"""
Free-Flying Camera Simulator

A 6-DOF camera that applies the commanded velocity perfectly. The pose
ᶜM_o of a static object frame in the camera frame is updated by

    ᶜM_o(k+1) = exp([v] Δt)⁻¹ · ᶜM_o(k)

where v is the camera velocity expressed in the camera frame. The camera
is its own end-effector, so ᶜV_e and ᵉJ_e are identities.
"""

import numpy as np

from vservo.transforms import inverse_homogeneous, se3_exp


class SimulatedCamera:
    """Kinematic camera integrating camera-frame velocity commands."""

    DEFAULT_SAMPLING_TIME = 0.04

    def __init__(self, cMo=None, sampling_time=DEFAULT_SAMPLING_TIME):
        """
        Args:
            cMo: Initial 4x4 pose of the object frame in the camera frame
            sampling_time: Integration step Δt in seconds
        """
        if sampling_time <= 0:
            raise ValueError(f"sampling_time must be positive, got {sampling_time}")
        self.sampling_time = float(sampling_time)
        self.set_position(np.eye(4) if cMo is None else cMo)

    def set_position(self, cMo):
        cMo = np.asarray(cMo, dtype=float)
        if cMo.shape != (4, 4):
            raise ValueError(f"cMo must be a 4x4 homogeneous matrix, got shape {cMo.shape}")
        self._cMo = cMo.copy()

    def get_position(self):
        """Current 4x4 pose ᶜM_o (a copy)."""
        return self._cMo.copy()

    def get_cVe(self):
        return np.eye(6)

    def get_eJe(self):
        return np.eye(6)

    def set_velocity(self, v):
        """
        Apply a camera-frame velocity for one sampling period.

        Args:
            v: 6D velocity [vx, vy, vz, wx, wy, wz]

        Returns:
            The new pose ᶜM_o
        """
        v = np.asarray(v, dtype=float).reshape(-1)
        if v.size != 6:
            raise ValueError(f"Expected a 6D velocity, got {v.size} components")
        if not np.all(np.isfinite(v)):
            raise ValueError(f"Velocity must be finite, got {v}")

        c_M_cnext = se3_exp(v, self.sampling_time)
        self._cMo = inverse_homogeneous(c_M_cnext) @ self._cMo
        return self.get_position()
