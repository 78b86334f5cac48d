"""
3D Rotation Feature (theta-u)

s = θu, the axis-angle vector of a rotation matrix. Two parameterizations:

    CDRC: θu of ᶜ*R_c   L = [ 0₃   L_w  ]
    CRCD: θu of ᶜR_c*   L = [ 0₃  -L_wᵀ ]

with
    L_w = I₃ + (θ/2)[u]× + (1 - sinc(θ) / sinc²(θ/2)) [u]×²
"""

from enum import Enum

import numpy as np

from vservo.features.base import Selection, VisualFeature
from vservo.transforms import ANGLE_EPSILON, sinc, skew, theta_u_from_rotation


class RotationFrame(Enum):
    """Which rotation the theta-u vector is taken from."""
    CDRC = "cdRc"
    CRCD = "cRcd"


def theta_u_jacobian(theta_u):
    """
    L_w for a theta-u vector, mapping angular velocity to d(θu)/dt.

    Args:
        theta_u: 3D rotation vector

    Returns:
        3x3 matrix
    """
    tu = np.asarray(theta_u, dtype=float).reshape(3)
    theta = np.linalg.norm(tu)
    Lw = np.eye(3)
    if theta < ANGLE_EPSILON:
        return Lw

    U = skew(tu)  # θ[u]×
    k = (1.0 - sinc(theta) / sinc(theta / 2.0) ** 2) / theta ** 2
    return Lw + 0.5 * U + k * (U @ U)


class ThetaUFeature(VisualFeature):
    """3D rotation visual feature in theta-u form."""

    KIND = "thetau"
    DIMENSION = 3
    COMPONENT_NAMES = ("tux", "tuy", "tuz")

    SELECT_TUX = Selection(KIND, 0b001)
    SELECT_TUY = Selection(KIND, 0b010)
    SELECT_TUZ = Selection(KIND, 0b100)

    def __init__(self, frame=RotationFrame.CDRC):
        self.frame = RotationFrame(frame)
        super().__init__()

    def build_from(self, M):
        """
        Set the feature from a 3x3 rotation matrix or the rotation part of a
        4x4 homogeneous matrix (cdRc / cRcd depending on the frame).
        """
        M = np.asarray(M, dtype=float)
        if M.shape == (4, 4):
            M = M[:3, :3]
        elif M.shape != (3, 3):
            raise ValueError(f"Expected a 3x3 rotation or 4x4 homogeneous matrix, got shape {M.shape}")
        self.value[:] = theta_u_from_rotation(M)
        return self

    def build_from_theta_u(self, tux, tuy, tuz):
        self.value[:] = (float(tux), float(tuy), float(tuz))
        return self

    @property
    def theta(self):
        """Rotation angle in radians."""
        return float(np.linalg.norm(self.value))

    def _interaction_matrix(self):
        Lw = theta_u_jacobian(self.value)
        if self.frame is RotationFrame.CRCD:
            Lw = -Lw.T
        return np.hstack((np.zeros((3, 3)), Lw))

    def is_compatible(self, other):
        return super().is_compatible(other) and other.frame is self.frame

    def describe(self):
        return f"{self.KIND}({self.frame.value})[{self.dimension}]"
