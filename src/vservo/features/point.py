"""
2D Image Point Feature

s = (x, y), the normalized image-plane coordinates of a point (meters on
the unit-focal plane). The depth Z of the point is auxiliary state: it is
needed by the interaction matrix but not by the error.

For normalized coordinates (x = (u-cx)/fx, y = (v-cy)/fy):
    [ẋ]   [ -1/Z   0     x/Z    x*y   -(1 + x^2)    y ]
    [ẏ] = [  0    -1/Z   y/Z   1 + y^2   -x*y      -x ] · v
"""

import numpy as np

from vservo.features.base import Selection, VisualFeature


class PointFeature(VisualFeature):
    """
    2D point visual feature.

    Depth defaults to 1 m. A depth of exactly zero contributes no
    translational terms (1/Z is taken as 0); a negative depth is used as
    given. Neither is rejected, the resulting degenerate interaction
    matrix is handled by the task's pseudo-inverse.
    """

    KIND = "point"
    DIMENSION = 2
    COMPONENT_NAMES = ("x", "y")

    SELECT_X = Selection(KIND, 0b01)
    SELECT_Y = Selection(KIND, 0b10)

    def reset(self):
        super().reset()
        self.Z = 1.0

    def build_from(self, x, y, Z):
        """
        Set the point from normalized coordinates and depth.

        Args:
            x, y: Normalized image coordinates
            Z: Depth of the point along the optical axis (meters)
        """
        self.value[0] = float(x)
        self.value[1] = float(y)
        self.Z = float(Z)
        return self

    def build_from_pixel(self, u, v, Z, fx, fy, cx, cy):
        """
        Set the point from pixel coordinates and pinhole intrinsics.

        Args:
            u, v: Pixel coordinates
            Z: Depth along the optical axis (meters)
            fx, fy: Focal lengths in pixels
            cx, cy: Principal point in pixels
        """
        return self.build_from((u - cx) / fx, (v - cy) / fy, Z)

    def build_from_point(self, X, Y, Z):
        """Set the point by perspective projection of a 3D point in the camera frame."""
        inv_Z = 1.0 / Z if Z != 0.0 else 0.0
        return self.build_from(X * inv_Z, Y * inv_Z, Z)

    @property
    def x(self):
        return self.value[0]

    @x.setter
    def x(self, val):
        self.value[0] = float(val)

    @property
    def y(self):
        return self.value[1]

    @y.setter
    def y(self, val):
        self.value[1] = float(val)

    def _interaction_matrix(self):
        x, y = self.value
        inv_Z = 1.0 / self.Z if self.Z != 0.0 else 0.0

        L = np.zeros((2, 6))

        # Row for x
        L[0, 0] = -inv_Z            # vx
        L[0, 1] = 0.0               # vy
        L[0, 2] = x * inv_Z         # vz
        L[0, 3] = x * y             # wx
        L[0, 4] = -(1.0 + x * x)    # wy
        L[0, 5] = y                 # wz

        # Row for y
        L[1, 0] = 0.0
        L[1, 1] = -inv_Z
        L[1, 2] = y * inv_Z
        L[1, 3] = 1.0 + y * y
        L[1, 4] = -x * y
        L[1, 5] = -x

        return L

    def _auxiliary_state(self):
        return f"Z={self.Z:.6g}"
