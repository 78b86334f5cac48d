"""
3D Point Feature

s = (X, Y, Z), the coordinates of a point expressed in the camera frame.
A point fixed in the scene moves in the camera frame as

    Ṗ = -v - w × P   →   L = [ -I₃   [P]× ]
"""

import numpy as np

from vservo.features.base import Selection, VisualFeature
from vservo.transforms import skew


class Point3DFeature(VisualFeature):
    """3D point visual feature."""

    KIND = "point3d"
    DIMENSION = 3
    COMPONENT_NAMES = ("X", "Y", "Z")

    SELECT_X = Selection(KIND, 0b001)
    SELECT_Y = Selection(KIND, 0b010)
    SELECT_Z = Selection(KIND, 0b100)

    def build_from(self, X, Y, Z):
        self.value[:] = (float(X), float(Y), float(Z))
        return self

    def build_from_homogeneous(self, cMo, oP):
        """
        Set the feature from an object-frame point and the object pose.

        Args:
            cMo: 4x4 pose of the object frame in the camera frame
            oP: 3D point in the object frame
        """
        cMo = np.asarray(cMo, dtype=float)
        cP = cMo[:3, :3] @ np.asarray(oP, dtype=float).reshape(3) + cMo[:3, 3]
        return self.build_from(*cP)

    def _interaction_matrix(self):
        return np.hstack((-np.eye(3), skew(self.value)))
