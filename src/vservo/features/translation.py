"""
3D Translation Feature

s = t, a translation extracted from a homogeneous transformation. Three
parameterizations are supported, each with its own interaction matrix:

    CDMC: t = ᶜ*t_c  (camera position in the desired camera frame)
          L = [ ᶜ*R_c   0₃ ]
    CMCD: t = ᶜt_c*  (desired camera position in the current camera frame)
          L = [ -I₃   [t]× ]
    CMO:  t = ᶜt_o   (object position in the current camera frame)
          L = [ -I₃   [t]× ]

With CDMC the desired feature is usually zero and the current rotation
ᶜ*R_c is kept as auxiliary state.
"""

from enum import Enum

import numpy as np

from vservo.features.base import Selection, VisualFeature
from vservo.transforms import skew, translation_homogeneous


class TranslationFrame(Enum):
    """Which transformation the translation is taken from."""
    CDMC = "cdMc"
    CMCD = "cMcd"
    CMO = "cMo"


class TranslationFeature(VisualFeature):
    """3D translation visual feature."""

    KIND = "translation"
    DIMENSION = 3
    COMPONENT_NAMES = ("tx", "ty", "tz")

    SELECT_TX = Selection(KIND, 0b001)
    SELECT_TY = Selection(KIND, 0b010)
    SELECT_TZ = Selection(KIND, 0b100)

    def __init__(self, frame=TranslationFrame.CDMC):
        self.frame = TranslationFrame(frame)
        super().__init__()

    def reset(self):
        super().reset()
        self.rotation = np.eye(3)

    def build_from(self, T):
        """
        Set the feature from a 4x4 homogeneous matrix (cdMc, cMcd or cMo
        depending on the frame this feature was created with).
        """
        T = np.asarray(T, dtype=float)
        if T.shape != (4, 4):
            raise ValueError(f"Expected a 4x4 homogeneous matrix, got shape {T.shape}")
        self.value[:] = T[:3, 3]
        self.rotation = T[:3, :3].copy()
        return self

    def build_from_translation(self, tx, ty, tz):
        """Set the feature from a pure translation (identity rotation)."""
        return self.build_from(translation_homogeneous(tx, ty, tz))

    def _interaction_matrix(self):
        if self.frame is TranslationFrame.CDMC:
            return np.hstack((self.rotation, np.zeros((3, 3))))
        return np.hstack((-np.eye(3), skew(self.value)))

    def is_compatible(self, other):
        return super().is_compatible(other) and other.frame is self.frame

    def describe(self):
        return f"{self.KIND}({self.frame.value})[{self.dimension}]"
