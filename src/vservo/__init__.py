"""
vservo: Visual Servoing Engine

Turns visual measurements (image points, translations, rotations) into
visual features, stacks any combination of them into a servoing task, and
solves the control law v = -λ · L⁺ · (s - s*) once per control cycle.

Acquisition, tracking and robot drivers stay outside: the engine only needs
numeric readings in and hands a velocity vector back.
"""

from vservo.config import ServoConfig
from vservo.errors import FeatureMismatchError, SelectionError, ServoError, TaskNotReadyError
from vservo.features import (
    GenericFeature,
    Point3DFeature,
    PointFeature,
    RotationFrame,
    Selection,
    ThetaUFeature,
    TranslationFeature,
    TranslationFrame,
    VisualFeature,
)
from vservo.gain import AdaptiveGain
from vservo.linalg import pseudo_inverse
from vservo.simulator import SimulatedCamera
from vservo.task import InteractionMatrixType, InversionType, ServoScheme, ServoTask

__version__ = "0.1.0"

__all__ = [
    "AdaptiveGain",
    "FeatureMismatchError",
    "GenericFeature",
    "InteractionMatrixType",
    "InversionType",
    "Point3DFeature",
    "PointFeature",
    "RotationFrame",
    "Selection",
    "SelectionError",
    "ServoConfig",
    "ServoError",
    "ServoScheme",
    "ServoTask",
    "SimulatedCamera",
    "TaskNotReadyError",
    "ThetaUFeature",
    "TranslationFeature",
    "TranslationFrame",
    "VisualFeature",
    "pseudo_inverse",
]
