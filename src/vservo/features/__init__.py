"""Catalogue of visual feature kinds."""

from vservo.features.base import Selection, VisualFeature
from vservo.features.generic import GenericFeature
from vservo.features.point import PointFeature
from vservo.features.point3d import Point3DFeature
from vservo.features.thetau import RotationFrame, ThetaUFeature, theta_u_jacobian
from vservo.features.translation import TranslationFeature, TranslationFrame

__all__ = [
    "GenericFeature",
    "Point3DFeature",
    "PointFeature",
    "RotationFrame",
    "Selection",
    "ThetaUFeature",
    "TranslationFeature",
    "TranslationFrame",
    "VisualFeature",
    "theta_u_jacobian",
]
