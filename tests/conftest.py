import numpy as np
import pytest

from vservo.features import PointFeature, ThetaUFeature, TranslationFeature
from vservo.task import ServoScheme, ServoTask
from vservo.transforms import pose_to_homogeneous


# =============================================================================
# Geometry Fixtures
# =============================================================================

@pytest.fixture
def numpy_seed():
    """Set numpy random seed for reproducible tests."""
    np.random.seed(42)
    yield


@pytest.fixture
def random_homogeneous(numpy_seed):
    """A random, moderately sized rigid transformation."""
    pose = np.concatenate([np.random.randn(3) * 0.3, np.random.randn(3) * 0.4])
    return pose_to_homogeneous(pose)


# =============================================================================
# Feature / Task Fixtures
# =============================================================================

@pytest.fixture
def point_pair():
    """Current point (0.1, -0.2) at 1.5 m and desired point at the image center."""
    s = PointFeature().build_from(0.1, -0.2, 1.5)
    sd = PointFeature().build_from(0.0, 0.0, 1.0)
    return s, sd


@pytest.fixture
def four_points():
    """Corners of a 20 cm square seen at 1 m, with a slightly displaced current view."""
    corners = [(-0.1, -0.1), (0.1, -0.1), (0.1, 0.1), (-0.1, 0.1)]
    desired = [PointFeature().build_from(x, y, 1.0) for x, y in corners]
    current = [PointFeature().build_from(x + 0.02, y - 0.01, 1.2) for x, y in corners]
    return current, desired


@pytest.fixture
def camera_task():
    """Eye-in-hand task with velocities in the camera frame."""
    task = ServoTask(ServoScheme.EYE_IN_HAND_CAMERA)
    yield task
    task.kill()


@pytest.fixture
def pose_features():
    """Translation + theta-u features with their zero desired counterparts."""
    t, td = TranslationFeature(), TranslationFeature()
    tu, tud = ThetaUFeature(), ThetaUFeature()
    return (t, td), (tu, tud)
