"""
Tests for ServoTask: feature stacking, control law and lifecycle.
"""

import numpy as np
import pytest

from vservo.errors import FeatureMismatchError, SelectionError, TaskNotReadyError
from vservo.features import GenericFeature, PointFeature, ThetaUFeature, TranslationFeature
from vservo.gain import AdaptiveGain
from vservo.task import InteractionMatrixType, InversionType, ServoScheme, ServoTask


def _add_points(task, current, desired):
    return [task.add_feature(s, sd) for s, sd in zip(current, desired)]


# =============================================================================
# Control law
# =============================================================================

class TestControlLaw:

    def test_translation_end_to_end(self, camera_task):
        s = TranslationFeature().build_from_translation(0.1, 0.2, 1.0)
        sd = TranslationFeature().build_from_translation(0.0, 0.0, 1.0)
        camera_task.add_feature(s, sd)
        camera_task.set_lambda(1.0)

        v = camera_task.compute_control_law()

        assert np.allclose(v, [-0.1, -0.2, 0.0, 0.0, 0.0, 0.0], atol=1e-12)

    @pytest.mark.parametrize("gain", [0.1, 1.0, 10.0])
    def test_zero_error_gives_zero_velocity(self, camera_task, four_points, gain):
        _, desired = four_points
        current = [sd.duplicate() for sd in desired]
        _add_points(camera_task, current, desired)
        camera_task.set_lambda(gain)

        v = camera_task.compute_control_law()

        assert np.allclose(v, 0.0)

    def test_four_points_matches_pseudo_inverse(self, camera_task, four_points):
        current, desired = four_points
        _add_points(camera_task, current, desired)
        camera_task.set_lambda(0.5)

        v = camera_task.compute_control_law()

        L = np.vstack([s.interaction() for s in current])
        e = np.concatenate([s.value - sd.value for s, sd in zip(current, desired)])
        assert np.allclose(v, -0.5 * np.linalg.pinv(L) @ e)
        assert camera_task.rank == 6
        assert camera_task.interaction_matrix.shape == (8, 6)

    def test_idempotent(self, camera_task, four_points):
        current, desired = four_points
        _add_points(camera_task, current, desired)

        v1 = camera_task.compute_control_law()
        v2 = camera_task.compute_control_law()

        assert np.array_equal(v1, v2)

    def test_returned_velocity_is_a_copy(self, camera_task, point_pair):
        camera_task.add_feature(*point_pair)
        v = camera_task.compute_control_law()
        v[:] = 100.0
        assert not np.allclose(camera_task.velocity, 100.0)

    def test_singular_configuration_is_finite(self, camera_task, capsys):
        # Two identical points with only x selected: both rows of L coincide
        for _ in range(2):
            s = PointFeature().build_from(0.1, 0.05, 1.0)
            sd = PointFeature().build_from(0.0, 0.0, 1.0)
            camera_task.add_feature(s, sd, PointFeature.SELECT_X)

        v = camera_task.compute_control_law()
        camera_task.compute_control_law()

        assert np.all(np.isfinite(v))
        assert np.linalg.norm(v) < 1.0
        assert camera_task.rank == 1
        assert capsys.readouterr().out.count("rank deficient") == 1

    def test_zero_depth_is_finite(self, camera_task):
        s = PointFeature().build_from(0.1, 0.1, 0.0)
        camera_task.add_feature(s, PointFeature().build_from(0.0, 0.0, 0.0))
        v = camera_task.compute_control_law()
        assert np.all(np.isfinite(v))

    def test_adaptive_gain(self, camera_task, point_pair):
        s, sd = point_pair
        camera_task.add_feature(s, sd)
        gain = AdaptiveGain(4.0, 0.4, 30.0)
        camera_task.set_lambda(gain)

        v = camera_task.compute_control_law()

        e1 = np.linalg.pinv(s.interaction()) @ s.error(sd)
        assert np.allclose(v, -gain(np.max(np.abs(e1))) * e1)

    def test_gain_tuple(self, camera_task):
        camera_task.set_lambda((4.0, 0.4, 30.0))
        assert not camera_task.gain.is_constant
        assert camera_task.gain(0.0) == pytest.approx(4.0)

    def test_negative_gain_rejected(self, camera_task):
        with pytest.raises(ValueError):
            camera_task.set_lambda(-1.0)

    def test_increasing_adaptive_gain_rejected(self, camera_task):
        with pytest.raises(ValueError):
            camera_task.set_lambda((0.1, 1.0, 1.0))
        assert camera_task.gain.is_constant


# =============================================================================
# Interaction matrix and inversion variants
# =============================================================================

class TestVariants:

    def test_desired_interaction_matrix(self, camera_task, point_pair):
        s, sd = point_pair
        camera_task.add_feature(s, sd)
        camera_task.set_interaction_matrix_type(InteractionMatrixType.DESIRED)

        camera_task.compute_control_law()

        assert np.allclose(camera_task.interaction_matrix, sd.interaction())

    def test_mean_interaction_matrix(self, camera_task, point_pair):
        s, sd = point_pair
        camera_task.add_feature(s, sd)
        camera_task.set_interaction_matrix_type("mean")

        camera_task.compute_control_law()

        assert np.allclose(camera_task.interaction_matrix, 0.5 * (s.interaction() + sd.interaction()))

    def test_desired_matrix_follows_desired_updates(self, camera_task, point_pair):
        s, sd = point_pair
        camera_task.add_feature(s, sd)
        camera_task.set_interaction_matrix_type(InteractionMatrixType.DESIRED)
        L_before = camera_task.compute_interaction_matrix().copy()

        sd.build_from(0.2, 0.2, 2.0)

        assert not np.allclose(camera_task.compute_interaction_matrix(), L_before)

    def test_transpose_inversion(self, camera_task, point_pair):
        s, sd = point_pair
        camera_task.add_feature(s, sd)
        camera_task.set_interaction_matrix_type(InteractionMatrixType.CURRENT, InversionType.TRANSPOSE)
        camera_task.set_lambda(0.3)

        v = camera_task.compute_control_law()

        assert np.allclose(v, -0.3 * s.interaction().T @ s.error(sd))

    def test_damped_inversion_close_to_pinv(self, four_points):
        current, desired = four_points

        task = ServoTask(ServoScheme.EYE_IN_HAND_CAMERA)
        _add_points(task, current, desired)
        damped = ServoTask(ServoScheme.EYE_IN_HAND_CAMERA, inversion=InversionType.DAMPED, damping=1e-4)
        _add_points(damped, current, desired)

        assert np.allclose(damped.compute_control_law(), task.compute_control_law(), rtol=1e-3, atol=1e-6)

    def test_invalid_thresholds(self, camera_task):
        with pytest.raises(ValueError):
            camera_task.set_pinv_threshold(-1e-3)
        with pytest.raises(ValueError):
            camera_task.set_damping(0.0)


# =============================================================================
# Schemes
# =============================================================================

class TestSchemes:

    def test_eye_to_hand_flips_sign(self, four_points):
        current, desired = four_points

        eih = ServoTask(ServoScheme.EYE_IN_HAND_L_CVE_EJE)
        eth = ServoTask(ServoScheme.EYE_TO_HAND_L_CVE_EJE)
        for task in (eih, eth):
            task.set_cVe(np.eye(6))
            task.set_eJe(np.eye(6))
            _add_points(task, current, desired)

        assert np.allclose(eth.compute_control_law(), -eih.compute_control_law())

    def test_joint_velocities(self, numpy_seed, four_points):
        current, desired = four_points
        eJe = np.random.randn(6, 7)

        task = ServoTask(ServoScheme.EYE_IN_HAND_L_CVE_EJE)
        task.set_cVe(np.eye(6))
        task.set_eJe(eJe)
        _add_points(task, current, desired)

        qdot = task.compute_control_law()

        assert qdot.shape == (7,)
        assert np.allclose(task.task_jacobian, task.interaction_matrix @ eJe)

    def test_fixed_frame_chain(self, numpy_seed, point_pair):
        cVf, fVe, eJe = np.eye(6), np.eye(6), np.random.randn(6, 6)

        task = ServoTask(ServoScheme.EYE_TO_HAND_L_CVF_FVE_EJE)
        task.set_cVf(cVf)
        task.set_fVe(fVe)
        task.set_eJe(eJe)
        task.add_feature(*point_pair)
        task.compute_control_law()

        assert np.allclose(task.task_jacobian, -task.interaction_matrix @ eJe)

    def test_missing_frame_matrix(self, point_pair):
        task = ServoTask(ServoScheme.EYE_IN_HAND_L_CVE_EJE)
        task.set_cVe(np.eye(6))
        task.add_feature(*point_pair)
        with pytest.raises(TaskNotReadyError):
            task.compute_control_law()

    def test_bad_frame_matrix_shape(self, camera_task):
        with pytest.raises(ValueError):
            camera_task.set_cVe(np.eye(3))
        with pytest.raises(ValueError):
            camera_task.set_eJe(np.ones(6))

    def test_scheme_from_string(self):
        task = ServoTask("eye_to_hand_L_cVf_fJe")
        assert task.scheme is ServoScheme.EYE_TO_HAND_L_CVF_FJE
        assert task.scheme.is_eye_to_hand


# =============================================================================
# Feature registration and lifecycle
# =============================================================================

class TestLifecycle:

    def test_no_scheme(self, point_pair):
        task = ServoTask()
        task.add_feature(*point_pair)
        assert not task.is_ready
        with pytest.raises(TaskNotReadyError):
            task.compute_control_law()

    def test_no_features(self, camera_task):
        with pytest.raises(TaskNotReadyError):
            camera_task.compute_control_law()
        with pytest.raises(TaskNotReadyError):
            camera_task.compute_error()

    def test_kill(self, camera_task, point_pair):
        s, sd = point_pair
        camera_task.add_feature(s, sd)
        camera_task.compute_control_law()

        camera_task.kill()
        camera_task.kill()

        assert camera_task.feature_count == 0
        assert camera_task.velocity is None
        assert camera_task.scheme is ServoScheme.EYE_IN_HAND_CAMERA
        assert np.allclose(s.value, [0.1, -0.2])
        with pytest.raises(TaskNotReadyError):
            camera_task.compute_control_law()

    def test_stacking_order(self, camera_task, pose_features):
        (t, td), (tu, tud) = pose_features
        t.build_from_translation(0.1, 0.2, 0.3)
        tu.build_from_theta_u(0.01, 0.02, 0.03)

        camera_task.add_feature(t, td)
        camera_task.add_feature(tu, tud, ThetaUFeature.SELECT_TUZ)

        assert camera_task.dimension == 4
        e = camera_task.compute_error()
        L = camera_task.compute_interaction_matrix()
        assert np.allclose(e, [0.1, 0.2, 0.3, 0.03])
        assert np.allclose(L[:3], t.interaction())
        assert np.allclose(L[3:], tu.interaction(ThetaUFeature.SELECT_TUZ))

    def test_default_desired_is_zero(self, camera_task):
        s = PointFeature().build_from(0.3, -0.1, 2.0)
        camera_task.add_feature(s)
        assert np.allclose(camera_task.compute_error(), [0.3, -0.1])

    def test_remove_feature(self, camera_task, four_points):
        current, desired = four_points
        handles = _add_points(camera_task, current, desired)

        camera_task.remove_feature(handles[1])

        assert camera_task.feature_count == 3
        assert camera_task.dimension == 6
        assert [h for h, _ in camera_task.feature_pairs()] == [handles[0], handles[2], handles[3]]
        with pytest.raises(KeyError):
            camera_task.remove_feature(handles[1])

    def test_mismatched_pair(self, camera_task):
        with pytest.raises(FeatureMismatchError):
            camera_task.add_feature(PointFeature(), TranslationFeature())
        with pytest.raises(FeatureMismatchError):
            camera_task.add_feature(GenericFeature(2), GenericFeature(3))

    def test_bad_selection(self, camera_task):
        with pytest.raises(SelectionError):
            camera_task.add_feature(PointFeature(), PointFeature(), TranslationFeature.SELECT_TX)
        assert camera_task.feature_count == 0

    def test_not_a_feature(self, camera_task):
        with pytest.raises(TypeError):
            camera_task.add_feature(np.zeros(2))


# =============================================================================
# Secondary task and diagnostics
# =============================================================================

class TestSecondaryTask:

    def test_projection_leaves_main_task_unchanged(self, camera_task, point_pair):
        camera_task.add_feature(*point_pair)
        camera_task.compute_control_law()

        sec = camera_task.secondary_task(np.array([0.1, 0.0, 0.2, 0.0, 0.3, 0.0]), e2=np.ones(6))

        assert sec.shape == (6,)
        assert np.allclose(camera_task.task_jacobian @ sec, 0.0, atol=1e-10)
        assert not np.allclose(sec, 0.0)

    def test_requires_control_law(self, camera_task, point_pair):
        camera_task.add_feature(*point_pair)
        with pytest.raises(TaskNotReadyError):
            camera_task.secondary_task(np.zeros(6))

    def test_size_mismatch(self, camera_task, point_pair):
        camera_task.add_feature(*point_pair)
        camera_task.compute_control_law()
        with pytest.raises(ValueError):
            camera_task.secondary_task(np.zeros(7))


class TestDiagnostics:

    def test_error_sum_square(self, camera_task, point_pair):
        assert camera_task.error_sum_square() == 0.0
        camera_task.add_feature(*point_pair)
        camera_task.compute_control_law()
        assert camera_task.error_sum_square() == pytest.approx(0.1 ** 2 + 0.2 ** 2)

    def test_print(self, camera_task, point_pair, capsys):
        camera_task.add_feature(*point_pair)
        camera_task.compute_control_law()
        camera_task.print()
        out = capsys.readouterr().out
        assert "[Servo]   scheme: eye_in_hand_camera" in out
        assert "point[2]" in out

    def test_debug_prints_are_bounded(self, point_pair, capsys):
        task = ServoTask(ServoScheme.EYE_IN_HAND_CAMERA, debug_prints=2)
        task.add_feature(*point_pair)
        for _ in range(5):
            task.compute_control_law()
        assert capsys.readouterr().out.count("[Servo] err=") == 2
