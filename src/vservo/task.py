"""
Visual Servoing Task

Stacks any number of (current, desired) feature pairs into one task and
solves the control law:

    v = -λ · J⁺ · e,    J = ±L · ᶜV_a · ᵃJ_e

where:
    - e: stacked feature error (s - s*), in registration order
    - L: stacked interaction matrix (current, desired or mean)
    - ᶜV_a · ᵃJ_e: frame change imposed by the servo scheme (identity when
      the velocity is computed directly in the camera frame)
    - ±: + for eye-in-hand, - for eye-to-hand
    - J⁺: SVD pseudo-inverse with negligible singular values dropped
    - λ: constant or adaptive gain

The task keeps references to the caller's features; call build_from on
each of them before every compute_control_law().
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np

from vservo.errors import TaskNotReadyError
from vservo.features.base import SelectionLike, VisualFeature
from vservo.gain import AdaptiveGain
from vservo.linalg import (
    DEFAULT_PINV_THRESHOLD,
    damped_pseudo_inverse,
    null_space_projector,
    pseudo_inverse,
    transpose_inverse,
)


class ServoScheme(Enum):
    """Sensor mounting and velocity space of the control law."""
    EYE_IN_HAND_CAMERA = "eye_in_hand_camera"                # v in the camera frame
    EYE_IN_HAND_L_CVE_EJE = "eye_in_hand_L_cVe_eJe"          # q̇ through ᶜV_e ᵉJ_e
    EYE_TO_HAND_L_CVE_EJE = "eye_to_hand_L_cVe_eJe"          # q̇ through ᶜV_e ᵉJ_e
    EYE_TO_HAND_L_CVF_FVE_EJE = "eye_to_hand_L_cVf_fVe_eJe"  # q̇ through ᶜV_f ᶠV_e ᵉJ_e
    EYE_TO_HAND_L_CVF_FJE = "eye_to_hand_L_cVf_fJe"          # q̇ through ᶜV_f ᶠJ_e

    @property
    def is_eye_to_hand(self):
        return self.value.startswith("eye_to_hand")


class InteractionMatrixType(Enum):
    """Which features the stacked interaction matrix is evaluated on."""
    CURRENT = "current"
    DESIRED = "desired"
    MEAN = "mean"


class InversionType(Enum):
    """How the task Jacobian is inverted."""
    PSEUDO_INVERSE = "pseudo_inverse"
    TRANSPOSE = "transpose"
    DAMPED = "damped"


@dataclass
class FeaturePair:
    """A registered (current, desired) pair and its component selection."""
    current: VisualFeature
    desired: VisualFeature
    select: SelectionLike
    size: int


class ServoTask:
    """
    Visual servoing task.

    Lifecycle:
        task = ServoTask()
        task.set_servo(ServoScheme.EYE_IN_HAND_CAMERA)
        task.add_feature(s, s_star)
        while running:
            s.build_from(...)
            v = task.compute_control_law()
        task.kill()
    """

    def __init__(
        self,
        scheme=None,
        interaction_type=InteractionMatrixType.CURRENT,
        inversion=InversionType.PSEUDO_INVERSE,
        gain=1.0,
        pinv_threshold=DEFAULT_PINV_THRESHOLD,
        damping=0.01,
        debug_prints=0,
    ):
        """
        Initialize the task.

        Args:
            scheme: ServoScheme (None leaves the task unconfigured until set_servo)
            interaction_type: CURRENT, DESIRED or MEAN interaction matrix
            inversion: PSEUDO_INVERSE (default), TRANSPOSE or DAMPED
            gain: Constant gain, (λ₀, λ∞, λ'₀) tuple or AdaptiveGain
            pinv_threshold: Relative singular value cutoff of the pseudo-inverse
            damping: Regularization μ used by the DAMPED inversion
            debug_prints: Number of control law evaluations to print (0 = silent)
        """
        self.scheme: Optional[ServoScheme] = None
        self.interaction_type = InteractionMatrixType.CURRENT
        self.inversion = InversionType.PSEUDO_INVERSE
        self.gain = AdaptiveGain.constant(1.0)
        self.pinv_threshold = DEFAULT_PINV_THRESHOLD
        self.damping = 0.01

        # Frame change matrices (set as required by the scheme)
        self.cVe = None
        self.eJe = None
        self.cVf = None
        self.fVe = None
        self.fJe = None

        self._pairs = {}
        self._next_handle = 0

        self._debug_prints = int(debug_prints)
        self._debug_count = 0
        self._reset_results()

        if scheme is not None:
            self.set_servo(scheme)
        self.set_interaction_matrix_type(interaction_type, inversion)
        self.set_lambda(gain)
        self.set_pinv_threshold(pinv_threshold)
        self.set_damping(damping)

    def _reset_results(self):
        self.error = None
        self.interaction_matrix = None
        self.task_jacobian = None
        self.task_jacobian_pinv = None
        self.rank = None
        self.singular_values = None
        self.velocity = None
        self._e1 = None
        self._rank_warned = False

    # -- configuration -------------------------------------------------------

    def set_servo(self, scheme):
        """Select the control scheme. EYE_IN_HAND_CAMERA needs no frame matrices."""
        self.scheme = ServoScheme(scheme)

    def set_interaction_matrix_type(self, interaction_type, inversion=None):
        """
        Args:
            interaction_type: CURRENT, DESIRED or MEAN
            inversion: Optional InversionType (unchanged when None)
        """
        self.interaction_type = InteractionMatrixType(interaction_type)
        if inversion is not None:
            self.inversion = InversionType(inversion)

    def set_lambda(self, gain):
        """
        Set the gain.

        Args:
            gain: Non-negative constant, (λ₀, λ∞, λ'₀) tuple, or AdaptiveGain
        """
        if isinstance(gain, AdaptiveGain):
            self.gain = gain
        elif isinstance(gain, (tuple, list)):
            self.gain = AdaptiveGain(*gain)
        else:
            self.gain = AdaptiveGain.constant(float(gain))

    def set_pinv_threshold(self, threshold):
        if threshold < 0:
            raise ValueError(f"pinv_threshold must be non-negative, got {threshold}")
        self.pinv_threshold = float(threshold)

    def set_damping(self, damping):
        if damping <= 0:
            raise ValueError(f"damping must be positive, got {damping}")
        self.damping = float(damping)

    @staticmethod
    def _check_matrix(M, name, rows=6, cols=None):
        M = np.asarray(M, dtype=float)
        if M.ndim != 2 or M.shape[0] != rows or (cols is not None and M.shape[1] != cols):
            expected = f"({rows}, {cols if cols is not None else 'n'})"
            raise ValueError(f"{name} must have shape {expected}, got {M.shape}")
        return M.copy()

    def set_cVe(self, cVe):
        """Velocity twist matrix from end-effector to camera frame (6x6)."""
        self.cVe = self._check_matrix(cVe, "cVe", cols=6)

    def set_eJe(self, eJe):
        """Robot Jacobian expressed in the end-effector frame (6xn)."""
        self.eJe = self._check_matrix(eJe, "eJe")

    def set_cVf(self, cVf):
        """Velocity twist matrix from fixed (reference) frame to camera frame (6x6)."""
        self.cVf = self._check_matrix(cVf, "cVf", cols=6)

    def set_fVe(self, fVe):
        """Velocity twist matrix from end-effector to fixed frame (6x6)."""
        self.fVe = self._check_matrix(fVe, "fVe", cols=6)

    def set_fJe(self, fJe):
        """Robot Jacobian expressed in the fixed frame (6xn)."""
        self.fJe = self._check_matrix(fJe, "fJe")

    # -- features ------------------------------------------------------------

    def add_feature(self, current, desired=None, select=None):
        """
        Register a (current, desired) feature pair.

        Args:
            current: Current feature s, refreshed by the caller every cycle
            desired: Desired feature s* of the same kind (None means s* = 0)
            select: Components of the pair used by the task (default: all)

        Returns:
            int handle identifying the pair (see remove_feature)

        Raises:
            FeatureMismatchError: current and desired differ in kind or dimension
            SelectionError: select does not fit the feature
        """
        if not isinstance(current, VisualFeature):
            raise TypeError(f"current must be a VisualFeature, got {type(current).__name__}")
        if desired is None:
            desired = current.duplicate()
            desired.reset()
        current.check_compatible(desired)
        size = len(current.selected_indices(select))

        handle = self._next_handle
        self._next_handle += 1
        self._pairs[handle] = FeaturePair(current, desired, select, size)
        return handle

    def remove_feature(self, handle):
        """Unregister a pair. The feature objects themselves are untouched."""
        if handle not in self._pairs:
            raise KeyError(f"No feature pair registered under handle {handle}")
        del self._pairs[handle]

    def feature_pairs(self):
        """Registered pairs in stacking order as (handle, FeaturePair) tuples."""
        return list(self._pairs.items())

    @property
    def feature_count(self):
        return len(self._pairs)

    @property
    def dimension(self):
        """Number of rows of the stacked error / interaction matrix."""
        return sum(pair.size for pair in self._pairs.values())

    @property
    def is_ready(self):
        return self.scheme is not None and bool(self._pairs)

    def kill(self):
        """Release all registered pairs and cached results. Safe to call twice."""
        self._pairs.clear()
        self._reset_results()
        self._debug_count = 0

    # -- control law ---------------------------------------------------------

    def _require_features(self):
        if not self._pairs:
            raise TaskNotReadyError("No visual feature registered in the task (call add_feature first)")

    def compute_interaction_matrix(self):
        """
        Stack the interaction matrices of all pairs.

        Returns:
            (dimension, 6) matrix
        """
        self._require_features()

        blocks = []
        for pair in self._pairs.values():
            if self.interaction_type is InteractionMatrixType.CURRENT:
                L = pair.current.interaction(pair.select)
            elif self.interaction_type is InteractionMatrixType.DESIRED:
                L = pair.desired.interaction(pair.select)
            else:
                L = 0.5 * (pair.current.interaction(pair.select) + pair.desired.interaction(pair.select))
            blocks.append(L)

        self.interaction_matrix = np.vstack(blocks)
        return self.interaction_matrix

    def compute_error(self):
        """
        Stack the errors s - s* of all pairs.

        Returns:
            (dimension,) vector
        """
        self._require_features()
        self.error = np.concatenate(
            [pair.current.error(pair.desired, pair.select) for pair in self._pairs.values()]
        )
        return self.error

    def _frame_jacobian(self):
        """ᶜV_a · ᵃJ_e for the configured scheme."""
        if self.scheme is None:
            raise TaskNotReadyError("No control scheme selected (call set_servo first)")

        def required(name):
            M = getattr(self, name)
            if M is None:
                raise TaskNotReadyError(f"Scheme {self.scheme.value} requires {name} (call set_{name})")
            return M

        if self.scheme is ServoScheme.EYE_IN_HAND_CAMERA:
            return np.eye(6)
        if self.scheme in (ServoScheme.EYE_IN_HAND_L_CVE_EJE, ServoScheme.EYE_TO_HAND_L_CVE_EJE):
            return required("cVe") @ required("eJe")
        if self.scheme is ServoScheme.EYE_TO_HAND_L_CVF_FVE_EJE:
            return required("cVf") @ required("fVe") @ required("eJe")
        return required("cVf") @ required("fJe")

    def compute_control_law(self):
        """
        Compute the velocity command for the current feature values.

        Returns:
            (6,) camera velocity [vx, vy, vz, wx, wy, wz] for EYE_IN_HAND_CAMERA,
            otherwise (n,) joint velocities

        Raises:
            TaskNotReadyError: no scheme, no features, or a missing frame matrix
        """
        if self.scheme is None:
            raise TaskNotReadyError("No control scheme selected (call set_servo first)")
        self._require_features()

        W = self._frame_jacobian()
        L = self.compute_interaction_matrix()
        e = self.compute_error()

        sign = -1.0 if self.scheme.is_eye_to_hand else 1.0
        J1 = sign * (L @ W)

        pinv = pseudo_inverse(J1, self.pinv_threshold)
        if self.inversion is InversionType.PSEUDO_INVERSE:
            J1p = pinv.matrix
        elif self.inversion is InversionType.TRANSPOSE:
            J1p = transpose_inverse(J1)
        else:
            J1p = damped_pseudo_inverse(J1, self.damping)

        e1 = J1p @ e
        lam = self.gain(e1)
        v = -lam * e1

        self.task_jacobian = J1
        self.task_jacobian_pinv = J1p
        self.rank = pinv.rank
        self.singular_values = pinv.singular_values
        self.velocity = v
        self._e1 = e1

        if pinv.rank < min(J1.shape) and not self._rank_warned:
            print(
                f"[Servo] WARNING: task Jacobian is rank deficient "
                f"(rank {pinv.rank} < {min(J1.shape)}), negligible directions ignored",
                flush=True,
            )
            self._rank_warned = True

        if self._debug_count < self._debug_prints:
            print(
                f"[Servo] err={e} | |e|²={float(e @ e):.3e} | gain={lam:.4f} | v={v}",
                flush=True,
            )
            self._debug_count += 1

        return v.copy()

    def secondary_task(self, de2dt, e2=None):
        """
        Project a secondary objective onto the null space of the main task.

            sec = -λ · P · e2 + P · de2/dt,    P = I - J⁺J

        Args:
            de2dt: Feed-forward term of the secondary task (n,)
            e2: Optional secondary task error (n,)

        Returns:
            (n,) velocity to add to compute_control_law()'s output
        """
        if self.task_jacobian is None:
            raise TaskNotReadyError("compute_control_law() must be called before secondary_task()")

        P = null_space_projector(self.task_jacobian, self.task_jacobian_pinv)
        n = P.shape[0]
        de2dt = np.asarray(de2dt, dtype=float).reshape(-1)
        if de2dt.size != n:
            raise ValueError(f"de2dt must have {n} components, got {de2dt.size}")

        sec = P @ de2dt
        if e2 is not None:
            e2 = np.asarray(e2, dtype=float).reshape(-1)
            if e2.size != n:
                raise ValueError(f"e2 must have {n} components, got {e2.size}")
            sec = -self.gain(self._e1) * (P @ e2) + sec
        return sec

    def error_sum_square(self):
        """Squared norm of the last computed error (0 before the first computation)."""
        if self.error is None:
            return 0.0
        return float(self.error @ self.error)

    # -- diagnostics ---------------------------------------------------------

    def print(self):
        """Print configuration, registered features and the last error."""
        scheme = self.scheme.value if self.scheme is not None else "none"
        print("[Servo] Visual servoing task", flush=True)
        print(f"[Servo]   scheme: {scheme}", flush=True)
        print(
            f"[Servo]   interaction matrix: {self.interaction_type.value}, "
            f"inversion: {self.inversion.value}",
            flush=True,
        )
        print(f"[Servo]   gain: {self.gain!r}", flush=True)
        print(f"[Servo]   features ({self.feature_count}, {self.dimension} rows):", flush=True)
        for handle, pair in self._pairs.items():
            idx = pair.current.selected_indices(pair.select)
            print(
                f"[Servo]     #{handle} {pair.current.describe()} components={idx.tolist()} "
                f"s={pair.current.value[idx]} s*={pair.desired.value[idx]}",
                flush=True,
            )
        if self.error is not None:
            print(f"[Servo]   error: {self.error}", flush=True)
            print(f"[Servo]   rank: {self.rank}", flush=True)
