"""
Spatial Transforms and Twist Operations

Pose algebra shared by every feature kind: homogeneous matrices, theta-u
(axis-angle) rotations, velocity twist matrices for moving screws between
frames, and the SE(3) exponential map used to integrate a camera velocity.

Twists are ordered [v; w] (linear velocity followed by angular).
"""

import numpy as np


# Below this angle sinc-like ratios fall back to their Taylor limit
ANGLE_EPSILON = 1e-8

# 1 + cos(theta) below this switches theta-u extraction to the near-π branch
NEAR_PI_EPSILON = 1e-4


def skew(v: np.ndarray) -> np.ndarray:
    """
    Compute skew-symmetric matrix from 3D vector.

    For vector v = [x, y, z], returns:
        [ 0  -z   y ]
        [ z   0  -x ]
        [-y   x   0 ]

    Args:
        v: 3D vector

    Returns:
        3x3 skew-symmetric matrix
    """
    x, y, z = np.asarray(v, dtype=float).reshape(3)
    return np.array([[0.0, -z, y], [z, 0.0, -x], [-y, x, 0.0]], dtype=float)


def sinc(x: float) -> float:
    """sin(x) / x, equal to 1 at the origin."""
    if abs(x) < ANGLE_EPSILON:
        return 1.0
    return np.sin(x) / x


def homogeneous(R: np.ndarray, t: np.ndarray) -> np.ndarray:
    """Build a 4x4 homogeneous matrix from rotation R and translation t."""
    T = np.eye(4)
    T[:3, :3] = np.asarray(R, dtype=float)
    T[:3, 3] = np.asarray(t, dtype=float).reshape(3)
    return T


def inverse_homogeneous(T: np.ndarray) -> np.ndarray:
    """
    Invert a homogeneous transformation.

        [R t]⁻¹ = [Rᵀ  -Rᵀt]
        [0 1]     [0     1 ]
    """
    R = T[:3, :3]
    t = T[:3, 3]
    return homogeneous(R.T, -R.T @ t)


def translation_homogeneous(tx: float, ty: float, tz: float) -> np.ndarray:
    """Pure translation as a homogeneous matrix."""
    return homogeneous(np.eye(3), [tx, ty, tz])


def rotation_from_theta_u(theta_u: np.ndarray) -> np.ndarray:
    """
    Convert a theta-u vector to a rotation matrix (Rodrigues' formula).

        R = I + sin(θ)[u]× + (1 - cos(θ))[u]×²

    Args:
        theta_u: 3D rotation vector θu (angle times unit axis)

    Returns:
        3x3 rotation matrix
    """
    tu = np.asarray(theta_u, dtype=float).reshape(3)
    theta = np.linalg.norm(tu)
    if theta < ANGLE_EPSILON:
        return np.eye(3) + skew(tu)

    u_hat = skew(tu / theta)
    return np.eye(3) + np.sin(theta) * u_hat + (1.0 - np.cos(theta)) * (u_hat @ u_hat)


def theta_u_from_rotation(R: np.ndarray) -> np.ndarray:
    """
    Extract the theta-u vector from a rotation matrix.

    θ is recovered in [0, π] from atan2(sin θ, cos θ). Close to θ = π the
    antisymmetric part of R vanishes, so the axis is taken from the diagonal
    and its signs from the antisymmetric part instead.

    Args:
        R: 3x3 rotation matrix

    Returns:
        3D rotation vector θu
    """
    R = np.asarray(R, dtype=float)
    w = np.array([R[2, 1] - R[1, 2], R[0, 2] - R[2, 0], R[1, 0] - R[0, 1]])

    s = 0.5 * np.linalg.norm(w)
    c = 0.5 * (np.trace(R) - 1.0)
    theta = np.arctan2(s, c)

    if 1.0 + c > NEAR_PI_EPSILON:
        return w / (2.0 * sinc(theta))

    # θ near π
    diag = np.clip((np.diag(R) - c) / (1.0 - c), 0.0, None)
    tu = theta * np.sqrt(diag)
    tu[w < 0] *= -1.0
    return tu


def pose_to_homogeneous(pose: np.ndarray) -> np.ndarray:
    """
    Convert a pose vector [tx, ty, tz, θux, θuy, θuz] to a 4x4 matrix.
    """
    pose = np.asarray(pose, dtype=float).reshape(6)
    return homogeneous(rotation_from_theta_u(pose[3:]), pose[:3])


def homogeneous_to_pose(T: np.ndarray) -> np.ndarray:
    """Convert a 4x4 matrix to a pose vector [tx, ty, tz, θux, θuy, θuz]."""
    return np.concatenate([T[:3, 3], theta_u_from_rotation(T[:3, :3])])


def adjoint_transform(R: np.ndarray, t: np.ndarray) -> np.ndarray:
    """
    Compute the velocity twist matrix transforming twists between frames.

    Given rotation R and translation t of frame B expressed in frame A:
        ᴬV_B = [ R        [t]×R ]
               [ 0            R ]

    This transforms a twist expressed at frame B's origin into frame A.
    Translation only affects the linear component (shifting the reference
    point), not the angular component.

    Args:
        R: 3x3 rotation matrix
        t: 3D translation vector

    Returns:
        6x6 velocity twist matrix
    """
    R = np.asarray(R, dtype=float)
    upper = np.hstack((R, skew(t) @ R))
    lower = np.hstack((np.zeros((3, 3)), R))
    return np.vstack((upper, lower))


def adjoint_from_homogeneous(T: np.ndarray) -> np.ndarray:
    """Velocity twist matrix ᴬV_B built from the homogeneous matrix ᴬM_B."""
    return adjoint_transform(T[:3, :3], T[:3, 3])


def se3_exp(twist6: np.ndarray, dt: float) -> np.ndarray:
    """
    Integrate a constant body-frame twist over dt using the exponential map.

    Computes T = exp([ξ] dt) where [ξ] is the twist in se(3).

    Args:
        twist6: 6D twist [vx, vy, vz, wx, wy, wz] in body frame
        dt: Time step

    Returns:
        4x4 homogeneous transformation matrix
    """
    twist6 = np.asarray(twist6, dtype=float).reshape(6)
    v = twist6[:3]  # Linear velocity
    w = twist6[3:]  # Angular velocity

    w_norm = np.linalg.norm(w)
    theta = w_norm * dt

    if theta < 1e-9:
        # Small angle approximation
        R = np.eye(3) + skew(w) * dt
        t = v * dt
    else:
        w_hat = skew(w / w_norm)

        # Rotation: Rodrigues' formula
        R = (
            np.eye(3)
            + np.sin(theta) * w_hat
            + (1.0 - np.cos(theta)) * (w_hat @ w_hat)
        )

        # Translation: V matrix
        V = (
            np.eye(3) * dt
            + (1 - np.cos(theta)) / (w_norm ** 2) * skew(w)
            + (theta - np.sin(theta)) / (w_norm ** 3) * (skew(w) @ skew(w))
        )
        t = V @ v

    return homogeneous(R, t)
