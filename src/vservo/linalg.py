"""
Generalized Matrix Inversion

Inversion strategies used to solve the control law:
    e1 = J⁺ · e

where J is the stacked task Jacobian. The SVD pseudo-inverse drops
negligible singular values so that a rank-deficient or near-singular J
still yields a bounded solution instead of blowing up.
"""

from typing import NamedTuple

import numpy as np


# Singular values below this fraction of the largest one are treated as zero
DEFAULT_PINV_THRESHOLD = 1e-6


class PseudoInverse(NamedTuple):
    """Result of an SVD pseudo-inverse."""
    matrix: np.ndarray
    rank: int
    singular_values: np.ndarray


def pseudo_inverse(A: np.ndarray, threshold: float = DEFAULT_PINV_THRESHOLD) -> PseudoInverse:
    """
    Compute the Moore-Penrose pseudo-inverse of A via singular value decomposition.

        A = U · Σ · Vᵀ   →   A⁺ = V · Σ⁺ · Uᵀ

    Singular values σ_i ≤ threshold · σ_max are considered zero, so their
    reciprocal is never formed.

    Args:
        A: (m, n) matrix
        threshold: Relative tolerance on singular values (must be >= 0)

    Returns:
        PseudoInverse with the (n, m) matrix, the numerical rank and the
        singular values of A (descending)
    """
    if threshold < 0:
        raise ValueError(f"threshold must be non-negative, got {threshold}")

    A = np.atleast_2d(np.asarray(A, dtype=float))
    m, n = A.shape
    if m == 0 or n == 0:
        return PseudoInverse(np.zeros((n, m)), 0, np.zeros(0))

    U, sv, Vt = np.linalg.svd(A, full_matrices=False)

    cutoff = threshold * sv[0]
    keep = sv > cutoff
    sv_inv = np.zeros_like(sv)
    sv_inv[keep] = 1.0 / sv[keep]

    A_pinv = (Vt.T * sv_inv) @ U.T
    return PseudoInverse(A_pinv, int(np.count_nonzero(keep)), sv)


def damped_pseudo_inverse(A: np.ndarray, damping: float) -> np.ndarray:
    """
    Damped Least Squares (DLS) inverse.

        A_DLS⁺ = Aᵀ (A Aᵀ + μ² I)⁻¹

    Args:
        A: (m, n) matrix
        damping: Regularization μ (higher = more damping, slower but more robust)

    Returns:
        (n, m) matrix
    """
    A = np.atleast_2d(np.asarray(A, dtype=float))
    AAt = A @ A.T
    dls_term = AAt + (damping ** 2) * np.eye(A.shape[0])
    # Aᵀ M⁻¹ == (M⁻¹ A)ᵀ since M is symmetric
    return np.linalg.solve(dls_term, A).T


def transpose_inverse(A: np.ndarray) -> np.ndarray:
    """Jacobian-transpose "inverse" used by the transpose control law."""
    return np.atleast_2d(np.asarray(A, dtype=float)).T.copy()


def null_space_projector(A: np.ndarray, A_pinv: np.ndarray) -> np.ndarray:
    """
    Projector onto the null space of A.

        P = I - A⁺ A

    Args:
        A: (m, n) matrix
        A_pinv: (n, m) generalized inverse of A

    Returns:
        (n, n) projector
    """
    n = A.shape[1]
    return np.eye(n) - A_pinv @ A
