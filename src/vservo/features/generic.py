"""
Generic Feature

A feature of arbitrary dimension whose value and interaction matrix are
both supplied by the caller. Useful for quantities with no dedicated kind
(image moments, line parameters, ...), as long as the caller can provide
their Jacobian.
"""

import numpy as np

from vservo.features.base import Selection, VisualFeature


class GenericFeature(VisualFeature):
    """User-defined visual feature."""

    KIND = "generic"

    def __init__(self, dimension):
        if int(dimension) <= 0:
            raise ValueError(f"dimension must be positive, got {dimension}")
        super().__init__(dimension=int(dimension))

    def reset(self):
        super().reset()
        self._L = np.zeros((self.dimension, 6))

    def selection(self, *indices):
        """
        Selection over this instance's components.

        The dimension is per instance, so the class-level select_all() has
        nothing to size itself on; use this instead.

        Args:
            indices: Component indices to select (default: all)
        """
        if not indices:
            return Selection(self.KIND, (1 << self.dimension) - 1)
        bits = 0
        for i in indices:
            bits |= int(self.select_component(i))
        return Selection(self.KIND, bits)

    def build_from(self, value, L=None):
        """
        Set the value and, optionally, the interaction matrix.

        Args:
            value: Vector of length dimension
            L: Optional (dimension, 6) interaction matrix
        """
        value = np.asarray(value, dtype=float).reshape(-1)
        if value.size != self.dimension:
            raise ValueError(f"Expected {self.dimension} values, got {value.size}")
        self.value[:] = value
        if L is not None:
            self.set_interaction_matrix(L)
        return self

    def set_interaction_matrix(self, L):
        L = np.asarray(L, dtype=float)
        if L.shape != (self.dimension, 6):
            raise ValueError(f"Expected a ({self.dimension}, 6) interaction matrix, got shape {L.shape}")
        self._L = L.copy()

    def _interaction_matrix(self):
        return self._L
