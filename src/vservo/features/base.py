"""
Visual Feature Contract

A visual feature s is a small fixed-size vector measured from the sensor
(image point coordinates, a translation, a rotation, ...). Every kind
provides:

    - build_from(...):  refresh s (and any auxiliary state) from a raw reading
    - interaction():    L_s, the (k, 6) Jacobian with ṡ = L_s · v
    - error(s*):        s - s* over the selected components

Sub-features are chosen with per-kind Selection masks, e.g.
PointFeature.SELECT_X | PointFeature.SELECT_Y.
"""

import copy
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Union

import numpy as np

from vservo.errors import FeatureMismatchError, SelectionError


@dataclass(frozen=True)
class Selection:
    """
    Bit mask over the components of one feature kind.

    Bit i selects component i. Selections only compose with selections of
    the same kind, so a point's X selector can never be applied to a
    translation even though both are bit 0.
    """
    kind: str
    bits: int

    def __or__(self, other):
        if not isinstance(other, Selection):
            return NotImplemented
        if other.kind != self.kind:
            raise SelectionError(
                f"Cannot combine a '{self.kind}' selection with a '{other.kind}' selection"
            )
        return Selection(self.kind, self.bits | other.bits)

    def __int__(self):
        return self.bits

    def indices(self):
        """Selected component indices in increasing order."""
        return [i for i in range(self.bits.bit_length()) if self.bits >> i & 1]

    def __len__(self):
        return bin(self.bits).count("1")


SelectionLike = Union[None, int, Selection]


class VisualFeature(ABC):
    """
    Base class for all feature kinds.

    Subclasses set KIND, DIMENSION and COMPONENT_NAMES, implement
    _interaction_matrix() for the full (DIMENSION, 6) matrix and expose
    their own build_from methods. The dimension and meaning of each
    component never change after construction.
    """

    KIND = "feature"
    DIMENSION = 0
    COMPONENT_NAMES = ()

    def __init__(self, dimension=None):
        self.dimension = int(self.DIMENSION if dimension is None else dimension)
        self.value = np.zeros(self.dimension)
        self.reset()

    # -- selection -----------------------------------------------------------

    @classmethod
    def select_all(cls) -> Selection:
        """Selection of every component of this kind."""
        return Selection(cls.KIND, (1 << cls.DIMENSION) - 1)

    @classmethod
    def select_component(cls, index: int) -> Selection:
        """Selection of the single component at index."""
        if index < 0:
            raise SelectionError(f"Component index must be non-negative, got {index}")
        return Selection(cls.KIND, 1 << index)

    def selected_indices(self, select: SelectionLike = None) -> np.ndarray:
        """
        Resolve a selection into component indices.

        Args:
            select: None (all components), a Selection of this kind, or raw bits

        Returns:
            numpy array of selected indices in increasing order

        Raises:
            SelectionError: wrong kind, bits beyond the dimension, or nothing selected
        """
        full = (1 << self.dimension) - 1
        if select is None:
            bits = full
        elif isinstance(select, Selection):
            if select.kind != self.KIND:
                raise SelectionError(
                    f"'{select.kind}' selection applied to a '{self.KIND}' feature"
                )
            bits = select.bits
        elif isinstance(select, (int, np.integer)) and not isinstance(select, bool):
            bits = int(select)
        else:
            raise SelectionError(f"Unsupported selection {select!r}")

        if bits <= 0:
            raise SelectionError(f"Selection of a '{self.KIND}' feature selects no component")
        if bits & ~full:
            raise SelectionError(
                f"Selection {bits:#b} exceeds the {self.dimension} components of a '{self.KIND}' feature"
            )
        return np.array([i for i in range(self.dimension) if bits >> i & 1], dtype=int)

    # -- feature contract ----------------------------------------------------

    @abstractmethod
    def _interaction_matrix(self) -> np.ndarray:
        """Full (dimension, 6) interaction matrix for the current state."""

    def interaction(self, select: SelectionLike = None) -> np.ndarray:
        """
        Interaction matrix of the selected components.

        Args:
            select: Components to keep (default: all)

        Returns:
            (k, 6) matrix, one row per selected component
        """
        idx = self.selected_indices(select)
        return np.asarray(self._interaction_matrix(), dtype=float)[idx, :]

    def is_compatible(self, other) -> bool:
        """
        True when other has the same kind and dimension.

        Kinds with several parameterizations (translation, theta-u) extend
        this to also compare their frame.
        """
        return (
            isinstance(other, VisualFeature)
            and other.KIND == self.KIND
            and other.dimension == self.dimension
        )

    def check_compatible(self, other):
        if not self.is_compatible(other):
            raise FeatureMismatchError(
                f"Feature mismatch: {self.describe()} vs "
                f"{other.describe() if isinstance(other, VisualFeature) else type(other).__name__}"
            )

    def error(self, desired: "VisualFeature", select: SelectionLike = None) -> np.ndarray:
        """
        Error s - s* restricted to the selected components.

        Args:
            desired: Desired feature s* of the same kind
            select: Components to keep (default: all)

        Returns:
            (k,) error vector

        Raises:
            FeatureMismatchError: desired is of another kind or dimension
        """
        self.check_compatible(desired)
        idx = self.selected_indices(select)
        return (self.value - desired.value)[idx]

    def reset(self):
        """Zero the value and restore default auxiliary state."""
        self.value = np.zeros(self.dimension)

    def duplicate(self):
        """Independent copy with the same kind, value and auxiliary state."""
        return copy.deepcopy(self)

    def component_names(self):
        if len(self.COMPONENT_NAMES) == self.dimension:
            return list(self.COMPONENT_NAMES)
        return [f"s{i}" for i in range(self.dimension)]

    def describe(self) -> str:
        return f"{self.KIND}[{self.dimension}]"

    def _auxiliary_state(self) -> Optional[str]:
        """Extra state worth printing next to the value (e.g. a depth)."""
        return None

    def print(self, select: SelectionLike = None):
        """Print the selected component values (diagnostic only)."""
        idx = self.selected_indices(select)
        names = self.component_names()
        parts = [f"{names[i]}={self.value[i]:.6g}" for i in idx]
        aux = self._auxiliary_state()
        if aux:
            parts.append(aux)
        print(f"[Feature] {self.describe()}: " + "  ".join(parts), flush=True)

    def __repr__(self):
        return f"{type(self).__name__}(value={np.array2string(self.value, precision=6)})"
