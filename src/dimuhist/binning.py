"""Binned accumulators stored as leaves of the aggregate store.

Two leaf kinds exist:
- `SparseHistogram`: fixed-dimension histogram that only keeps touched bins.
  Bin lookup and the 1-D projections use `hist` axes, so every projection is
  a regular `hist.Hist` with Weight storage, flow bins included.
- `EventCounter`: scalar sum of weights used for event normalization.
"""

from __future__ import annotations
__author__ = "dimuhist developers"

import copy
import math
from dataclasses import dataclass
from typing import Callable, Iterator, Sequence, Union

import hist
import numpy as np

PT, RAPIDITY, PHI, MASS, CENTRALITY, TRACKLETS = range(6)
N_PAIR_AXES = 6

EVENT_COUNTER = "nevents"
PAIR_HISTOGRAM = "PairSparse"


def _axis_title(title: str, units: str) -> str:
    """ROOT-style `title (units)` with the empty-unit parentheses dropped."""
    return f"{title} ({units})".replace(" ()", "")


@dataclass(frozen=True)
class AxisSpec:
    """Binning of one accumulator axis.

    Edges are uniform subdivisions of `[lower, upper]` unless irregular
    `edges` are given (see `AxisSpec.variable`).
    """

    name: str
    bins: int
    lower: float
    upper: float
    label: str = ""
    edges: tuple[float, ...] | None = None

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Axis name must be a non-empty string.")
        if int(self.bins) != self.bins or self.bins <= 0:
            raise ValueError(f"Axis '{self.name}' needs a positive integer bin count, got {self.bins!r}.")
        if not (math.isfinite(self.lower) and math.isfinite(self.upper)):
            raise ValueError(f"Axis '{self.name}' range must be finite.")
        if self.lower >= self.upper:
            raise ValueError(
                f"Axis '{self.name}' lower edge {self.lower} must be below upper edge {self.upper}."
            )
        if self.edges is not None:
            edges = tuple(float(x) for x in self.edges)
            if len(edges) != self.bins + 1:
                raise ValueError(f"Axis '{self.name}' needs {self.bins + 1} edges, got {len(edges)}.")
            if any(hi <= lo for lo, hi in zip(edges, edges[1:])):
                raise ValueError(f"Axis '{self.name}' edges must be strictly increasing.")
            if edges[0] != self.lower or edges[-1] != self.upper:
                raise ValueError(f"Axis '{self.name}' edges do not match its range.")
            object.__setattr__(self, "edges", edges)

    @classmethod
    def variable(cls, name: str, edges: Sequence[float], label: str = "") -> "AxisSpec":
        """Build an irregularly binned axis from explicit edges."""
        edges = tuple(float(x) for x in edges)
        if len(edges) < 2:
            raise ValueError(f"Axis '{name}' needs at least two edges.")
        return cls(name, len(edges) - 1, edges[0], edges[-1], label, edges)

    def bin_edges(self) -> tuple[float, ...]:
        """All bin edges, lower to upper."""
        if self.edges is not None:
            return self.edges
        width = (self.upper - self.lower) / self.bins
        return tuple(self.lower + i * width for i in range(self.bins + 1))

    def to_axis(self) -> hist.axis.AxesMixin:
        """Build the `hist` axis used for bin lookup and projections."""
        if self.edges is not None:
            return hist.axis.Variable(self.edges, name=self.name, label=self.label)
        return hist.axis.Regular(self.bins, self.lower, self.upper, name=self.name, label=self.label)


def default_pair_axes(centrality_estimator: str = "V0M") -> tuple[AxisSpec, ...]:
    """Default pair binning: pt, y, phi, mass, centrality, tracklet count."""
    return (
        AxisSpec("pt", 100, 0.0, 100.0, _axis_title("p_{T}", "GeV/c")),
        AxisSpec("y", 25, -4.5, -2.0, _axis_title("y", "")),
        AxisSpec("phi", 36, 0.0, 2.0 * math.pi, _axis_title("#phi", "rad")),
        AxisSpec("mass", 750, 0.0, 15.0, _axis_title("M_{#mu#mu}", "GeV/c^{2}")),
        AxisSpec("centrality", 10, 0.0, 100.0, f"Centrality ({centrality_estimator})"),
        AxisSpec("tracklets", 150, -0.5, 149.5, _axis_title("SPD tracklets", "")),
    )


class SparseHistogram:
    """N-dimensional histogram keeping only the bins that received a fill.

    Bin keys use flow-inclusive indices per axis: 0 is the underflow bin,
    `1..bins` the regular bins and `bins + 1` the overflow bin. Each stored
    cell holds `[sum of weights, sum of squared weights, entries]`.
    """

    def __init__(self, axes: Sequence[AxisSpec], name: str = "", title: str = "") -> None:
        if not axes:
            raise ValueError("A histogram needs at least one axis.")
        names = [spec.name for spec in axes]
        if len(set(names)) != len(names):
            raise ValueError(f"Axis names must be unique, got {names}.")
        self.specs = tuple(axes)
        self.axes = tuple(spec.to_axis() for spec in self.specs)
        self.name = name
        self.title = title
        self._cells: dict[tuple[int, ...], list[float]] = {}

    @property
    def ndim(self) -> int:
        return len(self.specs)

    @property
    def entries(self) -> int:
        """Number of fill calls that landed in this histogram, flow bins included."""
        return int(sum(cell[2] for cell in self._cells.values()))

    @property
    def n_filled_bins(self) -> int:
        return len(self._cells)

    def is_empty(self) -> bool:
        return not self._cells

    def bin_key(self, coordinates: Sequence[float]) -> tuple[int, ...]:
        """Flow-inclusive bin key of a coordinate vector."""
        if len(coordinates) != self.ndim:
            raise ValueError(
                f"Expected {self.ndim} coordinates for '{self.name}', got {len(coordinates)}."
            )
        return tuple(int(axis.index(float(x))) + 1 for axis, x in zip(self.axes, coordinates))

    def fill(self, coordinates: Sequence[float], weight: float = 1.0) -> None:
        """Add `weight` to the bin containing `coordinates`."""
        key = self.bin_key(coordinates)
        cell = self._cells.get(key)
        if cell is None:
            cell = self._cells[key] = [0.0, 0.0, 0]
        cell[0] += weight
        cell[1] += weight * weight
        cell[2] += 1

    def value(self, coordinates: Sequence[float]) -> float:
        """Sum of weights in the bin containing `coordinates`."""
        cell = self._cells.get(self.bin_key(coordinates))
        return 0.0 if cell is None else cell[0]

    def cells(self) -> Iterator[tuple[tuple[int, ...], float, float, int]]:
        """Iterate `(key, sum_w, sum_w2, entries)` over filled bins."""
        for key, (sum_w, sum_w2, entries) in self._cells.items():
            yield key, sum_w, sum_w2, int(entries)

    def sum(self) -> float:
        """Sum of weights over all bins, flow included."""
        return float(sum(cell[0] for cell in self._cells.values()))

    def clone(self, name: str | None = None) -> "SparseHistogram":
        """Deep copy including bin contents."""
        out = copy.deepcopy(self)
        if name is not None:
            out.name = name
        return out

    def empty_like(self, name: str | None = None) -> "SparseHistogram":
        """Fresh histogram with the same binning and no contents."""
        return SparseHistogram(self.specs, name=self.name if name is None else name, title=self.title)

    def compatible_with(self, other: "SparseHistogram") -> bool:
        return self.specs == other.specs

    def merge(self, other: "SparseHistogram") -> "SparseHistogram":
        """Bin-wise sum of `other` into this histogram."""
        if not isinstance(other, SparseHistogram):
            raise ValueError(f"Cannot merge {type(other).__name__} into histogram '{self.name}'.")
        if not self.compatible_with(other):
            raise ValueError(f"Cannot merge histograms with different binning into '{self.name}'.")
        for key, (sum_w, sum_w2, entries) in other._cells.items():
            cell = self._cells.get(key)
            if cell is None:
                self._cells[key] = [sum_w, sum_w2, entries]
            else:
                cell[0] += sum_w
                cell[1] += sum_w2
                cell[2] += entries
        return self

    def __iadd__(self, other: "SparseHistogram") -> "SparseHistogram":
        return self.merge(other)

    def restrict(self, axis: int, lower: float, upper: float) -> "SparseHistogram":
        """Copy keeping the bins from the one containing `lower` to the one containing `upper`."""
        ax = self.axes[axis]
        first = int(ax.index(lower)) + 1
        last = int(ax.index(upper)) + 1
        if first > last:
            raise ValueError(f"Empty range [{lower}, {upper}] on axis '{self.specs[axis].name}'.")
        out = self.empty_like()
        out._cells = {
            key: list(cell) for key, cell in self._cells.items() if first <= key[axis] <= last
        }
        return out

    def project(self, axis: int) -> hist.Hist:
        """Sum over every other axis, keeping the binning and title of `axis`."""
        spec = self.specs[axis]
        out = hist.Hist(self.axes[axis], storage=hist.storage.Weight(), label=spec.label)
        extent = spec.bins + 2
        values = np.zeros(extent)
        variances = np.zeros(extent)
        for key, (sum_w, sum_w2, _) in self._cells.items():
            values[key[axis]] += sum_w
            variances[key[axis]] += sum_w2
        view = out.view(flow=True)
        view.value = values
        view.variance = variances
        return out

    def estimate_size(self) -> int:
        """Rough memory footprint in bytes."""
        per_cell = 8 * self.ndim + 3 * 8 + 120
        return 512 + per_cell * len(self._cells)

    def __repr__(self) -> str:
        axes = ", ".join(spec.name for spec in self.specs)
        return f"SparseHistogram(name={self.name!r}, axes=({axes}), filled_bins={len(self._cells)})"


@dataclass
class EventCounter:
    """Scalar counter leaf, e.g. the number of events per trigger class."""

    value: float = 0.0
    entries: int = 0

    def fill(self, weight: float = 1.0) -> None:
        self.value += weight
        self.entries += 1

    def merge(self, other: "EventCounter") -> "EventCounter":
        if not isinstance(other, EventCounter):
            raise ValueError(f"Cannot merge {type(other).__name__} into an event counter.")
        self.value += other.value
        self.entries += other.entries
        return self

    def __iadd__(self, other: "EventCounter") -> "EventCounter":
        return self.merge(other)

    def clone(self) -> "EventCounter":
        return EventCounter(self.value, self.entries)

    def estimate_size(self) -> int:
        return 64


Leaf = Union[SparseHistogram, EventCounter]
LeafFactory = Callable[[], Leaf]


def hist_is_empty(histogram: hist.Hist) -> bool:
    """True when a Weight-storage histogram never received a non-zero weight."""
    total = histogram.sum(flow=True)
    return total.value == 0.0 and total.variance == 0.0
