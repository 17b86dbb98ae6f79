"""End-of-run projections and efficiencies derived from a filled store.

The store is walked over its observed keys (trigger, threshold bucket,
pair type, charge), so no label taxonomy is assumed in advance.
"""

from __future__ import annotations
__author__ = "dimuhist developers"

import itertools
import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import hist
import numpy as np

from .binning import MASS, PAIR_HISTOGRAM, RAPIDITY, SparseHistogram, hist_is_empty
from .models import ProcessingPass
from .store import MergeableStore

if TYPE_CHECKING:
    from .analysis import AnalysisConfig


def projection_name(trigger: str, bucket: str, charge: str, pair_type: str, axis: int) -> str:
    return f"{trigger}_{bucket}_{charge}_{pair_type}_proj{axis}"


def efficiency_name(name: str) -> str:
    return f"{name}_Efficiency"


def ratio_histogram(numerator: hist.Hist, denominator: hist.Hist) -> hist.Hist:
    """Bin-wise `numerator / denominator` (flow bins included), 0 where the denominator is 0."""
    axis = numerator.axes[0]
    if axis != denominator.axes[0]:
        raise ValueError("Cannot divide histograms with different binning.")
    num = np.asarray(numerator.view(flow=True).value, dtype=float)
    den = np.asarray(denominator.view(flow=True).value, dtype=float)
    out = hist.Hist(axis, storage=hist.storage.Double(), label=numerator.label)
    out.view(flow=True)[...] = np.divide(num, den, out=np.zeros_like(num), where=den != 0)
    return out


def _flow_edges(axis, index: int) -> tuple[float, float]:
    """Low/high edge of flow-inclusive bin `index` (0 = underflow)."""
    edges = axis.edges
    low = -math.inf if index == 0 else float(edges[index - 1])
    high = math.inf if index > axis.size else float(edges[index])
    return low, high


def window_integral(histogram: hist.Hist, window: tuple[float, float] | None) -> tuple[float, int, int]:
    """Sum of bin values from the bin containing `window[0]` to the one containing `window[1]`.

    Returns `(integral, first, last)` with flow-inclusive bin indices; without
    a window the whole in-range axis is summed.
    """
    axis = histogram.axes[0]
    if window is None:
        first, last = 1, axis.size
    else:
        first = int(axis.index(window[0])) + 1
        last = int(axis.index(window[1])) + 1
    values = np.asarray(histogram.view(flow=True).value, dtype=float)
    return float(values[first : last + 1].sum()), first, last


@dataclass(frozen=True)
class MassWindowEfficiency:
    """Scalar efficiency of one real-trigger projection over a mass window."""

    name: str
    axis_title: str
    lower_edge: float
    upper_edge: float
    numerator: float
    denominator: float

    @property
    def efficiency(self) -> float:
        return 0.0 if self.denominator == 0.0 else self.numerator / self.denominator

    def describe(self) -> str:
        return (
            f"Eff for {self.name} in ({self.lower_edge:g}<{self.axis_title}<{self.upper_edge:g}): "
            f"{self.numerator:g} / {self.denominator:g} = {self.efficiency:g}"
        )


@dataclass
class FinalizedOutput:
    """Named 1-D projections, efficiency histograms and scalar efficiencies."""

    projections: dict[str, hist.Hist] = field(default_factory=dict)
    efficiencies: dict[str, hist.Hist] = field(default_factory=dict)
    mass_window_efficiencies: list[MassWindowEfficiency] = field(default_factory=list)

    def report_lines(self) -> list[str]:
        lines = [
            f"{len(self.projections)} projections, {len(self.efficiencies)} efficiency histograms"
        ]
        lines.extend(eff.describe() for eff in self.mass_window_efficiencies)
        return lines


@dataclass(frozen=True)
class Projector:
    """Turns a filled store into 1-D summaries and generated/real efficiencies."""

    generated_label: str = ProcessingPass.GENERATED.value
    rapidity_window: tuple[float, float] | None = (-3.999, -2.501)
    mass_window: tuple[float, float] | None = None
    histogram_name: str = PAIR_HISTOGRAM

    @classmethod
    def from_config(cls, config: "AnalysisConfig") -> "Projector":
        return cls(
            generated_label=config.generated_label,
            rapidity_window=config.rapidity_window,
            mass_window=config.mass_window,
        )

    def project_store(self, store: MergeableStore) -> dict[str, hist.Hist]:
        """One projection per axis for every pair histogram; empty projections are dropped."""
        return {
            projection_name(*key): projection for key, projection in self._projections(store).items()
        }

    def _projections(self, store: MergeableStore) -> dict[tuple[str, str, str, str, int], hist.Hist]:
        out: dict[tuple[str, str, str, str, int], hist.Hist] = {}
        for trigger, bucket, charge, pair_type in itertools.product(
            store.list_keys(0), store.list_keys(1), store.list_keys(3), store.list_keys(2)
        ):
            leaf = store.lookup((trigger, bucket, pair_type, charge, self.histogram_name))
            if not isinstance(leaf, SparseHistogram):
                continue
            grid = leaf
            if self.rapidity_window is not None:
                grid = leaf.restrict(RAPIDITY, *self.rapidity_window)
            for axis in range(grid.ndim):
                projection = grid.project(axis)
                if hist_is_empty(projection):
                    continue
                out[(trigger, bucket, charge, pair_type, axis)] = projection
        return out

    def mass_window_efficiency(
        self, name: str, real: hist.Hist, generated: hist.Hist
    ) -> MassWindowEfficiency:
        num, first, last = window_integral(real, self.mass_window)
        den, _, _ = window_integral(generated, self.mass_window)
        axis = real.axes[0]
        return MassWindowEfficiency(
            name=name,
            axis_title=axis.label,
            lower_edge=_flow_edges(axis, first)[0],
            upper_edge=_flow_edges(axis, last)[1],
            numerator=num,
            denominator=den,
        )

    def finalize(self, store: MergeableStore) -> FinalizedOutput:
        projections = self._projections(store)
        output = FinalizedOutput(
            projections={projection_name(*key): h for key, h in projections.items()}
        )
        for key, real in projections.items():
            trigger, bucket, charge, pair_type, axis = key
            if trigger == self.generated_label:
                continue
            generated = projections.get((self.generated_label, bucket, charge, pair_type, axis))
            if generated is None:
                continue
            name = projection_name(*key)
            if axis == MASS:
                output.mass_window_efficiencies.append(self.mass_window_efficiency(name, real, generated))
            output.efficiencies[efficiency_name(name)] = ratio_histogram(real, generated)
        return output
