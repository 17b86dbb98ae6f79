"""Unit tests for sparse histogram and counter leaves."""

from __future__ import annotations
__author__ = "dimuhist developers"

import math
import unittest

from dimuhist import AxisSpec, EventCounter, SparseHistogram, default_pair_axes
from dimuhist.binning import MASS, hist_is_empty


class TestAxisSpec(unittest.TestCase):
    """Axis definitions must be validated when they are built."""

    def test_rejects_invalid_binning(self) -> None:
        with self.assertRaises(ValueError):
            AxisSpec("x", 0, 0.0, 1.0)
        with self.assertRaises(ValueError):
            AxisSpec("x", 10, 1.0, 1.0)
        with self.assertRaises(ValueError):
            AxisSpec("x", 10, 0.0, math.inf)
        with self.assertRaises(ValueError):
            AxisSpec("", 10, 0.0, 1.0)
        with self.assertRaises(ValueError):
            AxisSpec.variable("m", [0.0, 2.0, 1.0])

    def test_regular_and_variable_edges(self) -> None:
        self.assertEqual(AxisSpec("x", 4, 0.0, 2.0).bin_edges(), (0.0, 0.5, 1.0, 1.5, 2.0))
        spec = AxisSpec.variable("m", [0, 1, 3, 10])
        self.assertEqual(spec.bins, 3)
        self.assertEqual(spec.bin_edges(), (0.0, 1.0, 3.0, 10.0))

    def test_default_pair_axes(self) -> None:
        axes = default_pair_axes("CL1")
        self.assertEqual([spec.name for spec in axes], ["pt", "y", "phi", "mass", "centrality", "tracklets"])
        self.assertEqual(axes[MASS].bins, 750)
        self.assertEqual(axes[4].label, "Centrality (CL1)")


class TestSparseHistogram(unittest.TestCase):
    """Fill, flow-bin handling, restriction, projection and merge."""

    def setUp(self) -> None:
        self.hist = SparseHistogram((AxisSpec("x", 4, 0.0, 4.0), AxisSpec("y", 2, 0.0, 2.0)), name="h")

    def test_fill_uses_flow_inclusive_keys(self) -> None:
        """Out-of-range values land in the underflow/overflow bins, never dropped."""
        self.hist.fill((-1.0, 0.5))
        self.hist.fill((10.0, 0.5))
        self.hist.fill((1.5, 1.5), weight=2.0)
        cells = {key: (sum_w, sum_w2, n) for key, sum_w, sum_w2, n in self.hist.cells()}
        self.assertEqual(cells, {(0, 1): (1.0, 1.0, 1), (5, 1): (1.0, 1.0, 1), (2, 2): (2.0, 4.0, 1)})
        self.assertEqual(self.hist.entries, 3)
        self.assertEqual(self.hist.sum(), 4.0)
        self.assertEqual(self.hist.value((1.2, 1.9)), 2.0)
        self.assertEqual(self.hist.value((3.5, 0.5)), 0.0)

    def test_fill_rejects_wrong_dimension(self) -> None:
        with self.assertRaises(ValueError):
            self.hist.fill((1.0,))

    def test_variable_axis_lookup(self) -> None:
        hist = SparseHistogram((AxisSpec.variable("m", [0.0, 1.0, 3.0, 10.0]),))
        hist.fill((2.0,))
        self.assertEqual([key for key, *_ in hist.cells()], [(2,)])

    def test_clone_is_independent(self) -> None:
        self.hist.fill((0.5, 0.5))
        copy = self.hist.clone("copy")
        copy.fill((0.5, 0.5))
        self.assertEqual(copy.name, "copy")
        self.assertEqual(self.hist.sum(), 1.0)
        self.assertEqual(copy.sum(), 2.0)
        self.assertTrue(self.hist.empty_like().is_empty())

    def test_project_keeps_flow_bins_and_errors(self) -> None:
        self.hist.fill((-1.0, 0.5))
        self.hist.fill((1.5, 0.5), weight=2.0)
        self.hist.fill((1.5, 1.5))
        self.hist.fill((10.0, 1.5))
        projection = self.hist.project(0)
        view = projection.view(flow=True)
        self.assertEqual(view.value.tolist(), [1.0, 0.0, 3.0, 0.0, 0.0, 1.0])
        self.assertEqual(view.variance.tolist(), [1.0, 0.0, 5.0, 0.0, 0.0, 1.0])
        self.assertEqual(projection.axes[0].name, "x")
        self.assertFalse(hist_is_empty(projection))
        self.assertTrue(hist_is_empty(self.hist.empty_like().project(1)))

    def test_restrict_keeps_bins_between_window_edges(self) -> None:
        """Bins from the one containing the lower edge to the one containing the upper edge survive."""
        self.hist.fill((0.5, 0.5))
        self.hist.fill((1.5, 0.5))
        self.hist.fill((2.5, 0.5))
        self.hist.fill((3.5, 0.5))
        restricted = self.hist.restrict(0, 1.2, 2.8)
        self.assertEqual(restricted.sum(), 2.0)
        self.assertEqual(sorted(key for key, *_ in restricted.cells()), [(2, 1), (3, 1)])
        self.assertEqual(self.hist.sum(), 4.0)

    def test_merge_sums_bins(self) -> None:
        other = self.hist.empty_like()
        self.hist.fill((0.5, 0.5))
        other.fill((0.5, 0.5), weight=3.0)
        other.fill((3.5, 1.5))
        self.hist += other
        self.assertEqual(self.hist.value((0.5, 0.5)), 4.0)
        self.assertEqual(self.hist.value((3.5, 1.5)), 1.0)
        self.assertEqual(self.hist.entries, 3)

    def test_merge_rejects_incompatible(self) -> None:
        with self.assertRaises(ValueError):
            self.hist.merge(SparseHistogram((AxisSpec("x", 4, 0.0, 4.0),)))
        with self.assertRaises(ValueError):
            self.hist.merge(EventCounter())


class TestEventCounter(unittest.TestCase):
    def test_fill_and_merge(self) -> None:
        counter = EventCounter()
        counter.fill()
        counter.fill(2.0)
        other = EventCounter(1.0, 1)
        counter += other
        self.assertEqual(counter.value, 4.0)
        self.assertEqual(counter.entries, 3)
        self.assertEqual(other.clone(), EventCounter(1.0, 1))


if __name__ == "__main__":
    unittest.main()
