"""Unit tests for end-of-run projections and efficiencies."""

from __future__ import annotations
__author__ = "dimuhist developers"

import unittest

import hist

from dimuhist import EventCounter, MergeableStore, Projector, SparseHistogram, default_pair_axes
from dimuhist.finalize import efficiency_name, projection_name, ratio_histogram, window_integral

BUCKET = "trackletDistCuts_none"


def _fill(store: MergeableStore, trigger: str, n: int, mass: float, rapidity: float = -3.0) -> None:
    path = (trigger, BUCKET, "Z", "OS")
    histogram = store.get_or_create(path, "PairSparse", lambda: SparseHistogram(default_pair_axes()))
    store.get_or_create((trigger,), "nevents", EventCounter).fill()
    for _ in range(n):
        histogram.fill((2.0, rapidity, 1.0, mass, 10.0, 0.0))


class TestProjector(unittest.TestCase):
    """Projection naming, empty-projection pruning and efficiencies."""

    def test_projection_names(self) -> None:
        name = projection_name("CMUL7", BUCKET, "OS", "Z", 3)
        self.assertEqual(name, "CMUL7_trackletDistCuts_none_OS_Z_proj3")
        self.assertEqual(efficiency_name(name), "CMUL7_trackletDistCuts_none_OS_Z_proj3_Efficiency")

    def test_mass_window_efficiency(self) -> None:
        """10 reconstructed over 100 generated pairs inside the window gives 0.1."""
        store = MergeableStore()
        _fill(store, "CMUL7", 10, 3.1)
        _fill(store, "generated", 100, 3.1)
        output = Projector(mass_window=(2.9, 3.3)).finalize(store)

        self.assertEqual(len(output.projections), 12)
        self.assertEqual(len(output.efficiencies), 6)
        [efficiency] = output.mass_window_efficiencies
        self.assertEqual(efficiency.name, "CMUL7_trackletDistCuts_none_OS_Z_proj3")
        self.assertEqual(efficiency.numerator, 10.0)
        self.assertEqual(efficiency.denominator, 100.0)
        self.assertAlmostEqual(efficiency.efficiency, 0.1)
        self.assertTrue(efficiency.describe().startswith("Eff for CMUL7_trackletDistCuts_none_OS_Z_proj3 in ("))
        self.assertTrue(efficiency.describe().endswith("10 / 100 = 0.1"))

        ratio = output.efficiencies["CMUL7_trackletDistCuts_none_OS_Z_proj3_Efficiency"]
        self.assertAlmostEqual(ratio[hist.loc(3.1)], 0.1)
        self.assertEqual(ratio[hist.loc(5.0)], 0.0)
        self.assertEqual(output.report_lines()[0], "12 projections, 6 efficiency histograms")

    def test_zero_denominator_gives_zero_efficiency(self) -> None:
        store = MergeableStore()
        _fill(store, "CMUL7", 10, 3.1)
        _fill(store, "generated", 5, 10.0)
        output = Projector(mass_window=(2.9, 3.3)).finalize(store)
        [efficiency] = output.mass_window_efficiencies
        self.assertEqual(efficiency.denominator, 0.0)
        self.assertEqual(efficiency.efficiency, 0.0)
        ratio = output.efficiencies["CMUL7_trackletDistCuts_none_OS_Z_proj3_Efficiency"]
        self.assertEqual(ratio[hist.loc(3.1)], 0.0)

    def test_without_generated_partner_no_efficiency(self) -> None:
        store = MergeableStore()
        _fill(store, "CMUL7", 3, 3.1)
        output = Projector().finalize(store)
        self.assertEqual(len(output.projections), 6)
        self.assertEqual(output.efficiencies, {})
        self.assertEqual(output.mass_window_efficiencies, [])

    def test_projections_outside_rapidity_window_are_dropped(self) -> None:
        store = MergeableStore()
        _fill(store, "CMUL7", 3, 3.1, rapidity=-4.3)
        self.assertEqual(Projector().project_store(store), {})
        kept = Projector(rapidity_window=None).project_store(store)
        self.assertEqual(kept["CMUL7_trackletDistCuts_none_OS_Z_proj1"].sum().value, 3.0)

    def test_full_axis_integral_without_window(self) -> None:
        histogram = hist.Hist(hist.axis.Regular(4, 0.0, 4.0), storage=hist.storage.Weight())
        histogram.fill([-1.0, 0.5, 1.5, 9.0])
        integral, first, last = window_integral(histogram, None)
        self.assertEqual((integral, first, last), (2.0, 1, 4))

    def test_ratio_requires_same_binning(self) -> None:
        first = hist.Hist(hist.axis.Regular(2, 0.0, 1.0), storage=hist.storage.Weight())
        second = hist.Hist(hist.axis.Regular(3, 0.0, 1.0), storage=hist.storage.Weight())
        with self.assertRaises(ValueError):
            ratio_histogram(first, second)


if __name__ == "__main__":
    unittest.main()
