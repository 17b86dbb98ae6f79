"""Unit tests for the per-event pair loop and its store layout."""

from __future__ import annotations
__author__ = "dimuhist developers"

import unittest

from dimuhist import (
    AnalysisConfig,
    EventCounter,
    EventInput,
    MergeableStore,
    PairAnalysis,
    SparseHistogram,
    Track,
    Tracklet,
    TruthParticle,
)
from dimuhist.binning import TRACKLETS

# Two forward muons with a dimuon rapidity near -3.
MU_PLUS = dict(px=1.0, py=0.0, pz=-10.0)
MU_MINUS = dict(px=-0.5, py=0.5, pz=-8.0)


def _tracks(first_charge: int = 1, second_charge: int = -1) -> tuple[Track, ...]:
    return (
        Track(label=1, charge=first_charge, **MU_PLUS),
        Track(label=2, charge=second_charge, **MU_MINUS),
    )


def _z_truth() -> tuple[TruthParticle, ...]:
    return (
        TruthParticle(pdg_code=23, mother=-1, status=62, px=0.5, py=0.5, pz=-18.0, charge=0, mass=91.19),
        TruthParticle(pdg_code=-13, mother=0, status=1, charge=1, **MU_PLUS),
        TruthParticle(pdg_code=13, mother=0, status=1, charge=-1, **MU_MINUS),
    )


def _event(**kwargs) -> EventInput:
    values = dict(event_id="evt0", trigger_classes=("CMUL7",), centrality=35.0, tracks=_tracks())
    values.update(kwargs)
    return EventInput(**values)


def _run(events, config: AnalysisConfig | None = None, **kwargs) -> MergeableStore:
    analysis = PairAnalysis(config=config or AnalysisConfig(), **kwargs)
    analysis.initialize()
    return analysis.process_events(events)


class TestPairAnalysis(unittest.TestCase):
    """Event counters, pair paths and selections of the event loop."""

    def test_real_data_event_fills_unknown_pair(self) -> None:
        """Without truth the pair is 'unknown' and lands under the no-cut bucket."""
        store = _run([_event()])
        counter = store.lookup("/CMUL7/nevents")
        self.assertIsInstance(counter, EventCounter)
        self.assertEqual(counter.value, 1.0)
        hist = store.lookup("/CMUL7/trackletDistCuts_none/unknown/OS/PairSparse")
        self.assertIsInstance(hist, SparseHistogram)
        self.assertEqual(hist.entries, 1)
        self.assertEqual(len(store), 2)
        [(key, *_)] = list(hist.cells())
        self.assertEqual(key[TRACKLETS], 1)

    def test_same_sign_pair(self) -> None:
        store = _run([_event(tracks=_tracks(-1, -1))])
        self.assertIn("/CMUL7/trackletDistCuts_none/unknown/SS/PairSparse", store)

    def test_every_trigger_class_gets_its_own_histograms(self) -> None:
        store = _run([_event(trigger_classes=("CMUL7", "CMSL7"))])
        self.assertEqual(store.list_keys(0), ["CMSL7", "CMUL7"])
        self.assertEqual(store.lookup("/CMSL7/nevents").value, 1.0)
        self.assertEqual(store.lookup("/CMSL7/trackletDistCuts_none/unknown/OS/PairSparse").entries, 1)

    def test_trigger_match_restricts_reconstructed_pairs(self) -> None:
        store = _run(
            [_event(trigger_classes=("CMUL7", "CMSL7"))],
            trigger_match=lambda first, second, trigger: trigger == "CMUL7",
        )
        self.assertEqual(store.lookup("/CMSL7/nevents").value, 1.0)
        self.assertIsNone(store.lookup("/CMSL7/trackletDistCuts_none/unknown/OS/PairSparse"))
        self.assertIsNotNone(store.lookup("/CMUL7/trackletDistCuts_none/unknown/OS/PairSparse"))

    def test_single_track_counts_event_without_pairs(self) -> None:
        store = _run([_event(tracks=_tracks()[:1])])
        self.assertEqual(store.lookup("/CMUL7/nevents").value, 1.0)
        self.assertEqual(len(store), 1)

    def test_rejected_events_leave_store_untouched(self) -> None:
        self.assertEqual(len(_run([_event(selected=False)])), 0)
        self.assertEqual(len(_run([_event()], event_selection=lambda event: False)), 0)

    def test_track_selection(self) -> None:
        store = _run([_event()], track_selection=lambda track: track.charge > 0)
        self.assertEqual(len(store), 1)
        store = _run([_event(tracks=(_tracks()[0], Track(label=3, charge=-1, selected=False, **MU_MINUS)))])
        self.assertEqual(len(store), 1)

    def test_truth_event_runs_generated_pass(self) -> None:
        """With truth both passes fill, and the shared Z mother labels the pair."""
        store = _run([_event(truth=_z_truth())])
        self.assertEqual(store.lookup("/CMUL7/nevents").value, 1.0)
        self.assertEqual(store.lookup("/generated/nevents").value, 1.0)
        self.assertEqual(store.lookup("/CMUL7/trackletDistCuts_none/Z/OS/PairSparse").entries, 1)
        self.assertEqual(store.lookup("/generated/trackletDistCuts_none/Z/OS/PairSparse").entries, 1)
        self.assertEqual(store.list_keys(2), ["Z"])

    def test_pair_type_whitelist(self) -> None:
        accepted = _run([_event(truth=_z_truth())], AnalysisConfig(selected_pair_types="Z,quarkonium"))
        self.assertEqual(accepted.list_keys(2), ["Z"])
        rejected = _run([_event(truth=_z_truth())], AnalysisConfig(selected_pair_types="charm"))
        self.assertEqual(rejected.list_keys(1), [])
        self.assertEqual(rejected.lookup("/CMUL7/nevents").value, 1.0)
        self.assertEqual(rejected.lookup("/generated/nevents").value, 1.0)

    def test_tracklet_buckets_store_cumulative_counts(self) -> None:
        tracklets = (
            Tracklet(phi=0.8, dist=0.05),
            Tracklet(phi=1.0, dist=0.3),
            Tracklet(phi=0.7, dist=2.0),
            Tracklet(phi=4.0, dist=0.01),
        )
        store = _run([_event(tracklets=tracklets)], AnalysisConfig(tracklet_dist_cuts=(0.1, 0.5)))
        expected = {"trackletDistCuts_0.5": 2, "trackletDistCuts_0.1": 1, "trackletDistCuts_none": 3}
        self.assertEqual(store.list_keys(1), sorted(expected))
        for bucket, n_tracklets in expected.items():
            hist = store.lookup(f"/CMUL7/{bucket}/unknown/OS/PairSparse")
            [(key, *_)] = list(hist.cells())
            # Flow-inclusive index of the integer-centred tracklet bins.
            self.assertEqual(key[TRACKLETS], n_tracklets + 1)

    def test_events_accumulate(self) -> None:
        store = _run([_event(), _event(event_id="evt1")])
        self.assertEqual(store.lookup("/CMUL7/nevents").value, 2.0)
        self.assertEqual(store.lookup("/CMUL7/trackletDistCuts_none/unknown/OS/PairSparse").entries, 2)

    def test_lifecycle(self) -> None:
        analysis = PairAnalysis()
        with self.assertRaises(RuntimeError):
            analysis.process_event(_event())
        store = analysis.initialize()
        store.transfer_ownership()
        with self.assertRaises(RuntimeError):
            analysis.process_event(_event())
        self.assertFalse(analysis.close())

    def test_invalid_config_fails_before_processing(self) -> None:
        with self.assertRaises(ValueError):
            AnalysisConfig(tracklet_dist_cuts=(1.0, 1.0))
        with self.assertRaises(ValueError):
            AnalysisConfig(axes=())
        with self.assertRaises(ValueError):
            AnalysisConfig(mass_window=(3.0, 2.0))


if __name__ == "__main__":
    unittest.main()
