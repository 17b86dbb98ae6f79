"""Fill two independent stores from toy Z -> mu mu events, merge them and report.

Run from repository root without installation:
    PYTHONPATH=src python examples/split_and_merge.py
"""

from __future__ import annotations
__author__ = "dimuhist developers"

from pathlib import Path

import numpy as np

from dimuhist import AnalysisConfig, EventInput, PairAnalysis, Track, Tracklet, TruthParticle, merge_stores
from dimuhist.finalize import Projector
from dimuhist.io import write_projection_table


def toy_event(rng: np.random.Generator, index: int) -> EventInput:
    """One event with a muon pair sharing a Z mother and a few tracklets."""
    p1 = (rng.normal(0.0, 2.0), rng.normal(0.0, 2.0), -rng.uniform(10.0, 40.0))
    p2 = (rng.normal(0.0, 2.0), rng.normal(0.0, 2.0), -rng.uniform(10.0, 40.0))
    truth = (
        TruthParticle(23, -1, 62, p1[0] + p2[0], p1[1] + p2[1], p1[2] + p2[2], 0, 91.19),
        TruthParticle(-13, 0, 1, *p1, 1),
        TruthParticle(13, 0, 1, *p2, -1),
    )
    # Reconstructed muons: generator momenta smeared by 2%.
    tracks = tuple(
        Track(label, *(float(x) for x in np.asarray(p) * rng.normal(1.0, 0.02)), charge)
        for label, p, charge in ((1, p1, 1), (2, p2, -1))
    )
    tracklets = tuple(
        Tracklet(phi=rng.uniform(0.0, 2.0 * np.pi), dist=rng.exponential(0.5))
        for _ in range(rng.poisson(20))
    )
    return EventInput(
        event_id=f"toy{index}",
        trigger_classes=("CMUL7",),
        centrality=rng.uniform(0.0, 100.0),
        tracks=tracks,
        truth=truth,
        tracklets=tracklets,
    )


def main() -> int:
    rng = np.random.default_rng(7)
    config = AnalysisConfig(tracklet_dist_cuts=(1.0, 0.5), mass_window=(2.0, 14.0))
    stores = []
    for unit in range(2):
        analysis = PairAnalysis(config=config, name=f"unit{unit}")
        analysis.initialize()
        stores.append(analysis.process_events(toy_event(rng, i) for i in range(200)))
    merged = merge_stores(stores, name="merged")
    output = Projector.from_config(config).finalize(merged)
    for line in output.report_lines():
        print(line)
    out_path = Path("examples/split_and_merge_output.csv")
    write_projection_table(out_path, output)
    print(f"Wrote {out_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
