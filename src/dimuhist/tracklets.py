"""Cumulative counting of tracklets under a set of distance thresholds."""

from __future__ import annotations
__author__ = "dimuhist developers"

import logging
import math
from typing import Iterable, Sequence

from .models import Tracklet
from .physics import delta_phi

logger = logging.getLogger(__name__)

NO_CUT_BUCKET = "trackletDistCuts_none"


def bucket_name(threshold: float) -> str:
    return f"trackletDistCuts_{threshold:g}"


class ThresholdCounter:
    """Count tracklets near a pair for each distance threshold.

    Thresholds are kept in descending order: a tracklet failing one
    threshold fails every following (stricter) one, so the per-tracklet loop
    stops at the first failure. The last bucket counts every tracklet inside
    the angular window regardless of its distance.
    """

    def __init__(self, thresholds: Iterable[float] = (), max_delta_phi: float = math.pi / 2.0) -> None:
        values = [float(x) for x in thresholds]
        if any(not math.isfinite(x) for x in values):
            raise ValueError(f"Tracklet distance thresholds must be finite, got {values}.")
        if len(set(values)) != len(values):
            raise ValueError(f"Tracklet distance thresholds must be distinct, got {values}.")
        if not (max_delta_phi > 0.0):
            raise ValueError(f"Angular window must be positive, got {max_delta_phi}.")
        self.thresholds: tuple[float, ...] = tuple(sorted(values, reverse=True))
        self.max_delta_phi = float(max_delta_phi)
        self.bucket_names: tuple[str, ...] = tuple(bucket_name(x) for x in self.thresholds) + (NO_CUT_BUCKET,)

    @property
    def n_buckets(self) -> int:
        return len(self.bucket_names)

    def zeros(self) -> list[int]:
        return [0] * self.n_buckets

    def count(self, pair_phi: float, tracklets: Sequence[Tracklet] | None) -> list[int]:
        """Per-bucket tracklet counts for one pair; all zeros without a tracklet source."""
        counts = self.zeros()
        if tracklets is None:
            return counts
        n_cuts = len(self.thresholds)
        try:
            for tracklet in tracklets:
                phi, dist = float(tracklet.phi), float(tracklet.dist)
                if not (math.isfinite(phi) and math.isfinite(dist)):
                    raise ValueError(f"non-finite tracklet (phi={phi}, dist={dist})")
                if delta_phi(pair_phi, phi) > self.max_delta_phi:
                    continue
                for icut, threshold in enumerate(self.thresholds):
                    if dist > threshold:
                        break
                    counts[icut] += 1
                counts[n_cuts] += 1
        except (AttributeError, TypeError, ValueError) as exc:
            logger.warning("Malformed tracklet source, using zero tracklet counts: %s", exc)
            return self.zeros()
        return counts

    def count_by_bucket(self, pair_phi: float, tracklets: Sequence[Tracklet] | None) -> dict[str, int]:
        return dict(zip(self.bucket_names, self.count(pair_phi, tracklets)))

    def describe(self) -> str:
        """Space-separated thresholds, or `none`."""
        if not self.thresholds:
            return "none"
        return "  ".join(f"{x:g}" for x in self.thresholds)
