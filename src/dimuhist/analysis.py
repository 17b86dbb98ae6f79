"""Event loop: select tracks, pair them, classify, count tracklets, fill the store."""

from __future__ import annotations
__author__ = "dimuhist developers"

import logging
import math
from dataclasses import dataclass, field
from typing import Callable, Iterable, Sequence

from .binning import (
    EVENT_COUNTER,
    N_PAIR_AXES,
    PAIR_HISTOGRAM,
    AxisSpec,
    EventCounter,
    SparseHistogram,
    default_pair_axes,
)
from .classifier import PairTaxonomy, PairTypeFilter, TruthAncestry, classify_pair
from .finalize import FinalizedOutput, Projector
from .models import (
    DecoratedTrack,
    EventInput,
    Particle,
    PairKey,
    ProcessingPass,
    Track,
    TruthParticle,
    iter_pairs,
)
from .physics import charge_combination, pair_kinematics, track_pair
from .store import MergeableStore
from .tracklets import ThresholdCounter

logger = logging.getLogger(__name__)

EventSelection = Callable[[EventInput], bool]
TrackSelection = Callable[[Track], bool]
TriggerMatch = Callable[[DecoratedTrack, DecoratedTrack, str], bool]


@dataclass(frozen=True)
class GeneratedSelection:
    """Selection of generator-level particles for the generated pass.

    Only final-state particles are kept (status below `max_status`), so the
    initial-state copies some generators store are not paired.
    """

    abs_pdg_code: int | None = 13
    max_status: int | None = 10
    min_eta: float | None = -4.0
    max_eta: float | None = -2.5

    def __call__(self, particle: TruthParticle) -> bool:
        if self.abs_pdg_code is not None and abs(particle.pdg_code) != self.abs_pdg_code:
            return False
        if self.max_status is not None and particle.status >= self.max_status:
            return False
        eta = particle.eta
        if self.min_eta is not None and not eta > self.min_eta:
            return False
        if self.max_eta is not None and not eta < self.max_eta:
            return False
        return True


def _check_window(name: str, window: tuple[float, float] | None) -> None:
    if window is None:
        return
    lower, upper = window
    if not (math.isfinite(lower) and math.isfinite(upper)) or lower >= upper:
        raise ValueError(f"{name} must be a finite (lower, upper) pair with lower < upper, got {window}.")


@dataclass(frozen=True)
class AnalysisConfig:
    """Run configuration; invalid values fail here, before any event is read."""

    tracklet_dist_cuts: tuple[float, ...] = ()
    selected_pair_types: str | None = None
    axes: tuple[AxisSpec, ...] = field(default_factory=default_pair_axes)
    max_tracklet_delta_phi: float = math.pi / 2.0
    rapidity_window: tuple[float, float] | None = (-3.999, -2.501)
    mass_window: tuple[float, float] | None = None
    generated_label: str = ProcessingPass.GENERATED.value
    taxonomy: PairTaxonomy = field(default_factory=PairTaxonomy)
    generated_selection: GeneratedSelection = field(default_factory=GeneratedSelection)

    def __post_init__(self) -> None:
        object.__setattr__(self, "tracklet_dist_cuts", tuple(float(x) for x in self.tracklet_dist_cuts))
        object.__setattr__(self, "axes", tuple(self.axes))
        if len(self.axes) != N_PAIR_AXES:
            raise ValueError(f"Pair histograms need {N_PAIR_AXES} axes, got {len(self.axes)}.")
        _check_window("rapidity_window", self.rapidity_window)
        _check_window("mass_window", self.mass_window)
        if not self.generated_label:
            raise ValueError("generated_label must be non-empty.")
        # Fail fast on bad thresholds / angular window.
        ThresholdCounter(self.tracklet_dist_cuts, self.max_tracklet_delta_phi)


@dataclass
class PairAnalysis:
    """Per-processing-unit driver owning one aggregate store.

    Lifecycle: `initialize()` once, `process_event()` per event,
    `finalize()` at the end, `close()` to release owned leaves.
    """

    config: AnalysisConfig = field(default_factory=AnalysisConfig)
    event_selection: EventSelection | None = None
    track_selection: TrackSelection | None = None
    trigger_match: TriggerMatch | None = None
    name: str = "PairAnalysis"
    store: MergeableStore | None = None

    def __post_init__(self) -> None:
        self._counter = ThresholdCounter(self.config.tracklet_dist_cuts, self.config.max_tracklet_delta_phi)
        self._pair_filter = PairTypeFilter(self.config.selected_pair_types)
        self._template = SparseHistogram(self.config.axes, name=PAIR_HISTOGRAM, title="Sparse for pairs")

    def initialize(self) -> MergeableStore:
        """Create the output store and log the run configuration."""
        if self.store is None:
            self.store = MergeableStore(name=self.name)
        logger.info(
            "The task will store the results for %s",
            self.config.selected_pair_types if self._pair_filter.active else "all particles",
        )
        logger.info("Cuts on tracklet distance: %s", self._counter.describe())
        return self.store

    def _require_store(self) -> MergeableStore:
        if self.store is None:
            raise RuntimeError("PairAnalysis.initialize() must be called before processing events.")
        return self.store

    def _event_counter(self, trigger: str) -> EventCounter:
        return self._require_store().get_or_create((trigger,), EVENT_COUNTER, EventCounter)

    def _pair_histogram(self, key: PairKey) -> SparseHistogram:
        return self._require_store().get_or_create(key.path, PAIR_HISTOGRAM, self._template.empty_like)

    def _passes(self, event: EventInput) -> list[ProcessingPass]:
        if event.has_truth:
            return [ProcessingPass.RECONSTRUCTED, ProcessingPass.GENERATED]
        return [ProcessingPass.RECONSTRUCTED]

    def _trigger_classes(self, event: EventInput, step: ProcessingPass) -> list[str]:
        if step is ProcessingPass.GENERATED:
            return [self.config.generated_label]
        return list(event.trigger_classes)

    def _is_event_selected(self, event: EventInput) -> bool:
        if self.event_selection is None:
            return event.selected
        return bool(self.event_selection(event))

    def _accept_track(self, track: Particle, step: ProcessingPass) -> bool:
        if step is ProcessingPass.GENERATED:
            return self.config.generated_selection(track)
        if self.track_selection is None:
            return track.selected
        return bool(self.track_selection(track))

    def select_tracks(
        self, event: EventInput, step: ProcessingPass, resolver: TruthAncestry | None
    ) -> list[DecoratedTrack]:
        """Selected tracks of one pass, decorated with type, history and label."""
        source: Sequence[Particle] = event.truth if step is ProcessingPass.GENERATED else event.tracks
        out: list[DecoratedTrack] = []
        for index, track in enumerate(source):
            if not self._accept_track(track, step):
                continue
            label = index if step is ProcessingPass.GENERATED else track.label
            if resolver is None:
                out.append(DecoratedTrack(track=track, particle_type=None, history="", label=label))
            else:
                out.append(
                    DecoratedTrack(
                        track=track,
                        particle_type=resolver.particle_type(label),
                        history=resolver.history(label),
                        label=label,
                    )
                )
        return out

    def process_event(self, event: EventInput) -> None:
        """Fill event counters and pair histograms for one event."""
        store = self._require_store()
        store.ensure_mutable()
        if not self._is_event_selected(event):
            return

        resolver = TruthAncestry(event.truth) if event.has_truth else None
        bucket_names = self._counter.bucket_names

        for step in self._passes(event):
            trigger_classes = self._trigger_classes(event, step)
            for trigger in trigger_classes:
                self._event_counter(trigger).fill(1.0)

            selected = self.select_tracks(event, step, resolver)
            if len(selected) < 2:
                continue

            for first, second in iter_pairs(selected):
                charge = charge_combination(first.track, second.track)
                pair_type, _ = classify_pair(first, second, resolver, self.config.taxonomy)
                if not self._pair_filter.accepts(pair_type):
                    continue

                kin = pair_kinematics(track_pair(first.track, second.track))
                counts = self._counter.count(kin.phi, event.tracklets)

                for trigger in trigger_classes:
                    if (
                        step is ProcessingPass.RECONSTRUCTED
                        and self.trigger_match is not None
                        and not self.trigger_match(first, second, trigger)
                    ):
                        continue
                    for bucket, n_tracklets in zip(bucket_names, counts):
                        key = PairKey(trigger, bucket, pair_type, charge)
                        coordinates = (
                            kin.pt,
                            kin.rapidity,
                            kin.phi,
                            kin.mass,
                            event.centrality,
                            float(n_tracklets),
                        )
                        self._pair_histogram(key).fill(coordinates, 1.0)

    def process_events(self, events: Iterable[EventInput]) -> MergeableStore:
        """Run `process_event` on every event and return the store."""
        for event in events:
            self.process_event(event)
        return self._require_store()

    def finalize(self) -> FinalizedOutput:
        """Project every pair histogram and derive efficiencies."""
        output = Projector.from_config(self.config).finalize(self._require_store())
        for line in output.report_lines():
            logger.info(line)
        return output

    def close(self) -> bool:
        """Release the store if this driver still owns it."""
        if self.store is None:
            return False
        return self.store.release()
