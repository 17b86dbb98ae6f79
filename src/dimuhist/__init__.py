"""Public package exports for the pair-classification and histogramming framework."""
__author__ = "dimuhist developers"

from .analysis import AnalysisConfig, GeneratedSelection, PairAnalysis
from .binning import AxisSpec, EventCounter, SparseHistogram, default_pair_axes
from .classifier import (
    AncestryResolver,
    PairTaxonomy,
    PairTypeFilter,
    TruthAncestry,
    classify_pair,
)
from .finalize import FinalizedOutput, MassWindowEfficiency, Projector
from .models import (
    DecoratedTrack,
    EventInput,
    LorentzVector,
    OwnershipMode,
    PairKey,
    ProcessingPass,
    Track,
    Tracklet,
    TruthParticle,
)
from .store import MergeableStore, merge_stores
from .tracklets import ThresholdCounter

__all__ = [
    "PairAnalysis",
    "AnalysisConfig",
    "GeneratedSelection",
    "MergeableStore",
    "merge_stores",
    "SparseHistogram",
    "EventCounter",
    "AxisSpec",
    "default_pair_axes",
    "ThresholdCounter",
    "AncestryResolver",
    "TruthAncestry",
    "PairTaxonomy",
    "PairTypeFilter",
    "classify_pair",
    "Projector",
    "FinalizedOutput",
    "MassWindowEfficiency",
    "EventInput",
    "Track",
    "TruthParticle",
    "Tracklet",
    "DecoratedTrack",
    "PairKey",
    "LorentzVector",
    "ProcessingPass",
    "OwnershipMode",
]
