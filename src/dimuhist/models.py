"""Core data models used by the pair-histogramming framework.

This module defines:
- immutable physics objects (`Track`, `TruthParticle`, `Tracklet`, `LorentzVector`)
- event containers (`EventInput`)
- per-event decorations (`DecoratedTrack`)
- store addressing (`PairKey`)
- run-mode flags (`ProcessingPass`, `OwnershipMode`).
"""

from __future__ import annotations
__author__ = "dimuhist developers"

import math
from dataclasses import dataclass
from enum import Enum
from itertools import combinations
from typing import Iterable, Sequence, Union

MUON_MASS = 0.1056583755


class ProcessingPass(str, Enum):
    """Which collaborator supplies the tracks of one event pass."""

    RECONSTRUCTED = "reconstructed"
    GENERATED = "generated"


class OwnershipMode(str, Enum):
    """Who is responsible for the leaves of an aggregate store."""

    OWNED = "owned"
    BORROWED_BY_OUTPUT_MANAGER = "borrowed_by_output_manager"


@dataclass(frozen=True)
class LorentzVector:
    """Simple 4-vector with convenience properties and addition."""

    px: float
    py: float
    pz: float
    e: float

    def __add__(self, other: "LorentzVector") -> "LorentzVector":
        """Component-wise 4-vector addition."""
        return LorentzVector(
            self.px + other.px,
            self.py + other.py,
            self.pz + other.pz,
            self.e + other.e,
        )

    @property
    def p2(self) -> float:
        """Squared 3-momentum magnitude."""
        return self.px * self.px + self.py * self.py + self.pz * self.pz

    @property
    def mass2(self) -> float:
        """Invariant mass squared."""
        return self.e * self.e - self.p2

    @property
    def mass(self) -> float:
        """Invariant mass with signed handling for small negative mass2 values."""
        m2 = self.mass2
        return m2**0.5 if m2 >= 0.0 else -((-m2) ** 0.5)

    @property
    def pt(self) -> float:
        """Transverse momentum."""
        return math.hypot(self.px, self.py)

    @property
    def phi(self) -> float:
        """Azimuth wrapped into [0, 2pi)."""
        phi = math.atan2(self.py, self.px)
        if phi < 0.0:
            phi += 2.0 * math.pi
        return phi

    @property
    def rapidity(self) -> float:
        """Longitudinal rapidity; saturates at +-1e9 for light-like longitudinal vectors."""
        if self.e == abs(self.pz):
            return 1e9 if self.pz >= 0 else -1e9
        return 0.5 * math.log((self.e + self.pz) / (self.e - self.pz))

    @property
    def eta(self) -> float:
        """Pseudorapidity."""
        return pseudorapidity(self.px, self.py, self.pz)


def pseudorapidity(px: float, py: float, pz: float) -> float:
    """Pseudorapidity of a 3-momentum; saturates at +-1e9 along the beam axis."""
    p = (px * px + py * py + pz * pz) ** 0.5
    if p == abs(pz):
        return 1e9 if pz >= 0 else -1e9
    return 0.5 * math.log((p + pz) / (p - pz))


@dataclass(frozen=True)
class Track:
    """Single reconstructed track.

    `label` is the index of the matched generator particle, or -1 when the
    event carries no truth or the track is unmatched.
    """

    label: int
    px: float
    py: float
    pz: float
    charge: int
    mass: float = MUON_MASS
    selected: bool = True

    @property
    def pt(self) -> float:
        return math.hypot(self.px, self.py)

    @property
    def eta(self) -> float:
        return pseudorapidity(self.px, self.py, self.pz)


@dataclass(frozen=True)
class TruthParticle:
    """Generator-level particle; `mother` is an index into the same truth list."""

    pdg_code: int
    mother: int
    status: int
    px: float
    py: float
    pz: float
    charge: int
    mass: float = MUON_MASS

    @property
    def pt(self) -> float:
        return math.hypot(self.px, self.py)

    @property
    def eta(self) -> float:
        return pseudorapidity(self.px, self.py, self.pz)


Particle = Union[Track, TruthParticle]


@dataclass(frozen=True)
class Tracklet:
    """Auxiliary angular measurement with its distance metric."""

    phi: float
    dist: float


@dataclass(frozen=True)
class EventInput:
    """One event payload as delivered by the selection collaborator."""

    event_id: str
    trigger_classes: tuple[str, ...]
    centrality: float
    tracks: tuple[Track, ...]
    truth: tuple[TruthParticle, ...] | None = None
    tracklets: tuple[Tracklet, ...] | None = None
    selected: bool = True

    @property
    def has_truth(self) -> bool:
        return self.truth is not None


@dataclass(frozen=True)
class DecoratedTrack:
    """One selected track plus the context derived for it in the current event.

    `track` is a reference to the collaborator's object and is not owned.
    """

    track: Particle
    particle_type: str | None
    history: str
    label: int


@dataclass(frozen=True)
class PairKey:
    """Four-level store path: trigger / threshold bucket / pair type / charge."""

    trigger: str
    bucket: str
    pair_type: str
    charge: str

    @property
    def path(self) -> tuple[str, str, str, str]:
        return (self.trigger, self.bucket, self.pair_type, self.charge)

    @property
    def identifier(self) -> str:
        return "/" + "/".join(self.path)


def iter_pairs(tracks: Sequence[DecoratedTrack]) -> Iterable[tuple[DecoratedTrack, DecoratedTrack]]:
    """Yield every unordered pair, first element always earlier in the list."""
    return combinations(tracks, 2)
