"""Kinematic helpers for track pairs."""

from __future__ import annotations
__author__ = "dimuhist developers"

import math
from dataclasses import dataclass
from typing import Iterable

from .models import LorentzVector, Particle

TWO_PI = 2.0 * math.pi


@dataclass(frozen=True)
class PairKinematics:
    """Observables of one track pair that feed the accumulator."""

    pt: float
    rapidity: float
    phi: float
    mass: float


def track_to_lorentz(track: Particle) -> LorentzVector:
    """Convert a track (or truth particle) and its mass into a Lorentz 4-vector."""
    p2 = track.px * track.px + track.py * track.py + track.pz * track.pz
    energy = (p2 + track.mass * track.mass) ** 0.5
    return LorentzVector(px=track.px, py=track.py, pz=track.pz, e=energy)


def sum_lorentz(vectors: Iterable[LorentzVector]) -> LorentzVector:
    """Sum an iterable of Lorentz vectors."""
    total = LorentzVector(0.0, 0.0, 0.0, 0.0)
    for vec in vectors:
        total = total + vec
    return total


def track_pair(first: Particle, second: Particle) -> LorentzVector:
    """Return the 4-vector of a two-track system."""
    return sum_lorentz((track_to_lorentz(first), track_to_lorentz(second)))


def pair_kinematics(p4: LorentzVector) -> PairKinematics:
    """Return `(pt, y, phi, mass)` of a pair 4-vector, phi in [0, 2pi)."""
    return PairKinematics(pt=p4.pt, rapidity=p4.rapidity, phi=p4.phi, mass=p4.mass)


def charge_combination(first: Particle, second: Particle) -> str:
    """`OS` for opposite charges, `SS` otherwise (neutral counts as same-sign)."""
    return "SS" if first.charge * second.charge >= 0 else "OS"


def delta_phi(phi1: float, phi2: float) -> float:
    """Absolute azimuthal separation wrapped into [0, pi]."""
    dphi = math.fmod(abs(phi1 - phi2), TWO_PI)
    if dphi > math.pi:
        dphi = TWO_PI - dphi
    return dphi
