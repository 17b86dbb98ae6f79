"""Pair-origin classification from particle ancestry.

The label taxonomy is data, not code: `PairTaxonomy` maps the two particle
types of a pair (in first/second order) plus whether they share a common
ancestor to a label. Ancestry is answered by any object implementing
`AncestryResolver`; `TruthAncestry` builds one from an event's truth list.
"""

from __future__ import annotations
__author__ = "dimuhist developers"

import logging
from dataclasses import dataclass, field
from typing import Mapping, Protocol, Sequence

from .models import DecoratedTrack, TruthParticle

logger = logging.getLogger(__name__)

UNKNOWN = "unknown"
UNIDENTIFIED = "unidentified"
OTHER = "other"

# Source type of the first ancestor carrying one of these |PDG| codes.
_PDG_TO_SOURCE: dict[int, str] = {
    23: "Z",
    24: "W",
    113: "resonance",
    221: "resonance",
    223: "resonance",
    331: "resonance",
    333: "resonance",
    443: "quarkonium",
    100443: "quarkonium",
    553: "quarkonium",
    100553: "quarkonium",
    200553: "quarkonium",
    211: "decay",
    321: "decay",
    130: "decay",
    310: "decay",
}

_CORRELATED_PAIRS: dict[tuple[str, str], str] = {
    ("Z", "Z"): "Z",
    ("W", "W"): "WW",
    ("quarkonium", "quarkonium"): "quarkonium",
    ("resonance", "resonance"): "resonance",
    ("charm", "charm"): "charm",
    ("beauty", "beauty"): "beauty",
    ("beauty", "charm"): "beauty-charm",
    ("charm", "beauty"): "charm-beauty",
    ("decay", "decay"): "decay",
}


def heavy_flavour(pdg_code: int) -> str | None:
    """`charm`/`beauty` for hadrons whose heaviest quark is c/b, else `None`."""
    code = abs(pdg_code)
    if code < 100:
        return None
    quarks = [(code // 10) % 10, (code // 100) % 10, (code // 1000) % 10]
    heaviest = max(quarks)
    if heaviest == 4:
        return "charm"
    if heaviest == 5:
        return "beauty"
    return None


class AncestryResolver(Protocol):
    """Truth lookups needed by the classifier, keyed by track label."""

    def common_ancestor(self, first_label: int, second_label: int) -> int:
        ...

    def history(self, label: int) -> str:
        ...

    def particle_type(self, label: int) -> str:
        ...


@dataclass(frozen=True)
class TruthAncestry:
    """Ancestry resolver over one event's truth list (mother indices into the list)."""

    particles: Sequence[TruthParticle]
    source_types: Mapping[int, str] = field(default_factory=lambda: dict(_PDG_TO_SOURCE))
    ignore_roots: bool = False

    def _valid(self, label: int) -> bool:
        return 0 <= label < len(self.particles)

    def _excluded(self, label: int) -> bool:
        # Beam entries (no mother) are shared by everything when roots are ignored.
        return self.ignore_roots and not self._valid(self.particles[label].mother)

    def chain(self, label: int) -> list[int]:
        """Mother labels from the direct mother up to the first particle without one."""
        out: list[int] = []
        if not self._valid(label):
            return out
        seen = {label}
        current = self.particles[label].mother
        while self._valid(current) and current not in seen:
            out.append(current)
            seen.add(current)
            current = self.particles[current].mother
        return out

    def common_ancestor(self, first_label: int, second_label: int) -> int:
        """Nearest shared ancestor label, or -1."""
        if not (self._valid(first_label) and self._valid(second_label)):
            return -1
        second_chain = set(self.chain(second_label))
        for label in self.chain(first_label):
            if label in second_chain and not self._excluded(label):
                return label
        return -1

    def history(self, label: int) -> str:
        if not self._valid(label):
            return ""
        labels = [label] + self.chain(label)
        return " <- ".join(f"{self.particles[i].pdg_code}({i})" for i in labels)

    def particle_type(self, label: int) -> str:
        if not self._valid(label):
            return UNIDENTIFIED
        for ancestor in self.chain(label):
            code = abs(self.particles[ancestor].pdg_code)
            source = self.source_types.get(code) or heavy_flavour(code)
            if source is not None:
                return source
        return OTHER


@dataclass(frozen=True)
class PairTaxonomy:
    """Lookup `(first type, second type, correlated?) -> pair label`."""

    correlated: Mapping[tuple[str, str], str] = field(default_factory=lambda: dict(_CORRELATED_PAIRS))
    uncorrelated: Mapping[tuple[str, str], str] = field(default_factory=dict)
    correlated_default: str = "correlated"
    uncorrelated_default: str = "combinatorial"
    unknown: str = UNKNOWN

    def label(self, first_type: str | None, second_type: str | None, common_ancestor: int) -> str:
        if first_type is None or second_type is None:
            return self.unknown
        if common_ancestor >= 0:
            return self.correlated.get((first_type, second_type), self.correlated_default)
        return self.uncorrelated.get((first_type, second_type), self.uncorrelated_default)


@dataclass(frozen=True)
class PairTypeFilter:
    """Comma-separated whitelist of pair labels; empty accepts everything."""

    selected: str | None = None

    @property
    def labels(self) -> frozenset[str]:
        if not self.selected:
            return frozenset()
        return frozenset(tok.strip() for tok in self.selected.split(",") if tok.strip())

    @property
    def active(self) -> bool:
        return bool(self.labels)

    def accepts(self, pair_type: str) -> bool:
        labels = self.labels
        return not labels or pair_type in labels


def classify_pair(
    first: DecoratedTrack,
    second: DecoratedTrack,
    resolver: AncestryResolver | None,
    taxonomy: PairTaxonomy,
) -> tuple[str, int]:
    """Return `(pair_type, common_ancestor)` for two decorated tracks.

    The ancestor lookup does not depend on the order of the two tracks; the
    label lookup does (first/second particle-type slots).
    """
    if resolver is None:
        return taxonomy.unknown, -1
    low, high = sorted((first.label, second.label))
    ancestor = resolver.common_ancestor(low, high)
    pair_type = taxonomy.label(first.particle_type, second.particle_type, ancestor)
    logger.debug(
        "Srcs: %s %s  ancestor %i Type %s\n%s\n%s",
        first.particle_type,
        second.particle_type,
        ancestor,
        pair_type,
        first.history,
        second.history,
    )
    return pair_type, ancestor
