"""Hierarchical, mergeable store of histogram and counter leaves.

Leaves are addressed by a path of string segments plus a leaf name, e.g.
path `("CINT7", "trackletDistCuts_none", "unknown", "OS")` and name
`"PairSparse"`. Paths are created lazily the first time a leaf is requested
with a factory.
"""

from __future__ import annotations
__author__ = "dimuhist developers"

import copy
import logging
from typing import Iterable, Iterator, Sequence, Union

from .binning import Leaf, LeafFactory, SparseHistogram
from .models import OwnershipMode

logger = logging.getLogger(__name__)

Path = tuple[str, ...]
PathLike = Union[str, Sequence[str]]


def normalize_path(path: PathLike) -> Path:
    """Turn `/a/b/c` or an iterable of segments into a segment tuple."""
    if isinstance(path, str):
        return tuple(seg for seg in path.split("/") if seg)
    return tuple(str(seg) for seg in path)


def path_identifier(path: PathLike) -> str:
    return "/" + "/".join(normalize_path(path))


class MergeableStore:
    """Flat map from path tuple to named leaves, with lazy creation and merge."""

    def __init__(self, name: str = "", ownership: OwnershipMode = OwnershipMode.OWNED) -> None:
        self.name = name
        self.ownership = ownership
        self._leaves: dict[Path, dict[str, Leaf]] = {}
        self._allocated = 0

    def ensure_mutable(self) -> None:
        if self.ownership is OwnershipMode.BORROWED_BY_OUTPUT_MANAGER:
            raise RuntimeError(
                f"Store '{self.name}' was handed to the output manager and can no longer be modified."
            )

    def get_or_create(
        self, path: PathLike, name: str, factory: LeafFactory | None = None
    ) -> Leaf | None:
        """Return the leaf at `(path, name)`, building it with `factory` on first access.

        Without a factory a missing leaf is reported as an error and `None`
        is returned.
        """
        key = normalize_path(path)
        leaf = self._leaves.get(key, {}).get(name)
        if leaf is not None:
            return leaf
        if factory is None:
            logger.error("Unknown object %s in %s", name, path_identifier(key))
            return None
        self.ensure_mutable()
        leaf = factory()
        self._leaves.setdefault(key, {})[name] = leaf
        self._allocated += leaf.estimate_size()
        logger.info("Mergeable object collection size %g MB", self._allocated / 1024.0 / 1024.0)
        return leaf

    def lookup(self, full_path: PathLike) -> Leaf | None:
        """Resolve `/a/b/c/<name>` read-only; returns `None` when absent."""
        segments = normalize_path(full_path)
        if not segments:
            return None
        return self._leaves.get(segments[:-1], {}).get(segments[-1])

    def list_keys(self, depth: int) -> list[str]:
        """Distinct segment values observed at `depth`, sorted."""
        if depth < 0:
            raise ValueError(f"Key depth must be non-negative, got {depth}.")
        return sorted({path[depth] for path in self._leaves if len(path) > depth})

    def paths(self) -> list[Path]:
        return sorted(self._leaves)

    def items(self) -> Iterator[tuple[Path, str, Leaf]]:
        """Iterate `(path, name, leaf)` in sorted path order."""
        for path in sorted(self._leaves):
            for name, leaf in sorted(self._leaves[path].items()):
                yield path, name, leaf

    def __len__(self) -> int:
        return sum(len(named) for named in self._leaves.values())

    def __contains__(self, full_path: object) -> bool:
        if not isinstance(full_path, (str, tuple, list)):
            return False
        return self.lookup(full_path) is not None

    def merge(self, other: "MergeableStore") -> "MergeableStore":
        """Add every leaf of `other` into this store.

        Leaves present on both sides are summed; leaves only in `other` are
        deep-copied so the two stores never share mutable objects.
        """
        self.ensure_mutable()
        if other is self:
            raise ValueError("Cannot merge a store into itself.")
        incoming = list(other.items())
        # Check every shared leaf first so a rejected merge leaves this store unchanged.
        for path, name, leaf in incoming:
            mine = self._leaves.get(path, {}).get(name)
            if mine is not None:
                _check_mergeable(mine, leaf, path_identifier(path + (name,)))
        for path, name, leaf in incoming:
            named = self._leaves.setdefault(path, {})
            mine = named.get(name)
            if mine is None:
                mine = named[name] = copy.deepcopy(leaf)
                self._allocated += mine.estimate_size()
                continue
            before = mine.estimate_size()
            mine.merge(leaf)
            self._allocated += mine.estimate_size() - before
        return self

    @property
    def allocated_size(self) -> int:
        """Running size in bytes, updated when leaves are created or merged in."""
        return self._allocated

    def estimate_size(self) -> int:
        """Approximate memory use in bytes, recomputed over every leaf; advisory only."""
        return sum(leaf.estimate_size() for named in self._leaves.values() for leaf in named.values())

    def transfer_ownership(self) -> None:
        """Hand the leaves to an external output manager; the store becomes read-only."""
        self.ownership = OwnershipMode.BORROWED_BY_OUTPUT_MANAGER

    def release(self) -> bool:
        """Drop all leaves if this store owns them. Returns whether anything was released."""
        if self.ownership is not OwnershipMode.OWNED:
            return False
        self._leaves.clear()
        self._allocated = 0
        return True

    def __getstate__(self) -> dict:
        return {"name": self.name, "leaves": self._leaves}

    def __setstate__(self, state: dict) -> None:
        self.name = state["name"]
        self.ownership = OwnershipMode.OWNED
        self._leaves = state["leaves"]
        self._allocated = self.estimate_size()

    def __repr__(self) -> str:
        return f"MergeableStore(name={self.name!r}, paths={len(self._leaves)}, leaves={len(self)})"


def _check_mergeable(mine: Leaf, other: Leaf, where: str) -> None:
    if type(mine) is not type(other):
        raise ValueError(f"Cannot merge {type(other).__name__} into {type(mine).__name__} at {where}.")
    if isinstance(mine, SparseHistogram) and not mine.compatible_with(other):
        raise ValueError(f"Cannot merge histograms with different binning at {where}.")


def merge_stores(stores: Iterable[MergeableStore], name: str = "") -> MergeableStore:
    """Fold any number of stores into a new, owned store."""
    out = MergeableStore(name=name)
    for store in stores:
        out.merge(store)
    return out
