"""Input/output helpers: JSON events and configuration, pickled stores, result tables."""

from __future__ import annotations
__author__ = "dimuhist developers"

import json
import pickle
from pathlib import Path
from typing import Any

from .analysis import AnalysisConfig, GeneratedSelection
from .binning import AxisSpec, default_pair_axes
from .classifier import PairTaxonomy
from .finalize import FinalizedOutput
from .models import EventInput, Track, Tracklet, TruthParticle
from .store import MergeableStore


def load_events_json(path: str | Path) -> list[EventInput]:
    """Load multi-event input JSON into `EventInput` objects.

    Expected shape:
    {
      "events": [
        {"event_id": "...", "trigger_classes": [...], "centrality": 10.0,
         "tracks": [...], "truth": [...], "tracklets": [...]},
        ...
      ]
    }
    `truth` and `tracklets` are optional; their absence means a real-data
    event and a missing tracklet source respectively.
    """
    data = _load_json(path)
    events_data = data.get("events")
    if not isinstance(events_data, list):
        raise ValueError("Events JSON must contain a list under key 'events'.")
    out: list[EventInput] = []
    for idx, event in enumerate(events_data):
        if not isinstance(event, dict):
            raise ValueError(f"Event entry at index {idx} must be an object.")
        event_id = str(event.get("event_id", f"evt{idx}"))
        tracks_data = event.get("tracks")
        if not isinstance(tracks_data, list):
            raise ValueError(f"Event '{event_id}' must contain a list under key 'tracks'.")
        triggers = event.get("trigger_classes", [])
        if not isinstance(triggers, list):
            raise ValueError(f"Event '{event_id}' key 'trigger_classes' must be a list.")
        truth_data = event.get("truth")
        truth = None
        if truth_data is not None:
            if not isinstance(truth_data, list):
                raise ValueError(f"Event '{event_id}' key 'truth' must be a list.")
            truth = tuple(
                _parse_truth_item(item, pidx, f"event '{event_id}'") for pidx, item in enumerate(truth_data)
            )
        tracklets_data = event.get("tracklets")
        tracklets = None
        if tracklets_data is not None:
            if not isinstance(tracklets_data, list):
                raise ValueError(f"Event '{event_id}' key 'tracklets' must be a list.")
            tracklets = tuple(
                _parse_tracklet_item(item, kidx, f"event '{event_id}'")
                for kidx, item in enumerate(tracklets_data)
            )
        out.append(
            EventInput(
                event_id=event_id,
                trigger_classes=tuple(str(t) for t in triggers),
                centrality=float(event.get("centrality", 0.0)),
                tracks=tuple(
                    _parse_track_item(item, tidx, f"event '{event_id}'")
                    for tidx, item in enumerate(tracks_data)
                ),
                truth=truth,
                tracklets=tracklets,
                selected=bool(event.get("selected", True)),
            )
        )
    return out


def load_analysis_config_json(path: str | Path) -> AnalysisConfig:
    """Load an `AnalysisConfig` from JSON; absent keys keep their defaults.

    Recognized keys: `tracklet_dist_cuts`, `selected_pair_types`,
    `centrality_estimator`, `axes` (per-name overrides of `bins`, `lower`,
    `upper`, `label` or explicit `edges`), `max_tracklet_delta_phi`,
    `rapidity_window`, `mass_window`, `generated_label`, `taxonomy`,
    `generated_selection`.
    """
    return analysis_config_from_dict(_load_json(path))


def analysis_config_from_dict(data: dict[str, Any]) -> AnalysisConfig:
    """Build an `AnalysisConfig` from an already-parsed mapping."""
    kwargs: dict[str, Any] = {}
    if "tracklet_dist_cuts" in data:
        cuts = data["tracklet_dist_cuts"]
        if not isinstance(cuts, list):
            raise ValueError("Config key 'tracklet_dist_cuts' must be a list of numbers.")
        kwargs["tracklet_dist_cuts"] = tuple(float(x) for x in cuts)
    if data.get("selected_pair_types") is not None:
        kwargs["selected_pair_types"] = str(data["selected_pair_types"])
    axes = default_pair_axes(str(data.get("centrality_estimator", "V0M")))
    if "axes" in data:
        axes = _parse_axes_overrides(data["axes"], axes)
    kwargs["axes"] = axes
    if "max_tracklet_delta_phi" in data:
        kwargs["max_tracklet_delta_phi"] = float(data["max_tracklet_delta_phi"])
    for key in ("rapidity_window", "mass_window"):
        if key in data:
            kwargs[key] = _parse_window(key, data[key])
    if "generated_label" in data:
        kwargs["generated_label"] = str(data["generated_label"])
    if "taxonomy" in data:
        kwargs["taxonomy"] = _parse_taxonomy(data["taxonomy"])
    if "generated_selection" in data:
        kwargs["generated_selection"] = _parse_generated_selection(data["generated_selection"])
    return AnalysisConfig(**kwargs)


def save_store(path: str | Path, store: MergeableStore) -> None:
    """Serialize a store's key -> leaf map for a later merge."""
    with Path(path).open("wb") as handle:
        pickle.dump(store, handle, protocol=pickle.HIGHEST_PROTOCOL)


def load_store(path: str | Path) -> MergeableStore:
    """Read a store written by `save_store`."""
    with Path(path).open("rb") as handle:
        store = pickle.load(handle)
    if not isinstance(store, MergeableStore):
        raise ValueError(f"File {path} does not contain a MergeableStore.")
    return store


def write_projection_table(path: str | Path, output: FinalizedOutput) -> None:
    """Write finalized 1-D histograms into Parquet/CSV/Pickle table."""
    pd = _require_pandas()
    df = pd.DataFrame(_histogram_rows(output))
    out = Path(path)
    suffix = out.suffix.lower()
    if suffix == ".parquet":
        df.to_parquet(out, index=False)
    elif suffix in (".pkl", ".pickle"):
        df.to_pickle(out)
    elif suffix == ".csv":
        df.to_csv(out, index=False)
    else:
        raise ValueError(
            f"Unsupported output format '{suffix}'. Use .parquet, .csv, or .pkl"
        )


def _histogram_rows(output: FinalizedOutput) -> list[dict[str, Any]]:
    """Flatten projections and efficiencies into one row per in-range bin."""
    rows: list[dict[str, Any]] = []
    groups = (("projection", output.projections), ("efficiency", output.efficiencies))
    for kind, histograms in groups:
        for name, histogram in histograms.items():
            axis = histogram.axes[0]
            view = histogram.view()
            values = view.value if kind == "projection" else view
            variances = view.variance if kind == "projection" else None
            for idx in range(axis.size):
                low, high = axis.edges[idx], axis.edges[idx + 1]
                rows.append(
                    {
                        "name": name,
                        "kind": kind,
                        "axis": axis.name,
                        "bin_low": float(low),
                        "bin_high": float(high),
                        "value": float(values[idx]),
                        "variance": None if variances is None else float(variances[idx]),
                    }
                )
    for eff in output.mass_window_efficiencies:
        rows.append(
            {
                "name": eff.name,
                "kind": "mass_window_efficiency",
                "axis": "mass",
                "bin_low": eff.lower_edge,
                "bin_high": eff.upper_edge,
                "value": eff.efficiency,
                "variance": None,
            }
        )
    return rows


def _require_pandas():
    """Import pandas lazily and provide a clear installation hint on failure."""
    try:
        import pandas as pd  # type: ignore
    except ModuleNotFoundError as exc:
        raise ModuleNotFoundError(
            "pandas is required to write output tables. Install pandas and pyarrow."
        ) from exc
    return pd


def _parse_track_item(item: Any, idx: int, context: str) -> Track:
    """Parse one reconstructed-track dictionary into a `Track`."""
    if not isinstance(item, dict):
        raise ValueError(f"Track entry at index {idx} in {context} must be an object.")
    try:
        return Track(
            label=int(item.get("label", -1)),
            px=float(item["px"]),
            py=float(item["py"]),
            pz=float(item["pz"]),
            charge=int(item["charge"]),
            mass=float(item.get("mass", Track.mass)),
            selected=bool(item.get("selected", True)),
        )
    except KeyError as exc:
        raise ValueError(f"Track at index {idx} in {context} is missing field {exc}.") from exc


def _parse_truth_item(item: Any, idx: int, context: str) -> TruthParticle:
    """Parse one generator-particle dictionary into a `TruthParticle`."""
    if not isinstance(item, dict):
        raise ValueError(f"Truth entry at index {idx} in {context} must be an object.")
    try:
        return TruthParticle(
            pdg_code=int(item["pdg_code"]),
            mother=int(item.get("mother", -1)),
            status=int(item.get("status", 1)),
            px=float(item["px"]),
            py=float(item["py"]),
            pz=float(item["pz"]),
            charge=int(item.get("charge", 0)),
            mass=float(item.get("mass", TruthParticle.mass)),
        )
    except KeyError as exc:
        raise ValueError(f"Truth particle at index {idx} in {context} is missing field {exc}.") from exc


def _parse_tracklet_item(item: Any, idx: int, context: str) -> Tracklet:
    if not isinstance(item, dict) or "phi" not in item or "dist" not in item:
        raise ValueError(f"Tracklet at index {idx} in {context} must be an object with 'phi' and 'dist'.")
    return Tracklet(phi=float(item["phi"]), dist=float(item["dist"]))


def _parse_axes_overrides(value: Any, defaults: tuple[AxisSpec, ...]) -> tuple[AxisSpec, ...]:
    """Apply per-axis overrides keyed by axis name."""
    if not isinstance(value, dict):
        raise ValueError("Config key 'axes' must be an object keyed by axis name.")
    by_name = {spec.name: spec for spec in defaults}
    unknown = sorted(set(value) - set(by_name))
    if unknown:
        raise ValueError(f"Unknown axis names in config: {unknown}. Known: {sorted(by_name)}")
    out: list[AxisSpec] = []
    for spec in defaults:
        override = value.get(spec.name)
        if override is None:
            out.append(spec)
            continue
        if not isinstance(override, dict):
            raise ValueError(f"Axis override for '{spec.name}' must be an object.")
        label = str(override.get("label", spec.label))
        if "edges" in override:
            out.append(AxisSpec.variable(spec.name, override["edges"], label))
        else:
            out.append(
                AxisSpec(
                    spec.name,
                    int(override.get("bins", spec.bins)),
                    float(override.get("lower", spec.lower)),
                    float(override.get("upper", spec.upper)),
                    label,
                )
            )
    return tuple(out)


def _parse_window(key: str, value: Any) -> tuple[float, float] | None:
    if value is None:
        return None
    if not isinstance(value, list) or len(value) != 2:
        raise ValueError(f"Config key '{key}' must be a [lower, upper] list or null.")
    return float(value[0]), float(value[1])


def _parse_taxonomy(value: Any) -> PairTaxonomy:
    """Parse `{"correlated": [[t1, t2, label], ...], "uncorrelated": [...], ...}`."""
    if not isinstance(value, dict):
        raise ValueError("Config key 'taxonomy' must be an object.")
    kwargs: dict[str, Any] = {}
    for key in ("correlated", "uncorrelated"):
        if key in value:
            kwargs[key] = _parse_label_table(key, value[key])
    for key in ("correlated_default", "uncorrelated_default", "unknown"):
        if key in value:
            kwargs[key] = str(value[key])
    return PairTaxonomy(**kwargs)


def _parse_label_table(key: str, value: Any) -> dict[tuple[str, str], str]:
    if not isinstance(value, list):
        raise ValueError(f"Taxonomy '{key}' must be a list of [first, second, label] entries.")
    table: dict[tuple[str, str], str] = {}
    for entry in value:
        if not isinstance(entry, list) or len(entry) != 3:
            raise ValueError(f"Taxonomy '{key}' entry {entry!r} must be [first, second, label].")
        table[(str(entry[0]), str(entry[1]))] = str(entry[2])
    return table


def _parse_generated_selection(value: Any) -> GeneratedSelection:
    if not isinstance(value, dict):
        raise ValueError("Config key 'generated_selection' must be an object.")

    def _opt(key: str, cast):
        if key not in value:
            return getattr(GeneratedSelection, key)
        return None if value[key] is None else cast(value[key])

    return GeneratedSelection(
        abs_pdg_code=_opt("abs_pdg_code", int),
        max_status=_opt("max_status", int),
        min_eta=_opt("min_eta", float),
        max_eta=_opt("max_eta", float),
    )


def _load_json(path: str | Path) -> dict[str, Any]:
    """Read and validate a JSON object document from disk."""
    raw = Path(path).read_text(encoding="utf-8")
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError(f"JSON document at {path} must be an object.")
    return data
