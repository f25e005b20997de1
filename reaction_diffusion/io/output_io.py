from __future__ import annotations

import csv
import pathlib
from typing import Mapping, Sequence

import numpy as np

_BASE_FIELDS = ["epoch", "time", "updatable", "subsection"]


def save_trajectory_csv(rows: Sequence[Mapping[str, object]], path: str | pathlib.Path) -> None:
    """Write trajectory rows; entity columns follow the base fields in first-seen order."""
    if not rows:
        raise ValueError("No trajectory rows to write")
    entity_fields: list[str] = []
    for row in rows:
        for key in row.keys():
            if key not in _BASE_FIELDS and key not in entity_fields:
                entity_fields.append(str(key))
    fieldnames = _BASE_FIELDS + entity_fields

    path_obj = pathlib.Path(path)
    path_obj.parent.mkdir(parents=True, exist_ok=True)

    with open(path_obj, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames, restval="")
        writer.writeheader()
        for row in rows:
            writer.writerow(row)


def load_trajectory_csv(path: str | pathlib.Path) -> list[dict[str, object]]:
    with open(path, "r", newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        rows = [dict(row) for row in reader]
    if not rows:
        raise ValueError(f"No trajectory rows found in {path}")
    for row in rows:
        row["epoch"] = int(row["epoch"])
        row["time"] = float(row["time"])
        for key, value in row.items():
            if key in _BASE_FIELDS:
                continue
            row[key] = float(value) if value not in ("", None) else np.nan
    return rows


def trajectory_matrix(
    rows: Sequence[Mapping[str, object]],
    updatable: str,
    subsection: str,
    entity_ids: Sequence[str],
) -> tuple[np.ndarray, np.ndarray]:
    """Times and an (n_samples, n_entities) concentration matrix for one updatable and subsection."""
    if not entity_ids:
        raise ValueError("entity_ids must be non-empty")
    selected = [
        row for row in rows
        if str(row["updatable"]) == updatable and str(row["subsection"]) == subsection
    ]
    if not selected:
        raise ValueError(f"No trajectory rows for {updatable}:{subsection}")
    times = np.array([float(row["time"]) for row in selected], dtype=float)
    values = np.array(
        [[float(row.get(eid, np.nan)) for eid in entity_ids] for row in selected],
        dtype=float,
    )
    return times, values
