"""Timestamped pipeline artifacts: naming, discovery and CSV round-trips."""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path

import pandas as pd
import pytz

from .config import ARTIFACT_TIMESTAMP_FORMAT, TIMEZONE, MissingInputError

logger = logging.getLogger(__name__)

_STAMP_RE = re.compile(r"(\d{4}-\d{2}-\d{2}_\d{2}-\d{2})")


def utc_now() -> datetime:
    return datetime.now(pytz.timezone(TIMEZONE))


def iso_now() -> str:
    return utc_now().isoformat()


def artifact_stamp(moment: datetime | None = None) -> str:
    return (moment or utc_now()).strftime(ARTIFACT_TIMESTAMP_FORMAT)


def artifact_path(
    results_dir: str | Path, prefix: str, suffix: str = ".csv", moment: datetime | None = None
) -> Path:
    out = Path(results_dir)
    out.mkdir(parents=True, exist_ok=True)
    return out / f"{prefix}{artifact_stamp(moment)}{suffix}"


def find_latest_artifact(results_dir: str | Path, prefix: str, suffix: str = ".csv") -> Path:
    """Return the artifact whose embedded timestamp is most recent.

    Raises
    ------
    MissingInputError
        If the directory is missing or holds no matching file.
    """
    base = Path(results_dir)
    if not base.is_dir():
        raise MissingInputError(f"Results directory not found: {base}")
    candidates = [p for p in base.glob(f"{prefix}*{suffix}") if p.is_file()]
    if not candidates:
        raise MissingInputError(f"No {prefix}*{suffix} files found in {base}")

    def sort_key(path: Path):
        m = _STAMP_RE.search(path.name)
        return (m.group(1) if m else "", path.name)

    return max(candidates, key=sort_key)


def resolve_input(
    explicit: str | Path | None, results_dir: str | Path, prefix: str, suffix: str = ".csv"
) -> Path:
    if explicit:
        path = Path(explicit)
        if not path.is_file():
            raise MissingInputError(f"File not found: {path}")
        return path
    path = find_latest_artifact(results_dir, prefix, suffix)
    logger.info("Using latest artifact %s", path)
    return path


def write_frame(df: pd.DataFrame, path: Path, columns: Sequence[str]) -> Path:
    out = df.reindex(columns=list(columns)) if not df.empty else pd.DataFrame(columns=list(columns))
    path.parent.mkdir(parents=True, exist_ok=True)
    out.to_csv(path, index=False, lineterminator="\n", encoding="utf-8")
    logger.info("Wrote %d rows to %s", len(out), path)
    return path


def read_frame(path: Path, required: Sequence[str] = ()) -> pd.DataFrame:
    df = pd.read_csv(path, dtype=str, keep_default_na=False, encoding="utf-8")
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise MissingInputError(f"{path} is missing columns: {', '.join(missing)}")
    return df
