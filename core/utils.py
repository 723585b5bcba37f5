from __future__ import annotations

import hashlib
from typing import Sequence

import numpy as np
from scipy import stats


def stable_id_entropy(*parts: str) -> int:
    """128-bit integer derived from text ids; platform- and run-independent."""
    digest = hashlib.sha256("\x1f".join(parts).encode("utf-8")).digest()
    return int.from_bytes(digest[:16], "big")


def substream(seed: int, *parts: str) -> np.random.Generator:
    """
    Independent generator keyed by (seed, ids).

    Keeping one stream per variable (or per option) means draw order never
    depends on list order or on how work is split across threads.
    """
    ss = np.random.SeedSequence([int(seed), stable_id_entropy(*parts)])
    return np.random.default_rng(ss)


def spearman_matrix(columns: Sequence[np.ndarray]) -> np.ndarray:
    """k×k Spearman rank correlation of the given sample columns."""
    k = len(columns)
    out = np.eye(k)
    if k < 2:
        return out
    data = np.column_stack(columns)
    ranks = np.apply_along_axis(stats.rankdata, 0, data)
    std = ranks.std(axis=0)
    live = std > 0
    if live.sum() >= 2:
        corr = np.corrcoef(ranks[:, live], rowvar=False)
        idx = np.flatnonzero(live)
        out[np.ix_(idx, idx)] = corr
    # Constant columns have no rank order; report zero correlation.
    np.fill_diagonal(out, 1.0)
    return out


def frobenius_distance(a: np.ndarray, b: np.ndarray) -> float:
    return float(np.linalg.norm(np.asarray(a) - np.asarray(b), ord="fro"))

