from __future__ import annotations
import logging
from typing import Iterable, Sequence

import pandas as pd

from shellfish_toxics.core.models import Convention, TotalKind

logger = logging.getLogger(__name__)

PRECALCULATED_KINDS: Sequence[TotalKind] = (
    TotalKind.PAH, TotalKind.PCB, TotalKind.DIOXIN_TEQ, TotalKind.PESTICIDE,
)

_SORT_KEYS: Sequence[str] = ("code", "lab_id", "parameter")

def select_precalculated(
    df: pd.DataFrame,
    convention: Convention = Convention.HALF,
    kinds: Iterable[TotalKind] = PRECALCULATED_KINDS,
) -> pd.DataFrame:
    """Pre-calculated totals of the given kinds reported under one convention."""
    wanted = [k.value for k in kinds]
    mask = df["total_kind"].isin(wanted) & (df["convention"] == Convention(convention).value)
    out = df[mask].copy()
    found = out["total_kind"].value_counts().to_dict()
    for k in wanted:
        if k not in found:
            logger.warning("No pre-calculated %s totals under convention '%s'", k, Convention(convention).value)
    logger.info("Selected %d pre-calculated total row(s): %s", len(out), found)
    return out

def assemble_totals(precalculated: pd.DataFrame, computed: Sequence[pd.DataFrame]) -> pd.DataFrame:
    """
    Stack pre-calculated and computed totals. Columns are the union of all
    inputs, in first-seen order; a column absent from one input is missing
    for its rows.
    """
    frames = [f for f in [precalculated, *computed] if f is not None and not f.empty]
    if not frames:
        return pd.DataFrame(columns=list(precalculated.columns))
    columns: list[str] = []
    for f in frames:
        columns.extend(c for c in f.columns if c not in columns)
    out = pd.concat([f.reindex(columns=columns) for f in frames], ignore_index=True, sort=False)
    order = [c for c in _SORT_KEYS if c in out.columns]
    if order:
        out = out.sort_values(order, kind="mergesort", na_position="last").reset_index(drop=True)
    return out
