from __future__ import annotations
import logging
from typing import Sequence

import pandas as pd

from shellfish_toxics.core.exceptions import MetadataMismatchError
from shellfish_toxics.services.classify import MEMBERSHIP_PREFIX, TAG_COLUMNS

logger = logging.getLogger(__name__)

# Fields that belong to one measurement, not to the sample
PARAMETER_FIELDS: Sequence[str] = (
    "parameter", "cas_no", "concentration", "units", "conc_ngg", "conc_ugg",
    "rl", "rl_units", "rl_ngg", "mdl", "lab_qualifier", "validation_qualifier",
    "qualifier_description", "method", "method_description", "test", "analysis_lab",
    *TAG_COLUMNS,
)

# Sample-level fields expected to be identical across a group
METADATA_FIELDS: Sequence[str] = (
    "site_seq", "site", "sample_id", "sample_date", "year", "species", "weight_basis",
)

def metadata_conflicts(
    df: pd.DataFrame,
    group_keys: Sequence[str],
    fields: Sequence[str] = METADATA_FIELDS,
) -> pd.DataFrame:
    """
    Groups whose metadata is not homogeneous: one row per (group, field) with
    the number of distinct values seen. Empty when every group is consistent.
    """
    keys = list(group_keys)
    present = [f for f in fields if f in df.columns and f not in keys]
    cols = keys + ["field", "n_values"]
    if df.empty or not present:
        return pd.DataFrame(columns=cols)
    counts = df.groupby(keys, sort=True, dropna=False)[present].nunique(dropna=False)
    long = counts.reset_index().melt(id_vars=keys, var_name="field", value_name="n_values")
    return long[long["n_values"] > 1][cols].reset_index(drop=True)

def representative_rows(df: pd.DataFrame, group_keys: Sequence[str]) -> pd.DataFrame:
    """First row per grouping key, with measurement-specific fields removed."""
    keys = list(group_keys)
    keep = [
        c for c in df.columns
        if c in keys or (c not in PARAMETER_FIELDS and not str(c).startswith(MEMBERSHIP_PREFIX))
    ]
    return df[keep].drop_duplicates(subset=keys, keep="first").reset_index(drop=True)

def attach_metadata(
    aggregates: pd.DataFrame,
    constituents: pd.DataFrame,
    group_keys: Sequence[str],
    *,
    label: str = "",
    strict: bool = False,
) -> tuple[pd.DataFrame, dict]:
    """
    Join one representative constituent row's metadata onto each aggregate.

    Inner join on the grouping key: an aggregate without a representative
    row is dropped (and counted). Heterogeneous metadata within a group is
    reported, or raises MetadataMismatchError when `strict`.
    """
    keys = list(group_keys)
    conflicts = metadata_conflicts(constituents, keys)
    n_conflict_groups = int(conflicts[keys].drop_duplicates().shape[0]) if not conflicts.empty else 0
    if n_conflict_groups:
        msg = (f"{label or 'aggregate'}: metadata differs within {n_conflict_groups} group(s); "
               f"fields: {sorted(conflicts['field'].unique())}")
        if strict:
            raise MetadataMismatchError(msg)
        logger.warning("%s; using the first row of each group", msg)

    meta = representative_rows(constituents, keys)
    overlap = [c for c in meta.columns if c in aggregates.columns and c not in keys]
    meta = meta.drop(columns=overlap)
    merged = pd.merge(aggregates, meta, how="inner", on=keys, validate="1:1")

    orphans = len(aggregates) - len(merged)
    if orphans:
        logger.warning("%s: %d aggregate(s) had no metadata row and were dropped", label or "aggregate", orphans)
    return merged, {"orphans_dropped": orphans, "metadata_conflicts": n_conflict_groups}
