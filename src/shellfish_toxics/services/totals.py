from __future__ import annotations
import logging
import math
from typing import Optional, Sequence

import numpy as np
import pandas as pd

from shellfish_toxics.core.exceptions import SchemaError
from shellfish_toxics.core.models import Convention, TotalKind, TotalSpec
from shellfish_toxics.services.classify import TAG_DDT, TAG_DIOXIN, TAG_SWAT_PCB, membership_column
from shellfish_toxics.services.nondetect import DEFAULT_CENSOR_CODE, resolve_frame

logger = logging.getLogger(__name__)

CALCULATED_METHOD = "Calculated"
TOTAL_UNITS = "NG/G"

SWAT_PCB_TOTAL = TotalSpec(label="SWAT_PCBS", tag=TAG_SWAT_PCB, group_keys=("code", "lab_id"))
DIOXIN_TOTAL = TotalSpec(label="Total Dioxins", tag=TAG_DIOXIN, group_keys=("code",))
DDT_TOTAL = TotalSpec(label="Total DDT", tag=TAG_DDT, group_keys=("code", "lab_id"))

COMPUTED_TOTALS: Sequence[TotalSpec] = (SWAT_PCB_TOTAL, DIOXIN_TOTAL, DDT_TOTAL)

# Constituent ordering inside a group, after the grouping key
_CONSTITUENT_KEYS: Sequence[str] = ("lab_id", "parameter", "cas_no")

AGGREGATE_COLUMNS = [
    "parameter", "concentration", "conc_ngg", "conc_ugg",
    "units", "method", "n_contributing",
]

def _require_keys(df: pd.DataFrame, keys: Sequence[str]) -> None:
    missing = [k for k in keys if k not in df.columns]
    if missing:
        raise SchemaError(f"Grouping column(s) not present: {missing}")

def select_constituents(df: pd.DataFrame, spec: TotalSpec) -> pd.DataFrame:
    """Rows flagged as constituents of `spec`, in a stable order."""
    col = membership_column(spec.tag)
    if col not in df.columns:
        raise SchemaError(f"{spec.label}: membership column '{col}' not present; tag the data first")
    sub = df[df[col].eq(True)]
    order = list(dict.fromkeys([*spec.group_keys, *[c for c in _CONSTITUENT_KEYS if c in sub.columns]]))
    return sub.sort_values(order, kind="mergesort", na_position="last")

def _fsum(values: pd.Series) -> float:
    return float(math.fsum(values.dropna()))

def aggregate_total(
    df: pd.DataFrame,
    spec: TotalSpec,
    censor_code: str = DEFAULT_CENSOR_CODE,
) -> pd.DataFrame:
    """
    Sum the resolved constituent values of `spec` per group.

    One row per group with the grouping key, the fixed label and the summed
    value in ng/g and ug/g. A group whose constituents all resolve to missing
    sums to 0.0, not to a missing value; `n_contributing` records how many
    values actually entered the sum so such groups can be told apart.
    """
    _require_keys(df, spec.group_keys)
    keys = list(spec.group_keys)
    sub = select_constituents(df, spec)
    if sub.empty:
        return pd.DataFrame(columns=keys + AGGREGATE_COLUMNS)

    work = sub[keys].copy()
    work["_resolved"] = resolve_frame(sub, censor_code)
    grouped = work.groupby(keys, sort=True, dropna=False)["_resolved"]
    out = pd.concat(
        [grouped.agg(_fsum).rename("conc_ngg"), grouped.count().rename("n_contributing")],
        axis=1,
    ).reset_index()

    out["parameter"] = spec.label
    out["concentration"] = out["conc_ngg"]
    out["conc_ugg"] = out["conc_ngg"] / 1000
    out["units"] = TOTAL_UNITS
    out["method"] = CALCULATED_METHOD

    empty = int((out["n_contributing"] == 0).sum())
    if empty:
        logger.warning("%s: %d group(s) had no contributing values and report 0.0", spec.label, empty)
    logger.info("%s: %d aggregate(s) from %d constituent row(s)", spec.label, len(out), len(sub))
    return out[keys + AGGREGATE_COLUMNS]

def compare_with_precalculated(
    df: pd.DataFrame,
    spec: TotalSpec,
    kind: TotalKind,
    convention: Optional[Convention] = Convention.HALF,
    censor_code: str = DEFAULT_CENSOR_CODE,
) -> pd.DataFrame:
    """
    Recompute a total with the aggregator and line it up against the
    reported pre-calculated total of `kind`. Diagnostic only: the reported
    value is what goes into the output.
    """
    keys = list(spec.group_keys)
    recomputed = aggregate_total(df, spec, censor_code)[keys + ["conc_ngg"]]
    recomputed = recomputed.rename(columns={"conc_ngg": "recomputed_ngg"})

    mask = df["total_kind"] == kind.value
    if convention is not None:
        mask &= df["convention"] == convention.value
    reported = df.loc[mask, keys + ["parameter", "conc_ngg"]].rename(
        columns={"conc_ngg": "reported_ngg", "parameter": "reported_parameter"}
    )
    cmp = pd.merge(reported, recomputed, how="outer", on=keys, sort=True)
    cmp["difference_ngg"] = cmp["reported_ngg"] - cmp["recomputed_ngg"]
    with np.errstate(divide="ignore", invalid="ignore"):
        cmp["relative_difference"] = cmp["difference_ngg"] / cmp["reported_ngg"]
    logger.debug("%s vs %s: %d comparison row(s)", spec.label, kind.value, len(cmp))
    return cmp
