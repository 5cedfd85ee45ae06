from __future__ import annotations
import logging
from typing import Optional, Sequence

import pandas as pd

from shellfish_toxics.core.exceptions import SchemaError
from shellfish_toxics.core.units import NGG, to_target

logger = logging.getLogger(__name__)

def drop_duplicate_rows(df: pd.DataFrame, subset: Optional[Sequence[str]] = None) -> tuple[pd.DataFrame, int]:
    """Remove exact duplicate rows (or duplicates on `subset`), keeping the first."""
    dup = df.duplicated(subset=list(subset) if subset else None, keep="first")
    n = int(dup.sum())
    if n:
        logger.info("Dropped %d duplicate row(s)", n)
    return df[~dup].reset_index(drop=True), n

def normalize_concentrations(df: pd.DataFrame) -> pd.DataFrame:
    """
    Fill `conc_ngg`, `conc_ugg` and `rl_ngg` from the raw value/unit columns
    where the source did not provide them. Values already present are kept.
    """
    out = df.copy()
    if "conc_ngg" not in out.columns:
        if not {"concentration", "units"} <= set(out.columns):
            raise SchemaError("Need either 'conc_ngg' or both 'concentration' and 'units'")
        out["conc_ngg"] = to_target(out["concentration"], out["units"], NGG)
    else:
        out["conc_ngg"] = pd.to_numeric(out["conc_ngg"], errors="coerce")
        if {"concentration", "units"} <= set(out.columns):
            fill = out["conc_ngg"].isna() & out["concentration"].notna()
            if fill.any():
                out.loc[fill, "conc_ngg"] = to_target(out.loc[fill, "concentration"], out.loc[fill, "units"], NGG)

    if "conc_ugg" not in out.columns:
        out["conc_ugg"] = out["conc_ngg"] / 1000
    else:
        out["conc_ugg"] = pd.to_numeric(out["conc_ugg"], errors="coerce")
        out["conc_ugg"] = out["conc_ugg"].fillna(out["conc_ngg"] / 1000)

    if "rl_ngg" in out.columns:
        out["rl_ngg"] = pd.to_numeric(out["rl_ngg"], errors="coerce")
    else:
        out["rl_ngg"] = float("nan")
    if "rl" in out.columns:
        rl_units = out["rl_units"] if "rl_units" in out.columns else out.get("units")
        if rl_units is not None:
            fill = out["rl_ngg"].isna() & out["rl"].notna()
            if fill.any():
                out.loc[fill, "rl_ngg"] = to_target(out.loc[fill, "rl"], rl_units[fill], NGG)
    return out

def filter_weight_basis(df: pd.DataFrame, basis: str = "DRY") -> pd.DataFrame:
    """Rows reported on one weight basis (case-insensitive)."""
    if "weight_basis" not in df.columns:
        raise SchemaError("Missing required column: weight_basis")
    key = basis.strip().casefold()
    out = df[df["weight_basis"].astype(str).str.strip().str.casefold() == key].reset_index(drop=True)
    logger.info("Weight basis %s: kept %d of %d row(s)", basis.upper(), len(out), len(df))
    return out
