from __future__ import annotations
import math
from typing import Optional

import pandas as pd

DEFAULT_CENSOR_CODE = "U"

def _is_missing(x) -> bool:
    if x is None:
        return True
    try:
        return bool(pd.isna(x))
    except (TypeError, ValueError):
        return False

def _as_float(x) -> Optional[float]:
    if _is_missing(x):
        return None
    try:
        v = float(x)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(v) else v

def resolve_concentration(
    conc,
    rl,
    qualifier,
    censor_code: str = DEFAULT_CENSOR_CODE,
) -> Optional[float]:
    """
    Resolve one measurement to the value that enters a total.

    - no qualifier               -> reported concentration
    - qualifier == censor code   -> reporting limit / 2
    - any other qualifier        -> reported concentration (estimated/flagged
                                    values pass through)

    Returns None when the needed number is missing or not numeric; callers
    leave such rows out of sums.
    """
    if _is_missing(qualifier) or not str(qualifier).strip():
        return _as_float(conc)
    if str(qualifier).strip().upper() == censor_code.strip().upper():
        limit = _as_float(rl)
        return None if limit is None else limit / 2
    return _as_float(conc)

def resolve_frame(
    df: pd.DataFrame,
    censor_code: str = DEFAULT_CENSOR_CODE,
    value_col: str = "conc_ngg",
    rl_col: str = "rl_ngg",
    qualifier_col: str = "lab_qualifier",
) -> pd.Series:
    """Apply `resolve_concentration` row by row; missing results are NaN."""
    if df.empty:
        return pd.Series([], index=df.index, dtype="float64")
    values = df[value_col] if value_col in df.columns else pd.Series(None, index=df.index)
    limits = df[rl_col] if rl_col in df.columns else pd.Series(None, index=df.index)
    quals = df[qualifier_col] if qualifier_col in df.columns else pd.Series(None, index=df.index)
    out = [
        resolve_concentration(v, r, q, censor_code)
        for v, r, q in zip(values, limits, quals)
    ]
    return pd.Series(out, index=df.index, dtype="float64")
