"""
Parameter tagging.

Every decision that depends on upstream parameter labels is made here, once,
when the data are loaded. Later stages only read the tag columns:

    contaminant_class  class from the classification table (PCB, Dioxin, ...)
    total_kind         TotalKind value for pre-calculated totals, else None
    convention         Convention value for pre-calculated totals, else None
    congener           canonical PCB congener label, else None
    in_swat_pcb        member of the SWAT PCB sum (reference list congener)
    in_dioxin          member of total dioxins (dioxin class)
    in_ddt             member of total DDT (DDT/DDD/DDE residue)

Membership flags are independent: one row can feed more than one computed
total (a dioxin-like PCB on the SWAT list is in both SWAT PCBs and dioxins).

When the upstream vocabulary changes, update TOTAL_PATTERNS / DDT_RESIDUE_RE
below or add explicit `total_kind` / `convention` columns to the
classification table; the latter take precedence.
"""
from __future__ import annotations
import logging
import re
from typing import Mapping, Optional

import pandas as pd

from shellfish_toxics.core.models import Convention, TotalKind
from shellfish_toxics.services.congeners import resolve_congeners

logger = logging.getLogger(__name__)

# Order matters: TEQ totals also mention PCBs/dioxins.
TOTAL_PATTERNS: list[tuple[TotalKind, re.Pattern]] = [
    (TotalKind.DIOXIN_TEQ, re.compile(r"^TOTAL\b.*\bTEQ", re.IGNORECASE)),
    (TotalKind.PAH, re.compile(r"^TOTAL\b.*PAH", re.IGNORECASE)),
    (TotalKind.PCB, re.compile(r"^TOTAL\b.*PCB", re.IGNORECASE)),
    (TotalKind.PESTICIDE, re.compile(r"^(TOTAL\b.*)?PESTICIDE", re.IGNORECASE)),
]

_CONVENTION_RE = re.compile(r"-\s*(?P<conv>[HDO])\s*$", re.IGNORECASE)
_TOTAL_LIKE_RE = re.compile(r"^(TOTAL|SUM)\b", re.IGNORECASE)

DDT_RESIDUE_RE = re.compile(r"\bDD[TDE]\b", re.IGNORECASE)

TAG_SWAT_PCB = "swat_pcb"
TAG_DIOXIN = "dioxin"
TAG_DDT = "ddt"

DIOXIN_CLASSES = {"dioxin", "dioxins", "dioxins/furans", "furan", "furans"}

MEMBERSHIP_PREFIX = "in_"

def membership_column(tag: str) -> str:
    """Boolean column flagging the constituents of the computed total `tag`."""
    return f"{MEMBERSHIP_PREFIX}{tag}"

MEMBERSHIP_COLUMNS = [membership_column(t) for t in (TAG_SWAT_PCB, TAG_DIOXIN, TAG_DDT)]

TAG_COLUMNS = ["contaminant_class", "total_kind", "convention", "congener", *MEMBERSHIP_COLUMNS]

def total_kind_for(parameter: str) -> Optional[TotalKind]:
    name = str(parameter).strip()
    for kind, pat in TOTAL_PATTERNS:
        if pat.search(name):
            return kind
    return None

def convention_for(parameter: str) -> Optional[Convention]:
    m = _CONVENTION_RE.search(str(parameter))
    return Convention(m.group("conv").upper()) if m else None

def _parse_kind(v) -> Optional[TotalKind]:
    if v is None or pd.isna(v) or not str(v).strip():
        return None
    return TotalKind(str(v).strip().upper())

def _parse_convention(v) -> Optional[Convention]:
    if v is None or pd.isna(v) or not str(v).strip():
        return None
    return Convention(str(v).strip().upper())

def _vocabulary(classification: pd.DataFrame) -> pd.DataFrame:
    """One row per parameter name with class and optional overrides."""
    voc = classification.copy()
    voc["parameter"] = voc["parameter"].astype(str).str.strip()
    dup = voc["parameter"].duplicated(keep=False)
    if dup.any():
        logger.warning("Classification table lists %d parameter(s) more than once; first entry wins: %s",
                       voc.loc[dup, "parameter"].nunique(), sorted(voc.loc[dup, "parameter"].unique()))
        voc = voc.drop_duplicates(subset="parameter", keep="first")
    return voc.set_index("parameter")

def tag_parameters(
    df: pd.DataFrame,
    classification: pd.DataFrame,
    nomenclature: Mapping[str, int],
    swat_congeners: list[str],
) -> tuple[pd.DataFrame, list[str]]:
    """
    Return a tagged copy of `df` plus the sorted list of TOTAL-like labels
    that match no recognized pre-calculated total.
    """
    out = df.copy()
    voc = _vocabulary(classification)
    names = out["parameter"].astype(str).str.strip()

    out["contaminant_class"] = names.map(voc["class"]) if "class" in voc.columns else None

    # pre-calculated totals: explicit overrides first, then the name vocabulary
    kinds: dict[str, Optional[TotalKind]] = {}
    convs: dict[str, Optional[Convention]] = {}
    for name in names.unique():
        kind = _parse_kind(voc.at[name, "total_kind"]) if "total_kind" in voc.columns and name in voc.index else None
        conv = _parse_convention(voc.at[name, "convention"]) if "convention" in voc.columns and name in voc.index else None
        kinds[name] = kind or total_kind_for(name)
        convs[name] = (conv or convention_for(name)) if kinds[name] else None
    out["total_kind"] = names.map(lambda n: kinds[n].value if kinds[n] else None)
    out["convention"] = names.map(lambda n: convs[n].value if convs[n] else None)

    unrecognized = sorted(n for n in kinds if kinds[n] is None and _TOTAL_LIKE_RE.match(n))
    if unrecognized:
        logger.warning("TOTAL-like parameter(s) not recognized as a pre-calculated total: %s", unrecognized)

    is_total = out["total_kind"].notna() | names.isin(unrecognized)
    out["congener"] = resolve_congeners(out, nomenclature).where(~is_total, None)

    cls = out["contaminant_class"].astype(str).str.strip().str.casefold()
    swat = set(swat_congeners)
    out[membership_column(TAG_SWAT_PCB)] = out["congener"].isin(swat) & ~is_total
    out[membership_column(TAG_DIOXIN)] = cls.isin(DIOXIN_CLASSES) & ~is_total
    out[membership_column(TAG_DDT)] = names.str.contains(DDT_RESIDUE_RE) & ~is_total

    logger.info(
        "Tagged %d rows: %d pre-calculated totals, %s",
        len(out), int(out["total_kind"].notna().sum()),
        {c: int(out[c].sum()) for c in MEMBERSHIP_COLUMNS},
    )
    return out, unrecognized
