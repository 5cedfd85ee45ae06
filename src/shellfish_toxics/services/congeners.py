from __future__ import annotations
import logging
import re
from typing import Iterable, Mapping, Optional, Sequence

import pandas as pd

from shellfish_toxics.core.exceptions import CongenerCompletenessError

logger = logging.getLogger(__name__)

# Analyte names already in congener-number form: "PCB-101", "PCB 101",
# "pcb101", co-eluting "PCB-153/168".
_CONGENER_RE = re.compile(r"^PCB[-\s]?(?P<nums>\d{1,3}(?:\s*/\s*\d{1,3})*)$", flags=re.IGNORECASE)

def _norm_cas(cas) -> str:
    if cas is None:
        return ""
    try:
        if pd.isna(cas):
            return ""
    except (TypeError, ValueError):
        pass
    return str(cas).strip()

def congener_label(parameter, cas_no, nomenclature: Mapping[str, int]) -> Optional[str]:
    """
    Canonical congener label for one analyte.

    Names already in congener-number form are normalized ("PCB 101" ->
    "PCB-101"); otherwise the CAS number is looked up in `nomenclature`
    (CAS -> congener number). No match gives None.
    """
    name = "" if parameter is None or (isinstance(parameter, float) and pd.isna(parameter)) else str(parameter).strip()
    m = _CONGENER_RE.fullmatch(name)
    if m:
        nums = [n.strip() for n in m.group("nums").split("/")]
        return "PCB-" + "/".join(str(int(n)) for n in nums)
    cas = _norm_cas(cas_no)
    if cas and cas in nomenclature:
        return f"PCB-{int(nomenclature[cas])}"
    return None

def nomenclature_map(nomenclature: pd.DataFrame) -> dict[str, int]:
    """CAS -> congener number from a nomenclature table (`cas_no`, `congener`)."""
    tbl = nomenclature.dropna(subset=["cas_no", "congener"])
    return {
        str(cas).strip(): int(num)
        for cas, num in zip(tbl["cas_no"], tbl["congener"])
    }

def resolve_congeners(df: pd.DataFrame, nomenclature: Mapping[str, int]) -> pd.Series:
    """Congener label for every row of `df` (None where unresolved)."""
    cas = df["cas_no"] if "cas_no" in df.columns else pd.Series(None, index=df.index)
    return pd.Series(
        [congener_label(p, c, nomenclature) for p, c in zip(df["parameter"], cas)],
        index=df.index,
        dtype="object",
    )

def reference_congeners(
    reference: pd.DataFrame,
    nomenclature: Mapping[str, int],
) -> tuple[list[str], list[str]]:
    """
    Resolve the reference PCB list (analyte names, optionally with CAS numbers)
    to congener labels.

    Returns (labels sorted by congener number, unresolved entries). An
    unresolved entry is a reference data problem: the caller must count it
    as missing, since no sample row can ever be matched to it.
    """
    labels = resolve_congeners(reference, nomenclature)
    unresolved = reference.loc[labels.isna(), "parameter"].astype(str).tolist()
    if unresolved:
        logger.warning("Reference PCB list entries with no congener match: %s", unresolved)
    return sorted(set(labels.dropna()), key=_congener_sort_key), unresolved

def _congener_sort_key(label: str) -> tuple[int, str]:
    head = label.split("-", 1)[-1].split("/", 1)[0]
    return (int(head) if head.isdigit() else 10**6, label)

def congener_completeness(resolved: Iterable, expected: Iterable[str]) -> list[str]:
    """Expected congener labels with no resolved record."""
    found = {c for c in resolved if isinstance(c, str)}
    return [c for c in sorted(set(expected), key=_congener_sort_key) if c not in found]

def require_complete_congeners(
    resolved: Iterable,
    expected: Iterable[str],
    *,
    unresolved_reference: Sequence[str] = (),
    strict: bool = True,
) -> list[str]:
    """
    Expected congeners with no resolved record, followed by reference list
    entries that never resolved to a congener. Raises
    CongenerCompletenessError when anything is missing and `strict`.
    """
    missing = congener_completeness(resolved, expected) + list(unresolved_reference)
    if missing:
        msg = f"{len(missing)} reference congener(s) have no resolved record: {missing}"
        if strict:
            raise CongenerCompletenessError(msg)
        logger.warning("%s", msg)
    return missing
