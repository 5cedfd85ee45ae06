from __future__ import annotations
import logging
import os
import re
from pathlib import Path
from typing import Optional

import pandas as pd
from pydantic import BaseModel, ConfigDict, ValidationError

from shellfish_toxics.core.exceptions import ReferenceDataError, SchemaError
from shellfish_toxics.core.models import NomenclatureEntry

logger = logging.getLogger(__name__)

REFERENCE_DIR_ENV = "SHELLFISH_REFERENCE_DIR"

CLASSIFICATION_FILE = "parameter_classes.csv"
NOMENCLATURE_FILE = "pcb_nomenclature.csv"
SWAT_PCB_FILE = "swat_pcbs.csv"

SAMPLE_COL_ALIASES = {
    "code": ["code", "sample_code"],
    "lab_id": ["lab_id", "labid", "lab_sample_id"],
    "site_seq": ["site_seq", "siteseq"],
    "site": ["site", "site_name", "sitename"],
    "sample_id": ["sample_id", "sampleid"],
    "sample_date": ["sample_date", "date", "sampling_date"],
    "year": ["year", "sample_year"],
    "species": ["species", "sample_type_description"],
    "parameter": ["parameter", "analyte", "parameter_name"],
    "cas_no": ["cas_no", "cas", "cas_number", "casno"],
    "concentration": ["concentration", "conc", "result", "value"],
    "units": ["units", "units_value", "unit"],
    "conc_ngg": ["conc_ngg"],
    "conc_ugg": ["conc_ugg"],
    "rl": ["rl", "reporting_limit"],
    "rl_units": ["rl_units"],
    "rl_ngg": ["rl_ngg"],
    "lab_qualifier": ["lab_qualifier", "qualifier", "lab_qual"],
    "weight_basis": ["weight_basis", "basis"],
    "method": ["method", "test_method"],
}

CLASSIFICATION_COL_ALIASES = {
    "parameter": ["parameter", "analyte", "parameter_name"],
    "class": ["class", "contaminant_class", "parameter_class", "category"],
    "total_kind": ["total_kind", "total"],
    "convention": ["convention", "nd_convention"],
}

NOMENCLATURE_COL_ALIASES = {
    "cas_no": ["cas_no", "cas", "cas_number", "casrn"],
    "congener": ["congener", "congener_number", "pcb_number", "bz_number"],
    "iupac_name": ["iupac_name", "iupac", "name"],
}

SWAT_COL_ALIASES = {
    "parameter": ["parameter", "analyte", "parameter_name"],
    "cas_no": ["cas_no", "cas", "cas_number"],
}

_KEY_COLUMNS = ("code", "lab_id", "cas_no")

def _snake(name) -> str:
    s = str(name).strip().lower()
    return re.sub(r"[\s.\-/]+", "_", s)

def _normalize_columns(df: pd.DataFrame, alias_map: dict, required: list[str], name: str) -> pd.DataFrame:
    """Rename columns to their standard names; unknown columns are kept as-is."""
    out = df.rename(columns=_snake)
    colmap = {}
    for std, aliases in alias_map.items():
        if std in out.columns:
            continue
        for a in aliases:
            if a in out.columns and a not in colmap and a not in alias_map:
                colmap[a] = std
                break
    out = out.rename(columns=colmap)
    missing = [r for r in required if r not in out.columns]
    if missing:
        raise SchemaError(f"{name} missing required column(s): {missing}")
    return out

def _read_table(path_or_buf) -> pd.DataFrame:
    name = str(getattr(path_or_buf, "name", path_or_buf)).lower()
    if name.endswith((".xlsx", ".xls")):
        return pd.read_excel(path_or_buf)
    return pd.read_csv(path_or_buf)

def _key_text(v):
    if pd.isna(v):
        return v
    # a blank cell makes pandas read an integer code column as float
    if isinstance(v, float) and v.is_integer():
        return str(int(v))
    return str(v).strip()

def _keys_as_text(df: pd.DataFrame) -> pd.DataFrame:
    for c in _KEY_COLUMNS:
        if c in df.columns:
            df[c] = df[c].map(_key_text)
    return df

def load_samples(path_or_buf) -> pd.DataFrame:
    df = _read_table(path_or_buf)
    df = _normalize_columns(df, SAMPLE_COL_ALIASES, ["code", "parameter", "weight_basis"], "samples")
    if "conc_ngg" not in df.columns and not {"concentration", "units"} <= set(df.columns):
        raise SchemaError("samples need either 'conc_ngg' or both 'concentration' and 'units'")
    if "lab_id" not in df.columns:
        df["lab_id"] = None
    logger.info("Loaded %d sample row(s) from %s", len(df), getattr(path_or_buf, "name", path_or_buf))
    return _keys_as_text(df)

def load_classification(path_or_buf) -> pd.DataFrame:
    df = _read_table(path_or_buf)
    df = _normalize_columns(df, CLASSIFICATION_COL_ALIASES, ["parameter", "class"], "classification")
    keep = [c for c in CLASSIFICATION_COL_ALIASES if c in df.columns]
    return df[keep].copy()

def load_nomenclature(path_or_buf) -> pd.DataFrame:
    df = _read_table(path_or_buf)
    df = _normalize_columns(df, NOMENCLATURE_COL_ALIASES, ["cas_no", "congener"], "nomenclature")
    keep = [c for c in NOMENCLATURE_COL_ALIASES if c in df.columns]
    rows = []
    for rec in df[keep].dropna(subset=["cas_no", "congener"]).to_dict("records"):
        if "iupac_name" in rec and pd.isna(rec["iupac_name"]):
            rec["iupac_name"] = None
        try:
            rows.append(NomenclatureEntry(**{**rec, "cas_no": str(rec["cas_no"])}).model_dump())
        except ValidationError as exc:
            raise ReferenceDataError(f"Bad nomenclature row {rec}: {exc}") from exc
    dup = pd.Series([r["cas_no"] for r in rows]).duplicated()
    if dup.any():
        raise ReferenceDataError("Nomenclature table has more than one row for a CAS number")
    return pd.DataFrame(rows, columns=["cas_no", "congener", "iupac_name"])

def load_reference_pcbs(path_or_buf) -> pd.DataFrame:
    df = _read_table(path_or_buf)
    df = _normalize_columns(df, SWAT_COL_ALIASES, ["parameter"], "reference PCB list")
    keep = [c for c in SWAT_COL_ALIASES if c in df.columns]
    return _keys_as_text(df[keep].dropna(subset=["parameter"]).copy())

class ReferenceTables(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    classification: pd.DataFrame
    nomenclature: pd.DataFrame
    swat_pcbs: pd.DataFrame
    paths: dict[str, str] = {}

def _candidate_dirs() -> list[Path]:
    paths: list[Path] = []
    # 1) Environment variable
    env = os.getenv(REFERENCE_DIR_ENV)
    if env:
        paths.append(Path(env))
    # 2) Working dir, then repo-relative (src/shellfish_toxics/io -> parents[3])
    paths.append(Path("data/reference"))
    paths.append(Path(__file__).resolve().parents[3] / "data" / "reference")
    seen = set()
    ordered: list[Path] = []
    for p in paths:
        if str(p) not in seen:
            ordered.append(p)
            seen.add(str(p))
    return ordered

def find_reference_dir(explicit: Optional[str | Path] = None) -> Path:
    """First candidate directory holding all three reference files."""
    needed = (CLASSIFICATION_FILE, NOMENCLATURE_FILE, SWAT_PCB_FILE)
    if explicit:
        d = Path(explicit)
        if not all((d / f).is_file() for f in needed):
            raise ReferenceDataError(f"Reference directory {explicit} must contain {list(needed)}")
        return d
    tried = _candidate_dirs()
    for d in tried:
        if all((d / f).is_file() for f in needed):
            return d
    raise ReferenceDataError(
        f"No reference directory with {list(needed)} found; tried {[str(p) for p in tried]}. "
        f"Pass --reference-dir or set {REFERENCE_DIR_ENV}."
    )

def load_reference_tables(reference_dir: Optional[str | Path] = None) -> ReferenceTables:
    d = find_reference_dir(reference_dir)
    paths = {
        "classification": d / CLASSIFICATION_FILE,
        "nomenclature": d / NOMENCLATURE_FILE,
        "swat_pcbs": d / SWAT_PCB_FILE,
    }
    logger.info("Reference tables from %s", d)
    return ReferenceTables(
        classification=load_classification(paths["classification"]),
        nomenclature=load_nomenclature(paths["nomenclature"]),
        swat_pcbs=load_reference_pcbs(paths["swat_pcbs"]),
        paths={k: str(v) for k, v in paths.items()},
    )
