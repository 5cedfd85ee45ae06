from __future__ import annotations
import re
from functools import lru_cache

import numpy as np
import pandas as pd
from pint import UnitRegistry
from pint.errors import PintError

from shellfish_toxics.core.exceptions import UnitConversionError

# -------------------------------
# Registry & quantity factory
# -------------------------------
ureg = UnitRegistry()
Q_ = ureg.Quantity

NGG = "nanogram / gram"
UGG = "microgram / gram"

# Mass-fraction shorthand used on lab reports (tissue: 1 ppb == 1 ng/g)
_SHORTHAND = {
    "ppt": "pg/g",
    "ppb": "ng/g",
    "ppm": "ug/g",
}

# Basis words sometimes appended to the unit text ("NG/G DRY", "UG/KG WW")
_BASIS_RE = re.compile(r"(dry|wet|lipid|dw|ww|lw)$", flags=re.IGNORECASE)

def _normalize_unit_text(s: str) -> str:
    """Normalize lab unit text for parsing."""
    if not s:
        return ""
    t = str(s).strip().lower().replace(" ", "")
    t = t.replace("µ", "u").replace("μ", "u")
    t = _BASIS_RE.sub("", t)
    return _SHORTHAND.get(t, t)

def _is_mass_per_mass(unit_norm: str) -> bool:
    # ng/g is dimensionless, so dimensionality alone would also pass '%'
    num, sep, den = unit_norm.partition("/")
    if not sep or not num or not den or "/" in den:
        return False
    mass = ureg.gram.dimensionality
    return ureg.parse_units(num).dimensionality == mass and ureg.parse_units(den).dimensionality == mass

# -------------------------------
# Public helpers
# -------------------------------
def parse_concentration(value: float, unit: str):
    """
    Parse a numeric value + lab unit string into a pint Quantity.
    - Case-insensitive ('NG/G' == 'ng/g'); accepts 'µ' for micro.
    - Accepts ppt/ppb/ppm as mass fractions.
    - Only mass-per-mass units are accepted.
    """
    unit_norm = _normalize_unit_text(unit)
    if not unit_norm:
        raise UnitConversionError("Empty concentration unit")
    try:
        q = Q_(value, unit_norm)
        mass_fraction = _is_mass_per_mass(unit_norm)
    except (PintError, AttributeError, ValueError, TypeError) as exc:
        raise UnitConversionError(f"Unrecognized concentration unit '{unit}'") from exc
    if not mass_fraction:
        raise UnitConversionError(f"'{unit}' is not a mass-per-mass concentration unit")
    return q

@lru_cache(maxsize=None)
def conversion_factor(unit: str, target: str = NGG) -> float:
    """Multiplier taking a value in `unit` to `target`."""
    return float(parse_concentration(1.0, unit).to(target).magnitude)

def to_target(values: pd.Series, units: pd.Series, target: str = NGG) -> pd.Series:
    """
    Convert a column of values with per-row unit text to `target`.
    Rows with a missing unit or a missing value come back missing.
    """
    values = pd.to_numeric(values, errors="coerce")
    factors = units.map(
        lambda u: conversion_factor(str(u), target) if pd.notna(u) and str(u).strip() else np.nan
    )
    return values * factors
