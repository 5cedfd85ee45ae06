from __future__ import annotations
from enum import Enum
from pydantic import BaseModel, field_validator
from typing import Optional

class TotalKind(str, Enum):
    """Pre-calculated totals recognized in the upstream vocabulary."""
    PAH = "PAH"
    PCB = "PCB"
    DIOXIN_TEQ = "DIOXIN_TEQ"
    PESTICIDE = "PESTICIDE"

class Convention(str, Enum):
    """Non-detect estimation convention encoded in a pre-calculated total's name."""
    HALF = "H"      # non-detects at half the reporting limit
    DETECTION = "D" # non-detects at the full reporting limit
    ZERO = "O"      # non-detects at zero

class NomenclatureEntry(BaseModel):
    cas_no: str
    congener: int
    iupac_name: Optional[str] = None

    @field_validator("cas_no")
    @classmethod
    def strip_cas(cls, v: str) -> str:
        return v.strip()

class TotalSpec(BaseModel):
    label: str
    tag: str
    group_keys: tuple[str, ...]

    @field_validator("label", "tag")
    @classmethod
    def strip_text(cls, v: str) -> str:
        return v.strip()

    @field_validator("group_keys")
    @classmethod
    def non_empty_keys(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        if not v:
            raise ValueError("group_keys must name at least one column")
        return v

class PipelineOptions(BaseModel):
    weight_basis: str = "DRY"
    censor_code: str = "U"
    convention: Convention = Convention.HALF
    strict_metadata: bool = False
    require_complete_congeners: bool = True

class RunSummary(BaseModel):
    rows_loaded: int = 0
    duplicates_dropped: int = 0
    rows_after_basis_filter: int = 0
    precalculated_rows: int = 0
    computed_rows: dict[str, int] = {}
    orphans_dropped: dict[str, int] = {}
    metadata_conflicts: dict[str, int] = {}
    empty_groups: dict[str, int] = {}
    missing_congeners: list[str] = []
    unrecognized_totals: list[str] = []
    output_rows: int = 0
