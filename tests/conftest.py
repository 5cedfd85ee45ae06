import numpy as np
import pandas as pd
import pytest

from shellfish_toxics.io.loader import ReferenceTables

NAN = np.nan

META = {"site": "Mare Brook", "sample_date": "2003-10-01", "species": "Mytilus edulis", "weight_basis": "DRY"}

def _row(code, lab_id, parameter, conc=NAN, rl=NAN, qual=None, cas=None, **extra):
    row = {
        "code": code, "lab_id": lab_id, "parameter": parameter, "cas_no": cas,
        "conc_ngg": conc, "rl_ngg": rl, "lab_qualifier": qual, "method": "SW8270",
        **META,
    }
    row.update(extra)
    return row

def make_samples() -> pd.DataFrame:
    rows = [
        # sub-sample A
        _row("100", "A", "PCB-101", 1.5, 0.5),
        _row("100", "A", "PCB-52", NAN, 2.0, "U"),
        _row("100", "A", "2,2',4-TRICHLOROBIPHENYL", 0.5, 0.2, "J", cas="37680-65-2"),
        _row("100", "A", "2,3,4'-TRICHLOROBIPHENYL", 10.0, 0.2, cas="99999-99-9"),
        _row("100", "A", "4,4'-DDT", 2.0, 0.5),
        _row("100", "A", "4,4'-DDT", 2.0, 0.5),  # exact duplicate
        _row("100", "A", "4,4'-DDE", NAN, 4.0, "U"),
        _row("100", "A", "2,3,7,8-TCDD", 0.002, 0.001),
        _row("100", "A", "1,2,3,7,8-PECDD", NAN, 0.004, "U"),
        _row("100", "A", "TOTAL PCB-H", 5.0),
        _row("100", "A", "TOTAL PCB-D", 6.0),
        _row("100", "A", "TOTAL PAH19-H", 100.0),
        _row("100", "A", "PESTICIDES21-H", 7.0),
        _row("100", "A", "TOTAL DX TEQ-H", 0.01),
        _row("100", "A", "PCB-101", 0.2, 0.1, weight_basis="WET"),
        # sub-sample B
        _row("100", "B", "PCB-101", 2.0, 0.5),
        _row("100", "B", "PCB-52", 3.0, 0.5),
        _row("100", "B", "2,2',4-TRICHLOROBIPHENYL", 1.0, 0.2, cas="37680-65-2"),
        _row("100", "B", "4,4'-DDD", NAN, NAN),
    ]
    return pd.DataFrame(rows)

def make_classification() -> pd.DataFrame:
    return pd.DataFrame({
        "parameter": [
            "PCB-101", "PCB-52", "2,2',4-TRICHLOROBIPHENYL", "2,3,4'-TRICHLOROBIPHENYL",
            "4,4'-DDT", "4,4'-DDE", "4,4'-DDD", "2,3,7,8-TCDD", "1,2,3,7,8-PECDD",
            "TOTAL PCB-H", "TOTAL PCB-D", "TOTAL PAH19-H", "PESTICIDES21-H", "TOTAL DX TEQ-H",
        ],
        "class": [
            "PCB", "PCB", "PCB", "PCB",
            "Pesticide", "Pesticide", "Pesticide", "Dioxin", "Dioxin",
            "PCB", "PCB", "PAH", "Pesticide", "Dioxin",
        ],
    })

def make_nomenclature() -> pd.DataFrame:
    return pd.DataFrame({
        "cas_no": ["37680-65-2", "35693-99-3"],
        "congener": [18, 52],
        "iupac_name": ["2,2',4-Trichlorobiphenyl", "2,2',5,5'-Tetrachlorobiphenyl"],
    })

def make_swat_pcbs() -> pd.DataFrame:
    return pd.DataFrame({
        "parameter": ["PCB-101", "PCB-52", "2,2',4-TRICHLOROBIPHENYL"],
        "cas_no": [None, None, "37680-65-2"],
    })

@pytest.fixture
def samples() -> pd.DataFrame:
    return make_samples()

@pytest.fixture
def reference() -> ReferenceTables:
    return ReferenceTables(
        classification=make_classification(),
        nomenclature=make_nomenclature(),
        swat_pcbs=make_swat_pcbs(),
    )

@pytest.fixture
def reference_dir(tmp_path):
    d = tmp_path / "reference"
    d.mkdir()
    make_classification().to_csv(d / "parameter_classes.csv", index=False)
    make_nomenclature().to_csv(d / "pcb_nomenclature.csv", index=False)
    make_swat_pcbs().to_csv(d / "swat_pcbs.csv", index=False)
    return d
