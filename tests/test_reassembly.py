import numpy as np
import pandas as pd
import pytest

from shellfish_toxics.core.exceptions import MetadataMismatchError
from shellfish_toxics.services.reassembly import (
    attach_metadata,
    metadata_conflicts,
    representative_rows,
)
from shellfish_toxics.services.totals import DDT_TOTAL, DIOXIN_TOTAL, aggregate_total, select_constituents

def _constituents():
    return pd.DataFrame({
        "code": ["100", "100", "101"],
        "lab_id": ["A", "A", "A"],
        "site": ["Mare Brook", "Mare Brook", "Long Island"],
        "sample_date": ["2003-10-01", "2003-10-01", "2004-09-12"],
        "species": ["Mytilus edulis"] * 3,
        "parameter": ["DDT", "DDE", "DDT"],
        "conc_ngg": [2.0, np.nan, 1.0],
        "rl_ngg": [0.5, 4.0, 0.5],
        "lab_qualifier": [None, "U", None],
        "method": ["SW8081"] * 3,
        "units": ["NG/G"] * 3,
        "in_ddt": [True] * 3,
        "in_dioxin": [False] * 3,
    })

def test_representative_rows_strip_measurement_fields():
    rep = representative_rows(_constituents(), ["code", "lab_id"])
    assert len(rep) == 2
    for col in ("parameter", "conc_ngg", "rl_ngg", "lab_qualifier", "method", "units", "in_ddt", "in_dioxin"):
        assert col not in rep.columns
    assert {"code", "lab_id", "site", "sample_date", "species"} <= set(rep.columns)

def test_attach_metadata_one_row_per_aggregate():
    cons = _constituents()
    agg = aggregate_total(cons, DDT_TOTAL)
    full, info = attach_metadata(agg, cons, DDT_TOTAL.group_keys)
    assert len(full) == len(agg) == 2
    assert info == {"orphans_dropped": 0, "metadata_conflicts": 0}
    row = full.set_index("code").loc["101"]
    assert row["site"] == "Long Island"
    assert row["sample_date"] == "2004-09-12"
    # aggregate fields win over constituent fields
    assert row["method"] == "Calculated"
    assert row["parameter"] == "Total DDT"
    assert row["conc_ngg"] == 1.0

def test_metadata_matches_every_constituent():
    cons = _constituents()
    full, _ = attach_metadata(aggregate_total(cons, DDT_TOTAL), cons, DDT_TOTAL.group_keys)
    merged = cons.merge(full, on=["code", "lab_id"], suffixes=("", "_agg"))
    for field in ("site", "sample_date", "species"):
        assert (merged[field] == merged[f"{field}_agg"]).all()

def test_orphan_aggregates_are_dropped(caplog):
    cons = _constituents()
    agg = aggregate_total(cons, DDT_TOTAL)
    with caplog.at_level("WARNING"):
        full, info = attach_metadata(agg, cons[cons["code"] == "100"], DDT_TOTAL.group_keys, label="Total DDT")
    assert len(full) == 1
    assert full["code"].tolist() == ["100"]
    assert info["orphans_dropped"] == 1
    assert "no metadata row" in caplog.text

def test_conflicting_metadata_warns_and_uses_first_row(caplog):
    cons = _constituents()
    cons.loc[1, "sample_date"] = "2003-10-02"
    agg = aggregate_total(cons, DDT_TOTAL)
    with caplog.at_level("WARNING"):
        full, info = attach_metadata(agg, cons, DDT_TOTAL.group_keys)
    assert info["metadata_conflicts"] == 1
    assert full.set_index("code").loc["100", "sample_date"] == "2003-10-01"
    assert "sample_date" in caplog.text

def test_conflicting_metadata_strict_raises():
    cons = _constituents()
    cons.loc[1, "site"] = "Somewhere Else"
    agg = aggregate_total(cons, DDT_TOTAL)
    with pytest.raises(MetadataMismatchError):
        attach_metadata(agg, cons, DDT_TOTAL.group_keys, strict=True)

def test_metadata_conflicts_table():
    cons = _constituents()
    assert metadata_conflicts(cons, ["code", "lab_id"]).empty
    cons.loc[1, "species"] = "Mya arenaria"
    conflicts = metadata_conflicts(cons, ["code", "lab_id"])
    assert conflicts.to_dict("records") == [{"code": "100", "lab_id": "A", "field": "species", "n_values": 2}]

def test_code_only_grouping_keeps_first_lab_id():
    cons = _constituents().assign(in_ddt=False, in_dioxin=True)
    cons.loc[1, "lab_id"] = "B"
    agg = aggregate_total(cons, DIOXIN_TOTAL)
    full, info = attach_metadata(agg, select_constituents(cons, DIOXIN_TOTAL), DIOXIN_TOTAL.group_keys)
    assert info["metadata_conflicts"] == 0
    assert full.set_index("code").loc["100", "lab_id"] == "A"
