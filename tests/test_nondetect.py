import math
import numpy as np
import pandas as pd
import pytest

from shellfish_toxics.services.nondetect import resolve_concentration, resolve_frame

@pytest.mark.parametrize(
    "conc,rl,qual,expected",
    [
        (2.0, None, None, 2.0),          # no qualifier -> reported value
        (2.0, 4.0, np.nan, 2.0),
        (2.0, 4.0, "", 2.0),
        (None, 4.0, "U", 2.0),           # non-detect -> RL / 2
        (9.9, 4.0, "U", 2.0),            # reported value ignored for non-detects
        (3.0, 4.0, " u ", 2.0),          # qualifier compared stripped, any case
        (3.0, 4.0, "J", 3.0),            # estimated values pass through
        (3.0, 4.0, "B", 3.0),
    ],
)
def test_resolution_rules(conc, rl, qual, expected):
    assert resolve_concentration(conc, rl, qual) == expected

@pytest.mark.parametrize("rl", [0.3, 1e-9, 7.77, 123456.789])
def test_nondetect_is_exactly_half_rl(rl):
    assert resolve_concentration(None, rl, "U") == rl / 2

@pytest.mark.parametrize(
    "conc,rl,qual",
    [
        (None, None, "U"),       # no RL to substitute
        (np.nan, np.nan, None),  # nothing reported
        ("n/a", 1.0, None),      # not numeric
        (None, 1.0, "J"),
    ],
)
def test_missing_inputs_give_missing(conc, rl, qual):
    assert resolve_concentration(conc, rl, qual) is None

def test_custom_censor_code():
    assert resolve_concentration(5.0, 4.0, "<", censor_code="<") == 2.0
    assert resolve_concentration(5.0, 4.0, "U", censor_code="<") == 5.0

def test_resolve_frame_keeps_index_and_uses_nan():
    df = pd.DataFrame(
        {"conc_ngg": [1.0, np.nan, np.nan], "rl_ngg": [0.1, 3.0, np.nan], "lab_qualifier": [None, "U", None]},
        index=[10, 11, 12],
    )
    out = resolve_frame(df)
    assert list(out.index) == [10, 11, 12]
    assert out[10] == 1.0
    assert out[11] == 1.5
    assert math.isnan(out[12])

def test_resolve_frame_without_qualifier_column():
    df = pd.DataFrame({"conc_ngg": [1.0, 2.0]})
    assert resolve_frame(df).tolist() == [1.0, 2.0]

def test_resolve_frame_empty():
    assert resolve_frame(pd.DataFrame(columns=["conc_ngg"])).empty
