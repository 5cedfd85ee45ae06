from __future__ import annotations
import logging
import pandas as pd
from pathlib import Path

logger = logging.getLogger(__name__)

def export_table(df: pd.DataFrame, path: str | Path) -> Path:
    """Write `df` once, as CSV or (for .xlsx) a single-sheet workbook."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    if p.suffix.lower() == ".xlsx":
        with pd.ExcelWriter(p, engine="openpyxl") as writer:
            df.to_excel(writer, sheet_name="totals", index=False)
    else:
        df.to_csv(p, index=False)
    logger.info("Saved %s (%d rows)", p, len(df))
    return p
