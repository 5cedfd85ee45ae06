from __future__ import annotations
import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from shellfish_toxics.core.exceptions import ToxicsError
from shellfish_toxics.core.models import Convention, PipelineOptions
from shellfish_toxics.io.exporters import export_table
from shellfish_toxics.io.loader import load_reference_tables, load_samples
from shellfish_toxics.services.audit import build_audit, write_audit
from shellfish_toxics.services.pipeline import run_pipeline
from shellfish_toxics.version import __version__

logger = logging.getLogger("shellfish_toxics")

def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="shellfish-totals",
        description="Build the contaminant totals table from a shellfish tissue toxics spreadsheet.",
    )
    p.add_argument("samples", type=Path, help="Samples table (.csv or .xlsx)")
    p.add_argument("-o", "--output", type=Path, required=True, help="Output table (.csv or .xlsx)")
    p.add_argument("--reference-dir", type=Path, default=None,
                   help="Directory with parameter_classes.csv, pcb_nomenclature.csv, swat_pcbs.csv")
    p.add_argument("--audit", type=Path, default=None, help="Write a JSON audit record here")
    p.add_argument("--weight-basis", default="DRY")
    p.add_argument("--censor-code", default="U", help="Lab qualifier marking a non-detect")
    p.add_argument("--convention", choices=[c.value for c in Convention], default=Convention.HALF.value,
                   help="Estimation convention of the pre-calculated totals to keep")
    p.add_argument("--strict-metadata", action="store_true",
                   help="Fail when sample metadata differs within an aggregation group")
    p.add_argument("--allow-incomplete-congeners", action="store_true",
                   help="Warn instead of failing when reference congeners are absent")
    p.add_argument("-v", "--verbose", action="count", default=0)
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p

def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose > 1 else logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    options = PipelineOptions(
        weight_basis=args.weight_basis,
        censor_code=args.censor_code,
        convention=Convention(args.convention),
        strict_metadata=args.strict_metadata,
        require_complete_congeners=not args.allow_incomplete_congeners,
    )
    try:
        reference = load_reference_tables(args.reference_dir)
        samples = load_samples(args.samples)
        totals, summary = run_pipeline(samples, reference, options)
        out_path = export_table(totals, args.output)
    except ToxicsError as exc:
        logger.error("%s", exc)
        return 1

    if args.audit:
        record = build_audit(
            inputs={"samples": args.samples, **reference.paths},
            options=options.model_dump(mode="json"),
            summary=summary.model_dump(mode="json"),
            output_path=out_path,
        )
        write_audit(args.audit, record)
        logger.info("Audit written to %s", args.audit)
    return 0

if __name__ == "__main__":
    sys.exit(main())
