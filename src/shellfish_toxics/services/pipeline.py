from __future__ import annotations
import logging
from typing import Optional, Sequence, Tuple

import pandas as pd

from shellfish_toxics.core.models import PipelineOptions, RunSummary, TotalKind, TotalSpec
from shellfish_toxics.io.loader import ReferenceTables
from shellfish_toxics.services.assembler import assemble_totals, select_precalculated
from shellfish_toxics.services.classify import MEMBERSHIP_COLUMNS, tag_parameters
from shellfish_toxics.services.cleaning import (
    drop_duplicate_rows,
    filter_weight_basis,
    normalize_concentrations,
)
from shellfish_toxics.services.congeners import (
    nomenclature_map,
    reference_congeners,
    require_complete_congeners,
)
from shellfish_toxics.services.reassembly import attach_metadata
from shellfish_toxics.services.totals import (
    COMPUTED_TOTALS,
    SWAT_PCB_TOTAL,
    aggregate_total,
    compare_with_precalculated,
    select_constituents,
)

logger = logging.getLogger(__name__)

def prepare(
    samples: pd.DataFrame,
    reference: ReferenceTables,
    options: PipelineOptions,
    summary: RunSummary,
) -> pd.DataFrame:
    """Clean, normalize, filter and tag the raw samples table."""
    summary.rows_loaded = len(samples)
    deduped, summary.duplicates_dropped = drop_duplicate_rows(samples)
    normalized = normalize_concentrations(deduped)
    basis = filter_weight_basis(normalized, options.weight_basis)
    summary.rows_after_basis_filter = len(basis)

    cas_map = nomenclature_map(reference.nomenclature)
    swat, unresolved = reference_congeners(reference.swat_pcbs, cas_map)
    tagged, summary.unrecognized_totals = tag_parameters(basis, reference.classification, cas_map, swat)

    summary.missing_congeners = require_complete_congeners(
        tagged["congener"],
        swat,
        unresolved_reference=unresolved,
        strict=options.require_complete_congeners,
    )
    return tagged

def computed_total(
    tagged: pd.DataFrame,
    spec: TotalSpec,
    options: PipelineOptions,
    summary: RunSummary,
) -> pd.DataFrame:
    """One computed total with its sample metadata reattached."""
    aggregates = aggregate_total(tagged, spec, options.censor_code)
    summary.empty_groups[spec.label] = int((aggregates["n_contributing"] == 0).sum())
    full, info = attach_metadata(
        aggregates,
        select_constituents(tagged, spec),
        spec.group_keys,
        label=spec.label,
        strict=options.strict_metadata,
    )
    summary.orphans_dropped[spec.label] = info["orphans_dropped"]
    summary.metadata_conflicts[spec.label] = info["metadata_conflicts"]
    summary.computed_rows[spec.label] = len(full)
    return full

def run_pipeline(
    samples: pd.DataFrame,
    reference: ReferenceTables,
    options: Optional[PipelineOptions] = None,
    totals: Sequence[TotalSpec] = COMPUTED_TOTALS,
) -> Tuple[pd.DataFrame, RunSummary]:
    """
    Build the totals table:
        pre-calculated totals (one estimation convention)
      + computed totals (SWAT PCBs, dioxins, DDT) with metadata reattached
    """
    options = options or PipelineOptions()
    summary = RunSummary()

    tagged = prepare(samples, reference, options, summary)

    precalculated = select_precalculated(tagged, options.convention).drop(columns=["congener", *MEMBERSHIP_COLUMNS])
    summary.precalculated_rows = len(precalculated)

    computed = [computed_total(tagged, spec, options, summary) for spec in totals]

    if logger.isEnabledFor(logging.DEBUG):
        cmp = compare_with_precalculated(tagged, SWAT_PCB_TOTAL, TotalKind.PCB, options.convention, options.censor_code)
        logger.debug("SWAT PCB sum vs reported PCB total:\n%s", cmp.to_string(max_rows=20))

    out = assemble_totals(precalculated, computed)
    summary.output_rows = len(out)
    logger.info("Totals table: %d row(s)", len(out))
    return out, summary
