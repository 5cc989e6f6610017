from molasse.geochron import (
    AgeRecord,
    IngestError,
    IngestResult,
    ingest_ages,
    parse_age_delimited,
    parse_age_json,
)
from molasse.ternary import (
    REGIONAL_CASES,
    CompositionSample,
    NormalizedComposition,
    PlotPoint,
    TernaryLayout,
    normalize_qfl,
    plot_point,
    prepare_qfl_data,
)
from molasse.weathering import GeochemData, calculate_cia

__all__ = [
    "AgeRecord",
    "IngestError",
    "IngestResult",
    "ingest_ages",
    "parse_age_json",
    "parse_age_delimited",
    "REGIONAL_CASES",
    "CompositionSample",
    "NormalizedComposition",
    "PlotPoint",
    "TernaryLayout",
    "normalize_qfl",
    "plot_point",
    "prepare_qfl_data",
    "GeochemData",
    "calculate_cia",
]
