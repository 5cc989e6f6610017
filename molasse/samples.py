from __future__ import annotations

import json

import pandas as pd

from molasse.ternary import REGIONAL_CASES


def sample_qfl_data() -> pd.DataFrame:
    rows = [
        {"sample_id": case.name, "region": case.region, "Q": case.qfl.q, "F": case.qfl.f, "L": case.qfl.l}
        for case in REGIONAL_CASES
    ]
    return pd.DataFrame(rows)


def sample_age_csv() -> str:
    # The fourth data row has no age and is dropped on import.
    return "\n".join(
        [
            "mineral,method,age,uncertainty",
            "Zircon,U-Pb,1850,12",
            "Zircon,U-Pb,520.4,4.1",
            "Monazite,U-Pb,48.2,0.9",
            "Muscovite,Ar-Ar,,0.3",
            "Muscovite,Ar-Ar,21.6,0.25",
            "Biotite,K-Ar,18.9,0.4",
            "Apatite,FT,6.3,0.8",
            "",
        ]
    )


def sample_age_json() -> str:
    rows = [
        {"mineral": "Zircon", "method": "U-Pb", "age": 612.0, "error": 6.5},
        {"mineral": "Hornblende", "method": "Ar-Ar", "age": "34.7", "error": "0.5"},
        {"mineral": "Biotite", "method": "Ar-Ar", "age": "n.d.", "error": 0.4},
    ]
    return json.dumps(rows, indent=2)
