from __future__ import annotations

from dataclasses import dataclass
import math


@dataclass(frozen=True)
class GeochemData:
    # Major oxides in wt%, trace elements in ppm.
    al2o3: float = 0.0
    cao: float = 0.0
    na2o: float = 0.0
    k2o: float = 0.0
    th: float = 0.0
    sc: float = 0.0
    la: float = 0.0
    zr: float = 0.0


OXIDE_MOLAR_MASS = {
    "al2o3": 101.9613,
    "cao": 56.0774,
    "na2o": 61.9789,
    "k2o": 94.196,
}

CIA_OXIDES = ("al2o3", "cao", "na2o", "k2o")

WEATHERING_CLASSES = (
    (50.0, "Unweathered"),
    (65.0, "Weak"),
    (85.0, "Moderate"),
)


def _amount(value: float | None) -> float:
    if value is None:
        return 0.0
    number = float(value)
    if not math.isfinite(number) or number < 0.0:
        return 0.0
    return number


def calculate_cia(data: GeochemData, basis: str = "weight") -> float:
    """Chemical Index of Alteration, 100 * Al2O3 / (Al2O3 + CaO + Na2O + K2O).

    ``basis="weight"`` uses the wt% values as entered; ``basis="molar"``
    converts each oxide to molar proportions first (Nesbitt & Young, 1982,
    without the CaO* silicate correction).
    """
    if basis not in {"weight", "molar"}:
        raise ValueError(f"Unsupported CIA basis: {basis}")

    amounts = {oxide: _amount(getattr(data, oxide)) for oxide in CIA_OXIDES}
    if basis == "molar":
        amounts = {oxide: value / OXIDE_MOLAR_MASS[oxide] for oxide, value in amounts.items()}

    total = sum(amounts.values())
    if total == 0.0:
        return 0.0
    return 100.0 * amounts["al2o3"] / total


def classify_weathering(cia: float) -> str:
    for upper, label in WEATHERING_CLASSES:
        if cia < upper:
            return label
    return "Intense"
