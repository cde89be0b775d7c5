"""Age band mapping shared by every baseline lookup"""

from networth_gateway.domain.models import AgeBand

# Exclusive upper bounds; anything at or above the last bound is 75+
_BAND_UPPER_BOUNDS = [
    (35, AgeBand.AGE_18_34),
    (45, AgeBand.AGE_35_44),
    (55, AgeBand.AGE_45_54),
    (65, AgeBand.AGE_55_64),
    (75, AgeBand.AGE_65_74),
]


def map_age_to_band(age: int) -> AgeBand:
    """
    Map a raw age to its age band.

    Lower edges are inclusive: 34 -> "18-34", 35 -> "35-44", 75 -> "75+".
    Ages outside 18-120 are not rejected here.
    """
    for upper, band in _BAND_UPPER_BOUNDS:
        if age < upper:
            return band
    return AgeBand.AGE_75_PLUS
