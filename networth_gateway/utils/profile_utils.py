"""Profile field normalization"""


def normalize_zip(zip_code: str | None) -> str | None:
    """Digits only, first five; anything shorter is treated as no ZIP"""
    if not zip_code:
        return None
    digits = "".join(ch for ch in str(zip_code) if ch.isdigit())[:5]
    return digits if len(digits) == 5 else None


def normalize_state(state: str | None) -> str | None:
    """Upper-cased two-letter code, None when blank"""
    if not state or not state.strip():
        return None
    return state.strip().upper()


def normalize_city(city: str | None) -> str | None:
    if not city or not city.strip():
        return None
    return city.strip()
