"""Personal injury limitation periods by jurisdiction."""

from datetime import date
from typing import Optional

# Years allowed to file a personal injury claim, keyed by US state code
STATUTE_YEARS = {
    "AL": 2, "AK": 2, "AZ": 2, "AR": 3, "CA": 2, "CO": 2, "CT": 2, "DE": 2,
    "DC": 3, "FL": 2, "GA": 2, "HI": 2, "ID": 2, "IL": 2, "IN": 2, "IA": 2,
    "KS": 2, "KY": 1, "LA": 2, "ME": 6, "MD": 3, "MA": 3, "MI": 3, "MN": 2,
    "MS": 3, "MO": 5, "MT": 3, "NE": 4, "NV": 2, "NH": 3, "NJ": 2, "NM": 3,
    "NY": 3, "NC": 3, "ND": 6, "OH": 2, "OK": 2, "OR": 2, "PA": 2, "RI": 3,
    "SC": 3, "SD": 3, "TN": 1, "TX": 2, "UT": 4, "VT": 3, "VA": 2, "WA": 3,
    "WV": 2, "WI": 3, "WY": 4,
}

STATE_NAMES = {
    "ALABAMA": "AL", "ALASKA": "AK", "ARIZONA": "AZ", "ARKANSAS": "AR",
    "CALIFORNIA": "CA", "COLORADO": "CO", "CONNECTICUT": "CT", "DELAWARE": "DE",
    "DISTRICT OF COLUMBIA": "DC", "FLORIDA": "FL", "GEORGIA": "GA", "HAWAII": "HI",
    "IDAHO": "ID", "ILLINOIS": "IL", "INDIANA": "IN", "IOWA": "IA", "KANSAS": "KS",
    "KENTUCKY": "KY", "LOUISIANA": "LA", "MAINE": "ME", "MARYLAND": "MD",
    "MASSACHUSETTS": "MA", "MICHIGAN": "MI", "MINNESOTA": "MN", "MISSISSIPPI": "MS",
    "MISSOURI": "MO", "MONTANA": "MT", "NEBRASKA": "NE", "NEVADA": "NV",
    "NEW HAMPSHIRE": "NH", "NEW JERSEY": "NJ", "NEW MEXICO": "NM", "NEW YORK": "NY",
    "NORTH CAROLINA": "NC", "NORTH DAKOTA": "ND", "OHIO": "OH", "OKLAHOMA": "OK",
    "OREGON": "OR", "PENNSYLVANIA": "PA", "RHODE ISLAND": "RI",
    "SOUTH CAROLINA": "SC", "SOUTH DAKOTA": "SD", "TENNESSEE": "TN", "TEXAS": "TX",
    "UTAH": "UT", "VERMONT": "VT", "VIRGINIA": "VA", "WASHINGTON": "WA",
    "WEST VIRGINIA": "WV", "WISCONSIN": "WI", "WYOMING": "WY",
}


def jurisdiction_code(jurisdiction: Optional[str]) -> Optional[str]:
    """Resolve "CA", "California" or "California Superior Court" to a state code."""
    if not jurisdiction:
        return None
    text = " ".join(jurisdiction.upper().replace(",", " ").split())
    if text in STATUTE_YEARS:
        return text
    if text in STATE_NAMES:
        return STATE_NAMES[text]
    # Longest names first so "WEST VIRGINIA" wins over "VIRGINIA"
    for name in sorted(STATE_NAMES, key=len, reverse=True):
        if name in text:
            return STATE_NAMES[name]
    return None


def statute_years(jurisdiction: Optional[str], default_years: int) -> int:
    code = jurisdiction_code(jurisdiction)
    return STATUTE_YEARS.get(code, default_years) if code else default_years


def add_years(start: date, years: int) -> date:
    try:
        return start.replace(year=start.year + years)
    except ValueError:
        # 29 February in a non-leap target year
        return start.replace(year=start.year + years, day=28)
