"""
Configuration constants for the ASKdata PxWeb ingestion pipeline.
"""

import os
from typing import Dict, List, Tuple

# ======================================================
#  API / CLIENT
# ======================================================
DEFAULT_API_BASE: str = "https://askdata.rks-gov.net/api/v1/sq"


def _api_bases() -> List[str]:
    """Candidate API bases, in order; ``KAS_API_BASE`` may list several."""
    env = os.getenv("KAS_API_BASE", "")
    bases = [part.strip() for part in env.split(",") if part.strip()]
    return bases or [DEFAULT_API_BASE]


API_BASES: List[str] = _api_bases()

USER_AGENT: str = os.getenv("KAS_USER_AGENT", "kas-pxweb-fetch/1.1 (kosovatools.org)")

META_TIMEOUT: float = 30.0
CUBE_TIMEOUT: float = 60.0

# Only HTTP 429 is retried.  Backoff grows linearly: step * attempt.
MAX_ATTEMPTS: int = 3
BACKOFF_STEP: float = 0.5
RETRY_STATUS: int = 429

# ======================================================
#  OUTPUT
# ======================================================
OUTPUT_DIR: str = os.getenv("KAS_OUTPUT_DIR", "data")

# ======================================================
#  TABLE PATHS
# ======================================================
PATHS: Dict[str, Tuple[str, ...]] = {
    "energy_monthly": ("ASKdata", "Energy", "Monthly indicators", "tab01.px"),
    "imports_by_partner": (
        "ASKdata",
        "External trade",
        "Monthly indicators",
        "07_imp_country.px",
    ),
    "fuel_gasoline": ("ASKdata", "Energy", "Monthly indicators", "tab03.px"),
    "fuel_diesel": ("ASKdata", "Energy", "Monthly indicators", "tab04.px"),
    "fuel_lng": ("ASKdata", "Energy", "Monthly indicators", "tab05.px"),
    "fuel_jet": ("ASKdata", "Energy", "Monthly indicators", "tab06.px"),
    "tourism_region": (
        "ASKdata",
        "Tourism and hotels",
        "Treguesit mujorë",
        "tab01.px",
    ),
    "tourism_country": (
        "ASKdata",
        "Tourism and hotels",
        "Treguesit mujorë",
        "tab02.px",
    ),
    "cpi_change": (
        "ASKdata",
        "Prices",
        "Consumer Price Index",
        "Monthly indicators",
        "cpi05.px",
    ),
    "cpi_index": (
        "ASKdata",
        "Prices",
        "Consumer Price Index",
        "Monthly indicators",
        "cpi09.px",
    ),
    "cpi_average_prices": (
        "ASKdata",
        "Prices",
        "Consumer Price Index",
        "Yearly indicators",
        "cpi11.px",
    ),
    "construction_cost_index": (
        "ASKdata",
        "Prices",
        "Construction Cost Index",
        "ccitab01.px",
    ),
    "trade_chapters_monthly": (
        "ASKdata",
        "External trade",
        "Monthly indicators",
        "08_qarkullimi.px",
    ),
    "exports_by_partner": (
        "ASKdata",
        "External trade",
        "Monthly indicators",
        "06_exp_country.px",
    ),
    "transport_air_passengers_inbound": (
        "ASKdata",
        "Transport and Telecommunication",
        "Air transport",
        "tab01.px",
    ),
    "transport_air_passengers_outbound": (
        "ASKdata",
        "Transport and Telecommunication",
        "Air transport",
        "tab02.px",
    ),
    "transport_air_flights": (
        "ASKdata",
        "Transport and Telecommunication",
        "Air transport",
        "tab03.px",
    ),
    "transport_vehicle_types_yearly": (
        "ASKdata",
        "Transport and Telecommunication",
        "Road transport",
        "tab01.px",
    ),
    "labour_wages": ("ASKdata", "Labour market", "Wages", "tab01.px"),
    "labour_employment_activity_gender": (
        "ASKdata",
        "Labour market",
        "Labour Force Survey",
        "tab05.px",
    ),
    "gdp_quarterly_nominal": (
        "ASKdata",
        "National Accounts",
        "Quarterly GDP",
        "tab01.px",
    ),
    "gdp_quarterly_constant": (
        "ASKdata",
        "National Accounts",
        "Quarterly GDP",
        "tab02.px",
    ),
    "government_expenditure_quarterly": (
        "ASKdata",
        "National Accounts",
        "Government Finance Statistics",
        "tab02.px",
    ),
    "government_revenue_quarterly": (
        "ASKdata",
        "National Accounts",
        "Government Finance Statistics",
        "tab01.px",
    ),
}

# Fuel tables share one layout; each is fetched separately and combined.
FUEL_SPECS: Dict[str, Dict[str, str]] = {
    "gasoline": {"path_key": "fuel_gasoline", "label": "Gasoline"},
    "diesel": {"path_key": "fuel_diesel", "label": "Diesel"},
    "lng": {"path_key": "fuel_lng", "label": "LNG"},
    "jet": {"path_key": "fuel_jet", "label": "Jet / kerosene"},
}

FUEL_METRICS: List[str] = [
    "production",
    "import",
    "export",
    "stock",
    "ready_for_market",
]
