"""
Market lock configuration.

Controls which countries may complete onboarding. APP_MARKET_LOCK=NZ or
APP_MARKET_LOCK=AU restricts signups to one market; unset allows both.
Every function reads the setting at call time.
"""

from typing import Optional, Tuple

from app.config import get_settings

AUSTRALIA = "Australia"
NEW_ZEALAND = "New Zealand"
ALL_COUNTRIES: Tuple[str, ...] = (AUSTRALIA, NEW_ZEALAND)

_LOCKED_MARKETS = {
    "NZ": (NEW_ZEALAND,),
    "AU": (AUSTRALIA,),
}


def get_market_lock() -> Optional[str]:
    return get_settings().market_lock


def get_allowed_countries() -> Tuple[str, ...]:
    """Countries allowed for new signups under the current market lock."""
    return _LOCKED_MARKETS.get(get_market_lock(), ALL_COUNTRIES)


def is_country_allowed(country: Optional[str]) -> bool:
    return country in get_allowed_countries()


def get_default_country() -> str:
    return get_allowed_countries()[0]


def get_service_area_placeholder() -> str:
    if get_default_country() == NEW_ZEALAND:
        return "e.g., Auckland Central, Wellington"
    return "e.g., Sydney Metro, Melbourne CBD"


def get_default_currency() -> str:
    return "NZD" if get_default_country() == NEW_ZEALAND else "AUD"


def get_business_id_label() -> str:
    return "NZBN" if get_default_country() == NEW_ZEALAND else "ABN"


def get_tax_authority() -> str:
    return "IRD" if get_default_country() == NEW_ZEALAND else "ATO"


def get_tax_forms_label() -> str:
    return "GST Returns" if get_default_country() == NEW_ZEALAND else "BAS"


def get_gst_rate() -> str:
    return "15%" if get_default_country() == NEW_ZEALAND else "10%"
