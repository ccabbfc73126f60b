"""
Contracts for the public market configuration.
"""

from typing import List, Optional

from .base import CamelContract


class MarketConfigResponse(CamelContract):
    market_lock: Optional[str] = None
    allowed_countries: List[str]
    default_country: str
    currency: str
    business_id_label: str
    tax_authority: str
    tax_forms_label: str
    gst_rate: str
    service_area_placeholder: str
