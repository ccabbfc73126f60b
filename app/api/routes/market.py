"""
Market configuration route: GET /api/config/market
"""

from fastapi import APIRouter

from app.contracts.market import MarketConfigResponse
from app.services import market_config

router = APIRouter()


@router.get("/api/config/market", response_model=MarketConfigResponse)
async def get_market_config():
    """
    Public market settings the web client uses for defaults and labels.
    """
    return MarketConfigResponse(
        market_lock=market_config.get_market_lock(),
        allowed_countries=list(market_config.get_allowed_countries()),
        default_country=market_config.get_default_country(),
        currency=market_config.get_default_currency(),
        business_id_label=market_config.get_business_id_label(),
        tax_authority=market_config.get_tax_authority(),
        tax_forms_label=market_config.get_tax_forms_label(),
        gst_rate=market_config.get_gst_rate(),
        service_area_placeholder=market_config.get_service_area_placeholder(),
    )
