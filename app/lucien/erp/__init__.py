from __future__ import annotations

from flask import Flask, current_app

from app.lucien.erp.client import ERPClient, ERPClientError
from app.lucien.erp.mock import MockERPClient

__all__ = ["ERPClient", "ERPClientError", "MockERPClient", "erp_client_from_config", "get_erp_client", "init_erp"]


def erp_client_from_config(config) -> ERPClient | MockERPClient:
    base_url = config.get("ERP_BASE_URL") or ""
    api_key = config.get("ERP_API_KEY") or ""
    api_secret = config.get("ERP_API_SECRET") or ""
    tier_field = config.get("LUCIEN_TIER_FIELD") or ""
    if not (base_url and api_key and api_secret):
        return MockERPClient(tier_field=tier_field)
    return ERPClient(
        base_url=base_url,
        api_key=api_key,
        api_secret=api_secret,
        tier_field=tier_field,
        timeout_seconds=int(config.get("ERP_TIMEOUT") or 10),
    )


def init_erp(app: Flask) -> None:
    client = erp_client_from_config(app.config)
    app.extensions["erp_client"] = client
    if client.data_mode == "mock":
        app.logger.warning("ERP credentials missing; serving mock ERP data.")


def get_erp_client() -> ERPClient | MockERPClient:
    return current_app.extensions["erp_client"]
