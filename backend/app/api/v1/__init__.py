"""
API v1 Routes
Progetto: Gestionale Logistica (Motore Documenti Commerciali)

Router versione 1 dell'API.
"""

from fastapi import APIRouter

from app.api.v1 import clients, configuration, invoices, partners, taxes, work_orders

# Router aggregato per v1
api_v1_router = APIRouter(prefix="/api/v1")

# Includi i router dei moduli
api_v1_router.include_router(clients.router)
api_v1_router.include_router(partners.router)
api_v1_router.include_router(partners.commissions_router)
api_v1_router.include_router(work_orders.router)
api_v1_router.include_router(invoices.router)
api_v1_router.include_router(taxes.router)
api_v1_router.include_router(configuration.router)

# Esportazione
__all__ = ["api_v1_router"]
