"""
Practice API Router

Aggregates all domain-specific routers into a single practice API.

Domain Routers:
- client_routes: Clients, references, portfolios, import, onboarding
- people_routes: People and client parties
- service_routes: Recurring client services
- task_routes: Tasks, templates, generation and dashboard
- compliance_routes: Filing obligations and task integration
- companies_house_routes: Register lookups, import and sync
- document_routes: Uploads and generated files
- template_routes / letter_routes: Letter templates and generated letters
- tax_routes: UK tax calculations

All endpoints are prefixed with the configured API prefix (default
/api/v1) when included in the app.
"""

from datetime import datetime
import logging

from fastapi import APIRouter

from .client_routes import client_router
from .companies_house_routes import companies_house_router
from .compliance_routes import compliance_router
from .document_routes import document_router
from .letter_routes import letter_router
from .people_routes import people_router
from .service_routes import service_router
from .tax_routes import tax_router
from .task_routes import task_router
from .template_routes import template_router
from ..store import get_practice_store
from config.settings import get_settings

logger = logging.getLogger(__name__)

practice_router = APIRouter()

practice_router.include_router(client_router)
practice_router.include_router(people_router)
practice_router.include_router(service_router)
practice_router.include_router(task_router)
practice_router.include_router(compliance_router)
practice_router.include_router(companies_house_router)
practice_router.include_router(document_router)
practice_router.include_router(template_router)
practice_router.include_router(letter_router)
practice_router.include_router(tax_router)


# =============================================================================
# HEALTH CHECK
# =============================================================================

@practice_router.get("/health", tags=["Health"])
async def practice_health_check():
    """Practice API health check with record counts."""
    settings = get_settings()
    return {
        "status": "healthy",
        "service": settings.name,
        "version": settings.version,
        "timestamp": datetime.utcnow().isoformat(),
        "companies_house_configured": settings.companies_house.is_configured,
        "records": get_practice_store().counts(),
    }
