"""
API Module
FastAPI routers for the PillPal application
"""

from api.deps import services


__all__ = [
    "services",
    "include_routers",
]


def include_routers(app, prefix: str = "/api/v1"):
    """
    Include all API routers in the FastAPI app

    Routers are imported here rather than at module level so that importing
    `api.schemas` does not pull in the service layer.

    Usage:
        from api import include_routers
        include_routers(app)
    """
    from api.medications import router as medications_router
    from api.adherence import router as adherence_router
    from api.interactions import router as interactions_router
    from api.reminders import router as reminders_router

    app.include_router(medications_router, prefix=prefix)
    app.include_router(adherence_router, prefix=prefix)
    app.include_router(interactions_router, prefix=prefix)
    app.include_router(reminders_router, prefix=prefix)
