"""
Route modules for the MTO API.

Usage in app.py:
    from mto.serving.routes.health import router as health_router
    from mto.serving.routes.games import router as games_router

    app.include_router(health_router)
    app.include_router(games_router)
"""
