"""
Router registration for the Chess Arena API.
"""
from fastapi import FastAPI

from app.api import games, players, matchmaking, tournaments


def include_routers(app: FastAPI) -> None:
    """Include all API routers with the FastAPI application."""
    app.include_router(games.router, prefix="/api/v1", tags=["games"])
    app.include_router(players.router, prefix="/api/v1", tags=["players"])
    app.include_router(matchmaking.router, prefix="/api/v1", tags=["matchmaking"])
    app.include_router(tournaments.router, prefix="/api/v1", tags=["tournaments"])
