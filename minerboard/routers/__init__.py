"""Registers every API router on the FastAPI app."""

from fastapi import FastAPI

from minerboard.routers import (
    overview,
    contributions,
    workers,
    leaderboard,
    proxy,
    cron,
)


def register_all_routers(app: FastAPI):
    app.include_router(overview.router)
    app.include_router(contributions.router)
    app.include_router(workers.router)
    app.include_router(leaderboard.router)
    app.include_router(proxy.router)
    app.include_router(cron.router)
