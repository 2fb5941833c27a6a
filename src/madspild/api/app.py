# src/madspild/api/app.py
"""
FastAPI application wiring.

This file creates the `FastAPI` instance and its CORS policy. The lookup proxy and
search endpoints live in `madspild.api.routes`.

Run locally with `uvicorn madspild.api.app:app --reload`.
"""

from __future__ import annotations

import os

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from madspild import __version__
from madspild.core.logging import configure_logging

from .routes import router

configure_logging()

app = FastAPI(title="Madspild API", version=__version__)

# The proxy is called from a browser map UI; GET + preflight only.
# Restrict via MADSPILD_CORS_ORIGINS="https://example.dk,https://www.example.dk".
cors_origins = [s.strip() for s in os.getenv("MADSPILD_CORS_ORIGINS", "*").split(",") if s.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins or ["*"],
    allow_credentials=False,
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["Content-Type"],
)

app.include_router(router)
