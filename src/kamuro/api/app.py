# src/kamuro/api/app.py
"""
FastAPI application wiring.

This file creates the `FastAPI` instance and CORS policy. Endpoint logic lives in
`kamuro.api.routes`; calculation and framing live in the core packages.
"""

from __future__ import annotations

import os

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from kamuro import __version__
from kamuro.core.logging import configure_logging

from .routes import router

configure_logging()

app = FastAPI(title="Kamuro API", version=__version__)

# CORS (dev-friendly): allow local map frontends to call this API.
# Configure via env:
# - KAMURO_CORS_ORIGINS="http://localhost:8003,http://127.0.0.1:8003"
# - KAMURO_CORS_ALLOW_LOCAL=0 to disable the default localhost allowance
cors_origins = [s.strip() for s in os.getenv("KAMURO_CORS_ORIGINS", "").split(",") if s.strip()]
cors_allow_local = os.getenv("KAMURO_CORS_ALLOW_LOCAL", "1").strip().lower() in {"1", "true", "yes", "y"}
cors_origin_regex = r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$" if cors_allow_local and not cors_origins else ""
if cors_origins or cors_origin_regex:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_origin_regex=cors_origin_regex or None,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(router)
