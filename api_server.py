"""
ByteBasket API Server
Food bank dietary preference & matching service
Version 1.0.0

Routers:
- /api/v1/dietary-preferences   user preferences + item matching
- /api/v1/dietary-restrictions  restriction catalog (admin)
- /api/v1/admin/dietary         mismatch log review (admin)
- /api/v1/migrations            schema + catalog seed (admin)
"""

import os
import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.matching.admin import router as matching_router, admin_router as matching_admin_router
from app.migrations.runner import router as migrations_router
from app.preferences.admin import router as preferences_router, restrictions_router

API_VERSION = "1.0.0"

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("bytebasket")

# ============================================
# App Configuration
# ============================================
app = FastAPI(
    title="ByteBasket API",
    description="Food bank dietary preference & matching service",
    version=API_VERSION,
)

# ============================================
# CORS Configuration
# ============================================
DEFAULT_CORS_ORIGINS = "http://localhost:3000,http://127.0.0.1:3000"

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        origin.strip()
        for origin in os.getenv("CORS_ORIGINS", DEFAULT_CORS_ORIGINS).split(",")
        if origin.strip()
    ],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# ============================================
# Routers
# ============================================
app.include_router(preferences_router)
app.include_router(matching_router)
app.include_router(restrictions_router)
app.include_router(matching_admin_router)
app.include_router(migrations_router)


@app.get("/")
def root():
    return {
        "service": "ByteBasket API",
        "version": API_VERSION,
        "status": "operational",
    }


@app.get("/health")
def health():
    return {"status": "healthy", "version": API_VERSION}
