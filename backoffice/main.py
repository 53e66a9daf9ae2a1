import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.dependents import maintenance_history, power_meters, rent_history, water_history
from .api.owners import router as owners_router
from .api.readings import router as readings_router
from .api.tenants import router as tenants_router
from .db import init_db
from .errors import register_error_handlers

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Property Back Office")

# Strict CORS: origins come from `CORS_ALLOWED` (comma separated)
allowed = os.getenv("CORS_ALLOWED", "").split(",") if os.getenv("CORS_ALLOWED") else []
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

app.include_router(owners_router)
app.include_router(tenants_router)
app.include_router(power_meters)
app.include_router(rent_history)
app.include_router(water_history)
app.include_router(maintenance_history)
app.include_router(readings_router)


@app.on_event("startup")
def on_startup():
    init_db()


@app.get("/api/health")
def health():
    return {"status": "ok"}
