import os # os needs to be imported before dotenv for getenv to work as expected in some cases
from dotenv import load_dotenv
load_dotenv() # Load .env file at the very beginning

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from rota.db import init_db
from rota.routes import shifts, imports, staff_rota, time_off, health
from rota.middleware.error_handler import ErrorHandlerMiddleware, rota_error_handler
from rota.services.errors import RotaError
import logging

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Rota Scheduling API",
    description="Shift rota engine: grouping, repeats, copy/paste, bidding, publishing and import reconciliation",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)


@app.on_event("startup")
async def startup_event():
    logger.info("Application startup completed (store: %s)", type(app.state.db).__name__)


# CORS configuration: explicit origin list is mandatory when allow_credentials=True.
# Multiple origins can be provided via the CORS_ORIGINS environment variable, comma-separated.
cors_origins_str = os.getenv("CORS_ORIGINS", "http://localhost:8080")
cors_origins = [origin.strip() for origin in cors_origins_str.split(",")]
logger.debug("Configuring CORS for origins: %s", cors_origins)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add error handler middleware (after CORS so errors get CORS headers)
app.add_middleware(ErrorHandlerMiddleware)
app.add_exception_handler(RotaError, rota_error_handler)

# Initialize store
init_db(app)

app.include_router(health.router, tags=["Health"])


@app.get("/")
async def root():
    return {
        "message": "Welcome to the Rota Scheduling API",
        "docs": "/docs",
        "health": "/health"
    }

# Include routers with proper /api prefix
app.include_router(shifts.router, prefix="/api/rota", tags=["Rota"])
app.include_router(imports.router, prefix="/api/rota/import", tags=["Rota Import"])
app.include_router(staff_rota.router, prefix="/api/staff-rota", tags=["Staff Rota"])
app.include_router(time_off.router, prefix="/api/time-off", tags=["Time Off"])

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
