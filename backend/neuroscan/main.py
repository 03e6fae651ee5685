# backend/neuroscan/main.py
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import APP_NAME, CORS_ORIGINS, UPLOAD_DIR
from .db import Base, engine
from . import models  # noqa: F401  registers tables on Base
from .auth import router as auth_router
from .dashboard import router as dashboard_router
from .patients import router as patients_router
from .scans import router as scans_router

app = FastAPI(title=APP_NAME)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def create_tables():
    Base.metadata.create_all(bind=engine)


@app.on_event("startup")
def prepare_upload_dir():
    # scan images are only served through the authenticated image route
    os.makedirs(UPLOAD_DIR, exist_ok=True)


@app.get("/status")
def status():
    return {"ok": True}


# Routers
app.include_router(auth_router)
app.include_router(dashboard_router)
app.include_router(patients_router)
app.include_router(scans_router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
