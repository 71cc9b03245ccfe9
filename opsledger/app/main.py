from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from opsledger.app.api.v1.api import api_router
from opsledger.app.core.config import settings
from opsledger.app.middleware.request_id import RequestIDMiddleware

app = FastAPI(title="Opsledger Back-Office Ledger")

# ─── CORS: restrict to configured origins ────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH"],
    allow_headers=["Content-Type", "Accept", "X-Actor-Id", "X-Request-ID"],
    expose_headers=["X-Request-ID"],
)

app.add_middleware(RequestIDMiddleware)

app.include_router(api_router)
