import io
import os
import sys

# Fix Windows encoding for Unicode characters in print() from imported modules
# line_buffering=True ensures logs from analyzer worker threads appear immediately
sys.stdout = io.TextIOWrapper(sys.stdout.buffer, encoding="utf-8", errors="replace", line_buffering=True)
sys.stderr = io.TextIOWrapper(sys.stderr.buffer, encoding="utf-8", errors="replace", line_buffering=True)

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from config import ANALYSIS_MAX_WORKERS, LOOKBACK_BLOCKS, PAYMENT_REQUIRED, PROJECT_ROOT, RPC_TIMEOUT_SECONDS
from routers.analysis_router import router as analysis_router
from routers.notification_router import router as notification_router

app = FastAPI()

# CORS: support both local development and production
allowed_origins = [
    "http://localhost:3000",
    "http://localhost:5173",
]
public_domain = os.getenv("PUBLIC_DOMAIN")
if public_domain:
    allowed_origins.append(f"https://{public_domain}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-PAYMENT-RESPONSE"],
)


@app.on_event("startup")
def startup_event():
    print(
        f"[Init] Lookback: {LOOKBACK_BLOCKS} blocks, workers: {ANALYSIS_MAX_WORKERS}, "
        f"RPC timeout: {RPC_TIMEOUT_SECONDS}s, payment required: {PAYMENT_REQUIRED}"
    )


app.include_router(analysis_router)
app.include_router(notification_router)


# Serve frontend static files (for production)
# This must be defined AFTER all API routes
FRONTEND_DIST = PROJECT_ROOT / "frontend" / "dist"
if FRONTEND_DIST.exists():
    app.mount("/", StaticFiles(directory=str(FRONTEND_DIST), html=True), name="static")
    print("[Init] Frontend static files mounted from:", FRONTEND_DIST)
else:
    print("[Init] Frontend dist folder not found. Running in API-only mode.")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
