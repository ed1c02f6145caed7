"""
CORS configuration
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from assessment.core.config import settings


def setup_cors(app: FastAPI) -> None:
    """Allow the configured front-end origins to call the API"""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_cors_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID", "X-Process-Time"],
    )
