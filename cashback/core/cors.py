from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cashback.core.settings import get_settings


def add_cors_middleware(app: FastAPI) -> None:
    """Allow the web client to call the API with bearer tokens."""
    settings = get_settings()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
        expose_headers=["Retry-After"],
    )
