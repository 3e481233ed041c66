"""CORS for the reading-tracker web front-end."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from bookquest.config import Settings
from bookquest.middleware.request_id import REQUEST_ID_HEADER


def setup_cors(app: FastAPI, settings: Settings) -> None:
    """Allow ``BQ_CORS_ORIGINS`` to call the API with a bearer token.

    No cookies are used, so credentials stay off.
    """
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Authorization", "Content-Type", REQUEST_ID_HEADER],
        expose_headers=[REQUEST_ID_HEADER, "X-RateLimit-Remaining", "X-RateLimit-Limit", "Retry-After"],
    )
