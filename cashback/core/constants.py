"""
App-wide constants for route configuration.

This module provides a single source of truth for route prefixes, tags,
common response definitions for API routes, and email template locations.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, select_autoescape

from cashback.models.error import ErrorResponse


@dataclass(frozen=True)
class RouteConfig:
    """Configuration for a route group."""

    prefix: str
    tag: str


class Routes:
    """Route configurations for all API endpoints."""

    AUTH = RouteConfig(prefix="/auth", tag="auth")
    USER = RouteConfig(prefix="/users", tag="users")
    WALLET = RouteConfig(prefix="/wallet", tag="wallet")
    REFERRAL = RouteConfig(prefix="/referrals", tag="referrals")
    HEALTH = RouteConfig(prefix="/health", tag="health")


# Common response definitions for reuse across routers
# Use these when configuring APIRouter or individual endpoints
class CommonResponses:
    """Standard HTTP error response definitions for OpenAPI documentation."""

    UNAUTHORIZED: dict[int, dict[str, Any]] = {
        401: {
            "model": ErrorResponse,
            "description": "Not authenticated or invalid credentials",
        }
    }
    FORBIDDEN: dict[int, dict[str, Any]] = {
        403: {
            "model": ErrorResponse,
            "description": "User is inactive or lacks permissions",
        }
    }
    NOT_FOUND: dict[int, dict[str, Any]] = {
        404: {"model": ErrorResponse, "description": "Resource not found"}
    }
    CONFLICT: dict[int, dict[str, Any]] = {
        409: {
            "model": ErrorResponse,
            "description": "Resource already exists or is in a conflicting state",
        }
    }
    BAD_REQUEST: dict[int, dict[str, Any]] = {
        400: {"model": ErrorResponse, "description": "Invalid request data"}
    }
    TOO_MANY_REQUESTS: dict[int, dict[str, Any]] = {
        429: {"model": ErrorResponse, "description": "Rate limit exceeded"}
    }
    BAD_GATEWAY: dict[int, dict[str, Any]] = {
        502: {
            "model": ErrorResponse,
            "description": "Upstream identity provider or mailer failed",
        }
    }


# HTML Templates Directory
EmailTemplatesDir = Path(__file__).parent.parent / "templates" / "emails"
CompiledEmailTemplatesDir = EmailTemplatesDir / "compiled"

# Jinja2 environment for compiled templates (used at runtime)
JinjaCompiledEmailTemplatesEnv = Environment(
    loader=FileSystemLoader(str(CompiledEmailTemplatesDir)),
    autoescape=select_autoescape(["html", "xml"]),
)
