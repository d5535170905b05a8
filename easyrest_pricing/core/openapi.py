"""OpenAPI schema customization.

Adds the ``X-API-Key`` security scheme, tag descriptions for the price,
cache and health routes, and an auth exemption for ``/health``.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

API_KEY_SCHEME = "ApiKeyAuth"

_TAGS = (
    {
        "name": "Price",
        "description": "Stay price quotes from the scraper, cached and rate limited.",
    },
    {
        "name": "Cache",
        "description": "Inspect or flush cached prices.",
    },
    {
        "name": "Health",
        "description": "Liveness and shutdown state, no API key needed.",
    },
)

_PUBLIC_PATHS = ("/health",)


def apply_openapi_customizations(app: FastAPI) -> None:
    """Wrap ``app.openapi`` so the generated schema documents API key auth."""

    base_openapi = app.openapi

    def price_api_openapi() -> Dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema
        schema = base_openapi()

        schemes = schema.setdefault("components", {}).setdefault("securitySchemes", {})
        schemes.setdefault(
            API_KEY_SCHEME,
            {
                "type": "apiKey",
                "in": "header",
                "name": "X-API-Key",
                "description": "Key issued to the calling site (APP_API_KEYS).",
            },
        )
        schema.setdefault("security", [{API_KEY_SCHEME: []}])

        known = {tag.get("name") for tag in schema.setdefault("tags", [])}
        schema["tags"].extend(dict(tag) for tag in _TAGS if tag["name"] not in known)

        for path, operations in schema.get("paths", {}).items():
            if path not in _PUBLIC_PATHS:
                continue
            for operation in operations.values():
                if isinstance(operation, dict):
                    operation["security"] = []

        app.openapi_schema = schema
        return schema

    app.openapi = price_api_openapi  # type: ignore[assignment]
