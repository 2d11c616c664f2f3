"""OpenAPI customization.

Adds the API key security schemes, tag descriptions and per-path auth
exemptions to the generated schema.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

TAGS_METADATA = [
    {
        "name": "Sessions",
        "description": "Create, inspect and tear down messaging sessions; fetch the login QR code.",
    },
    {
        "name": "Messages",
        "description": "Send text and media messages through a ready session.",
    },
    {
        "name": "Health",
        "description": "Liveness, send-pacing counters and CORS diagnostics.",
    },
]

# Public endpoints (everything else requires an API key)
_PUBLIC_PATHS = ("/api/health", "/api/health/rate-limits", "/api/health/cors")


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add metadata and security.

    - Injects ``ApiKeyAuth`` (``X-API-Key`` header) and ``BearerAuth``
      security schemes and requires one of them globally
    - Exempts the public health endpoints with ``security: []``
    - Adds tags metadata if not present
    """

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        schema = original_openapi()

        components = schema.setdefault("components", {})
        security_schemes = components.setdefault("securitySchemes", {})
        security_schemes.setdefault(
            "ApiKeyAuth",
            {
                "type": "apiKey",
                "in": "header",
                "name": "X-API-Key",
                "description": "Provide your API key via the X-API-Key header.",
            },
        )
        security_schemes.setdefault(
            "BearerAuth",
            {
                "type": "http",
                "scheme": "bearer",
                "description": "Alternatively send the API key as a bearer token.",
            },
        )

        schema.setdefault("security", [{"ApiKeyAuth": []}, {"BearerAuth": []}])

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        for tag in TAGS_METADATA:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        for path, methods in schema.get("paths", {}).items():
            if path in _PUBLIC_PATHS or path == "/":
                for method_obj in methods.values():
                    if isinstance(method_obj, dict):
                        method_obj["security"] = []

        app.openapi_schema = schema
        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
