from __future__ import annotations

PUBLIC_ENDPOINTS = {"health", "index", "routes", "uploaded_file"}


def is_public_endpoint(endpoint: str | None) -> bool:
    if not endpoint:
        return False
    if endpoint.startswith("auth."):
        return True
    if endpoint in PUBLIC_ENDPOINTS:
        return True
    return False
