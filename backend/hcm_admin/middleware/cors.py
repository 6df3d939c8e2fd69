from __future__ import annotations


def build_allowed_origins(*, frontend_url: str | None, frontend_urls: str | None) -> list[str]:
    # Local React dev servers are always allowed.
    allowed: set[str] = {
        "http://localhost:3000",
        "http://localhost:3001",
    }

    for v in [frontend_url, frontend_urls]:
        if not v:
            continue
        for origin in [s.strip() for s in str(v).split(",") if s.strip()]:
            allowed.add(origin.rstrip("/"))

    return sorted(allowed)
