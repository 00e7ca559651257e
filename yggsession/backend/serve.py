"""Run the session API with uvicorn using environment settings."""

from __future__ import annotations

from yggsession.backend.config import load_settings


def main() -> None:
    settings = load_settings()

    import uvicorn

    uvicorn.run("yggsession.backend.api:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
