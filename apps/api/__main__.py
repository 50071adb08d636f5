import uvicorn

from apps.api.core.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "apps.api.main:app",
        host=settings.server_host,
        port=settings.server_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
