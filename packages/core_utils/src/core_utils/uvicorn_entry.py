import uvicorn

from core_config import get_settings


def run(
    app_path: str,
    port: int | None = None,
    *,
    host: str = "0.0.0.0",
    access_log: bool = False,
) -> None:
    """Serve *app_path* with uvicorn; port and log level default from settings."""
    s = get_settings()
    uvicorn.run(
        app_path,
        host=host,
        port=port or s.gateway_port,
        log_level=s.service_log_level.lower(),
        access_log=access_log,
    )

__all__ = ["run"]
