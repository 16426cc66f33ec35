"""
Main entrypoint: Noema API server (FastAPI under uvicorn).

The API is stateless; every request reads its config from env, so the process
only needs API_HOST / API_PORT here. Preview services run separately:
  noema-staking-preview (port 4010), noema-x404-preview (port 4004)

Equivalent: uvicorn noema_api.api_server.app:app --host 0.0.0.0 --port 8000
"""

import os

# Configure structured JSON logging before other imports that may log
from noema_api.noema_logging import get_logger

logger = get_logger("main")


def main() -> None:
    """Load .env, then run the FastAPI server in the main thread."""
    from noema_api.config.env import get_program_id, get_upstream_rpc_url, load_noema_env

    load_noema_env()
    api_host = os.getenv("API_HOST", "0.0.0.0").strip()
    api_port = int(os.getenv("API_PORT", "8000").strip() or "8000")

    logger.info(
        "main_config_loaded",
        upstream_rpc=get_upstream_rpc_url(),
        program_id=get_program_id(),
        stripe_configured=bool(os.getenv("STRIPE_SECRET_KEY")),
        key_secret_configured=bool(os.getenv("KEY_SECRET")),
    )

    from noema_api.api_server.app import app
    import uvicorn

    logger.info("main_server_starting", host=api_host, port=api_port)
    uvicorn.run(app, host=api_host, port=api_port, log_level=os.getenv("LOG_LEVEL", "info").lower())


if __name__ == "__main__":
    main()
