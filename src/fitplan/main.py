"""Application entry point."""

import uvicorn

from fitplan.config import SETTINGS


def main() -> None:
    uvicorn.run(
        "fitplan.server.main:app",
        host=SETTINGS.HOST,
        port=SETTINGS.PORT,
        log_config=None,  # logging_setup owns handlers
    )


if __name__ == "__main__":
    main()
