"""Run the wrapper: python -m memory_wrapper"""

from __future__ import annotations

import uvicorn

from memory_wrapper.core.config import SETTINGS


def main() -> None:
    uvicorn.run(
        "memory_wrapper.main:app",
        host="0.0.0.0",
        port=SETTINGS.port,
        # Logging is configured by memory_wrapper.core.logging.
        log_config=None,
    )


if __name__ == "__main__":
    main()
