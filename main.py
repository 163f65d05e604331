#!/usr/bin/env python3
import logging
import os

import uvicorn

from opsconsole.app import create_app

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

# Create the FastAPI app
app = create_app()


if __name__ == "__main__":
    is_dev_mode = os.getenv("OPSCONSOLE_DEV_MODE", "false").lower() == "true"
    host = os.getenv("OPSCONSOLE_HOST", "127.0.0.1")

    print(f"Starting operations console on {host}:8000")
    print(f"Development mode: {is_dev_mode}")

    uvicorn.run("main:app", host=host, port=8000, reload=is_dev_mode)
