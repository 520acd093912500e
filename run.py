#!/usr/bin/env python3
"""
Bank Ledger Entry Point

Starts the FastAPI server with the bank ledger API. Uvicorn turns SIGINT and
SIGTERM into an orderly application shutdown, which closes the database
handle.
"""

import sys

import uvicorn

from bank_ledger.config import get_config


if __name__ == "__main__":
    config = get_config()
    print("Starting Bank Ledger API...")
    print(f"API available at: http://{config.api_host}:{config.api_port}")
    print(f"Documentation at: http://{config.api_host}:{config.api_port}/docs")

    try:
        uvicorn.run("bank_ledger.api:app", host=config.api_host, port=config.api_port)
    except Exception as e:
        print(f"Error starting server: {e}")
        sys.exit(1)
