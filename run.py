#!/usr/bin/env python3
"""
Account Ledger Entry Point

Starts the FastAPI server with a fresh in-memory ledger.
Host and port come from LEDGER_API_HOST / LEDGER_API_PORT (default 0.0.0.0:8090).
"""

import sys

from ledger_core.api import run_server
from ledger_core.config import get_config


if __name__ == "__main__":
    config = get_config()
    print("Starting Account Ledger...")
    print("Balances are in memory only and are lost on shutdown")
    print(f"API available at: http://localhost:{config.api_port}")
    print(f"Documentation at: http://localhost:{config.api_port}/docs")
    print()

    try:
        run_server(debug=False)
    except KeyboardInterrupt:
        print("\nShutting down Account Ledger...")
    except Exception as e:
        print(f"Error starting server: {e}")
        sys.exit(1)
