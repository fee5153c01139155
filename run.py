#!/usr/bin/env python3
"""
Bank Ledger Entry Point

Starts the FastAPI server on the configured port (PORT, default 5000).
"""

import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from bank_ledger.api import run_server
from bank_ledger.config import get_config


if __name__ == "__main__":
    config = get_config()

    print("Starting Bank Ledger API...")
    print(f"API available at: http://localhost:{config.api_port}{config.api_prefix}")
    print(f"Documentation at: http://localhost:{config.api_port}/docs")
    print()

    try:
        run_server(
            host=config.api_host,
            port=config.api_port,
            debug=False  # Set to True for development
        )
    except KeyboardInterrupt:
        print("\nShutting down Bank Ledger API...")
    except Exception as e:
        print(f"Error starting server: {e}")
        sys.exit(1)
