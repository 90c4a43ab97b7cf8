#!/usr/bin/env python3
"""
Script to run the Book Library API server.

Usage:
    python run_api.py [--host HOST] [--port PORT] [--reload]
"""

import argparse
import sys
from pathlib import Path

import uvicorn

# Add project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from api.config import config
from utilities.config import config as catalog_config


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Run the Book Library API server")
    parser.add_argument("--host", default=config.host, help="Interface to bind")
    parser.add_argument("--port", type=int, default=config.port, help="Port to listen on")
    parser.add_argument("--reload", action="store_true", default=config.debug,
                        help="Restart on code changes")
    return parser.parse_args(argv)


def main(argv=None):
    """Run the API server."""
    args = parse_args(argv)

    print("Starting Book Library API Server")
    print(f"Listening on {args.host}:{args.port} (reload={args.reload})")
    print(f"Database: {catalog_config.mongodb_database}")
    print(f"Uploads: {catalog_config.get_storage_path()}")
    print("=" * 50)

    uvicorn.run(
        "api.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=config.log_level.lower(),
        access_log=True
    )


if __name__ == "__main__":
    main()
