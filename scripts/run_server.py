#!/usr/bin/env python3
"""
Serve the movie club API with uvicorn.
"""

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import uvicorn

from movieclub.core.config import debug_enabled


def main():
    parser = argparse.ArgumentParser(description="Run the movie club API server")
    parser.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000, help="Port (default: 8000)")
    args = parser.parse_args()

    uvicorn.run("movieclub.api.main:app", host=args.host, port=args.port, reload=debug_enabled())


if __name__ == "__main__":
    main()
