#!/usr/bin/env python3
"""
Run script for the Prompt Enhancer API
"""

import os
import sys
import argparse
import uvicorn
from dotenv import load_dotenv

from prompt_enhancer.config import Settings

load_dotenv()


def parse_args():
    parser = argparse.ArgumentParser(description="Serve the Prompt Enhancer API")
    parser.add_argument("--host", default=os.getenv("API_HOST", "0.0.0.0"))
    parser.add_argument("--port", type=int, default=int(os.getenv("API_PORT", "8000")))
    parser.add_argument("--log-level", default=os.getenv("LOG_LEVEL", "info").lower())
    parser.add_argument("--reload", action="store_true", default=os.getenv("ENVIRONMENT") == "development")
    return parser.parse_args()


if __name__ == "__main__":
    args = parse_args()

    # Fail before binding the port if the environment is malformed
    try:
        settings = Settings.from_env(load_env_file=False)
    except ValueError as e:
        print(f"Invalid configuration: {e}")
        sys.exit(1)

    print(f"Starting Prompt Enhancer API on {args.host}:{args.port}")
    print(f"Storage backend: {settings.storage_backend}, model: {settings.model_name}")
    if not settings.api_key:
        print("GEMINI_API_KEY is not set; enhancement requests will return 503")

    uvicorn.run(
        "prompt_enhancer.main:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        log_level=args.log_level,
        reload=args.reload
    )
