"""Entry point for running annotation_engine as a module.

Usage:
    python -m annotation_engine <command> [options]
"""
from .cli import main

if __name__ == "__main__":
    raise SystemExit(main())
