#!/usr/bin/env python3
"""Entry point for Drift."""

from drift.cli import main

if __name__ == "__main__":
    main()
