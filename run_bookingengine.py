#!/usr/bin/env python3
"""
Convenience entry point for running bookingengine directly.

Usage: python run_bookingengine.py [command] [options]
"""

from bookingengine.cli.app import app

if __name__ == "__main__":
    app()
