"""
Listab CLI

Command-line interface for listing experiments.
"""

from listab.cli.main import app, main

__all__ = ["app", "main"]
