"""
Convenience entry point for running goalpilot directly.

Usage: python -m goalpilot [command] [options]
"""

from .cli.app import app

if __name__ == "__main__":
    app()
