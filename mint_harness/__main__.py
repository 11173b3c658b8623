"""
Entry point for running the harness as a module.

Usage:
    python -m mint_harness
"""

from mint_harness.cli import main

if __name__ == "__main__":
    main()
