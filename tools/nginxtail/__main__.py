"""
Entry point for running nginxtail as a Python module.

This module enables the package to be executed directly via:
    python -m nginxtail [options] [file | dir ...]
"""

from .cli import main

if __name__ == "__main__":
    main()
