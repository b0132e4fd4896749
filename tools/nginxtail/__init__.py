"""
nginx-tail - Live terminal dashboard for nginx access logs.

This package follows one or more growing access logs and shows, in a
single terminal, a sample of the raw traffic together with the live
requests-per-second per log file and status code.

Package Structure:
    - cli.py: Command-line interface and entry point
    - errors.py: Exceptions surfaced to the operator
    - tui/: Tailers, message bus, parser, rate aggregation and rendering
    - utils/: Terminal escape sequences and log file discovery

Usage:
    Run as a module: python -m nginxtail [options] [file | dir ...]

Example:
    python -m nginxtail --merge /var/log/nginx/
"""

__version__ = "0.1.0"
