"""
Utility modules for nginx-tail.

Modules:
    - terminal: Escape sequences, colors and terminal size queries
    - paths: Discovery of the access logs to follow
"""
