"""Configuration and run-time plumbing for the codegen-sync CLI.

This package provides:
- Scan configuration (TOML)
- A rich progress display for replaying queued copies
"""
