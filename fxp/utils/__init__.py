"""Utility module for the FXP transfer tool.

This module provides cross-cutting utilities:
- Logging: Configured logging with password redaction and line prefixes
- Validators: Input validation for hosts, ports, addresses and durations
- Threading: Background task helper used by the completion monitor
"""
