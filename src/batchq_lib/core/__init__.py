# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

"""
Core infrastructure for batchq.

This module collects the foundational helpers used across the batchq codebase:
configuration, error types, structured logging, execution of batch-system
commands, and conversions of durations and timestamps.
"""
