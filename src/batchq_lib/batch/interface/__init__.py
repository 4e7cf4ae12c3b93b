# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

"""
Abstractions for integrating batchq with HPC batch scheduling systems.

This module defines `BatchInterface`, the interface that every batch-system
backend implements. It declares job submission, job information and status
retrieval, and hold, release and delete operations, and provides the shared
helpers for running batch-system commands, the live/historical job lookup and
the derivation of the wallclock time of running jobs.
"""

from .interface import BatchInterface

__all__ = [
    "BatchInterface",
]
