# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

"""
Batch-system support for batchq.

This module groups all components that allow batchq to interact with HPC
batch schedulers. It defines the abstract interface shared by all backends
together with the concrete backends for LSF and Sun/Son of Grid Engine.
"""

from .interface import BatchInterface
from .lsf import LSF
from .sge import SGE

__all__ = [
    "BatchInterface",
    "LSF",
    "SGE",
]
