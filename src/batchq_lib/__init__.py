# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

"""
Uniform access to HPC batch schedulers.

This package lets callers submit jobs, inspect them and control them on
different batch systems through a single interface. Each batch system is an
implementation of `BatchInterface` that runs the scheduler's own command-line
tools and translates their output into batch-system independent `JobInfo`
records with canonical `JobStatus` values. LSF and Sun/Son of Grid Engine
backends are provided.
"""

__version__ = "0.1.0"

from .batch import LSF, SGE, BatchInterface
from .core.error import (
    BQError,
    ProcessError,
    SchemaMismatchError,
    UnimplementedCapabilityError,
)
from .properties.depend import Depend, DependType
from .properties.info import JobInfo, NativeInfo, NodeInfo
from .properties.states import JobStatus, StateMap

__all__ = [
    "__version__",
    "BatchInterface",
    "BQError",
    "Depend",
    "DependType",
    "JobInfo",
    "JobStatus",
    "LSF",
    "NativeInfo",
    "NodeInfo",
    "ProcessError",
    "SGE",
    "SchemaMismatchError",
    "StateMap",
    "UnimplementedCapabilityError",
]
