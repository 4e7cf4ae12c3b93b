# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

"""
LSF backend for batchq.

Provides the `LSF` batch-system backend submitting jobs with bsub,
reading the bjobs table into canonical job information, and holding,
releasing and killing jobs with bstop, bresume and bkill.
"""

from .lsf import LSF

__all__ = [
    "LSF",
]
