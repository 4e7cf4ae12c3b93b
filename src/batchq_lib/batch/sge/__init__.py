# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

"""
Sun/Son of Grid Engine backend for batchq.

Provides the `SGE` batch-system backend submitting jobs with qsub, reading
the XML job listing of qstat incrementally using `QstatXmlListener`, looking
up finished jobs in the accounting file using qacct, and holding, releasing
and deleting jobs with qhold, qrls and qdel.
"""

from .listener import QstatXmlListener
from .sge import SGE

__all__ = [
    "QstatXmlListener",
    "SGE",
]
