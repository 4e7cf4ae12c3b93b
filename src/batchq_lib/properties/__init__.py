# Released under MIT License.
# Copyright (c) 2025 Ladislav Bartos and Robert Vacha Lab

"""
Properties and structured metadata of batch jobs.

This module provides the batch-system independent job model: the canonical
job states and the tables translating raw state codes into them, job
dependencies, and the immutable description of a job and its allocated nodes.
"""
