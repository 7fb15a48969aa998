"""Functional simulator of a single-cycle MIPS datapath."""

__version__ = "0.1.0"
