"""Sparse matrix storage formats, Matrix Market I/O and SpMV kernel launch planning."""

__version__ = "0.1.0"