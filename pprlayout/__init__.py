"""Personalized PageRank indices and 2-D MDS layouts for hierarchically clustered graphs."""

__version__ = "0.1.0"
__all__ = ["models", "loaders", "storage", "algorithms", "processor"]