# Copyright (c) 2025 massivedatascience
# Licensed under the Apache License, Version 2.0

"""
km-kernel
=========

Lloyd's k-means kernel over synthetic points, single-process and data-parallel.
"""

__version__ = "0.1.0"
__all__ = ["clusterer"]
