#!/usr/bin/env python
# Copyright (c) 2025 massivedatascience
# Licensed under the Apache License, Version 2.0

"""
Setup configuration for the km-kernel package.
"""

from setuptools import setup, find_packages
import os

# Read version from package
with open(os.path.join("kmkernel", "__init__.py")) as f:
    for line in f:
        if line.startswith("__version__"):
            version = line.split("=")[1].strip().strip('"').strip("'")
            break

# Read long description from README
long_description = """
# km-kernel

Lloyd's k-means over synthetically generated points, as a single-process kernel
and as a data-parallel kernel whose workers synchronize through collective
reductions (threads, Spark barrier mode, or MPI).

## Features

- **Deterministic**: points and initial centroids come from a seeded
  multiply-with-carry generator, identical on every platform
- **Data-parallel**: static contiguous partitions, max/sum all-reduce after
  every iteration, lockstep termination
- **Pluggable collectives**: in-process threads, Spark barrier tasks, or MPI
- **Estimator API**: Params-based estimator, model and training summary

## Installation

```bash
pip install km-kernel
pip install "km-kernel[mpi]"   # MPI backend
```

## Quick Start

```bash
kmkernel 1000 2 4 2000 7
kmkernel-parallel --workers 4 1000 2 4 2000 7
mpiexec -n 4 kmkernel-mpi 1000 2 4 2000 7
```

```python
from kmkernel.clusterer import KernelKMeans

model = KernelKMeans(k=4, numPoints=1000, dimension=2, minDistance=2000.0, seed=7).fit()
print(model.summary.convergenceReport())
```
"""

setup(
    name="km-kernel",
    version=version,
    description="Lloyd's k-means kernel with sequential and data-parallel coordinators",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="MassiveDataScience",
    author_email="support@massivedatascience.com",
    license="Apache License 2.0",
    packages=find_packages(exclude=["tests", "tests.*", "examples"]),
    python_requires=">=3.8",
    install_requires=[
        "pyspark>=3.4.0",
        "numpy>=1.20.0",
    ],
    extras_require={
        "mpi": [
            "mpi4py>=3.1.0",
        ],
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=3.0.0",
            "black>=22.0.0",
            "flake8>=4.0.0",
            "mypy>=0.950",
        ],
    },
    entry_points={
        "console_scripts": [
            "kmkernel=kmkernel.cli:main",
            "kmkernel-parallel=kmkernel.cli:parallel_main",
            "kmkernel-mpi=kmkernel.clusterer.mpi:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Intended Audience :: Science/Research",
        "License :: OSI Approved :: Apache Software License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Topic :: Scientific/Engineering",
        "Topic :: Software Development :: Libraries",
    ],
    keywords="kmeans clustering lloyd parallel mpi pyspark",
)
