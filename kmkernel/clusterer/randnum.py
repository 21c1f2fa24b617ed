# Copyright (c) 2025 massivedatascience
# Licensed under the Apache License, Version 2.0

"""
Multiply-with-carry pseudo-random generator.

The generator keeps two 32-bit words and produces the same unsigned 32-bit
stream for the same seed on every platform. Synthetic points and the initial
centroid draws are both taken from it, so every worker of a parallel run that
is seeded identically sees an identical data stream.
"""

RANDNUM_W = 521288629
RANDNUM_Z = 362436069

_MASK32 = 0xFFFFFFFF


class RandNum:
    """
    Seedable multiply-with-carry generator.

    Parameters
    ----------
    seed : int, optional
        Initial seed. When omitted the generator starts from the default
        state words.

    Examples
    --------
    >>> rng = RandNum(42)
    >>> first = rng.next()
    >>> rng.seed(42)
    >>> rng.next() == first
    True
    """

    __slots__ = ("w", "z")

    def __init__(self, seed=None):
        self.w = RANDNUM_W
        self.z = RANDNUM_Z
        if seed is not None:
            self.seed(seed)

    def seed(self, value: int) -> None:
        """Re-initialize both state words from ``value``."""
        w = (value * 104623) & _MASK32
        self.w = w if w else RANDNUM_W
        z = (value * 48947) & _MASK32
        self.z = z if z else RANDNUM_Z

    def next(self) -> int:
        """Advance both words and return the next unsigned 32-bit value."""
        self.z = (36969 * (self.z & 0xFFFF) + (self.z >> 16)) & _MASK32
        self.w = (18000 * (self.w & 0xFFFF) + (self.w >> 16)) & _MASK32
        return ((self.z << 16) + self.w) & _MASK32

    __next__ = next

    def __iter__(self):
        return self

    def getstate(self):
        return self.w, self.z

    def setstate(self, state):
        self.w, self.z = state
