"""
Deterministic bootstrap for reproducible runs.

Builds the seeded numpy Generator that synthetic fallback series draw
from, so they repeat across runs.
"""

import numpy as np


def init_deterministic(seed=42):
  """Return a numpy Generator seeded with `seed`."""
  return np.random.default_rng(seed)
