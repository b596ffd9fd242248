# boston_workshop/utils/seeds.py

"""
Seed helpers. The workshop never seeds a global generator: the value
returned here is passed explicitly to the splitter, the resampler and the
random search.
"""

import os
from typing import Optional

DEFAULT_SEED = 42


def resolve_seed(seed: Optional[int] = None) -> int:
    """
    Pick the seed for a run.

    Parameters
    ----------
    seed : int, optional
        Explicit value; wins over the ``SEED`` environment variable.

    Returns
    -------
    int
        The seed to thread through every stochastic call.
    """
    if seed is not None:
        return int(seed)
    return int(os.getenv("SEED", DEFAULT_SEED))
