"""
Informal differential-privacy noise.

Each scalar ``v`` becomes ``v + (U(0,1) - 0.5) * epsilon``, drawn
independently. This is uniform jitter scaled by ``epsilon``; there is no
sensitivity calibration, so it is not an (epsilon, delta)-DP mechanism.
The same function runs on the client before submission and on the server
after averaging.
"""
from typing import List, Optional, Sequence, Tuple

import torch


def _jitter(values: Sequence[float], epsilon: float, generator: Optional[torch.Generator]) -> List[float]:
    t = torch.tensor(list(values), dtype=torch.float64)
    u = torch.rand(t.shape, dtype=torch.float64, generator=generator)
    return (t + (u - 0.5) * epsilon).tolist()


def inject_noise(
    weights: Sequence[Sequence[float]],
    biases: Sequence[float],
    epsilon: float,
    generator: Optional[torch.Generator] = None
) -> Tuple[List[List[float]], List[float]]:
    if epsilon < 0:
        raise ValueError("epsilon must be non-negative")

    noisy_weights = [_jitter(layer, epsilon, generator) for layer in weights]
    noisy_biases = _jitter(biases, epsilon, generator)
    return noisy_weights, noisy_biases
