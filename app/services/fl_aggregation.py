"""
Federated Averaging (FedAvg)
----------------------------
Unweighted element-wise mean of weight layers and bias vectors across a batch
of updates. Every contributor counts equally regardless of local data size.

Sums are accumulated in float64 in the order the updates are given, so the
same input in the same order always yields bit-identical output.
"""
from dataclasses import dataclass
from typing import List, Protocol, Sequence

import torch

from app.core.exceptions import ShapeMismatchError


class WeightUpdate(Protocol):
    weights: List[List[float]]
    biases: List[float]
    accuracy: float


@dataclass(frozen=True)
class FedAvgResult:
    weights: List[List[float]]
    biases: List[float]
    avg_accuracy: float
    num_updates: int


def topology(update: WeightUpdate) -> tuple:
    """(per-layer weight lengths, bias length)"""
    return tuple(len(layer) for layer in update.weights), len(update.biases)


def check_shapes(updates: Sequence[WeightUpdate]) -> None:
    expected = topology(updates[0])
    for idx, u in enumerate(updates[1:], start=1):
        found = topology(u)
        if found == expected:
            continue
        exp_layers, exp_bias = expected
        got_layers, got_bias = found
        if len(got_layers) != len(exp_layers):
            detail = f"{len(got_layers)} weight layers, expected {len(exp_layers)}"
        elif got_layers != exp_layers:
            layer = next(i for i, (a, b) in enumerate(zip(got_layers, exp_layers)) if a != b)
            detail = f"layer {layer} has {got_layers[layer]} weights, expected {exp_layers[layer]}"
        else:
            detail = f"{got_bias} biases, expected {exp_bias}"
        raise ShapeMismatchError(f"update #{idx} in batch: {detail}")


def federated_average(updates: Sequence[WeightUpdate]) -> FedAvgResult:
    if not updates:
        raise ValueError("no updates to aggregate")

    check_shapes(updates)
    n = len(updates)

    weight_sums = [
        torch.zeros(len(layer), dtype=torch.float64)
        for layer in updates[0].weights
    ]
    bias_sum = torch.zeros(len(updates[0].biases), dtype=torch.float64)
    accuracy_sum = 0.0

    for u in updates:
        for i, layer in enumerate(u.weights):
            weight_sums[i] += torch.tensor(layer, dtype=torch.float64)
        bias_sum += torch.tensor(u.biases, dtype=torch.float64)
        accuracy_sum += float(u.accuracy)

    return FedAvgResult(
        weights=[(s / n).tolist() for s in weight_sums],
        biases=(bias_sum / n).tolist(),
        avg_accuracy=accuracy_sum / n,
        num_updates=n,
    )
