"""
Client-side helpers for producing a model update.

The student network is trained on the learner's device; the server only ever
sees the flattened parameters. Each linear layer contributes one row to
``weights`` (its weight matrix flattened) and its bias vector is appended to
``biases``.
"""
from typing import List, Optional, Sequence, Tuple

import torch
import torch.nn as nn
import torch.optim as optim

from app.core.config import settings
from app.core.exceptions import ShapeMismatchError
from app.services.fl_privacy import inject_noise

# difficulty, type, time, confidence, topic, correctness, quick, slow, position, jitter
NUM_FEATURES = 10


class StudentModel(nn.Module):
    """Pass/fail predictor for the next similar quiz question."""

    def __init__(self, input_dim: int = NUM_FEATURES):
        super().__init__()
        self.net = nn.Sequential(
            nn.Linear(input_dim, 32),
            nn.ReLU(),
            nn.Dropout(0.3),
            nn.Linear(32, 16),
            nn.ReLU(),
            nn.Dropout(0.2),
            nn.Linear(16, 1),
            nn.Sigmoid(),
        )

    def forward(self, x):
        return self.net(x)


def _linear_layers(model: nn.Module) -> List[nn.Linear]:
    return [m for m in model.modules() if isinstance(m, nn.Linear)]


def extract_weights(model: nn.Module) -> Tuple[List[List[float]], List[float]]:
    weights: List[List[float]] = []
    biases: List[float] = []
    for layer in _linear_layers(model):
        weights.append(layer.weight.detach().flatten().tolist())
        if layer.bias is not None:
            biases.extend(layer.bias.detach().tolist())
    return weights, biases


def load_global_weights(
    model: nn.Module,
    weights: Sequence[Sequence[float]],
    biases: Sequence[float]
) -> None:
    layers = _linear_layers(model)
    if len(weights) != len(layers):
        raise ShapeMismatchError(
            f"global model has {len(weights)} weight layers, local model has {len(layers)}"
        )

    expected_biases = sum(layer.bias.numel() for layer in layers if layer.bias is not None)
    if len(biases) != expected_biases:
        raise ShapeMismatchError(
            f"global model has {len(biases)} biases, local model has {expected_biases}"
        )

    offset = 0
    with torch.no_grad():
        for i, (layer, row) in enumerate(zip(layers, weights)):
            if len(row) != layer.weight.numel():
                raise ShapeMismatchError(
                    f"layer {i} has {len(row)} weights, local model has {layer.weight.numel()}"
                )
            layer.weight.copy_(
                torch.tensor(row, dtype=layer.weight.dtype).view_as(layer.weight)
            )
            if layer.bias is not None:
                n = layer.bias.numel()
                layer.bias.copy_(
                    torch.tensor(biases[offset:offset + n], dtype=layer.bias.dtype)
                )
                offset += n


def train_locally(
    model: nn.Module,
    features: Sequence[Sequence[float]],
    labels: Sequence[float],
    epochs: int = 10,
    lr: float = 0.001
) -> float:
    """Fit on local quiz data and return training accuracy in [0, 1]."""
    X = torch.tensor(features, dtype=torch.float32)
    y = torch.tensor([[label] for label in labels], dtype=torch.float32)

    optimizer = optim.Adam(model.parameters(), lr=lr)
    loss_fn = nn.BCELoss()

    model.train()
    for _ in range(epochs):
        optimizer.zero_grad()
        loss = loss_fn(model(X), y)
        loss.backward()
        optimizer.step()

    model.eval()
    with torch.no_grad():
        preds = (model(X) >= 0.5).float()
    return float((preds == y).float().mean().item())


def privatize_update(
    weights: Sequence[Sequence[float]],
    biases: Sequence[float],
    epsilon: Optional[float] = None,
    generator: Optional[torch.Generator] = None
) -> Tuple[List[List[float]], List[float]]:
    """Client-side noise, applied before the update leaves the device."""
    if epsilon is None:
        epsilon = settings.FL_CLIENT_EPSILON
    return inject_noise(weights, biases, epsilon, generator=generator)
