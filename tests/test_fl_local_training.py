import pytest
import torch

from app.core.config import settings
from app.core.exceptions import ShapeMismatchError
from app.services.fl_local_training import (
    NUM_FEATURES,
    StudentModel,
    extract_weights,
    load_global_weights,
    privatize_update,
    train_locally,
)


def test_extract_weights_topology():
    weights, biases = extract_weights(StudentModel())

    assert [len(layer) for layer in weights] == [NUM_FEATURES * 32, 32 * 16, 16]
    assert len(biases) == 32 + 16 + 1


def test_load_global_weights_sets_parameters():
    weights, biases = extract_weights(StudentModel())
    weights = [[0.01 * (i + 1)] * len(layer) for i, layer in enumerate(weights)]
    biases = [0.5] * len(biases)

    model = StudentModel()
    load_global_weights(model, weights, biases)

    first = model.net[0]
    assert torch.allclose(first.weight, torch.full_like(first.weight, 0.01))
    assert torch.allclose(first.bias, torch.full_like(first.bias, 0.5))
    assert extract_weights(model)[0][2][0] == pytest.approx(0.03)


def test_load_global_weights_rejects_other_topology():
    weights, biases = extract_weights(StudentModel())

    with pytest.raises(ShapeMismatchError):
        load_global_weights(StudentModel(), weights[:2], biases)
    with pytest.raises(ShapeMismatchError):
        load_global_weights(StudentModel(), weights, biases[:-1])
    with pytest.raises(ShapeMismatchError):
        load_global_weights(StudentModel(), [weights[0][:-1]] + weights[1:], biases)


def test_privatize_update_uses_client_epsilon():
    weights, biases = [[0.0] * 100], [0.0] * 10
    noisy_w, noisy_b = privatize_update(weights, biases)

    bound = settings.FL_CLIENT_EPSILON / 2 + 1e-12
    assert all(abs(v) <= bound for v in noisy_w[0] + noisy_b)
    assert any(v != 0.0 for v in noisy_w[0])


def test_train_locally_reports_accuracy():
    torch.manual_seed(0)
    features = [[float(i % 2)] * NUM_FEATURES for i in range(20)]
    labels = [float(i % 2) for i in range(20)]

    accuracy = train_locally(StudentModel(), features, labels, epochs=5)

    assert 0.0 <= accuracy <= 1.0
