import logging
import math
import random

import numpy as np
import torch

logger = logging.getLogger(__name__)


def set_seed(seed=42):
    """
    Seeds python, numpy and torch for reproducible runs.
    """
    random.seed(seed)
    np.random.seed(seed)
    torch.manual_seed(seed)
    logger.debug("Seed set to %d", seed)


def negative_log_likelihood(zx, logdet):
    """
    Per-sample negative log-likelihood under a standard normal latent.

    ``logdet`` is the batch-averaged log-determinant returned by the network.
    The gradient of the returned value with respect to ``zx``, ignoring
    ``logdet``, is ``zx / batch_size``, which is what ``backward`` expects.
    """
    batch_size = zx.size(0)
    n = zx[0].numel()
    return 0.5 * (zx ** 2).sum() / batch_size - logdet + 0.5 * n * math.log(2 * math.pi)


def clear_grad(model):
    """Resets the gradients accumulated by ``backward``."""
    for p in model.parameters():
        p.grad = None


@torch.no_grad()
def sample_posterior(model, y, num_samples=16, z_dims=None):
    """
    Draws ``num_samples`` posterior samples for a single observation ``y``.

    Args:
        model (NetworkConditionalGlow): A trained network.
        y (torch.Tensor): One conditioning sample, shape ``(1, n_cond, *spatial)``.
        num_samples (int): Number of samples to draw.

    Returns:
        torch.Tensor: Samples of shape ``(num_samples, n_in, *spatial)``.
    """
    if y.size(0) != 1:
        raise ValueError(f"sample_posterior expects a single observation, got batch of {y.size(0)}")
    y_repeat = y.repeat(num_samples, *[1] * (y.dim() - 1))
    zx = torch.randn(num_samples, model.n_in, *y.shape[2:], dtype=y.dtype, device=y.device)
    return model.inverse(zx, y_repeat, z_dims=z_dims)
