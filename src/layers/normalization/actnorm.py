import logging

import torch
import torch.nn as nn

from src.layers.flow.flow import Flow
from src.layers.tensor_ops import num_pixels, spatial_dims

logger = logging.getLogger(__name__)


class ActNorm(Flow):
    """
    Activation Normalization (Kingma & Dhariwal, 2018).

    Computes ``y = (x + bias) * exp(logs)`` per channel. The bias and scale are
    initialized from the first minibatch seen in training mode so that the
    output has zero mean and unit variance per channel; afterwards they are
    ordinary trainable parameters.

    Works for any number of spatial dimensions, the input is expected as
    ``(B, C, *spatial)``.
    """

    def __init__(self, num_features, logdet=True, scale=1.):
        super().__init__()
        self.num_features = num_features
        self.logdet = logdet
        self.scale = float(scale)
        self.bias = nn.Parameter(torch.zeros(num_features))
        self.logs = nn.Parameter(torch.zeros(num_features))
        # saved with the state dict so loaded parameters are not re-initialized
        self.register_buffer("initialized", torch.tensor(False))

    @property
    def inited(self):
        return bool(self.initialized)

    def _check_input_dim(self, x):
        if x.dim() < 3 or x.size(1) != self.num_features:
            raise ValueError(
                f"[ActNorm]: input should be in shape (B, C, *spatial) with "
                f"{self.num_features} channels, got {tuple(x.shape)}"
            )

    def _shaped(self, x):
        shape = [1, self.num_features] + [1] * (x.dim() - 2)
        return self.bias.view(shape), self.logs.view(shape)

    def initialize_parameters(self, x):
        if not self.training:
            return
        dims = spatial_dims(x)
        with torch.no_grad():
            bias = -x.mean(dim=dims)
            std = torch.sqrt(((x + bias.view(1, -1, *[1] * (x.dim() - 2))) ** 2).mean(dim=dims))
            logs = torch.log(self.scale / (std + 1e-6))
            self.bias.data.copy_(bias)
            self.logs.data.copy_(logs)
        self.initialized.fill_(True)
        logger.debug("ActNorm(%d) initialized from batch of size %d", self.num_features, x.size(0))

    def forward(self, x):
        self._check_input_dim(x)
        if not self.inited:
            self.initialize_parameters(x)

        bias, logs = self._shaped(x)
        y = (x + bias) * torch.exp(logs)
        if not self.logdet:
            return y, None
        # logs is shared by every pixel of every sample
        return y, self.logs.sum() * num_pixels(x)

    def _check_initialized(self):
        if self.training and not self.inited:
            raise ValueError(
                f"[ActNorm]: layer with {self.num_features} features has not been initialized, "
                "run forward on data first"
            )

    def inverse(self, y):
        self._check_input_dim(y)
        self._check_initialized()
        bias, logs = self._shaped(y)
        return y * torch.exp(-logs) - bias

    def backward(self, dy, y):
        self._check_input_dim(y)
        self._check_initialized()
        bias, logs = self._shaped(y)
        x = y * torch.exp(-logs) - bias
        dx = dy * torch.exp(logs)

        dims = spatial_dims(y)
        dbias = dx.sum(dim=dims)
        dlogs = (dy * y).sum(dim=dims)
        if self.logdet:
            dlogs = dlogs - num_pixels(y)

        self._accumulate_grad(self.bias, dbias)
        self._accumulate_grad(self.logs, dlogs)
        return dx, x
