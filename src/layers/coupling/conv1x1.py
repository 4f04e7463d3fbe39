import torch
import torch.nn as nn

from src.layers.flow.flow import Flow


class Conv1x1(Flow):
    """
    Invertible 1x1 convolution with an orthogonal weight.

    The weight is the product of three Householder reflections, so the
    log-determinant is zero and the inverse is the transpose.
    """

    def __init__(self, num_channels):
        super().__init__()
        self.num_channels = num_channels
        self.v1 = nn.Parameter(torch.randn(num_channels))
        self.v2 = nn.Parameter(torch.randn(num_channels))
        self.v3 = nn.Parameter(torch.randn(num_channels))

    def weight(self):
        w = torch.eye(self.num_channels, dtype=self.v1.dtype, device=self.v1.device)
        for v in (self.v1, self.v2, self.v3):
            h = torch.eye(self.num_channels, dtype=v.dtype, device=v.device)
            h = h - 2.0 * torch.outer(v, v) / torch.dot(v, v)
            w = w @ h
        return w

    def forward(self, x):
        return torch.einsum("ij,bj...->bi...", self.weight(), x), None

    def inverse(self, y):
        return torch.einsum("ji,bj...->bi...", self.weight(), y)

    def backward(self, dy, y):
        with torch.no_grad():
            x = self.inverse(y)
        dx, = self._local_vjp(self.forward, (x,), dy)
        return dx, x
