import torch

from src.layers.coupling.conv1x1 import Conv1x1
from src.layers.coupling.residual_block import ResidualBlock
from src.layers.flow.flow import Flow
from src.layers.tensor_ops import tensor_cat


def _sigmoid2(x):
    return 2.0 * torch.sigmoid(x)


COUPLING_ACTIVATIONS = {
    "sigmoid": torch.sigmoid,
    "sigmoid2": _sigmoid2,
    "exp": torch.exp,
}


class ConditionalLayerGlow(Flow):
    """
    Conditional affine coupling layer with a 1x1 convolution.

    The input is first mixed by an orthogonal 1x1 convolution and split along
    channels into ``x1`` (first ``C // 2`` channels) and ``x2``. A residual
    block sees ``x2`` concatenated with the conditioning tensor and predicts a
    scale ``s`` and shift ``t`` for ``x1``::

        y1 = s * x1 + t,    y2 = x2

    The log-determinant is ``sum(log|s|)`` averaged over the batch.

    Args:
        n_in (int): Number of channels of the transformed tensor.
        n_cond (int): Number of channels of the conditioning tensor.
        n_hidden (int): Hidden channels of the residual block.
        activation (str): Map from predicted log-scale to scale, one of
            ``sigmoid``, ``sigmoid2`` or ``exp``.
        rb_activation (str): Nonlinearity inside the residual block.
    """

    def __init__(self, n_in, n_cond, n_hidden, k1=3, k2=1, p1=1, p2=0, s1=1, s2=1,
                 logdet=True, activation="sigmoid", rb_activation="relu", ndims=2):
        super().__init__()
        if n_in < 2:
            raise ValueError(f"Coupling layer needs at least 2 channels to split, got {n_in}")
        if activation not in COUPLING_ACTIVATIONS:
            raise ValueError(f"Unknown coupling activation: {activation}")

        self.n_in = n_in
        self.n_cond = n_cond
        self.ndims = ndims
        self.logdet = logdet
        self.split_len = n_in // 2
        self.activation = COUPLING_ACTIVATIONS[activation]

        self.conv1x1 = Conv1x1(n_in)
        self.rb = ResidualBlock(
            n_in - self.split_len + n_cond, n_hidden, self.split_len,
            k1=k1, k2=k2, p1=p1, p2=p2, s1=s1, s2=s2,
            activation=rb_activation, ndims=ndims,
        )

    def _check_input_dim(self, x, c):
        if x.dim() != self.ndims + 2 or c.dim() != self.ndims + 2:
            raise ValueError(
                f"[ConditionalLayerGlow]: expected {self.ndims + 2}-dimensional tensors, "
                f"got {tuple(x.shape)} and {tuple(c.shape)}"
            )
        if x.size(1) != self.n_in:
            raise ValueError(
                f"[ConditionalLayerGlow]: input should have {self.n_in} channels, got {tuple(x.shape)}"
            )
        if c.size(1) != self.n_cond:
            raise ValueError(
                f"[ConditionalLayerGlow]: condition should have {self.n_cond} channels, got {tuple(c.shape)}"
            )
        if c.size(0) != x.size(0) or c.shape[2:] != x.shape[2:]:
            raise ValueError(
                f"[ConditionalLayerGlow]: condition of shape {tuple(c.shape)} does not match "
                f"batch and spatial size of input {tuple(x.shape)}"
            )

    def _scale_shift(self, x2, c):
        h = self.rb(tensor_cat(x2, c))
        log_s, t = h[:, :self.split_len], h[:, self.split_len:]
        return self.activation(log_s), t

    def forward(self, x, c):
        self._check_input_dim(x, c)
        x, _ = self.conv1x1(x)
        x1, x2 = x[:, :self.split_len], x[:, self.split_len:]

        s, t = self._scale_shift(x2, c)
        y1 = s * x1 + t
        y = tensor_cat(y1, x2)

        if not self.logdet:
            return y, None
        return y, torch.log(torch.abs(s)).sum() / x.size(0)

    def inverse(self, y, c):
        self._check_input_dim(y, c)
        y1, y2 = y[:, :self.split_len], y[:, self.split_len:]

        s, t = self._scale_shift(y2, c)
        x1 = (y1 - t) / s
        return self.conv1x1.inverse(tensor_cat(x1, y2))

    def backward(self, dy, y, c):
        """
        Returns the gradients with respect to the input and the conditioning
        tensor, plus the reconstructed input.
        """
        with torch.no_grad():
            x = self.inverse(y, c)
        dx, dc = self._local_vjp(self.forward, (x, c), dy)
        return dx, x, dc
