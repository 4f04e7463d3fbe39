import torch
import torch.nn as nn
import torch.nn.functional as F

ACTIVATIONS = {
    "relu": F.relu,
    "leaky_relu": F.leaky_relu,
    "gelu": F.gelu,
    "elu": F.elu,
    "tanh": torch.tanh,
}

_CONVS = {
    2: (nn.Conv2d, nn.ConvTranspose2d),
    3: (nn.Conv3d, nn.ConvTranspose3d),
}


def get_activation(name):
    if name not in ACTIVATIONS:
        raise ValueError(f"Unknown activation function: {name}")
    return ACTIVATIONS[name]


class ResidualBlock(nn.Module):
    """
    Conditioner network of the Glow coupling layer.

    Three convolutions: (k1, s1, p1) -> activation -> (k2, s2, p2) ->
    activation -> transposed (k1, s1, p1). The last stage has no activation
    and produces ``2 * n_out`` channels that the coupling layer splits into a
    log-scale and a shift. It is zero-initialized.
    """

    def __init__(self, n_in, n_hidden, n_out, k1=3, k2=1, p1=1, p2=0, s1=1, s2=1,
                 activation="relu", ndims=2):
        super().__init__()
        if ndims not in _CONVS:
            raise ValueError(f"ResidualBlock supports 2 or 3 spatial dimensions, got {ndims}")
        conv, conv_transpose = _CONVS[ndims]

        self.ndims = ndims
        self.activation = get_activation(activation)
        self.conv1 = conv(n_in, n_hidden, kernel_size=k1, stride=s1, padding=p1)
        self.conv2 = conv(n_hidden, n_hidden, kernel_size=k2, stride=s2, padding=p2)
        self.conv3 = conv_transpose(n_hidden, 2 * n_out, kernel_size=k1, stride=s1, padding=p1)

        nn.init.zeros_(self.conv3.weight)
        nn.init.zeros_(self.conv3.bias)

    def forward(self, x):
        h = self.activation(self.conv1(x))
        h = self.activation(self.conv2(h))
        return self.conv3(h)
