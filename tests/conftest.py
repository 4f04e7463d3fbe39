import pytest
import torch.nn as nn
from src.layers.coupling.residual_block import ResidualBlock


def _randomize(network, std=0.05):
    """Give the zero-initialized residual block outputs random weights."""
    for module in network.modules():
        if isinstance(module, ResidualBlock):
            nn.init.normal_(module.conv3.weight, std=std)
            nn.init.normal_(module.conv3.bias, std=std)
    return network


@pytest.fixture
def randomize():
    """
    A freshly built network is the identity map, its coupling layers start
    from zero. Tests that need a non-trivial network randomize it first.
    """
    return _randomize
