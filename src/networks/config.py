from dataclasses import asdict, dataclass

from src.layers.coupling.conditional_coupling_glow import COUPLING_ACTIVATIONS
from src.layers.coupling.residual_block import ACTIVATIONS
from src.layers.squeeze.squeezer import SQUEEZERS


@dataclass
class GlowConfig:
    """
    Construction options of a conditional Glow network.

    The defaults are the MNIST 16x16 configuration: one data and one
    conditioning channel, 2 scales of 10 flow steps.
    """

    n_in: int = 1
    n_cond: int = 1
    n_hidden: int = 32
    L: int = 2
    K: int = 10
    split_scales: bool = True
    rb_activation: str = "relu"
    activation: str = "sigmoid"
    k1: int = 3
    k2: int = 1
    p1: int = 1
    p2: int = 0
    s1: int = 1
    s2: int = 1
    ndims: int = 2
    squeezer: str = "shuffle"

    def __post_init__(self):
        if self.L < 1 or self.K < 1:
            raise ValueError(f"L and K must be at least 1, got L={self.L}, K={self.K}")
        if self.n_in < 1 or self.n_cond < 1 or self.n_hidden < 1:
            raise ValueError("n_in, n_cond and n_hidden must be positive")
        if self.ndims not in (2, 3):
            raise ValueError(f"ndims must be 2 or 3, got {self.ndims}")
        if self.rb_activation not in ACTIVATIONS:
            raise ValueError(f"Unknown activation function: {self.rb_activation}")
        if self.activation not in COUPLING_ACTIVATIONS:
            raise ValueError(f"Unknown coupling activation: {self.activation}")
        if self.squeezer not in SQUEEZERS:
            raise ValueError(f"Unknown squeeze type: {self.squeezer}")


def default_config(**overrides):
    """
    Returns a GlowConfig with optional keyword overrides.
    """
    params = asdict(GlowConfig())
    params.update(overrides)
    return GlowConfig(**params)
