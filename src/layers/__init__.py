from .flow.flow import Flow
from .normalization.actnorm import ActNorm
from .coupling.conv1x1 import Conv1x1
from .coupling.residual_block import ResidualBlock
from .coupling.conditional_coupling_glow import ConditionalLayerGlow
from .squeeze.squeezer import ShuffleSqueeze, HaarSqueeze, get_squeezer
from .tensor_ops import tensor_split, tensor_cat

__all__ = [
    "Flow",
    "ActNorm",
    "Conv1x1",
    "ResidualBlock",
    "ConditionalLayerGlow",
    "ShuffleSqueeze",
    "HaarSqueeze",
    "get_squeezer",
    "tensor_split",
    "tensor_cat",
]
