from .conditional_coupling_glow import ConditionalLayerGlow
from .conv1x1 import Conv1x1
from .residual_block import ResidualBlock

__all__ = ["ConditionalLayerGlow", "Conv1x1", "ResidualBlock"]
