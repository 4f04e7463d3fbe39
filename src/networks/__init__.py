from .config import GlowConfig, default_config
from .conditional_glow import NetworkConditionalGlow, NetworkConditionalGlow3D, default_network

__all__ = [
    "GlowConfig",
    "default_config",
    "NetworkConditionalGlow",
    "NetworkConditionalGlow3D",
    "default_network",
]
