from .squeezer import HaarSqueeze, ShuffleSqueeze, get_squeezer

__all__ = ["ShuffleSqueeze", "HaarSqueeze", "get_squeezer"]
