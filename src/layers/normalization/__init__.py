from .actnorm import ActNorm

__all__ = ["ActNorm"]
