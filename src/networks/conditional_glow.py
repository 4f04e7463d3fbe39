import logging
from dataclasses import asdict

import torch
import torch.nn as nn

from src.layers.coupling.conditional_coupling_glow import ConditionalLayerGlow
from src.layers.flow.flow import Flow
from src.layers.normalization.actnorm import ActNorm
from src.layers.squeeze.squeezer import get_squeezer
from src.layers.tensor_ops import tensor_cat, tensor_split
from src.networks.config import GlowConfig

logger = logging.getLogger(__name__)


class NetworkConditionalGlow(Flow):
    """
    Conditional invertible network based on Glow (Kingma & Dhariwal, 2018).

    Every flow step of the inner loop is an activation normalization followed
    by a conditional coupling layer with a 1x1 convolution and a residual
    block. The outer loop squeezes data and condition before the inner loop
    and, except after the last scale, splits the data in half along channels:
    one half continues through the next scale, the other is kept for the
    output.

    Args:
        n_in (int): Channels of the data tensor.
        n_cond (int): Channels of the conditioning tensor.
        n_hidden (int): Hidden channels of the residual blocks.
        L (int): Number of scales (outer loop).
        K (int): Number of flow steps per scale (inner loop).
        split_scales (bool): Squeeze before and split after every scale. When
            False, no squeeze or split takes place and every layer sees
            ``n_in`` channels.
        ndims (int): Number of spatial dimensions, 2 or 3.
        squeezer (str): ``shuffle`` or ``haar``.

    Usage::

        zx, logdet = G(x, c)
        x = G.inverse(zx, c)
        dx, x, dc = G.backward(dzx, zx, c)

    ``backward`` folds the gradient of ``-logdet`` into the parameter and
    input gradients, so ``G.backward(zx / batch_size, zx, c)`` yields the
    gradient of ``0.5 * ||zx||^2 / batch_size - logdet``.

    Trainable parameters live in ``G.an[i][j]``, ``G.cl[i][j]`` and
    ``G.an_c``. Parameter gradients are accumulated by ``backward``, a single
    network instance should therefore serve one backward call at a time.
    """

    def __init__(self, n_in, n_cond, n_hidden, L, K, split_scales=True, rb_activation="relu",
                 k1=3, k2=1, p1=1, p2=0, s1=1, s2=1, ndims=2, squeezer="shuffle",
                 activation="sigmoid"):
        super().__init__()
        self.config = GlowConfig(
            n_in=n_in, n_cond=n_cond, n_hidden=n_hidden, L=L, K=K, split_scales=split_scales,
            rb_activation=rb_activation, activation=activation, k1=k1, k2=k2, p1=p1, p2=p2,
            s1=s1, s2=s2, ndims=ndims, squeezer=squeezer,
        )
        self.n_in = n_in
        self.n_cond = n_cond
        self.L = L
        self.K = K
        self.ndims = ndims
        self.split_scales = split_scales
        self.squeezer = get_squeezer(squeezer, ndims)
        self.channel_factor = self.squeezer.channel_factor if split_scales else 1
        self.scale_channels = self._scale_channels(n_in, n_cond)

        # the condition does not enter the likelihood
        self.an_c = ActNorm(n_cond, logdet=False)
        self.an = nn.ModuleList()
        self.cl = nn.ModuleList()
        for n_x, n_c in self.scale_channels:
            self.an.append(nn.ModuleList([ActNorm(n_x, logdet=True) for _ in range(K)]))
            self.cl.append(nn.ModuleList([
                ConditionalLayerGlow(
                    n_x, n_c, n_hidden, k1=k1, k2=k2, p1=p1, p2=p2, s1=s1, s2=s2,
                    logdet=True, activation=activation, rb_activation=rb_activation, ndims=ndims,
                )
                for _ in range(K)
            ]))

        logger.debug("Built NetworkConditionalGlow with L=%d, K=%d, channels per scale %s",
                     L, K, self.scale_channels)

    @classmethod
    def from_config(cls, config):
        return cls(**asdict(config))

    def _scale_channels(self, n_in, n_cond):
        """(data, condition) channels seen by the layers of every scale."""
        channels = []
        for i in range(self.L):
            n_in *= self.channel_factor
            n_cond *= self.channel_factor
            channels.append((n_in, n_cond))
            if self.split_scales and i < self.L - 1:
                n_in //= 2
        return tuple(channels)

    def split_shapes(self, shape):
        """
        Shapes of the latent fragments split off after every scale but the
        last, for a data tensor of the given shape.
        """
        if not self.split_scales:
            return ()
        if len(shape) != self.ndims + 2:
            raise ValueError(f"Expected a {self.ndims + 2}-dimensional shape, got {tuple(shape)}")
        if shape[1] != self.n_in:
            raise ValueError(f"Expected {self.n_in} data channels, got shape {tuple(shape)}")

        batch_size, spatial = shape[0], list(shape[2:])
        shapes = []
        for n_x, _ in self.scale_channels[:-1]:
            spatial = [s // 2 for s in spatial]
            shapes.append((batch_size, n_x - n_x // 2, *spatial))
        return tuple(shapes)

    def _final_shape(self, shape):
        spatial = [s // 2 ** self.L for s in shape[2:]]
        return (shape[0], self.scale_channels[-1][0], *spatial)

    def _resolve_z_dims(self, zx, z_dims):
        if z_dims is None:
            return self.split_shapes(zx.shape)

        z_dims = tuple(tuple(int(d) for d in s) for s in z_dims)
        if len(z_dims) != self.L - 1:
            raise ValueError(
                f"Expected {self.L - 1} split shapes, got {len(z_dims)}; run forward first"
            )
        batch_size = zx.size(0)
        if z_dims and z_dims[-1][0] != batch_size:
            logger.debug("Patching batch size of split shapes from %d to %d", z_dims[-1][0], batch_size)
            z_dims = tuple((batch_size,) + s[1:] for s in z_dims)
        return z_dims

    def cat_states(self, z_save, x, shape):
        """
        Flattens the kept fragments and the final tensor per sample and
        reshapes their concatenation to ``shape``.
        """
        batch_size = x.size(0)
        flat = [z.reshape(batch_size, -1) for z in z_save] + [x.reshape(batch_size, -1)]
        return torch.cat(flat, dim=1).reshape(shape)

    def split_states(self, zx, z_dims=None):
        """
        Inverse of ``cat_states``: returns the kept fragments, ordered by
        scale, and the tensor that left the last scale.
        """
        z_dims = self._resolve_z_dims(zx, z_dims)
        final_shape = self._final_shape(zx.shape)

        sizes = []
        for s in list(z_dims) + [final_shape]:
            n = 1
            for d in s[1:]:
                n *= d
            sizes.append(n)

        flat = zx.reshape(zx.size(0), -1)
        if sum(sizes) != flat.size(1):
            raise ValueError(
                f"Split shapes {z_dims} do not match a latent tensor of shape {tuple(zx.shape)}"
            )
        pieces = torch.split(flat, sizes, dim=1)
        z_save = [p.reshape(s) for p, s in zip(pieces[:-1], z_dims)]
        return z_save, pieces[-1].reshape(final_shape)

    def forward(self, x, c, return_z_dims=False):
        """
        Maps data ``x`` to latent ``zx`` given the condition ``c``.

        Returns:
            torch.Tensor: ``zx``, with the same shape as ``x``.
            torch.Tensor: The log-determinant, a scalar averaged over the batch.
            tuple: The shapes of the kept fragments, only if ``return_z_dims``.
        """
        orig_shape = x.shape
        z_dims = self.split_shapes(orig_shape)
        c, _ = self.an_c(c)

        logdet = x.new_zeros(())
        z_save = []
        for i in range(self.L):
            if self.split_scales:
                x = self.squeezer(x)
                c = self.squeezer(c)
            for j in range(self.K):
                x, logdet1 = self.an[i][j](x)
                x, logdet2 = self.cl[i][j](x, c)
                logdet = logdet + logdet1 + logdet2
            if self.split_scales and i < self.L - 1:
                x, z = tensor_split(x)
                z_save.append(z)

        if self.split_scales:
            x = self.cat_states(z_save, x, orig_shape)
        if return_z_dims:
            return x, logdet, z_dims
        return x, logdet

    def _check_initialized(self):
        if self.training and not all(an.inited for row in self.an for an in row):
            raise ValueError(
                "ActNorm layers are not initialized, run forward on a data batch before "
                "inverse or backward"
            )

    def forward_c(self, c):
        """Brings the condition into the shape it has at the last scale."""
        c, _ = self.an_c(c)
        if self.split_scales:
            for _ in range(self.L):
                c = self.squeezer(c)
        return c

    @torch.no_grad()
    def inverse(self, zx, c, z_dims=None):
        """
        Reconstructs ``x`` from ``zx`` and the condition ``c``.

        ``z_dims`` are optional split shapes as returned by
        ``forward(..., return_z_dims=True)``; a differing batch size is patched.
        """
        self._check_initialized()
        c = self.forward_c(c)
        if self.split_scales:
            z_save, x = self.split_states(zx, z_dims)
        else:
            x = zx

        for i in reversed(range(self.L)):
            if self.split_scales and i < self.L - 1:
                x = tensor_cat(x, z_save[i])
            for j in reversed(range(self.K)):
                x = self.cl[i][j].inverse(x, c)
                x = self.an[i][j].inverse(x)
            if self.split_scales:
                x = self.squeezer.inverse(x)
                c = self.squeezer.inverse(c)
        return x

    @torch.no_grad()
    def backward(self, dzx, zx, c, z_dims=None):
        """
        Propagates ``dzx`` from the latent space back to the data space.

        Returns:
            torch.Tensor: The gradient with respect to ``x``.
            torch.Tensor: ``x``, reconstructed from ``zx``.
            torch.Tensor: The gradient with respect to the condition ``c``.
        """
        self._check_initialized()
        c = self.forward_c(c)
        if self.split_scales:
            dz_save, dx = self.split_states(dzx, z_dims)
            z_save, x = self.split_states(zx, z_dims)
        else:
            dx, x = dzx, zx

        dc_total = torch.zeros_like(c)
        for i in reversed(range(self.L)):
            if self.split_scales and i < self.L - 1:
                x = tensor_cat(x, z_save[i])
                dx = tensor_cat(dx, dz_save[i])
            for j in reversed(range(self.K)):
                dx, x, dc = self.cl[i][j].backward(dx, x, c)
                dx, x = self.an[i][j].backward(dx, x)
                dc_total = dc_total + dc
            if self.split_scales:
                # squeezing is orthogonal, its adjoint is the inverse
                dc_total = self.squeezer.inverse(dc_total)
                c = self.squeezer.inverse(c)
                x = self.squeezer.inverse(x)
                dx = self.squeezer.inverse(dx)

        dc_total, _ = self.an_c.backward(dc_total, c)
        return dx, x, dc_total


def NetworkConditionalGlow3D(*args, **kwargs):
    """Volumetric variant, inputs are (B, C, D, H, W)."""
    kwargs["ndims"] = 3
    return NetworkConditionalGlow(*args, **kwargs)


def default_network():
    """The network of the MNIST 16x16 inpainting experiment."""
    return NetworkConditionalGlow.from_config(GlowConfig())
