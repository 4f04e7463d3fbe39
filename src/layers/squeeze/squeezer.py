import torch

from src.layers.flow.flow import Flow


class ShuffleSqueeze(Flow):
    """
    Space-to-depth rearrangement by a factor of 2 along every spatial axis.

    ``(B, C, H, W) -> (B, 4C, H/2, W/2)`` in 2D and
    ``(B, C, D, H, W) -> (B, 8C, D/2, H/2, W/2)`` in 3D. Channel ``c`` of the
    input expands into the contiguous block ``c * factor ... (c + 1) * factor - 1``.
    The map is a permutation, hence orthogonal: its adjoint is its inverse.
    """

    def __init__(self, ndims=2):
        super().__init__()
        if ndims not in (2, 3):
            raise ValueError(f"Squeeze supports 2 or 3 spatial dimensions, got {ndims}")
        self.ndims = ndims
        self.channel_factor = 2 ** ndims

    def _check_input_dim(self, x, squeeze=True):
        if x.dim() != self.ndims + 2:
            raise ValueError(
                f"[{type(self).__name__}]: expected a {self.ndims + 2}-dimensional tensor, "
                f"got shape {tuple(x.shape)}"
            )
        if squeeze and any(s % 2 for s in x.shape[2:]):
            raise ValueError(
                f"[{type(self).__name__}]: spatial extents must be even, got shape {tuple(x.shape)}"
            )
        if not squeeze and x.size(1) % self.channel_factor:
            raise ValueError(
                f"[{type(self).__name__}]: channels must be a multiple of {self.channel_factor}, "
                f"got shape {tuple(x.shape)}"
            )

    def _to_blocks(self, x):
        # (B, C, *S) -> (B, C, factor, *S/2)
        b, c, *spatial = x.shape
        shape = [b, c]
        for s in spatial:
            shape += [s // 2, 2]
        x = x.reshape(shape)
        perm = [0, 1] + [3 + 2 * i for i in range(self.ndims)] + [2 + 2 * i for i in range(self.ndims)]
        return x.permute(perm).reshape(b, c, self.channel_factor, *[s // 2 for s in spatial])

    def _from_blocks(self, x):
        # (B, C, factor, *S) -> (B, C, *2S)
        b, c, _, *spatial = x.shape
        x = x.reshape(b, c, *([2] * self.ndims), *spatial)
        perm = [0, 1]
        for i in range(self.ndims):
            perm += [2 + self.ndims + i, 2 + i]
        return x.permute(perm).reshape(b, c, *[s * 2 for s in spatial])

    def forward(self, x):
        self._check_input_dim(x)
        blocks = self._to_blocks(x)
        b, c, f, *spatial = blocks.shape
        return blocks.reshape(b, c * f, *spatial)

    def inverse(self, y):
        self._check_input_dim(y, squeeze=False)
        b, c, *spatial = y.shape
        blocks = y.reshape(b, c // self.channel_factor, self.channel_factor, *spatial)
        return self._from_blocks(blocks)

    def backward(self, dy, y):
        return self.inverse(dy), self.inverse(y)


class HaarSqueeze(ShuffleSqueeze):
    """
    Squeeze followed by an orthonormal Haar transform of every 2x2 (2x2x2)
    block, so each output group holds one average and 3 (7) detail bands.
    """

    def _haar(self, like):
        h = torch.ones(1, 1, dtype=like.dtype, device=like.device)
        base = torch.tensor([[1.0, 1.0], [1.0, -1.0]], dtype=like.dtype, device=like.device)
        for _ in range(self.ndims):
            h = torch.kron(h, base)
        return h / (2 ** (self.ndims / 2))

    def forward(self, x):
        self._check_input_dim(x)
        blocks = self._to_blocks(x)
        blocks = torch.einsum("ij,bcj...->bci...", self._haar(x), blocks)
        b, c, f, *spatial = blocks.shape
        return blocks.reshape(b, c * f, *spatial)

    def inverse(self, y):
        self._check_input_dim(y, squeeze=False)
        b, c, *spatial = y.shape
        blocks = y.reshape(b, c // self.channel_factor, self.channel_factor, *spatial)
        # the normalized Hadamard matrix is symmetric and orthogonal
        blocks = torch.einsum("ij,bcj...->bci...", self._haar(y), blocks)
        return self._from_blocks(blocks)


SQUEEZERS = {
    "shuffle": ShuffleSqueeze,
    "haar": HaarSqueeze,
}


def get_squeezer(name, ndims=2):
    if name not in SQUEEZERS:
        raise ValueError(f"Unknown squeeze type: {name}")
    return SQUEEZERS[name](ndims=ndims)
