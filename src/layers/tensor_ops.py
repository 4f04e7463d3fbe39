import torch


def tensor_split(x):
    """Bisects the channel axis; the first half gets ``C // 2`` channels."""
    k = x.size(1) // 2
    return x[:, :k], x[:, k:]


def tensor_cat(x1, x2):
    return torch.cat((x1, x2), dim=1)


def spatial_dims(x):
    """Indices of the batch and spatial axes, i.e. every axis except channels."""
    return [0] + list(range(2, x.dim()))


def num_pixels(x):
    n = 1
    for s in x.shape[2:]:
        n *= s
    return n
