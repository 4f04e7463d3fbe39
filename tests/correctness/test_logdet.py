"""
Test log-determinant computation of the conditional Glow network.

The network log-determinant must be the plain sum of the contributions of
every ActNorm and coupling layer, and for a single sample it must agree with
the determinant of the Jacobian computed by torch.autograd.functional.jacobian.
"""

import pytest
import torch
import numpy as np
from src.layers.tensor_ops import tensor_split
from src.networks.conditional_glow import NetworkConditionalGlow


def warm_up(network, x, c):
    """Runs the data-dependent ActNorm initialization, then freezes it."""
    with torch.no_grad():
        network(x, c)
    network.eval()
    return network


def layer_logdets(network, x, c):
    """Walks the layer grid by hand and collects every log-determinant."""
    logdets = []
    c, _ = network.an_c(c)
    for i in range(network.L):
        if network.split_scales:
            x = network.squeezer(x)
            c = network.squeezer(c)
        for j in range(network.K):
            x, logdet = network.an[i][j](x)
            logdets.append(logdet)
            x, logdet = network.cl[i][j](x, c)
            logdets.append(logdet)
        if network.split_scales and i < network.L - 1:
            x, _ = tensor_split(x)
    return logdets


def compute_jacobian_logdet(network, x, c):
    """log|det J| of x -> zx for a single sample."""
    def flow_fn(x_flat):
        zx, _ = network(x_flat.reshape(x.shape), c)
        return zx.reshape(-1)

    jacobian = torch.autograd.functional.jacobian(flow_fn, x.reshape(-1))
    _, logabsdet = torch.linalg.slogdet(jacobian)
    return logabsdet


class TestLogDeterminant:

    @pytest.mark.parametrize("split_scales,n_in", [(True, 1), (False, 2)])
    def test_logdet_is_sum_of_layer_logdets(self, randomize, split_scales, n_in):
        torch.manual_seed(42)
        np.random.seed(42)

        network = randomize(NetworkConditionalGlow(n_in, 1, 8, 2, 3, split_scales=split_scales)).double()
        x = torch.randn(4, n_in, 8, 8, dtype=torch.float64)
        c = torch.randn(4, 1, 8, 8, dtype=torch.float64)
        warm_up(network, x, c)

        with torch.no_grad():
            _, logdet = network(x, c)
            contributions = layer_logdets(network, x, c)

        assert len(contributions) == 2 * network.L * network.K
        expected = torch.stack(contributions).sum()
        if not torch.allclose(logdet, expected, atol=1e-10):
            pytest.fail(f"**critical-bug** Log-determinant additivity failed: "
                        f"network {logdet.item():.6e} vs layers {expected.item():.6e}")

    @pytest.mark.parametrize("squeezer", ["shuffle", "haar"])
    def test_logdet_matches_autodiff(self, randomize, squeezer):
        torch.manual_seed(123)
        np.random.seed(123)

        network = randomize(NetworkConditionalGlow(1, 1, 4, 2, 2, squeezer=squeezer), std=0.2).double()
        warm_up(network,
                torch.randn(8, 1, 4, 4, dtype=torch.float64),
                torch.randn(8, 1, 4, 4, dtype=torch.float64))

        x = torch.randn(1, 1, 4, 4, dtype=torch.float64)
        c = torch.randn(1, 1, 4, 4, dtype=torch.float64)
        with torch.no_grad():
            _, logdet = network(x, c)
        logdet_autodiff = compute_jacobian_logdet(network, x, c)

        if not torch.allclose(logdet, logdet_autodiff, atol=1e-8):
            pytest.fail(f"**critical-bug** Log-determinant mismatch: "
                        f"analytic {logdet.item():.6e} vs autodiff {logdet_autodiff.item():.6e}")

    def test_logdet_is_batch_average(self, randomize):
        """Stacking two copies of a batch must not change the log-determinant."""
        torch.manual_seed(9)

        network = randomize(NetworkConditionalGlow(1, 1, 8, 2, 2)).double()
        x = torch.randn(3, 1, 8, 8, dtype=torch.float64)
        c = torch.randn(3, 1, 8, 8, dtype=torch.float64)
        warm_up(network, x, c)

        with torch.no_grad():
            _, logdet = network(x, c)
            _, logdet_doubled = network(torch.cat([x, x]), torch.cat([c, c]))

        assert torch.allclose(logdet, logdet_doubled, atol=1e-10), (
            "**critical-bug** Log-determinant is not a batch average"
        )


if __name__ == "__main__":
    pytest.main([__file__])
