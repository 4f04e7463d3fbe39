import torch
import torch.nn as nn


class Flow(nn.Module):
    """
    Base class for invertible layers.

    Every layer exposes three passes: ``forward`` (x -> y plus an optional
    log-determinant), ``inverse`` (y -> x) and ``backward``, which takes an
    output-space gradient together with the layer *output* and returns the
    input-space gradient along with the reconstructed input. Parameter
    gradients are accumulated into ``.grad`` so that a network can be trained
    without keeping an autograd graph of the whole stack in memory.
    """

    def forward(self, x, *args):
        """
        Computes y = f(x).

        Returns:
            torch.Tensor: The transformed tensor.
            torch.Tensor or None: The log-determinant of the Jacobian of f,
                averaged over the batch, or None if the layer does not report it.
        """
        raise NotImplementedError

    def inverse(self, y, *args):
        """
        Computes x = f^{-1}(y).
        """
        raise NotImplementedError

    def backward(self, dy, y, *args):
        """
        Pulls the gradient ``dy`` back through the layer.

        Returns:
            torch.Tensor: The gradient with respect to the layer input.
            torch.Tensor: The layer input, reconstructed from ``y``.
        """
        raise NotImplementedError

    @staticmethod
    def _accumulate_grad(param, grad):
        if not param.requires_grad or grad is None:
            return
        if param.grad is None:
            param.grad = grad.detach().clone()
        else:
            param.grad += grad.detach()

    def _local_vjp(self, fn, inputs, dy):
        """
        Re-runs ``fn`` on detached copies of ``inputs`` and takes a single
        vector-Jacobian product with ``dy``.

        The objective is ``<f(x), dy> - logdet``, i.e. the log-determinant
        enters with the sign it has in a negative log-likelihood. Gradients of
        the layer parameters are accumulated, gradients of ``inputs`` are
        returned in order.
        """
        params = [p for p in self.parameters() if p.requires_grad]
        inputs = [t.detach().requires_grad_(True) for t in inputs]
        with torch.enable_grad():
            y, logdet = fn(*inputs)
            objective = (y * dy).sum()
            if logdet is not None:
                objective = objective - logdet
            grads = torch.autograd.grad(objective, inputs + params, allow_unused=True)

        for p, g in zip(params, grads[len(inputs):]):
            self._accumulate_grad(p, g)

        input_grads = []
        for t, g in zip(inputs, grads[:len(inputs)]):
            input_grads.append(torch.zeros_like(t) if g is None else g.detach())
        return input_grads
