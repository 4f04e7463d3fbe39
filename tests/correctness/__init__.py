"""
Correctness Test Suite for the conditional Glow network

This package contains algorithmic correctness tests for the multiscale network.
Tests are designed to catch critical bugs through rigorous mathematical verification.

Test Modules:
- test_invertibility.py: Tests forward/inverse consistency for 2D/3D, with and without splitting
- test_logdet.py: Validates log-determinant additivity and compares it against autodiff
- test_gradients.py: Verifies the manual backward pass against autodiff and finite differences
- test_shapes.py: Tests channel/shape bookkeeping across scales

Failures of the numerical checks (reconstruction, log-determinant and gradient
mismatches) carry the **critical-bug** tag for automatic indexing. Shape
bookkeeping tests use plain assertions.
"""

TEST_MODULES = [
    "test_invertibility",
    "test_logdet",
    "test_gradients",
    "test_shapes",
]

FLOW_CLASSES_TESTED = [
    "ActNorm",
    "ConditionalLayerGlow",
    "ShuffleSqueeze",
    "HaarSqueeze",
    "NetworkConditionalGlow",
]
