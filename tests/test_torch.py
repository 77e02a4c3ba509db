"""
Tests for the differentiable multidimensional convolution layer.
"""
import numpy as np
import pytest

torch = pytest.importorskip("torch")

from marchenko_operator import fft_t, ifft_t, marchenko_taper, mdc
from marchenko_torch import MDCLayer, gradient_check


def make_operator(T=32, NS=5, seed=2):
    rng = np.random.default_rng(seed)
    R_f = fft_t(rng.standard_normal((T, NS, NS)))
    return R_f, marchenko_taper(NS, 0.4)


class TestMDCLayer:

    def test_matches_numpy_engine(self):
        R_f, tap = make_operator()
        A = np.random.default_rng(3).standard_normal((32, 5))
        layer = MDCLayer(R_f, tap)
        out = layer(torch.as_tensor(A)).numpy()
        np.testing.assert_allclose(out, ifft_t(mdc(fft_t(A), R_f, tap)), atol=1e-10)

    def test_batch(self):
        R_f, tap = make_operator()
        A = torch.randn(3, 32, 5, dtype=torch.double)
        out = MDCLayer(R_f, tap)(A)
        assert out.shape == (3, 32, 5)
        np.testing.assert_allclose(out[1].numpy(), MDCLayer(R_f, tap)(A[1]).numpy(), atol=1e-12)

    def test_weight_is_buffer(self):
        R_f, tap = make_operator()
        layer = MDCLayer(R_f, tap)
        assert list(layer.parameters()) == []
        assert "weight" in dict(layer.named_buffers())

    def test_shape_check(self):
        R_f, tap = make_operator()
        with pytest.raises(AssertionError):
            MDCLayer(R_f, tap)(torch.zeros(16, 5, dtype=torch.double))

    def test_gradient_check(self):
        assert gradient_check()
