# marchenko_torch.py
# -----------------------------------------------------------------------------
# PyTorch layer for the tapered multidimensional convolution B = R diag(tap) A,
# applied to real time-domain operands (FFT over time, sum over sources).
# -----------------------------------------------------------------------------
import numpy as np
import torch
from torch import nn

class MDCLayer(nn.Module):
    """
    Differentiable multidimensional convolution with a fixed reflection response.
    Shapes:
      input:  (T, NS) or (B, T, NS) real, time domain
      R_f:    (T, NR, NS) complex, frequency domain (buffer, not trained)
      output: (T, NR) or (B, T, NR) real, time domain, zero lag at sample 0
    Matches marchenko_operator.mdc followed by a real inverse FFT.
    """
    def __init__(self, R_f, tap):
        super().__init__()
        R_f = torch.as_tensor(np.asarray(R_f), dtype=torch.complex128)
        tap = torch.as_tensor(np.asarray(tap), dtype=torch.double)
        assert R_f.ndim == 3 and tap.shape == (R_f.shape[2],)
        self.T, self.NR, self.NS = R_f.shape
        # taper folded into the operator once
        self.register_buffer("weight", R_f * tap[None, None, :].to(torch.complex128))

    def forward(self, A):
        if A.ndim == 2:
            A = A.unsqueeze(0)
        B, T, NS = A.shape
        assert T == self.T and NS == self.NS
        Af = torch.fft.fft(A.to(dtype=torch.double), dim=1)
        Bf = torch.einsum("bfs,frs->bfr", Af, self.weight)
        out = torch.fft.ifft(Bf, dim=1).real
        return out if out.shape[0] > 1 else out[0]

def gradient_check(T=16, NS=4, seed=0):
    torch.manual_seed(seed)
    R_t = torch.randn(T, NS, NS, dtype=torch.double) * 0.1
    R_f = torch.fft.fft(R_t, dim=0)
    tap = torch.hann_window(NS, periodic=False, dtype=torch.double)
    layer = MDCLayer(R_f.numpy(), tap.numpy())
    A = torch.randn(T, NS, dtype=torch.double, requires_grad=True)
    def func(x):
        return layer(x).pow(2).sum()  # simple scalar loss
    ok = torch.autograd.gradcheck(func, (A,), eps=1e-6, atol=1e-5, rtol=1e-5)
    return bool(ok)
