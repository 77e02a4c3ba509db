# marchenko_operator.py
# -----------------------------------------------------------------------------
# Spectral convolution engine and time-window operator for Marchenko focusing:
#   B(ω, x_r) = Σ_s A(ω, x_s) R(ω, x_r, x_s) tap(x_s)
# plus the FFT / time-centring primitives every domain switch goes through.
# -----------------------------------------------------------------------------
import numpy as np
from scipy.signal.windows import tukey
from scipy.sparse.linalg import LinearOperator

# ----------------------------- Domain switching -----------------------------

def fft_t(x):
    """Forward FFT along time (axis 0)."""
    return np.fft.fft(x, axis=0)

def ifft_t(X):
    """Inverse FFT along time, real part only (imaginary residue is noise)."""
    return np.fft.ifft(X, axis=0).real

def flip_t(x):
    """Time reversal along axis 0."""
    return np.flip(x, axis=0)

def center_time_zero(x):
    """
    Move zero lag from sample 0 to the centre sample (ts - ts//2).

    A circular convolution of two centred fields has its zero lag at sample 0;
    this puts it back on the centred axis. Inverse: uncenter_time_zero.
    """
    return np.fft.ifftshift(x, axes=0)

def uncenter_time_zero(x):
    return np.fft.fftshift(x, axes=0)

def zero_time_index(ts):
    """Index of t=0 on the centred time axis."""
    return ts - ts//2

def time_axis(ts, dt):
    """Centred time axis (s) matching center_time_zero."""
    return (np.arange(ts) - zero_time_index(ts)) * dt

def marchenko_taper(ns, tp):
    """
    Tukey taper across channels; tp is the tapered fraction of the aperture.
    tp=0 → boxcar, tp=1 → Hann.
    """
    return tukey(ns, alpha=tp, sym=True)

# ----------------------------- Engine -----------------------------

def mdc(A, R, tap):
    """
    Multidimensional convolution in the frequency domain.

    Parameters
    ----------
    A : complex array, shape (nf, ns)
        One spectrum per source position.
    R : complex array, shape (nf, nr, ns)
        Reflection response, (frequency, receiver, source).
    tap : array, shape (ns,)

    Returns
    -------
    B : complex array, shape (nf, nr)
    """
    nf, nr, ns = R.shape
    B = np.zeros((nf, nr), dtype=np.result_type(A, R, np.complex128))
    # fixed source order keeps the sum reproducible run to run
    for isrc in range(ns):
        B += (A[:, isrc] * tap[isrc])[:, None] * R[:, :, isrc]
    return B

def mdc_adjoint(B, R, tap):
    """Adjoint of mdc: A(ω, x_s) = tap(x_s) Σ_r conj(R(ω, x_r, x_s)) B(ω, x_r)."""
    return np.einsum("frs,fr->fs", np.conj(R), B) * tap[None, :]

def windowed_time(X, theta, flip=False):
    """
    Frequency field → centred, windowed time field.

    real(ifft) → center_time_zero → ×theta → optional time reversal.
    """
    x = theta * center_time_zero(ifft_t(X))
    return flip_t(x) if flip else x

def window_operator(X, theta, flip=False):
    """windowed_time, transformed back to the frequency domain."""
    return fft_t(windowed_time(X, theta, flip=flip))

def apply_mute(x, theta):
    """Pre-direct-arrival mute: keep what lies outside the window."""
    return x * (1.0 - theta)

class MDCOperator:
    """
    Tapered multidimensional convolution with a fixed reflection response.

    Acts per frequency as B(ω) = R(ω) diag(tap) A(ω), i.e. a matrix-vector
    product for every frequency slice.
    """
    def __init__(self, R, tap):
        """
        Parameters
        ----------
        R : complex array, shape (nf, ns, ns)
            Frequency-domain reflection response (frequency, receiver, source).
        tap : array, shape (ns,)
            Spatial taper applied over the source axis.
        """
        R = np.asarray(R)
        assert R.ndim == 3
        self.R = R
        self.tap = np.asarray(tap, dtype=np.float64)
        self.nf, self.nr, self.ns = R.shape
        assert self.tap.shape == (self.ns,)

    def forward(self, A):
        """A : (nf, ns) → B : (nf, nr)."""
        assert A.shape == (self.nf, self.ns)
        return mdc(A, self.R, self.tap)

    def adjoint(self, B):
        """B : (nf, nr) → A : (nf, ns)."""
        assert B.shape == (self.nf, self.nr)
        return mdc_adjoint(B, self.R, self.tap)

    def as_linear_operator(self):
        """
        Expose as scipy.sparse.linalg.LinearOperator with matvec/rmatvec on
        vec-stacked frequency data.
        """
        nf, nr, ns = self.nf, self.nr, self.ns
        shape = (nf*nr, nf*ns)
        def mv(x):
            return self.forward(x.reshape(nf, ns)).ravel()
        def rmv(y):
            return self.adjoint(y.reshape(nf, nr)).ravel()
        return LinearOperator(shape=shape, matvec=mv, rmatvec=rmv, dtype=np.complex128)

    # --- sanity & tests -----------------------------------------------------
    def dot_product_test(self, seed=7):
        """
        Check <M u, v> = <u, M* v>; returns the relative mismatch.
        """
        rng = np.random.default_rng(seed)
        u = rng.standard_normal((self.nf, self.ns)) + 1j*rng.standard_normal((self.nf, self.ns))
        v = rng.standard_normal((self.nf, self.nr)) + 1j*rng.standard_normal((self.nf, self.nr))
        lhs = np.vdot(v.ravel(), self.forward(u).ravel())
        rhs = np.vdot(self.adjoint(v).ravel(), u.ravel())
        num = abs(lhs - rhs); den = abs(lhs) + abs(rhs) + 1e-16
        return float(num / den)
