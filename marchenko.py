# marchenko.py
# -----------------------------------------------------------------------------
# Iterative Marchenko focusing: from the reflection response R, a direct-arrival
# estimate T_d and a window Θ, build the focusing functions f± and retrieve the
# up/down-going Green's functions of a virtual source at the focal point.
#
#   f0+  = T_d(-t)
#   f0-  = Θ R f0+
#   M+_k = Θ R* f-_{k-1}           (R* : time-reversed operand)
#   f-_k = f0- + Θ R M+_k
#   G+   = f+(-t) - R* f-          G- = -f- + R f+
# -----------------------------------------------------------------------------
import logging
from collections import namedtuple
from numbers import Integral

import numpy as np

from marchenko_operator import (
    MDCOperator, apply_mute, center_time_zero, fft_t, flip_t, ifft_t,
    marchenko_taper, time_axis, windowed_time,
)

logger = logging.getLogger(__name__)


class MarchenkoError(ValueError):
    """Precondition failure; a failed run produces no outputs."""

class ShapeMismatchError(MarchenkoError):
    pass

class DegenerateTaperError(MarchenkoError):
    pass

class DegenerateNormalizationError(MarchenkoError):
    """Peak amplitude used as a divisor is zero (identically-zero field)."""


# Solver state between iterations. *_f fields are frequency domain.
MarchenkoState = namedtuple("MarchenkoState", ["fk_minus_f", "fk_minus_tr_f", "mk_plus_f"])

MarchenkoResult = namedtuple("MarchenkoResult", [
    "f0_plus", "f0_minus", "fk_plus", "fk_minus",
    "g_plus", "g_minus", "g_total",
    "truth", "ro", "max_t", "t",
])

# ----------------------------- Boundary checks -----------------------------

def validate_inputs(R, direct, theta):
    """Reject any disagreement in (ts, ns) before the loop starts."""
    if np.ndim(R) != 3:
        raise ShapeMismatchError(f"R must be (ts, ns, ns), got shape {np.shape(R)}")
    ts, nr, ns = np.shape(R)
    if nr != ns:
        raise ShapeMismatchError(f"R receiver/source axes differ: {nr} vs {ns}")
    for name, x in (("direct arrival", direct), ("window", theta)):
        if np.shape(x) != (ts, ns):
            raise ShapeMismatchError(
                f"{name} must have shape {(ts, ns)} to match R, got {np.shape(x)}")
    return ts, ns

def validate_taper_fraction(tp):
    if not 0.0 <= tp <= 1.0:
        raise DegenerateTaperError(f"taper fraction must be in [0, 1], got {tp}")
    return float(tp)

def validate_iterations(nitr):
    if isinstance(nitr, bool) or not isinstance(nitr, Integral) or nitr < 0:
        raise ValueError(f"nitr must be a non-negative integer, got {nitr!r}")
    return int(nitr)

def survey_geometry(ts, ns, dt, dx, o_min):
    """Offsets ro (m) and maximum recording time max_t (s)."""
    ro = o_min + dx*np.arange(ns)
    max_t = (ts//2) * dt
    return ro, max_t

def scale_reflectivity(R_t, dt, dx, scaling=1.0):
    """Scale the time-domain reflection response and go to frequency."""
    return fft_t(np.asarray(R_t, dtype=np.float64) * (-2.0*dt*dx*scaling))

# ----------------------------- Recursion -----------------------------

def initial_focusing(direct, op, theta):
    """
    Zeroth-order focusing functions.

    Returns
    -------
    f0_plus_f : time-reversed direct arrival, frequency domain
    f0_minus_t : first scattered-coda correction, time domain
    """
    f0_plus_f = fft_t(flip_t(direct))
    f0_minus_t = windowed_time(op.forward(f0_plus_f), theta)
    return f0_plus_f, f0_minus_t

def initial_state(f0_minus_t):
    return MarchenkoState(
        fk_minus_f=fft_t(f0_minus_t),
        fk_minus_tr_f=fft_t(flip_t(f0_minus_t)),
        mk_plus_f=np.zeros(f0_minus_t.shape, dtype=np.complex128),
    )

def marchenko_step(state, f0_minus_f, op, theta):
    """One fixed-point update; returns a new state, never touches the old one."""
    mk_plus_raw = op.forward(state.fk_minus_tr_f)
    mk_plus_f = fft_t(windowed_time(mk_plus_raw, theta, flip=True))

    fk_minus_raw = op.forward(mk_plus_f)
    # f0- enters unwindowed; only the new contribution is windowed
    fk_minus_t = ifft_t(f0_minus_f) + windowed_time(fk_minus_raw, theta)

    return MarchenkoState(
        fk_minus_f=fft_t(fk_minus_t),
        fk_minus_tr_f=fft_t(flip_t(fk_minus_t)),
        mk_plus_f=mk_plus_f,
    )

def solve(state, f0_minus_f, op, theta, nitr, callback=None):
    """
    Run exactly nitr updates from state. No convergence test.

    callback(itr, state) is called after every update, if given.
    """
    nitr = validate_iterations(nitr)
    fk_minus_t = ifft_t(state.fk_minus_f)
    for itr in range(1, nitr+1):
        state = marchenko_step(state, f0_minus_f, op, theta)
        fk_next_t = ifft_t(state.fk_minus_f)
        logger.info("[iter %03d] |dfk-| = %.3e", itr, np.linalg.norm(fk_next_t - fk_minus_t))
        fk_minus_t = fk_next_t
        if callback is not None:
            callback(itr, state)
    return state

def downgoing_focusing(f0_plus_f, state):
    """
    fk+ = f0+ + M+ from the last update.

    M+ is not refreshed after the final f- update, so fk+ trails fk- by half
    an iteration; the published recursion is defined this way.
    """
    return f0_plus_f + state.mk_plus_f

def greens_functions(state, fk_plus_f, op):
    """Up/down-going and total Green's functions, time domain (unnormalized)."""
    g_plus_raw = op.forward(state.fk_minus_tr_f)
    g_minus_raw = op.forward(fk_plus_f)
    g_plus = flip_t(ifft_t(fk_plus_f)) - center_time_zero(ifft_t(g_plus_raw))
    g_minus = -ifft_t(state.fk_minus_f) + center_time_zero(ifft_t(g_minus_raw))
    return g_plus, g_minus, g_plus + g_minus

# ----------------------------- Post-processing -----------------------------

def peak_amplitude(x, name="field"):
    peak = float(np.max(np.abs(x)))
    if peak == 0.0 or not np.isfinite(peak):
        raise DegenerateNormalizationError(f"cannot normalize by peak of {name}: {peak}")
    return peak

def normalize(fields, peak):
    """Divide every field by one shared scalar."""
    return tuple(x / peak for x in fields)

# ----------------------------- Engine -----------------------------

class Marchenko:
    def __init__(self, R, direct, theta, dt=0.002, dx=16.0, o_min=4.0,
                 nitr=5, tp=0.2, scaling=1.0):
        """
        R: reflection response (ts, ns, ns), time domain, (time, receiver, source)
        direct: direct arrival T_d (ts, ns), time domain
        theta: window Θ (ts, ns), 1 inside the focusing window
        """
        self.ts, self.ns = validate_inputs(R, direct, theta)
        self.tp = validate_taper_fraction(tp)
        self.nitr = validate_iterations(nitr)
        self.dt, self.dx, self.o_min = float(dt), float(dx), float(o_min)
        self.scaling = float(scaling)

        self.direct = np.asarray(direct, dtype=np.float64)
        self.theta = np.asarray(theta, dtype=np.float64)
        self.tap = marchenko_taper(self.ns, self.tp)
        self.op = MDCOperator(scale_reflectivity(R, self.dt, self.dx, self.scaling), self.tap)
        self.ro, self.max_t = survey_geometry(self.ts, self.ns, self.dt, self.dx, self.o_min)
        logger.debug("Marchenko: ts=%d ns=%d dt=%.4g dx=%.4g tp=%.3f nitr=%d",
                     self.ts, self.ns, self.dt, self.dx, self.tp, self.nitr)

    @property
    def R_f(self):
        return self.op.R

    def time_axis(self):
        return time_axis(self.ts, self.dt)

    def focusing(self, nitr=None, callback=None):
        """
        Focusing functions in the frequency domain.

        Returns (f0_plus_f, f0_minus_f, fk_plus_f, state).
        """
        nitr = self.nitr if nitr is None else nitr
        f0_plus_f, f0_minus_t = initial_focusing(self.direct, self.op, self.theta)
        state = initial_state(f0_minus_t)
        f0_minus_f = state.fk_minus_f
        state = solve(state, f0_minus_f, self.op, self.theta, nitr, callback=callback)
        fk_plus_f = downgoing_focusing(f0_plus_f, state)
        return f0_plus_f, f0_minus_f, fk_plus_f, state

    def run(self, nitr=None, truth=None, callback=None):
        """
        Full pipeline: focusing, Green's functions, normalization and mute.

        truth: optional reference Green's function (ts, ns), normalized by its
        own peak and muted like the estimates.
        """
        if truth is not None and np.shape(truth) != (self.ts, self.ns):
            raise ShapeMismatchError(
                f"truth must have shape {(self.ts, self.ns)}, got {np.shape(truth)}")

        f0_plus_f, f0_minus_f, fk_plus_f, state = self.focusing(nitr=nitr, callback=callback)
        g_plus, g_minus, g_total = greens_functions(state, fk_plus_f, self.op)

        g_plus, g_minus, g_total = normalize((g_plus, g_minus, g_total),
                                             peak_amplitude(g_total, "g_total"))
        f0_plus, f0_minus, fk_plus, fk_minus = (
            ifft_t(X) for X in (f0_plus_f, f0_minus_f, fk_plus_f, state.fk_minus_f))
        f0_plus, f0_minus, fk_plus, fk_minus = normalize(
            (f0_plus, f0_minus, fk_plus, fk_minus), peak_amplitude(fk_plus, "fk_plus"))

        # not required in theory; suppresses noise inside the window
        g_total = apply_mute(g_total, self.theta)
        g_minus = apply_mute(g_minus, self.theta)
        g_plus = apply_mute(g_plus, self.theta)
        if truth is not None:
            truth = np.asarray(truth, dtype=np.float64)
            truth = apply_mute(truth / peak_amplitude(truth, "truth"), self.theta)

        return MarchenkoResult(
            f0_plus=f0_plus, f0_minus=f0_minus, fk_plus=fk_plus, fk_minus=fk_minus,
            g_plus=g_plus, g_minus=g_minus, g_total=g_total,
            truth=truth, ro=self.ro, max_t=self.max_t, t=self.time_axis(),
        )
