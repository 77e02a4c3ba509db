# marchenko_plot.py
# -----------------------------------------------------------------------------
# Figures for Marchenko inputs and results: shot gathers of R, focusing
# functions on the two-sided time axis, Green's functions on positive time.
# -----------------------------------------------------------------------------
import numpy as np
import matplotlib.pyplot as plt

from marchenko_operator import zero_time_index

def _finish(fig, outpng=None, show=True):
    if outpng:
        fig.savefig(outpng, dpi=160)
        print(f"[saved] {outpng}")
    if show:
        plt.show()
    return fig

def plot_reflectivity(R_t, ro, dt, shots=None, clip=0.002, seed=None, outpng=None, show=True):
    """Four common-source gathers R(t, x_r = shot, x_s), positive time only."""
    ts, ns = R_t.shape[0], R_t.shape[1]
    if shots is None:
        shots = np.sort(np.random.default_rng(seed).integers(0, ns, size=4))
    it0 = zero_time_index(ts)
    max_t = (ts//2) * dt
    fig, axs = plt.subplots(1, len(shots), figsize=(13, 5), sharey=True, constrained_layout=True)
    for ax, shot in zip(np.atleast_1d(axs), shots):
        ax.imshow(R_t[it0:, shot, :], cmap="gray", aspect="auto", vmin=-clip, vmax=clip,
                  extent=[ro[0], ro[-1], max_t, 0.0])
        ax.set_title(f"Shot Offset {ro[shot]:g}m")
        ax.set_xlabel("Offset (m)")
    np.atleast_1d(axs)[0].set_ylabel("Time (s)")
    return _finish(fig, outpng, show)

def plot_focusing_functions(res, nitr, clip=0.1, outpng=None, show=True):
    """f0+, fk+, f0-, fk- on the centred time axis."""
    panels = [(res.f0_plus, r"$f_0^+$"), (res.fk_plus, rf"$f_{{{nitr}}}^+$"),
              (res.f0_minus, r"$f_0^-$"), (res.fk_minus, rf"$f_{{{nitr}}}^-$")]
    extent = [res.ro[0], res.ro[-1], res.t[-1], res.t[0]]
    fig, axs = plt.subplots(1, 4, figsize=(13, 5), sharey=True, constrained_layout=True)
    for ax, (f, title) in zip(axs, panels):
        ax.imshow(f, cmap="gray", aspect="auto", vmin=-clip, vmax=clip, extent=extent)
        ax.set_title(title)
        ax.set_xlabel("Offset (m)")
    axs[0].set_ylabel("Time (s)")
    return _finish(fig, outpng, show)

def plot_greens_functions(res, clip=0.1, outpng=None, show=True):
    """G-, G+, G_MAR and, when available, G_TRUE on positive time."""
    it0 = zero_time_index(len(res.t))
    panels = [(res.g_minus, r"$G^-$"), (res.g_plus, r"$G^+$"), (res.g_total, r"$G_{MAR}$")]
    if res.truth is not None:
        panels.append((res.truth, r"$G_{TRUE}$"))
    extent = [res.ro[0], res.ro[-1], res.t[-1], 0.0]
    fig, axs = plt.subplots(1, len(panels), figsize=(13, 5), sharey=True, constrained_layout=True)
    for ax, (g, title) in zip(axs, panels):
        ax.imshow(g[it0:], cmap="gray", aspect="auto", vmin=-clip, vmax=clip, extent=extent)
        ax.set_title(title)
        ax.set_xlabel("Offset (m)")
    axs[0].set_ylabel("Time (s)")
    return _finish(fig, outpng, show)
