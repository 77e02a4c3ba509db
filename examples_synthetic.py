# examples_synthetic.py
# -----------------------------------------------------------------------------
# Toy inputs for the Marchenko solver: a Ricker direct arrival from a focal point
# in a constant-velocity medium, its window Θ, and a weak flat-interface
# reflection response. Hyperbolic traveltimes only, no wave modelling.
# -----------------------------------------------------------------------------
import numpy as np
import matplotlib.pyplot as plt

from marchenko import Marchenko
from marchenko_operator import time_axis
from marchenko_plot import plot_focusing_functions, plot_greens_functions

def ricker(t, f0):
    pf2 = (np.pi * f0)**2
    return (1 - 2 * pf2 * t**2) * np.exp(-pf2 * t**2)

def direct_window(t, td, eps):
    """Θ = 1 strictly between -t_d + eps and t_d - eps, per trace."""
    return (np.abs(t)[:, None] < (td - eps)[None, :]).astype(np.float64)

def synth(nt=512, dt=0.002, ns=21, dx=16.0, o_min=4.0, v=2000.0, f0=25.0,
          z_focus=300.0, z_refl=120.0, refl=0.2, eps_samples=4):
    """
    Returns
    -------
    R : (nt, ns, ns) reflection response, centred time axis, (time, receiver, source)
    direct : (nt, ns) direct arrival from the focal point to each receiver
    theta : (nt, ns) focusing window
    ro : (ns,) receiver offsets
    """
    t = time_axis(nt, dt)
    ro = o_min + dx*np.arange(ns)
    x_focus = ro[ns//2]

    td = np.sqrt((ro - x_focus)**2 + z_focus**2) / v
    direct = ricker(t[:, None] - td[None, :], f0)
    theta = direct_window(t, td, eps_samples*dt)

    # primary reflection for every source/receiver pair
    R = np.zeros((nt, ns, ns))
    for isrc in range(ns):
        trs = np.sqrt((ro - ro[isrc])**2 + (2*z_refl)**2) / v
        R[:, :, isrc] = refl * ricker(t[:, None] - trs[None, :], f0)
    return R, direct, theta, ro

def main():
    nt, dt, ns, nitr = 512, 0.002, 21, 5
    R, direct, theta, ro = synth(nt=nt, dt=dt, ns=ns)

    mar = Marchenko(R, direct, theta, dt=dt, dx=ro[1]-ro[0], o_min=ro[0], nitr=nitr)
    res = mar.run()
    print(f"peak |fk-| = {np.max(np.abs(res.fk_minus)):.3e}, peak |g-| = {np.max(np.abs(res.g_minus)):.3e}")

    plot_focusing_functions(res, nitr, show=False)
    plot_greens_functions(res, show=False)
    plt.show()

if __name__ == "__main__":
    main()
