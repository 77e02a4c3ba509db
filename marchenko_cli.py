#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
marchenko_cli.py — iterative Marchenko focusing and Green's function retrieval

Inputs (time samples first):
- R      (nt, ns, ns) reflection response, (time, receiver, source)
- T_d    (nt, ns)     direct arrival from the focal point
- theta  (nt, ns)     focusing window
- G      (nt, ns)     optional true Green's function, for comparison

Modes:
- synthetic: toy hyperbolic dataset from examples_synthetic.synth
- from-npy:  load the arrays from .npy files

Dependencies: numpy, scipy, matplotlib
"""

import argparse
import logging
import numpy as np
import matplotlib.pyplot as plt

from marchenko import Marchenko
from marchenko_plot import plot_focusing_functions, plot_greens_functions, plot_reflectivity

# ----------------------------- Common helpers -----------------------------

def pinfo(name, x):
    rms = float(np.sqrt(np.mean(np.abs(x)**2)))
    print(f"{name:>10s}: shape={tuple(x.shape)}, rms={rms:.3e}, max={np.max(np.abs(x)):.3e}")

def nmse_db(est, ref):
    num = np.sum((est - ref)**2); den = np.sum(ref**2) + 1e-12
    return 10.0*np.log10(num/den)

def save_result(prefix, res):
    for name in ("f0_plus", "f0_minus", "fk_plus", "fk_minus", "g_plus", "g_minus", "g_total"):
        np.save(f"{prefix}_{name}.npy", getattr(res, name))
    print(f"[saved] {prefix}_{{f0_plus,f0_minus,fk_plus,fk_minus,g_plus,g_minus,g_total}}.npy")

def report(res):
    print("\n### Results")
    pinfo("fk_plus", res.fk_plus); pinfo("fk_minus", res.fk_minus)
    pinfo("g_plus", res.g_plus); pinfo("g_minus", res.g_minus); pinfo("g_total", res.g_total)
    if res.truth is not None:
        print(f"NMSE (g_total vs truth): {nmse_db(res.g_total, res.truth):7.2f} dB")

def make_figures(R, res, nitr, outfig=None, show=True):
    """Input gathers, focusing functions and Green's functions; outfig is a PNG prefix."""
    figs = [
        plot_reflectivity(R, res.ro, res.t[1]-res.t[0],
                          outpng=f"{outfig}_R.png" if outfig else None, show=False),
        plot_focusing_functions(res, nitr,
                                outpng=f"{outfig}_focusing.png" if outfig else None, show=False),
        plot_greens_functions(res, outpng=f"{outfig}_greens.png" if outfig else None, show=False),
    ]
    if show:
        plt.show()
    else:
        for fig in figs:
            plt.close(fig)

# ----------------------------- CLI -----------------------------

def add_marchenko_args(ap):
    """Solver and survey flags shared with run_marchenko_from_mat.py."""
    ap.add_argument("--nitr", type=int, default=5, help="number of Marchenko iterations")
    ap.add_argument("--tp", type=float, default=0.2, help="taper, fraction of the number of receivers")
    ap.add_argument("--scaling", type=float, default=1.0, help="reflection response amplitude scaling")
    ap.add_argument("--dt", type=float, default=0.002, help="time sampling [s]")
    ap.add_argument("--dx", type=float, default=16.0, help="receiver spacing [m]")
    ap.add_argument("--o-min", type=float, default=4.0, help="initial receiver offset [m]")
    ap.add_argument("--verbose", action="store_true", help="log every iteration")
    return ap

def parse_args(argv=None):
    ap = argparse.ArgumentParser(description="Marchenko focusing functions and Green's functions")
    ap.add_argument("--mode", choices=["synthetic", "from-npy"], default="synthetic",
                    help="synthetic: toy hyperbolic dataset; from-npy: load R/T_d/theta .npy files")
    add_marchenko_args(ap)
    # Synthetic params
    ap.add_argument("--nt", type=int, default=512)
    ap.add_argument("--ns", type=int, default=21)
    ap.add_argument("--v", type=float, default=2000.0, help="medium velocity [m/s]")
    ap.add_argument("--f0", type=float, default=25.0, help="Ricker peak freq [Hz]")
    ap.add_argument("--z-focus", type=float, default=300.0, help="focal depth [m]")
    # NPY input mode
    ap.add_argument("--input-r", type=str, help="path to R.npy (nt×ns×ns)")
    ap.add_argument("--input-td", type=str, help="path to T_d.npy (nt×ns)")
    ap.add_argument("--input-theta", type=str, help="path to theta.npy (nt×ns)")
    ap.add_argument("--input-gt", type=str, default=None, help="optional true Green's function .npy (nt×ns)")
    # Outputs
    ap.add_argument("--outfig", type=str, default="marchenko", help="prefix for output PNG figures")
    ap.add_argument("--save-npy-prefix", type=str, default=None, help="prefix to save outputs as .npy")
    ap.add_argument("--no-show", action="store_true", help="do not open matplotlib windows")
    ap.add_argument("--no-plot", action="store_true", help="skip figures altogether")
    args = ap.parse_args(argv)
    if args.mode == "from-npy" and not (args.input_r and args.input_td and args.input_theta):
        ap.error("--input-r, --input-td and --input-theta are required for from-npy mode")
    return args

def main(argv=None):
    args = parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.INFO, format="%(message)s")

    truth = None
    if args.mode == "synthetic":
        from examples_synthetic import synth
        R, direct, theta, _ = synth(nt=args.nt, dt=args.dt, ns=args.ns, dx=args.dx,
                                    o_min=args.o_min, v=args.v, f0=args.f0, z_focus=args.z_focus)
        print("### Synthesis")
    else:
        R = np.load(args.input_r)
        direct = np.load(args.input_td)
        theta = np.load(args.input_theta)
        if args.input_gt:
            truth = np.load(args.input_gt)
        print("### Loaded")
    pinfo("R", R); pinfo("T_d", direct); pinfo("theta", theta)

    mar = Marchenko(R, direct, theta, dt=args.dt, dx=args.dx, o_min=args.o_min,
                    nitr=args.nitr, tp=args.tp, scaling=args.scaling)
    print(f"### Marchenko running ... nitr={args.nitr}, tp={args.tp}")
    res = mar.run(truth=truth)
    report(res)

    if args.save_npy_prefix:
        save_result(args.save_npy_prefix, res)
    if not args.no_plot:
        make_figures(R, res, args.nitr, outfig=args.outfig, show=(not args.no_show))
    return res

if __name__ == "__main__":
    main()
