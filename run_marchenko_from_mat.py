# run_marchenko_from_mat.py
# -----------------------------------------------------------------------------
# Load R, T_d, theta (and optionally the true Green's function) from MATLAB
# files and run the Marchenko solver on them. Settings come from an optional INI
# file; command-line flags take precedence.
# Requires: numpy, scipy, matplotlib, h5py (MATLAB v7.3 files are HDF5).
# -----------------------------------------------------------------------------
import argparse
import configparser
import logging
import os
import numpy as np
import h5py
from scipy.io import loadmat

from marchenko import Marchenko
from marchenko_cli import add_marchenko_args, make_figures, report, save_result

# ------------------------ loading ------------------------

def _single_key(keys, path, key):
    if key is not None:
        if key not in keys:
            raise KeyError(f"Key '{key}' not found in {path}. Available: {keys}")
        return key
    if len(keys) != 1:
        raise KeyError(f"{path} holds {len(keys)} variables {keys}; pass a key")
    return keys[0]

def _load_mat73(path, key=None):
    """v7.3 MAT files are HDF5 and store arrays column-major: reverse the axes."""
    with h5py.File(path, "r") as f:
        keys = [k for k in f.keys() if not k.startswith("#")]
        name = _single_key(keys, path, key)
        arr = f[name][()]
    return np.ascontiguousarray(np.transpose(arr))

def load_mat_array(path, key=None):
    """
    Read one array from a .mat file. With no key the file must hold exactly one
    variable (MATLAB importdata behaviour).
    """
    try:
        mat = loadmat(path)
    except NotImplementedError:
        return _load_mat73(path, key)
    keys = [k for k in mat.keys() if not k.startswith("__")]
    return np.asarray(mat[_single_key(keys, path, key)])

def load_array(path, key=None):
    """Dispatch on extension: .mat, .npy or .npz."""
    ext = os.path.splitext(path)[1].lower()
    if ext == ".mat":
        arr = load_mat_array(path, key)
    elif ext == ".npy":
        arr = np.load(path)
    elif ext == ".npz":
        with np.load(path) as npz:
            arr = npz[_single_key(list(npz.keys()), path, key)]
    else:
        raise ValueError(f"Unsupported input format '{ext}' for {path}")
    return np.ascontiguousarray(arr.astype(np.float64))

# ------------------------ configuration ------------------------

class Config:
    """INI settings: [marchenko], [survey] and [paths] sections, all optional."""
    def __init__(self, path):
        cfg = configparser.ConfigParser()
        if not cfg.read(path):
            raise FileNotFoundError(f"config file not found: {path}")

        self.nitr = cfg.getint('marchenko', 'nitr', fallback=5)
        self.tp = cfg.getfloat('marchenko', 'tp', fallback=0.2)
        self.scaling = cfg.getfloat('marchenko', 'scaling', fallback=1.0)

        self.dt = cfg.getfloat('survey', 'dt', fallback=0.002)
        self.dx = cfg.getfloat('survey', 'dx', fallback=16.0)
        self.o_min = cfg.getfloat('survey', 'o_min', fallback=4.0)

        self.reflectivity = cfg.get('paths', 'reflectivity', fallback=None)
        self.direct = cfg.get('paths', 'direct', fallback=None)
        self.window = cfg.get('paths', 'window', fallback=None)
        self.truth = cfg.get('paths', 'truth', fallback=None)

    def as_defaults(self):
        """Map onto argparse destinations."""
        return dict(nitr=self.nitr, tp=self.tp, scaling=self.scaling,
                    dt=self.dt, dx=self.dx, o_min=self.o_min,
                    input_r=self.reflectivity, input_td=self.direct,
                    input_theta=self.window, input_gt=self.truth)

def load_config(path):
    return Config(path)

# ------------------------ runner ------------------------

def build_parser():
    ap = argparse.ArgumentParser(description="Run Marchenko redatuming on MATLAB/NumPy input files")
    ap.add_argument("--config", type=str, default=None, help="optional INI file")
    ap.add_argument("--input-r", type=str, default=None, help="reflection response (nt×ns×ns)")
    ap.add_argument("--input-td", type=str, default=None, help="direct arrival (nt×ns)")
    ap.add_argument("--input-theta", type=str, default=None, help="window (nt×ns)")
    ap.add_argument("--input-gt", type=str, default=None, help="optional true Green's function (nt×ns)")
    add_marchenko_args(ap)
    # Output / plot
    ap.add_argument("--out-prefix", type=str, default="marchenko_run")
    ap.add_argument("--plot", action="store_true", help="show figures")
    ap.add_argument("--fig", type=str, default=None, help="optional PNG prefix to save figures")
    return ap

def parse_args(argv=None):
    ap = build_parser()
    # INI values become defaults, explicit flags still win
    pre, _ = ap.parse_known_args(argv)
    if pre.config:
        ap.set_defaults(**load_config(pre.config).as_defaults())
    args = ap.parse_args(argv)
    missing = [flag for flag, val in (("--input-r", args.input_r), ("--input-td", args.input_td),
                                      ("--input-theta", args.input_theta)) if not val]
    if missing:
        ap.error(f"missing inputs: {', '.join(missing)} (flags or [paths] in --config)")
    return args

def run(args):
    if args.verbose:
        logging.basicConfig(level=logging.INFO, format="%(message)s")

    R = load_array(args.input_r)
    direct = load_array(args.input_td)
    theta = load_array(args.input_theta)
    truth = load_array(args.input_gt) if args.input_gt else None
    print(f"[loaded] R{R.shape} T_d{direct.shape} theta{theta.shape}"
          + (f" truth{truth.shape}" if truth is not None else ""))

    mar = Marchenko(R, direct, theta, dt=args.dt, dx=args.dx, o_min=args.o_min,
                    nitr=args.nitr, tp=args.tp, scaling=args.scaling)
    print(f"[Marchenko] running iterations: nitr={args.nitr}")
    res = mar.run(truth=truth)
    report(res)
    save_result(args.out_prefix, res)

    if args.plot or args.fig:
        make_figures(R, res, args.nitr, outfig=args.fig, show=args.plot)
    return res

if __name__ == "__main__":
    run(parse_args())
