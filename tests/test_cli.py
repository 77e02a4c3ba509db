"""
Tests for the command-line driver, figures and the toy dataset.
"""
import numpy as np
import pytest
import matplotlib.pyplot as plt

from examples_synthetic import direct_window, ricker, synth
from marchenko import Marchenko
from marchenko_cli import main, nmse_db, parse_args
from marchenko_plot import plot_focusing_functions, plot_greens_functions, plot_reflectivity


class TestSynth:

    def test_shapes(self):
        R, direct, theta, ro = synth(nt=128, ns=7)
        assert R.shape == (128, 7, 7)
        assert direct.shape == theta.shape == (128, 7)
        assert ro.shape == (7,)

    def test_window_excludes_direct_arrival(self):
        R, direct, theta, ro = synth(nt=256, ns=9)
        peaks = np.argmax(direct, axis=0)
        assert not np.any(theta[peaks, np.arange(9)])
        # time-reversed direct arrival is outside the window as well
        assert not np.any(theta[256 - peaks, np.arange(9)])

    def test_reciprocal_reflectivity(self):
        R, _, _, _ = synth(nt=128, ns=5)
        np.testing.assert_allclose(R, np.transpose(R, (0, 2, 1)))

    def test_ricker_peak(self):
        assert ricker(np.array([0.0]), 25.0)[0] == 1.0

    def test_direct_window(self):
        t = np.linspace(-1.0, 1.0, 21)
        theta = direct_window(t, np.array([0.5]), 0.0)
        np.testing.assert_array_equal(theta[:, 0], (np.abs(t) < 0.5).astype(float))


class TestFigures:

    def test_all_figures(self, toy_survey, tmp_path):
        res = Marchenko(**toy_survey, nitr=1).run(truth=toy_survey["direct"])
        figs = [
            plot_reflectivity(toy_survey["R"], res.ro, toy_survey["dt"], shots=[0, 2, 4, 8],
                              outpng=str(tmp_path / "r.png"), show=False),
            plot_focusing_functions(res, 1, outpng=str(tmp_path / "f.png"), show=False),
            plot_greens_functions(res, outpng=str(tmp_path / "g.png"), show=False),
        ]
        assert len(figs[2].axes) == 4
        assert figs[1].axes[1].get_title() == r"$f_{1}^+$"
        for name in ("r.png", "f.png", "g.png"):
            assert (tmp_path / name).exists()
        for fig in figs:
            plt.close(fig)

    def test_greens_without_truth(self, toy_survey):
        res = Marchenko(**toy_survey, nitr=1).run()
        fig = plot_greens_functions(res, show=False)
        assert len(fig.axes) == 3
        plt.close(fig)


class TestCLI:

    def test_synthetic_run(self, tmp_path):
        res = main(["--mode", "synthetic", "--nt", "256", "--ns", "9", "--nitr", "2",
                    "--no-show", "--outfig", str(tmp_path / "fig"),
                    "--save-npy-prefix", str(tmp_path / "out")])
        for name in ("fig_R.png", "fig_focusing.png", "fig_greens.png",
                     "out_g_total.npy", "out_fk_plus.npy"):
            assert (tmp_path / name).exists()
        np.testing.assert_array_equal(np.load(tmp_path / "out_g_total.npy"), res.g_total)

    def test_from_npy(self, tmp_path, toy_survey):
        for key in ("R", "direct", "theta"):
            np.save(tmp_path / f"{key}.npy", toy_survey[key])
        res = main(["--mode", "from-npy", "--input-r", str(tmp_path / "R.npy"),
                    "--input-td", str(tmp_path / "direct.npy"),
                    "--input-theta", str(tmp_path / "theta.npy"),
                    "--input-gt", str(tmp_path / "direct.npy"),
                    "--dx", str(toy_survey["dx"]), "--nitr", "1", "--no-plot"])
        assert res.truth is not None
        assert np.isfinite(nmse_db(res.g_total, res.truth))

    def test_from_npy_requires_inputs(self):
        with pytest.raises(SystemExit):
            parse_args(["--mode", "from-npy"])

    def test_defaults(self):
        args = parse_args([])
        assert (args.nitr, args.tp, args.scaling) == (5, 0.2, 1.0)
        assert (args.dt, args.dx, args.o_min) == (0.002, 16.0, 4.0)

    def test_nmse_identical(self):
        x = np.random.default_rng(0).standard_normal((10, 3))
        assert nmse_db(x, x) < -100.0
