# -*- coding: utf-8 -*-
import unittest

import mpmath

import newtonscope as ns
from newtonscope.transform import ViewTransform
import newtonscope.utils as nsutils
import test_config


class Test_view_transform(unittest.TestCase):

    def test_defaults(self):
        view = ViewTransform()
        self.assertEqual(view.formula.expr, ns.settings.default_formula)
        self.assertEqual(view.order, 3)
        self.assertEqual(view.max_iter, ns.settings.default_max_iter)
        self.assertEqual(view.size, ns.settings.default_size)
        self.assertEqual(view.scale, 2)
        self.assertEqual(view.center, 0)
        self.assertEqual(view.relaxation, 1.)

    def test_invalid(self):
        with self.assertRaises(ValueError):
            ViewTransform(scale="0.")
        with self.assertRaises(ValueError):
            ViewTransform(scale="-1.")
        with self.assertRaises(ValueError):
            ViewTransform(order=ns.settings.max_order + 1)
        with self.assertRaises(ValueError):
            ViewTransform(order=0)

    def test_to_plane(self):
        view = ViewTransform(center=("1.0", "-1.0"), scale="0.5")
        self.assertEqual(view.to_plane(0), mpmath.mpc(1, -1))
        self.assertEqual(view.to_plane(1 + 1j), mpmath.mpc(1.5, -0.5))
        self.assertEqual(view.to_plane(-1), mpmath.mpc(0.5, -1))

    def test_move_round_trip(self):
        view = ViewTransform(center=("-0.3", "0.7"), scale="0.25")
        center = view.center
        view.move(0.1, 0.)
        self.assertNotEqual(view.center, center)
        view.move(-0.1, 0.)
        with mpmath.workdps(view.dps):
            self.assertLess(
                abs(view.center - center), mpmath.mpf(10) ** (5 - view.dps)
            )

    def test_move_direction(self):
        # The plane point at screen p is at p + delta after the move
        view = ViewTransform(scale="2.")
        before = view.to_plane(0)
        view.move(0.25, -0.125)
        # normalized screen 0.25 -> 0.5 of normalized coordinates
        after = view.to_plane(0.5 - 0.25j)
        self.assertEqual(before, after)

    def test_zoom_pivot_invariance(self):
        view = ViewTransform(center=("0.1", "-0.2"), scale="1.5")
        for (level, px, py) in [
            (1, 0.5, 0.5),
            (1, 0.1, 0.9),
            (-1, 0.75, 0.3),
            (3, 0., 1.),
            (-2, 0.33, 0.66),
        ]:
            with self.subTest(level=level, px=px, py=py):
                zp = complex(2 * px - 1, 2 * py - 1)
                before = view.to_plane(zp)
                scale = view.scale
                view.zoom(level, px, py)
                after = view.to_plane(zp)
                with mpmath.workdps(view.dps):
                    self.assertLess(
                        abs(after - before),
                        scale * mpmath.mpf(10) ** (3 - view.dps)
                    )
                    ratio = view.scale / scale
                    self.assertAlmostEqual(
                        float(ratio), ns.settings.zoom_ratio ** (-level)
                    )

    def test_deep_zoom_precision(self):
        view = ViewTransform(center=("-0.5", "0.25"), size=512)
        dps0 = view.dps
        for _ in range(800):
            view.zoom(1, 0.6, 0.45)
        # 800 steps: scale ~ 2^-99
        self.assertGreater(view.dps, dps0)
        self.assertGreaterEqual(
            view.dps,
            nsutils.sig_digits(view.scale, view.size) + ns.settings.extra_dps
        )
        # Adjacent pixels are still distinguished
        pix = view.pix
        a = view.to_plane(0)
        b = view.to_plane(complex(2. / view.size, 0.))
        with mpmath.workdps(view.dps):
            self.assertAlmostEqual(float((b - a).real / pix), 1., places=6)

    def test_strings(self):
        view = ViewTransform(center=("0.5", "-1.0"), scale="2.0")
        self.assertEqual(view.scale_str(), "2.0e+0")
        self.assertTrue(view.center_str().startswith("(5.0e-1, -1.0e+0"))
        self.assertIn("ViewTransform(", repr(view))


class Test_utils(unittest.TestCase):

    def test_sci_str(self):
        self.assertEqual(nsutils.sci_str(1), "1.0e+0")
        self.assertEqual(nsutils.sci_str(0), "0.0e+0")
        self.assertEqual(nsutils.sci_str(-0.125, 3), "-1.25e-1")
        self.assertEqual(nsutils.sci_str(mpmath.mpf("1e-100"), 5),
                         "1.0e-100")

    def test_sig_digits(self):
        self.assertEqual(nsutils.sig_digits(2., 512), 4)
        self.assertEqual(nsutils.sig_digits(mpmath.mpf("1e-40"), 500), 44)


if __name__ == "__main__":
    full_test = True
    runner = unittest.TextTestRunner(verbosity=2)
    if full_test:
        runner.run(test_config.suite([Test_view_transform, Test_utils]))
    else:
        suite = unittest.TestSuite()
        suite.addTest(Test_view_transform("test_zoom_pivot_invariance"))
        runner.run(suite)
