# -*- coding: utf-8 -*-
import pickle
import unittest

import mpmath

from newtonscope.errors import FormulaError
from newtonscope.numpy_utils.expr_parser import Formula, func_parser
import test_config


class Test_formula(unittest.TestCase):

    def test_polynomial(self):
        f = Formula("z^3 - 1")
        self.assertTrue(f.is_polynomial)
        self.assertEqual(f.degree, 3)
        self.assertEqual(f.default_order, 3)
        self.assertEqual(f.coefficients, [-1, 0, 0, 1])

        f = Formula("(z - 1) * (z + 1) / 2")
        self.assertEqual(f.coefficients, [-0.5, 0, 0.5])

        # imaginary unit, both notations
        f = Formula("z**2 + i * z + 2j")
        self.assertEqual(
            f.coefficients, [mpmath.mpc(0, 2), mpmath.mpc(0, 1), 1]
        )

    def test_literal_precision(self):
        with mpmath.workdps(50):
            f = Formula("z - 0.1")
            self.assertEqual(f.coefficients[0], -mpmath.mpf("0.1"))
            g = Formula("z - 1/3")
            self.assertEqual(g.coefficients[0], -mpmath.mpf(1) / 3)

    def test_constant_order(self):
        f = Formula("2")
        self.assertEqual(f.degree, 0)
        self.assertEqual(f.default_order, 1)

    def test_degree_limit(self):
        Formula("z^6 + z")
        self.assertEqual(Formula("(z^2 + 1)^3").degree, 6)
        with self.assertRaises(FormulaError):
            Formula("z^7 - 1")
        with self.assertRaises(FormulaError):
            Formula("(z^2 + 1)^4")
        # Rejected before the product is expanded
        with self.assertRaises(FormulaError) as cm:
            Formula("z^200000")
        self.assertIn("200000", str(cm.exception))
        with self.assertRaises(FormulaError):
            Formula("(z + 1)^(10^12)")
        # Constant powers are not expanded
        f = Formula("(z - z)^100000 + z")
        self.assertEqual(f.degree, 1)

    def test_analytic(self):
        f = Formula("sin(z) - z / 2")
        self.assertFalse(f.is_polynomial)
        self.assertIsNone(f.degree)
        self.assertEqual(f.default_order, 6)
        z = mpmath.mpc(0.3, -0.2)
        self.assertAlmostEqual(
            complex(f(z)), complex(mpmath.sin(z) - z / 2), places=12
        )
        d = f.derivatives(z, 2)
        self.assertEqual(len(d), 3)
        self.assertAlmostEqual(
            complex(d[1]), complex(mpmath.cos(z) - 0.5), places=12
        )
        self.assertAlmostEqual(complex(d[2]), complex(-mpmath.sin(z)),
                               places=12)

    def test_polynomial_derivatives(self):
        f = Formula("z^3 - 1")
        z = mpmath.mpc(2, 0)
        self.assertEqual(f.derivatives(z, 4), [7, 12, 12, 6, 0])

    def test_errors(self):
        for expr in (
            "",
            "   ",
            "z^^2",
            "__import__('os')",
            "z.real",
            "x + 1",
            "foo(z)",
            "sin(z, z)",
            "[z]",
            "lambda z: z",
            "z if z else 1",
            "'abc'",
            "z / 0",
        ):
            with self.subTest(expr=expr):
                with self.assertRaises(FormulaError):
                    Formula(expr)

    def test_evaluation_error(self):
        f = Formula("1/z")
        self.assertFalse(f.is_polynomial)
        with self.assertRaises(FormulaError) as cm:
            f.derivatives(mpmath.mpc(0, 0), 2)
        self.assertIn("ZeroDivisionError", str(cm.exception))
        self.assertIn("'1/z'", str(cm.exception))

    def test_func_parser(self):
        code = func_parser("z ^ 2")
        self.assertEqual(code.co_filename, "<formula>")
        with self.assertRaises(FormulaError) as cm:
            func_parser("z +* ")
        self.assertIn("Syntax error", str(cm.exception))

    def test_pickle(self):
        f = Formula("exp(z) - 2")
        g = pickle.loads(pickle.dumps(f))
        self.assertEqual(g.expr, f.expr)
        self.assertEqual(repr(g), "Formula('exp(z) - 2')")


if __name__ == "__main__":
    full_test = True
    runner = unittest.TextTestRunner(verbosity=2)
    if full_test:
        runner.run(test_config.suite([Test_formula]))
    else:
        suite = unittest.TestSuite()
        suite.addTest(Test_formula("test_errors"))
        runner.run(suite)
