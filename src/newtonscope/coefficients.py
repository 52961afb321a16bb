# -*- coding: utf-8 -*-
import logging
import textwrap

import numpy as np
import mpmath

import newtonscope as ns
import newtonscope.settings
from newtonscope.errors import FormulaError


logger = logging.getLogger(__name__)


class CoefficientSet:
    def __init__(self, coeffs, scale=1., order=None):
        """
    An immutable set of bounded-precision Taylor coefficients :math:`c_i`,
    defining the local polynomial :math:`f(sz) = \\sum c_i (sz)^i` with
    :math:`sz = scale \\cdot z'`.

    Parameters
    ==========
    coeffs : array-like of complex
        The coefficients, lowest degree first ; the last slot is only used
        by the derivative ladder. Length order + 2.
    scale : float
        The scale still to be applied at evaluation. Sets produced by
        `generate` have the view scale absorbed in the coefficients and use
        1.
    order : int
        Expansion order, defaults to len(coeffs) - 2
        """
        dtype = np.dtype(ns.settings.evaluation_dtype)
        arr = np.array(coeffs, dtype=dtype).ravel()
        if order is None:
            order = arr.size - 2
        if arr.size != order + 2:
            raise ValueError(
                f"Expected {order + 2} coefficients for order {order}, "
                f"given: {arr.size}"
            )
        if arr.size > ns.settings.coeff_slots:
            raise ValueError(
                f"At most {ns.settings.coeff_slots} coefficients, "
                f"given: {arr.size}"
            )
        arr.setflags(write=False)
        self._coeffs = arr
        self.order = order
        self.scale = float(scale)

    @property
    def coeffs(self):
        return self._coeffs

    @property
    def dtype(self):
        return self._coeffs.dtype

    def __len__(self):
        return self._coeffs.size

    def __getitem__(self, i):
        return self._coeffs[i]

    def __eq__(self, other):
        if not isinstance(other, CoefficientSet):
            return NotImplemented
        return (
            self.order == other.order
            and self.scale == other.scale
            and np.array_equal(self._coeffs, other._coeffs)
        )

    def ladders(self):
        """
        Return the two Horner ladders (f_ladder, df_ladder), each of length
        order + 1, lowest degree first:

            - f_ladder[i] = c_i
            - df_ladder[i] = (i + 1) c_(i+1)
        """
        c = self._coeffs
        weights = np.arange(1, self.order + 2).astype(c.real.dtype)
        return c[:-1].copy(), (c[1:] * weights).astype(c.dtype)

    def __repr__(self):
        return (
            f"CoefficientSet(order={self.order}, scale={self.scale}, "
            f"coeffs={self._coeffs.tolist()})"
        )


class EvaluationContract:
    def __init__(self, coeff_set, max_iter):
        """ The parameters handed to the evaluation stage

        Attributes
        ----------
        scale : float
        order : int
        coeffs : (coeff_slots, 2) float32 array
            real, imaginary parts, padded with zeros
        repmax : int
            The iteration budget
        """
        slots = ns.settings.coeff_slots
        self.scale = coeff_set.scale
        self.order = coeff_set.order
        self.coeffs = np.zeros((slots, 2), dtype=np.float32)
        n = len(coeff_set)
        self.coeffs[:n, 0] = coeff_set.coeffs.real
        self.coeffs[:n, 1] = coeff_set.coeffs.imag
        self.repmax = int(max_iter)

    def as_dict(self):
        return {
            "scale": self.scale,
            "order": self.order,
            "coeffs": self.coeffs.tolist(),
            "repmax": self.repmax,
        }


def generate(center, scale, formula, order, dps=None):
    """
    Local Taylor expansion of the formula, with the view scale absorbed:

    .. math::

        c_i = \\frac{scale^i}{i!} f^{(i)}(center)

    for i = 0 ... order + 1. All computations are done at the arbitrary
    precision `dps` and the results are rounded at the very end to
    ``settings.evaluation_dtype``. As the scale factor is applied before the
    rounding, the coefficients magnitudes do not depend on the zoom depth.

    Parameters
    ----------
    center : mpmath.mpc
        Expansion center
    scale : mpmath.mpf
        Half-width of the view
    formula : `newtonscope.numpy_utils.expr_parser.Formula`
    order : int
        Expansion order, order + 2 <= settings.coeff_slots
    dps : int
        Working decimal precision (default: current mpmath precision)

    Returns
    -------
    coeff_set : `CoefficientSet`

    Raises
    ------
    FormulaError
        If f or its derivatives cannot be evaluated at center, or a
        coefficient does not fit in the bounded-precision type.
    """
    if order + 2 > ns.settings.coeff_slots:
        raise ValueError(
            f"order {order} too high for {ns.settings.coeff_slots} slots"
        )
    n = order + 1
    if dps is None:
        dps = mpmath.mp.dps

    with mpmath.workdps(dps):
        derivs = formula.derivatives(center, n)
        coeffs_mp = []
        factor = mpmath.mpf(1)
        for i, d in enumerate(derivs):
            if i > 0:
                factor = factor * scale / i
            coeffs_mp.append(d * factor)

    coeffs = [complex(c) for c in coeffs_mp]
    dtype = np.dtype(ns.settings.evaluation_dtype)
    with np.errstate(over="ignore"):
        arr = np.array(coeffs, dtype=dtype)
    if not np.all(np.isfinite(arr)):
        raise FormulaError(textwrap.dedent(f"""\
            Non-finite Taylor coefficient for '{formula}' at this location:
            {arr.tolist()}"""
        ))
    logger.debug(f"Generated coefficients (order {order}): {arr.tolist()}")
    return CoefficientSet(arr, scale=1., order=order)
