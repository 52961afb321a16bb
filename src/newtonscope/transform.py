# -*- coding: utf-8 -*-
import logging

import mpmath

import newtonscope as ns
import newtonscope.settings
import newtonscope.utils
from newtonscope.numpy_utils.expr_parser import Formula


logger = logging.getLogger(__name__)


class ViewTransform:
    def __init__(self, *,
            center=None,
            scale=None,
            formula=None,
            max_iter: int = None,
            order: int = None,
            relaxation=1.,
            size: int = None
    ):
        """
The arbitrary-precision state of a view.

A normalized view coordinate :math:`z'` in :math:`[-1, 1] \\times [-1, 1]`
maps to the plane point:

.. math::

    z = center + scale \\cdot z'

Parameters
----------
center : (str, str) or mpmath.mpc or complex
    Center of the view, as a (real, imaginary) pair of decimal strings for a
    lossless input. Defaults to ``(settings.default_center, "0.0")``
scale : str or mpmath.mpf
    Half-width of the view square, strictly positive. Defaults to
    ``settings.default_scale``
formula : str or `newtonscope.numpy_utils.expr_parser.Formula`
    The function whose roots are searched. Defaults to
    ``settings.default_formula``
max_iter : int
    Iteration budget of the Newton iterations
order : int
    Taylor expansion order, if None the formula `default_order`
relaxation : complex
    Newton relaxation factor :math:`a` in
    :math:`z_{n+1} = z_n - a f(z_n) / f'(z_n)`
size : int
    Raster size in pixels (used to adjust the working precision)
"""
        s = ns.settings
        self.size = s.default_size if size is None else size
        self.dps = s.base_dps
        if center is None:
            center = (s.default_center, "0.0")
        with mpmath.workdps(self.dps):
            if isinstance(center, (tuple, list)):
                self.center = mpmath.mpc(*(mpmath.mpf(x) for x in center))
            else:
                self.center = mpmath.mpc(mpmath.mpmathify(center))
            self.scale = mpmath.mpf(s.default_scale if scale is None else scale)
        if self.scale <= 0:
            raise ValueError(f"scale shall be > 0, given: {self.scale}")
        self.adjust_dps()

        if formula is None:
            formula = s.default_formula
        self.formula = (
            formula if isinstance(formula, Formula) else Formula(formula)
        )
        self.order = self.formula.default_order if order is None else order
        self.check_order(self.order)
        self.max_iter = s.default_max_iter if max_iter is None else max_iter
        self.relaxation = complex(relaxation)

    @staticmethod
    def check_order(order):
        max_order = ns.settings.max_order
        if not (1 <= order <= max_order):
            raise ValueError(
                f"Taylor order shall be in [1, {max_order}], given: {order}"
            )

    def adjust_dps(self):
        """ Grows (or shrinks) the working decimal precision with the zoom
        depth. Already stored values are kept at their precision. """
        required = (
            ns.utils.sig_digits(self.scale, self.size)
            + ns.settings.extra_dps
        )
        dps = max(ns.settings.base_dps, required)
        if dps != self.dps:
            logger.debug(f"Working precision: {self.dps} -> {dps} digits")
        self.dps = dps

    @property
    def pix(self):
        """ The plane size of a pixel """
        with mpmath.workdps(self.dps):
            return 2 * self.scale / self.size

    def to_plane(self, zp):
        """ Plane point for the normalized view coordinate zp """
        with mpmath.workdps(self.dps):
            return self.center + self.scale * mpmath.mpc(zp)

    def move(self, dx, dy):
        """
        Drags the view content by (dx, dy), in fractions of the view width.
        The plane-to-screen mapping is preserved: the plane point previously
        at normalized screen position p is now at p + (dx, dy).
        """
        with mpmath.workdps(self.dps):
            delta = mpmath.mpc(mpmath.mpf(dx), mpmath.mpf(dy))
            self.center = self.center - delta * 2 * self.scale

    def zoom(self, level, pivot_x=0.5, pivot_y=0.5):
        """
        Zooms by `zoom_ratio ** level` (level > 0 zooms in) keeping the plane
        point under the pivot fixed.

        Parameters
        ----------
        level : int
            Number of zoom steps, positive to zoom in
        pivot_x, pivot_y : float
            Normalized screen coordinates of the pivot, in [0, 1]
        """
        with mpmath.workdps(self.dps + 5):
            zp = mpmath.mpc(2 * mpmath.mpf(pivot_x) - 1,
                            2 * mpmath.mpf(pivot_y) - 1)
            ratio = mpmath.power(
                mpmath.mpf(ns.settings.zoom_ratio), -level
            )
            new_scale = self.scale * ratio
            # c + s.zp == c' + s'.zp
            self.center = self.center + (self.scale - new_scale) * zp
            self.scale = new_scale
        self.adjust_dps()

    def center_str(self):
        """ Human-readable center '(re, im)' """
        n_digits = ns.utils.sig_digits(self.scale, self.size)
        return "({re}, {im})".format(
            re=ns.utils.sci_str(self.center.real, n_digits),
            im=ns.utils.sci_str(self.center.imag, n_digits)
        )

    def scale_str(self):
        """ Human-readable scale """
        return ns.utils.sci_str(self.scale, 6)

    def __repr__(self):
        return (
            f"ViewTransform(center={self.center_str()}, "
            f"scale={self.scale_str()}, formula={self.formula.expr!r}, "
            f"order={self.order}, max_iter={self.max_iter})"
        )
