# -*- coding: utf-8 -*-
"""
Bounded-precision evaluation stage: Newton iterations on the local Taylor
expansion, per pixel.
"""
import logging
import time

import numpy as np
import numba

import newtonscope as ns
import newtonscope.settings
from newtonscope.mthreading import Multithreading_iterator


logger = logging.getLogger(__name__)

UNCALCULATED = 0xFFFF
"""Reserved raster value for the samples not (yet) evaluated"""

TILE_METHODS = ("full", "boundary")


class PixelEvaluator:
    def __init__(self, coeff_set, max_iter, relaxation=1., epsilon=None,
                 method=None):
        """
    Maps a `newtonscope.coefficients.CoefficientSet` to iteration counts.

    Parameters
    ==========
    coeff_set : `newtonscope.coefficients.CoefficientSet`
        The local expansion, shared by all the pixels of a render
    max_iter : int
        The iteration budget, also the "no convergence" output value
    relaxation : complex
        The Newton relaxation factor
    epsilon : float
        Componentwise convergence threshold, in normalized view units.
        Defaults to ``settings.epsilon_cv``
    method : "full" | "boundary"
        Tile evaluation kernel, defaults to ``settings.tile_method``
        """
        if epsilon is None:
            epsilon = ns.settings.epsilon_cv
        if method is None:
            method = ns.settings.tile_method
        if method not in TILE_METHODS:
            raise ValueError(f"Unknown tile method: {method}")
        if not (1 <= max_iter <= ns.settings.max_iter_limit):
            raise ValueError(f"max_iter out of range: {max_iter}")

        self.coeff_set = coeff_set
        self.complex_type = coeff_set.dtype
        self.float_type = np.finfo(self.complex_type).dtype
        self.f_ladder, self.df_ladder = coeff_set.ladders()
        self.scale = self.float_type.type(coeff_set.scale)
        self.relax = self.complex_type.type(relaxation)
        self.max_iter = int(max_iter)
        self.epsilon = float(epsilon)
        self.method = method

    def iterate(self, z0):
        """
        Newton iterations from the normalized view coordinate z0

        Returns
        -------
        n_iter : int
            The iteration index at convergence, max_iter if not converged
        z : complex
            The last iterate (normalized view coordinates)
        """
        n_iter, z = numba_newton_orbit(
            self.f_ladder, self.df_ladder, self.scale, self.relax,
            self.complex_type.type(z0), self.max_iter, self.epsilon
        )
        return int(n_iter), complex(z)

    def evaluate(self, z0):
        """ Iteration count for the normalized view coordinate z0 """
        return self.iterate(z0)[0]

    def start_points(self, x, y, w, h, size):
        """
        Normalized view coordinates at the pixel centers of the rectangle
        (x, y, w, h) of a size x size raster, as a (h, w) array. Columns
        follow the real axis, rows the imaginary axis.
        """
        step = 2. / size
        xs = (np.arange(x, x + w, dtype=np.float64) + 0.5) * step - 1.
        ys = (np.arange(y, y + h, dtype=np.float64) + 0.5) * step - 1.
        return (xs[np.newaxis, :] + 1j * ys[:, np.newaxis]).astype(
            self.complex_type
        )

    def chunk_slices(self, zs, out):
        """
        Generator function
        Yields the chunks spans (ix, ixx, iy, iyy)
        with each chunk of size chunk_size x chunk_size
        """
        chunk_size = ns.settings.chunk_size
        (ny, nx) = zs.shape
        for ix in range(0, nx, chunk_size):
            ixx = min(ix + chunk_size, nx)
            for iy in range(0, ny, chunk_size):
                iyy = min(iy + chunk_size, ny)
                yield (ix, ixx, iy, iyy)

    @Multithreading_iterator(
        iterable_attr="chunk_slices", iter_kwargs="chunk_slice"
    )
    def fill_chunks(self, zs, out, chunk_slice=None):
        """ Evaluates one chunk of zs, result stored in-place in out """
        (ix, ixx, iy, iyy) = chunk_slice
        kernel = (
            numba_boundary_chunk if self.method == "boundary"
            else numba_full_chunk
        )
        kernel(
            self.f_ladder, self.df_ladder, self.scale, self.relax,
            zs[iy:iyy, ix:ixx], self.max_iter, self.epsilon,
            out[iy:iyy, ix:ixx]
        )

    def render_tile(self, x, y, w, h, size):
        """
        Iteration counts for the rectangle (x, y, w, h) of a size x size
        raster.

        Returns
        -------
        tile : uint16 1d array of length w * h, row-major
        """
        if w <= 0 or h <= 0:
            return np.empty([0], dtype=np.uint16)
        t0 = time.perf_counter()
        zs = self.start_points(x, y, w, h, size)
        out = np.empty((h, w), dtype=np.uint16)
        self.fill_chunks(zs, out)
        logger.debug(
            f"Tile ({x}, {y}, {w}, {h}) / {size} evaluated in "
            f"{time.perf_counter() - t0:.3f} s ({self.method})"
        )
        return out.ravel()


#==============================================================================
# Numba JIT functions
#==============================================================================

@numba.njit(nogil=True, error_model="numpy")
def numba_newton_orbit(f_ladder, df_ladder, scale, relax, z0, max_iter, eps):
    """
    Newton iterations z' <- z' - relax * f(sz) / (scale * f'(sz)) where
    sz = scale * z', f and f' being evaluated by a synchronized Horner pass
    on their ladders.
    A zero or non-finite step is a divergence: returns max_iter.
    """
    top = f_ladder.size - 1
    z = z0
    for n in range(max_iter):
        sz = scale * z
        f = f_ladder[top]
        df = df_ladder[top]
        for i in range(top - 1, -1, -1):
            f = f * sz + f_ladder[i]
            df = df * sz + df_ladder[i]
        den = scale * df
        if den.real == 0. and den.imag == 0.:
            return max_iter, z
        step = relax * f / den
        if not (np.isfinite(step.real) and np.isfinite(step.imag)):
            return max_iter, z
        z = z - step
        if abs(step.real) < eps and abs(step.imag) < eps:
            return n, z
    return max_iter, z


@numba.njit(nogil=True, error_model="numpy")
def numba_newton_iter(f_ladder, df_ladder, scale, relax, z0, max_iter, eps):
    n, _ = numba_newton_orbit(
        f_ladder, df_ladder, scale, relax, z0, max_iter, eps
    )
    return n


@numba.njit(nogil=True, error_model="numpy")
def numba_full_chunk(f_ladder, df_ladder, scale, relax, zs, max_iter, eps,
                     out):
    ny, nx = zs.shape
    for iy in range(ny):
        for ix in range(nx):
            out[iy, ix] = numba_newton_iter(
                f_ladder, df_ladder, scale, relax, zs[iy, ix], max_iter, eps
            )


@numba.njit(nogil=True, error_model="numpy")
def numba_boundary_chunk(f_ladder, df_ladder, scale, relax, zs, max_iter,
                         eps, out):
    """
    Boundary tracing: the chunk edges are evaluated, then the frontiers
    between different iteration counts are followed through the
    8-neighbours. The pixels left are enclosed in a level set and are
    filled row-wise.
    """
    ny, nx = zs.shape
    for iy in range(ny):
        for ix in range(nx):
            out[iy, ix] = UNCALCULATED
    pushed = np.zeros((ny, nx), dtype=np.bool_)
    stack = np.empty((ny * nx, 2), dtype=np.intp)
    top = 0

    # Edges. Top & bottom rows compare with the left neighbour, sides with
    # the upper neighbour
    for iy in range(ny):
        edge_row = (iy == 0) or (iy == ny - 1)
        for ix in range(nx):
            if not (edge_row or ix == 0 or ix == nx - 1):
                continue
            val = numba_newton_iter(
                f_ladder, df_ladder, scale, relax, zs[iy, ix], max_iter, eps
            )
            out[iy, ix] = val
            if edge_row:
                if ix == 0:
                    continue
                prev = out[iy, ix - 1]
            else:
                prev = out[iy - 1, ix]
            if (out[iy, ix] != prev) and not pushed[iy, ix]:
                pushed[iy, ix] = True
                stack[top, 0] = iy
                stack[top, 1] = ix
                top += 1

    # Tracking
    while top > 0:
        top -= 1
        by = stack[top, 0]
        bx = stack[top, 1]
        bval = out[by, bx]
        for dy in range(-1, 2):
            for dx in range(-1, 2):
                if dx == 0 and dy == 0:
                    continue
                ty = by + dy
                tx = bx + dx
                if ty < 0 or ty >= ny or tx < 0 or tx >= nx:
                    continue
                if out[ty, tx] == UNCALCULATED:
                    out[ty, tx] = numba_newton_iter(
                        f_ladder, df_ladder, scale, relax, zs[ty, tx],
                        max_iter, eps
                    )
                if (out[ty, tx] != bval) and not pushed[ty, tx]:
                    pushed[ty, tx] = True
                    stack[top, 0] = ty
                    stack[top, 1] = tx
                    top += 1

    # Fill in the rest
    for iy in range(1, ny - 1):
        fill = out[iy, 0]
        for ix in range(1, nx - 1):
            if out[iy, ix] == UNCALCULATED:
                out[iy, ix] = fill
            else:
                fill = out[iy, ix]
