# -*- coding: utf-8 -*-
"""
The compute service: an explicitly owned engine context holding the view
state and the current coefficient set, and its asyncio facade.
"""
import asyncio
import concurrent.futures
import functools
import logging
import numbers
import textwrap

import newtonscope as ns
import newtonscope.settings
from newtonscope.errors import FormulaError, RangeError, BackendUnavailable
from newtonscope.numpy_utils.expr_parser import Formula
from newtonscope.transform import ViewTransform
from newtonscope.coefficients import generate, EvaluationContract
from newtonscope.evaluator import PixelEvaluator


logger = logging.getLogger(__name__)

OK = "OK"


class Backend:
    def __init__(self):
        """
    Engine context. All the commands are synchronous and not thread-safe:
    they are expected to be called by a single client, one at a time (see
    `AsyncBackend`).

    Attributes
    ----------
    view : `newtonscope.transform.ViewTransform`
        The arbitrary-precision state, None before `initialize`
    coeff_set : `newtonscope.coefficients.CoefficientSet`
        The coefficients matching `view`
    last_diagnostic : str
        Message of the last failed coefficient regeneration, None if the
        last one succeeded
        """
        self.view = None
        self.coeff_set = None
        self.last_diagnostic = None

    def initialize(self, **view_kwargs):
        """
        (Re)starts the engine from the default view ; keyword arguments are
        passed to `newtonscope.transform.ViewTransform`.
        """
        view = ViewTransform(**view_kwargs)
        self.coeff_set = self._generate(view)
        self.view = view
        self.last_diagnostic = None
        logger.info(f"Backend initialized: {view}")

    @property
    def initialized(self):
        return self.view is not None

    def _check(self):
        if self.view is None:
            raise BackendUnavailable("Backend not initialized")

    @staticmethod
    def _generate(view):
        return generate(
            view.center, view.scale, view.formula, view.order, dps=view.dps
        )

    def _regenerate(self, rollback):
        """
        Regenerates the coefficient set after a view mutation. On failure,
        `rollback` restores the previous view state and the previous
        coefficients are kept.
        """
        try:
            coeff_set = self._generate(self.view)
        except FormulaError as exc:
            rollback()
            self.last_diagnostic = str(exc)
            logger.warning(textwrap.dedent(f"""\
                Coefficient generation failed, previous view retained:
                  {exc}"""
            ))
            return False
        self.coeff_set = coeff_set
        self.last_diagnostic = None
        return True

    def _snapshot(self):
        view = self.view
        center, scale, dps = view.center, view.scale, view.dps

        def rollback():
            view.center, view.scale, view.dps = center, scale, dps

        return rollback

    #==========================================================================
    # Defaults & information strings
    def get_default_formula(self):
        return ns.settings.default_formula

    def get_default_size(self):
        return ns.settings.default_size

    def get_default_max_iter(self):
        return ns.settings.default_max_iter

    def get_center_str(self):
        self._check()
        return self.view.center_str()

    def get_scale_str(self):
        self._check()
        return self.view.scale_str()

    def get_size(self):
        self._check()
        return self.view.size

    def get_max_iter(self):
        self._check()
        return self.view.max_iter

    def get_last_diagnostic(self):
        return self.last_diagnostic

    #==========================================================================
    # Parameters
    def set_formula(self, text):
        """
        Changes the formula, all-or-nothing.

        Returns
        -------
        "OK" on success, otherwise a textual diagnostic (the previous formula
        and coefficients are retained)
        """
        self._check()
        try:
            formula = Formula(text)
            order = formula.default_order
            coeff_set = generate(
                self.view.center, self.view.scale, formula, order,
                dps=self.view.dps
            )
        except FormulaError as exc:
            self.last_diagnostic = str(exc)
            logger.warning(f"Formula rejected: {text!r}\n  {exc}")
            return str(exc)

        self.view.formula = formula
        self.view.order = order
        self.coeff_set = coeff_set
        self.last_diagnostic = None
        logger.info(f"Formula set: {formula} (order {order})")
        return OK

    def set_max_iter(self, max_iter):
        """
        Raises
        ------
        RangeError if max_iter is not in [1, settings.max_iter_limit] ; the
        previous value is kept.
        """
        self._check()
        _check_int_range("max_iter", max_iter, 1, ns.settings.max_iter_limit)
        self.view.max_iter = int(max_iter)
        logger.info(f"Max iterations set: {max_iter}")
        return True

    def set_size(self, size):
        """
        Raises
        ------
        RangeError if size is not in [settings.min_size, settings.max_size] ;
        the previous value is kept.
        """
        self._check()
        _check_int_range(
            "size", size, ns.settings.min_size, ns.settings.max_size
        )
        self.view.size = int(size)
        self.view.adjust_dps()
        logger.info(f"Raster size set: {size}")
        return True

    #==========================================================================
    # Navigation
    def move_view(self, dx, dy):
        """ Drags the view content by (dx, dy), fractions of the view width.
        Returns False if the coefficients could not be regenerated (the view
        is then unchanged) """
        self._check()
        rollback = self._snapshot()
        self.view.move(dx, dy)
        return self._regenerate(rollback)

    def zoom_view(self, level, pivot_x=0.5, pivot_y=0.5):
        """ Zooms by `level` steps (> 0 zooms in) around the pivot, given in
        normalized screen coordinates. Returns False if the coefficients
        could not be regenerated (the view is then unchanged) """
        self._check()
        if not isinstance(level, numbers.Integral) or level == 0:
            raise ValueError(f"Expected a non-zero integer level: {level}")
        rollback = self._snapshot()
        self.view.zoom(level, pivot_x, pivot_y)
        return self._regenerate(rollback)

    #==========================================================================
    # Evaluation
    def evaluation_contract(self):
        self._check()
        return EvaluationContract(self.coeff_set, self.view.max_iter)

    def render_tile(self, x, y, w, h):
        """
        Iteration counts for the rectangle (x, y, w, h) of the raster.

        Returns
        -------
        tile : numpy.uint16 1d array of length w * h, row-major
        """
        self._check()
        size = self.view.size
        if not (0 <= x and 0 <= y and 0 <= w and 0 <= h
                and x + w <= size and y + h <= size):
            raise ValueError(
                f"Tile ({x}, {y}, {w}, {h}) outside of the raster {size}"
            )
        evaluator = PixelEvaluator(
            self.coeff_set, self.view.max_iter, self.view.relaxation
        )
        return evaluator.render_tile(x, y, w, h, size)


def _check_int_range(name, value, vmin, vmax):
    if (
        isinstance(value, bool)
        or not isinstance(value, numbers.Integral)
        or not (vmin <= value <= vmax)
    ):
        raise RangeError(name, value, vmin, vmax)


class AsyncBackend:
    def __init__(self, backend=None):
        """
    asyncio facade of a `Backend`: each command is run on a dedicated
    worker thread, so that awaiting it never blocks the event loop. Only
    one command is executed at a time.

    Parameters
    ----------
    backend : `Backend`
        The engine context, a new one if None
        """
        self.backend = Backend() if backend is None else backend
        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="newtonscope_backend"
        )
        self._closed = False

    async def _call(self, command, *args, **kwargs):
        if self._closed:
            raise BackendUnavailable("Backend closed")
        loop = asyncio.get_running_loop()
        func = functools.partial(
            getattr(self.backend, command), *args, **kwargs
        )
        try:
            fut = loop.run_in_executor(self._executor, func)
        except RuntimeError as exc:
            # Executor shut down
            raise BackendUnavailable(f"Backend unreachable: {exc}") from exc
        try:
            return await fut
        except concurrent.futures.BrokenExecutor as exc:
            raise BackendUnavailable(f"Backend unreachable: {exc}") from exc

    def close(self):
        """ Further commands will raise `BackendUnavailable` """
        self._closed = True
        self._executor.shutdown(wait=True)

    @property
    def closed(self):
        return self._closed

    async def initialize(self, **view_kwargs):
        return await self._call("initialize", **view_kwargs)

    async def get_default_formula(self):
        return await self._call("get_default_formula")

    async def get_default_size(self):
        return await self._call("get_default_size")

    async def get_default_max_iter(self):
        return await self._call("get_default_max_iter")

    async def get_center_str(self):
        return await self._call("get_center_str")

    async def get_scale_str(self):
        return await self._call("get_scale_str")

    async def get_size(self):
        return await self._call("get_size")

    async def get_max_iter(self):
        return await self._call("get_max_iter")

    async def get_last_diagnostic(self):
        return await self._call("get_last_diagnostic")

    async def set_formula(self, text):
        return await self._call("set_formula", text)

    async def set_max_iter(self, max_iter):
        return await self._call("set_max_iter", max_iter)

    async def set_size(self, size):
        return await self._call("set_size", size)

    async def move_view(self, dx, dy):
        return await self._call("move_view", dx, dy)

    async def zoom_view(self, level, pivot_x=0.5, pivot_y=0.5):
        return await self._call("zoom_view", level, pivot_x, pivot_y)

    async def evaluation_contract(self):
        return await self._call("evaluation_contract")

    async def render_tile(self, x, y, w, h):
        return await self._call("render_tile", x, y, w, h)
