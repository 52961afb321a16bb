# -*- coding: utf-8 -*-
"""
Interaction scheduling: high-frequency pointer / wheel events are coalesced
into a single-flight stream of backend commands and cache updates, consumed
once per tick.
"""
import asyncio
import contextlib
import logging
import textwrap

import newtonscope as ns
import newtonscope.settings
from newtonscope.errors import BackendUnavailable
from newtonscope.tile_cache import TileCache


logger = logging.getLogger(__name__)


class PendingInput:
    """
    Input accumulated between two ticks: the move delta (screen units,
    additive) and the latest zoom request (only the most recent is kept).
    Pushing never blocks.
    """
    def __init__(self):
        self.move_x = 0.
        self.move_y = 0.
        self.zoom = None

    def push_move(self, dx, dy):
        self.move_x += dx
        self.move_y += dy

    def push_zoom(self, level, pivot_x, pivot_y):
        self.zoom = (level, pivot_x, pivot_y)

    @property
    def has_move(self):
        return self.move_x != 0. or self.move_y != 0.

    def take_zoom(self):
        """ Returns the latest (level, pivot_x, pivot_y) or None, and clears
        it """
        zoom = self.zoom
        self.zoom = None
        return zoom

    def take_move(self, ratio_x=1., ratio_y=1.):
        """
        Converts the accumulated move to whole raster pixels.

        Parameters
        ----------
        ratio_x, ratio_y : float
            Raster pixels per screen unit

        Returns
        -------
        (dx, dy) : int, int
            The pixel offset. The sub-pixel remainder is kept for the next
            call.
        """
        dx = round(self.move_x * ratio_x)
        dy = round(self.move_y * ratio_y)
        self.move_x -= dx / ratio_x
        self.move_y -= dy / ratio_y
        return dx, dy

    def clear(self):
        self.move_x = 0.
        self.move_y = 0.
        self.zoom = None

    def __repr__(self):
        return (
            f"PendingInput(move=({self.move_x}, {self.move_y}), "
            f"zoom={self.zoom})"
        )


class InputCoordinator:
    def __init__(self, backend, screen_size=None):
        """
    Drives the backend and the raster cache from the user input.

    At each tick, at most one action is dispatched, by priority: zoom, then
    move. An in-flight flag guarantees a single outstanding backend
    sequence: it is set before the first suspension point and cleared once
    the result is merged into the cache, even on failure. While a sequence
    is in flight, ticks are no-ops and the input keeps accumulating.

    Parameters
    ----------
    backend : `newtonscope.backend.AsyncBackend`
        The compute service
    screen_size : float
        The displayed width of the raster, in screen units (used to convert
        move events to raster pixels). Defaults to the raster size.

    Attributes
    ----------
    pending : `PendingInput`
    cache : `newtonscope.tile_cache.TileCache`
        None before `initialize`
    center_info, scale_info : str
        Human-readable position, refreshed after each mutation
    diagnostic : str
        Why the last zoom or move was rejected by the backend, None if it
        was accepted
        """
        self.backend = backend
        self.screen_size = screen_size
        self.pending = PendingInput()
        self.cache = None
        self.in_flight = False
        self.center_info = ""
        self.scale_info = ""
        self.diagnostic = None
        self._running = False

    @property
    def size(self):
        return self.cache.size

    @property
    def pixel_ratio(self):
        """ Raster pixels per screen unit """
        if self.screen_size is None:
            return 1.
        return self.cache.size / self.screen_size

    #==========================================================================
    # Input capture (synchronous, never blocks)
    def push_move(self, dx, dy):
        """ Content dragged by (dx, dy) screen units """
        self.pending.push_move(dx, dy)

    def push_zoom(self, level, pivot_x, pivot_y):
        """ Zoom request, pivot in normalized screen coordinates """
        self.pending.push_zoom(level, pivot_x, pivot_y)

    #==========================================================================
    # Scheduling
    @contextlib.asynccontextmanager
    async def _exclusive(self):
        """ Waits for the in-flight flag to be free, and holds it """
        while self.in_flight:
            await asyncio.sleep(ns.settings.tick_interval)
        self.in_flight = True
        try:
            yield
        finally:
            self.in_flight = False

    async def initialize(self, **view_kwargs):
        """ Starts the backend from its defaults and renders the first
        raster """
        async with self._exclusive():
            await self.backend.initialize(**view_kwargs)
            size = await self.backend.get_size()
            self.cache = TileCache(self.backend, size)
            self.pending.clear()
            await self.cache.full_render()
            await self._refresh_info()

    async def tick(self):
        """
        One scheduling step.

        Returns
        -------
        action : "zoom" | "move" | None
            What was dispatched. A dispatched action may still have been
            rejected by the backend, see `diagnostic`.
        """
        if self.in_flight or self.cache is None:
            return None

        zoom = self.pending.take_zoom()
        if zoom is not None:
            action = "zoom"
        elif self.pending.has_move:
            ratio = self.pixel_ratio
            dx, dy = self.pending.take_move(ratio, ratio)
            if dx == 0 and dy == 0:
                return None
            action = "move"
        else:
            return None

        self.in_flight = True
        try:
            if action == "zoom":
                (level, pivot_x, pivot_y) = zoom
                accepted = await self.backend.zoom_view(
                    level, pivot_x, pivot_y
                )
            else:
                size = self.cache.size
                accepted = await self.backend.move_view(dx / size, dy / size)

            if not accepted:
                # View rolled back: the raster is kept and the request dropped
                self.diagnostic = await self.backend.get_last_diagnostic()
                logger.warning(textwrap.dedent(f"""\
                    View unchanged, {action} rejected:
                      {self.diagnostic}"""
                ))
            else:
                self.diagnostic = None
                if action == "zoom":
                    await self.cache.full_render()
                else:
                    await self.cache.shift(dx, dy)
                await self._refresh_info()
        except BackendUnavailable as exc:
            logger.error(textwrap.dedent(f"""\
                Backend unavailable, {action} abandoned:
                  {exc}"""
            ))
        finally:
            self.in_flight = False
        return action

    async def run(self, frames=None):
        """
        Tick loop, paced by `newtonscope.settings.tick_interval`, until
        `stop` is called or `frames` ticks have elapsed.
        """
        self._running = True
        count = 0
        try:
            while self._running and (frames is None or count < frames):
                await self.tick()
                count += 1
                await asyncio.sleep(ns.settings.tick_interval)
        finally:
            self._running = False

    def stop(self):
        self._running = False

    @property
    def running(self):
        return self._running

    #==========================================================================
    # Parameters commands, followed by a full re-render on success
    async def set_formula(self, text):
        """ Returns "OK" or the diagnostic of the rejected formula """
        async with self._exclusive():
            res = await self.backend.set_formula(text)
            if res == "OK":
                await self.cache.full_render()
            return res

    async def set_max_iter(self, max_iter):
        """ Raises `newtonscope.errors.RangeError` if out of range """
        async with self._exclusive():
            await self.backend.set_max_iter(max_iter)
            await self.cache.full_render()

    async def set_size(self, size):
        """ Raises `newtonscope.errors.RangeError` if out of range """
        async with self._exclusive():
            await self.backend.set_size(size)
            await self.cache.resize(size)
            await self._refresh_info()

    async def reset(self):
        """ Back to the default view, formula, size and iteration budget """
        async with self._exclusive():
            await self.backend.initialize()
            size = await self.backend.get_size()
            self.pending.clear()
            await self.cache.resize(size)
            await self._refresh_info()

    async def _refresh_info(self):
        self.center_info = await self.backend.get_center_str()
        self.scale_info = await self.backend.get_scale_str()
        logger.debug(f"View: center {self.center_info}, scale {self.scale_info}")
