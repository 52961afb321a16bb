# -*- coding: utf-8 -*-
"""
Incremental raster cache: keeps the full-resolution iteration-count raster
consistent across pan / zoom, re-rendering only the newly exposed parts on a
pan.
"""
import asyncio
import collections
import enum
import logging

import numpy as np
import PIL.Image

from newtonscope.evaluator import UNCALCULATED


logger = logging.getLogger(__name__)

Cache_state = enum.Enum(
    "Cache_state",
    ("IDLE", "SHIFTING", "FILLING"),
    module=__name__
)


def exposed_rects(dx, dy, size):
    """
    The raster rectangles (x, y, w, h) left blank by a shift of the content
    by (dx, dy) pixels, at most one per nonzero axis.

    Diagonal shifts expose an L-shaped area, covered without overlap: the
    vertical strip spans the full height and the horizontal strip only the
    columns left.
    """
    rects = []
    adx = abs(dx)
    ady = abs(dy)
    if adx > 0:
        x0 = 0 if dx > 0 else size - adx
        rects.append((x0, 0, adx, size))
    if ady > 0 and adx < size:
        y0 = 0 if dy > 0 else size - ady
        x0 = dx if dx > 0 else 0
        rects.append((x0, y0, size - adx, ady))
    return rects


def shifted_copy(src, dst, dx, dy):
    """
    Copies src into dst, content moved by (dx, dy) pixels:
    dst[y, x] = src[y - dy, x - dx] ; the exposed samples are set to
    UNCALCULATED.
    """
    ny, nx = src.shape
    dst.fill(UNCALCULATED)
    if abs(dx) >= nx or abs(dy) >= ny:
        return
    src_x = slice(max(0, -dx), nx - max(0, dx))
    src_y = slice(max(0, -dy), ny - max(0, dy))
    dst_x = slice(max(0, dx), nx - max(0, -dx))
    dst_y = slice(max(0, dy), ny - max(0, -dy))
    dst[dst_y, dst_x] = src[src_y, src_x]


class TileCache:
    def __init__(self, backend, size):
        """
    The raster of iteration counts, size x size, stored in two alternating
    buffers: the front one is displayed while the other (staging) receives
    the next state. The buffers roles are swapped by toggling an index.

    The buffers are only mutated through the requests `full_render`,
    `shift` and `resize`. At most one request sequence is executed at a
    time ; requests made during a sequence are queued and run in order by
    the same sequence. Each request coroutine returns once that request has
    been executed.

    Parameters
    ----------
    backend : `newtonscope.backend.AsyncBackend`
        Provides the coroutine ``render_tile(x, y, w, h)``
    size : int
        The raster size, in pixels
        """
        self.backend = backend
        self.state = Cache_state.IDLE
        self._queue = collections.deque()
        self._draining = False
        self._allocate(size)

    def _allocate(self, size):
        self.size = size
        self._buffers = [
            np.full((size, size), UNCALCULATED, dtype=np.uint16)
            for _ in range(2)
        ]
        self._front = 0

    @property
    def raster(self):
        """ The committed raster, as a read-only (size, size) view """
        view = self._buffers[self._front].view()
        view.setflags(write=False)
        return view

    @property
    def _staging(self):
        return self._buffers[1 - self._front]

    def _swap(self):
        self._front = 1 - self._front

    @property
    def pending(self):
        """ Number of queued requests """
        return len(self._queue)

    #==========================================================================
    # Requests
    async def full_render(self):
        """ Re-renders the whole raster """
        await self._submit("full_render")

    async def shift(self, dx, dy):
        """ Moves the content by (dx, dy) pixels and renders the exposed
        area """
        await self._submit("shift", int(dx), int(dy))

    async def resize(self, size):
        """ Changes the raster size, then re-renders the whole raster """
        await self._submit("resize", int(size))

    async def _submit(self, *request):
        """
        Runs `request`, or queues it if a sequence is already running. The
        caller that finds the cache idle drains the whole queue. Every caller
        returns once its own request has completed, and gets its own
        request's exception, if any ; a failed request does not prevent the
        next queued ones from running.
        """
        done = asyncio.get_running_loop().create_future()
        self._queue.append((request, done))
        if self._draining:
            logger.debug(f"Cache busy ({self.state.name}), queued: {request}")
            return await done

        self._draining = True
        try:
            while self._queue:
                ((name, *args), pending) = self._queue.popleft()
                try:
                    await getattr(self, "_" + name)(*args)
                except asyncio.CancelledError:
                    pending.cancel()
                    raise
                except Exception as exc:
                    if not pending.cancelled():
                        pending.set_exception(exc)
                else:
                    if not pending.cancelled():
                        pending.set_result(None)
                finally:
                    self.state = Cache_state.IDLE
        finally:
            self._draining = False
            # Only reached with a non-empty queue if the drain was cancelled
            while self._queue:
                (_, pending) = self._queue.popleft()
                pending.cancel()
        return await done

    async def _full_render(self):
        self.state = Cache_state.FILLING
        size = self.size
        tile = await self._fetch(0, 0, size, size)
        self._staging[:] = tile
        self._swap()
        logger.debug(f"Full render {size}x{size} committed")

    async def _resize(self, size):
        if size == self.size:
            await self._full_render()
            return
        self.state = Cache_state.FILLING
        # The previous raster stays displayed until the new one is complete
        tile = await self._fetch(0, 0, size, size)
        self._allocate(size)
        self._staging[:] = tile
        self._swap()
        logger.debug(f"Raster resized to {size}x{size}")

    async def _shift(self, dx, dy):
        size = self.size
        if dx == 0 and dy == 0:
            return
        if abs(dx) >= size or abs(dy) >= size:
            logger.debug(f"Shift ({dx}, {dy}) beyond the raster: full render")
            await self._full_render()
            return

        self.state = Cache_state.SHIFTING
        shifted_copy(self._buffers[self._front], self._staging, dx, dy)
        self._swap()

        self.state = Cache_state.FILLING
        for rect in exposed_rects(dx, dy, size):
            (x, y, w, h) = rect
            tile = await self._fetch(x, y, w, h)
            self._merge(tile, x, y, w, h)
        logger.debug(f"Shift ({dx}, {dy}) committed")

    async def _fetch(self, x, y, w, h):
        tile = await self.backend.render_tile(x, y, w, h)
        tile = np.asarray(tile, dtype=np.uint16)
        if tile.size != w * h:
            raise ValueError(
                f"Tile ({x}, {y}, {w}, {h}): expected {w * h} samples, "
                f"received {tile.size}"
            )
        return tile.reshape((h, w))

    def _merge(self, tile, x, y, w, h):
        self._buffers[self._front][y: y + h, x: x + w] = tile

    #==========================================================================
    # Read access
    def sample(self, u, v):
        """
        Nearest-neighbour lookup at the normalized raster coordinates (u, v)
        in [0, 1] x [0, 1] ; clamped at the edges.
        """
        size = self.size
        ix = min(max(int(np.floor(u * size)), 0), size - 1)
        iy = min(max(int(np.floor(v * size)), 0), size - 1)
        return int(self._buffers[self._front][iy, ix])

    def to_image(self):
        """ The raw raster as a 16-bit grayscale PIL.Image (no color
        mapping) """
        return PIL.Image.fromarray(
            np.ascontiguousarray(self._buffers[self._front])
        )

    def __repr__(self):
        return (
            f"TileCache(size={self.size}, state={self.state.name}, "
            f"queued={len(self._queue)})"
        )
