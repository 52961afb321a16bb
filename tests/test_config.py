# -*- coding: utf-8 -*-
""" Gathers codes snippets used in the test suite.
"""
import unittest
import asyncio
from contextlib import contextmanager
from functools import wraps
import os
import sys

import numpy as np

from newtonscope.errors import BackendUnavailable, RangeError


test_dir = os.path.dirname(__file__)
temporary_data_dir = os.path.join(test_dir, "_temporary_data")

def suite(testcases):
    """
    Parameters
    testcases : an iterable of unittest.TestCases

    Returns
    suite : a unittest.TestSuite combining all the individual tests routines
            from the input 'testcases' list (by default these are the method
            names beginning with test).
    """
    suite = unittest.TestSuite()
    loader = unittest.TestLoader()
    for testcase in testcases:
        suite.addTests(loader.loadTestsFromTestCase(testcase))
    return suite

@contextmanager
def suppress_stdout():
    """ Temporarly suppress print statement during tests. """
    # Note: Only deals with Python level streams
    with open(os.devnull, "w") as devnull:
        old_stdout = sys.stdout
        sys.stdout = devnull
        old_stderr = sys.stderr
        sys.stderr = devnull
        try:
            yield
        finally:
            sys.stdout = old_stdout
            sys.stderr = old_stderr

def no_stdout(func):
    """ Decorator, suppress output of the decorated function"""
    @wraps(func)
    def wrapper(*args, **kwargs):
        with suppress_stdout():
            return func(*args, **kwargs)
    return wrapper

def run_async(func):
    """ Decorator, runs the decorated coroutine test method in a new event
    loop"""
    @wraps(func)
    def wrapper(*args, **kwargs):
        return asyncio.run(func(*args, **kwargs))
    return wrapper


def lattice(x, y, w, h, ox=0, oy=0):
    """ A synthetic raster: value depends only on the absolute lattice
    position (x - ox, y - oy) of each sample """
    ix = np.arange(x, x + w) - ox
    iy = np.arange(y, y + h) - oy
    val = (31 * ix[np.newaxis, :] + 17 * iy[:, np.newaxis]) % 1009
    return val.astype(np.uint16)


class Fake_backend:
    """
    In-memory stand-in for `newtonscope.backend.AsyncBackend`: the raster
    content is `lattice` dragged by the accumulated moves. Records the
    render requests.

    Failure modes: `unavailable` makes every command raise, `fail_next`
    makes the next n commands raise, `refuse_views` makes move_view /
    zoom_view report a failed regeneration (view unchanged).
    """
    def __init__(self, size=64, delay=0.):
        self.size = size
        self.ox = 0
        self.oy = 0
        self.delay = delay
        self.requests = []
        self.calls = []
        self.max_iter = 128
        self.formula = "z^3 - 1"
        self.unavailable = False
        self.fail_next = 0
        self.refuse_views = False
        self.last_diagnostic = None

    async def _enter(self, command):
        self.calls.append(command)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.unavailable:
            raise BackendUnavailable("Fake backend down")
        if self.fail_next > 0:
            self.fail_next -= 1
            raise BackendUnavailable("Fake backend hiccup")

    def _refused(self):
        if self.refuse_views:
            self.last_diagnostic = "Unable to evaluate 'z' near 0"
            return True
        self.last_diagnostic = None
        return False

    async def get_last_diagnostic(self):
        await self._enter("get_last_diagnostic")
        return self.last_diagnostic

    async def initialize(self, **kwargs):
        await self._enter("initialize")
        self.ox = self.oy = 0

    async def get_size(self):
        await self._enter("get_size")
        return self.size

    async def get_center_str(self):
        return f"({-self.ox}, {-self.oy})"

    async def get_scale_str(self):
        return "2.0e+0"

    async def set_formula(self, text):
        await self._enter("set_formula")
        if "?" in text:
            return "Syntax error"
        self.formula = text
        return "OK"

    async def set_max_iter(self, max_iter):
        await self._enter("set_max_iter")
        if not (1 <= max_iter <= 65534):
            raise RangeError("max_iter", max_iter, 1, 65534)
        self.max_iter = max_iter
        return True

    async def set_size(self, size):
        await self._enter("set_size")
        if not (16 <= size <= 4096):
            raise RangeError("size", size, 16, 4096)
        self.size = size
        return True

    async def move_view(self, dx, dy):
        await self._enter("move_view")
        if self._refused():
            return False
        self.ox += round(dx * self.size)
        self.oy += round(dy * self.size)
        return True

    async def zoom_view(self, level, pivot_x=0.5, pivot_y=0.5):
        await self._enter("zoom_view")
        return not self._refused()

    async def render_tile(self, x, y, w, h):
        # Evaluated for the view at the time of the request
        tile = lattice(x, y, w, h, self.ox, self.oy).ravel()
        await self._enter("render_tile")
        self.requests.append((x, y, w, h))
        return tile
