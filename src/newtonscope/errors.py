# -*- coding: utf-8 -*-
"""
Exceptions raised by the engine.

Per-pixel numerical divergence (zero or non-finite Newton step) is not an
exception: the kernels map it to the "no convergence" iteration count.
"""


class FormulaError(ValueError):
    """ The formula text could not be parsed or evaluated. The message is a
    diagnostic intended for the user."""


class RangeError(ValueError):
    """ A size or iteration-budget input is out of its admissible range """
    def __init__(self, name, value, vmin, vmax):
        self.name = name
        self.value = value
        self.vmin = vmin
        self.vmax = vmax
        super().__init__(
            f"{name} out of range: {value} (expected {vmin} to {vmax})"
        )


class BackendUnavailable(RuntimeError):
    """ The compute backend cannot be reached ; the current operation is
    abandoned"""
