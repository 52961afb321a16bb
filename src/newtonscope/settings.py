# -*- coding: utf-8 -*-
"""
General settings at application-level
"""

enable_multithreading: bool = True
"""Turn on or off multithreading of the tile evaluation (for debugging
purpose)"""

chunk_size: int = 128
"""A tile is evaluated by chunks of at most chunk_size x chunk_size pixels"""

tile_method: str = "full"
"""The per-chunk evaluation kernel ("full" | "boundary").

    - "full": every pixel is evaluated
    - "boundary": only the chunk edges and the iteration-count boundaries
      are evaluated, the interior of each level set is flood-filled. Much
      faster for large uniform areas, but thin features fully enclosed in a
      chunk may be missed.
"""

evaluation_dtype: str = "complex64"
"""The complex datatype used for the per-pixel Newton iterations
("complex64" | "complex128"). The Taylor coefficients are rounded to this
type at the output of the arbitrary-precision stage."""

epsilon_cv: float = 1.e-5
"""Convergence threshold of the Newton iterations, componentwise, in
normalized view units (the view square is [-1, 1] x [-1, 1])"""

coeff_slots: int = 8
"""Number of complex coefficient slots of the evaluation stage"""

max_order: int = coeff_slots - 2
"""Maximal Taylor expansion order (one slot is used by the derivative
ladder)"""

zoom_ratio: float = 2. ** (1. / 8.)
"""Scale ratio applied for each zoom step"""

base_dps: int = 30
"""Minimal number of decimal digits used for arbitrary-precision
computations. It is increased with the zoom depth."""

extra_dps: int = 10
"""Guard digits added to the precision required by the pixel size"""

default_formula: str = "z^3 - 1"
default_size: int = 512
default_max_iter: int = 128
default_center: str = "0.0"
default_scale: str = "2.0"
"""Default view: center (as str, real and imaginary parts are equal to
`default_center` and 0.) and half-width of the view square"""

min_size: int = 16
max_size: int = 4096
"""Admissible raster size range (pixels, both bounds included)"""

max_iter_limit: int = 65534
"""Highest admissible iteration budget: 0xFFFF is reserved to flag
uncalculated samples in a 16-bit raster"""

tick_interval: float = 1. / 60.
"""Period of the interaction loop, in seconds"""

verbosity: int = 1
"""
Controls the verbosity for the log messages:

    - 0: WARNING & higher severity, output to stderr
    - 1 (default): INFO & higher severity, output to stdout
    - 2 (highest verbosity):

        - INFO & higher severity, output to stdout
        - DEBUG & higher severity, output to a log file

numpy floating-point warnings are only shown at the highest verbosity.

Note: Severities in descending order:
CRITICAL, ERROR, WARNING, INFO, DEBUG, NOTSET """

log_directory: str = None
""" The logging directory for this session - as str"""
