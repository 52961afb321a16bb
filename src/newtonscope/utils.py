# -*- coding: utf-8 -*-
import os
import errno

import mpmath


def mkdir_p(path):
    """ Creates directory ; if exists does nothing """
    try:
        os.makedirs(path)
    except OSError as exc:
        if exc.errno == errno.EEXIST and os.path.isdir(path):
            pass
        else:
            raise exc


def sci_str(x, n_digits=17):
    """
    Scientific notation of a real number, always with a decimal point in the
    mantissa ("1.0e+0" rather than "1e+0").

    Parameters
    ----------
    x: mpmath.mpf or float
        The value to format
    n_digits: int
        Number of significant decimal digits
    """
    s = mpmath.nstr(
        mpmath.mpf(x), n_digits, min_fixed=mpmath.inf, max_fixed=-mpmath.inf
    )
    if s in ("0.0", "-0.0"):
        return s + "e+0"
    mantissa, _, exponent = s.partition("e")
    if "." not in mantissa:
        mantissa += ".0"
    if exponent == "":
        exponent = "+0"
    return f"{mantissa}e{exponent}"


def sig_digits(scale, size):
    """
    Number of significant decimal digits needed to tell apart two adjacent
    pixels of a view of half-width `scale` sampled over `size` pixels
    """
    with mpmath.workdps(6):
        pix = 2 * mpmath.mpf(scale) / size
        return max(1, int(-mpmath.log10(pix)) + 2)
