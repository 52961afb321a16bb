# -*- coding: utf-8 -*-
__author__ = "newtonscope developers"
__license__ = "MIT"
__version__ = "0.1.0"

import numpy as np
import warnings

from . import settings
from . import utils
from .settings import verbosity, log_directory
from .errors import FormulaError, RangeError, BackendUnavailable
from .numpy_utils.expr_parser import Formula
from .transform import ViewTransform
from .coefficients import CoefficientSet, EvaluationContract, generate
from .evaluator import PixelEvaluator, UNCALCULATED
from .backend import Backend, AsyncBackend
from .tile_cache import TileCache
from .coordinator import PendingInput, InputCoordinator
from .log import set_log_handlers

# Disable numpy warnings
if verbosity < 2:
    np.seterr(all="ignore")
    warnings.filterwarnings(
        action="ignore",
        message="invalid value encountered in"
    )
    warnings.filterwarnings(
        action="ignore",
        message="overflow encountered in"
    )
