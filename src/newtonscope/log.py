# -*- coding: utf-8 -*-
import os
import datetime
import logging
import sys
import enum

import newtonscope as ns


verbosity_enum = enum.Enum(
    "verbosity_enum",
    (
        "warn @ console",
        "warn + info @ console",
        "debug @ console + log",
    ),
    module=__name__
)

_levels = {
    0: logging.WARNING,
    1: logging.INFO,
    2: logging.DEBUG,
}


def set_log_handlers(verbosity):
    """
    Sets the verbosity level for the engine logs, replacing the previous
    handlers of the "newtonscope" logger.

    Parameters
    ----------
    verbosity: str or int
      One of the `verbosity_enum` names, or its index as in
      `newtonscope.settings.verbosity`:

        - "warn @ console" (0): only warnings, to stderr
        - "warn + info @ console" (1): warnings and info, to stdout
        - "debug @ console + log" (2): as above, and a new log file in
          `newtonscope.settings.log_directory` receives the debug messages

    ::

        ns.settings.log_directory = directory
        ns.set_log_handlers(verbosity="debug @ console + log")
    """
    if isinstance(verbosity, str):
        _verbosity = verbosity_enum[verbosity].value - 1
    elif isinstance(verbosity, int):
        _verbosity = verbosity
    else:
        raise ValueError(f"Unknown verbosity: {verbosity}")

    logger = logging.getLogger("newtonscope")
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
    logger.setLevel(_levels[_verbosity])

    if _verbosity == 0:
        ch = logging.StreamHandler(sys.stderr)
        ch.setLevel(logging.WARNING)
    else:
        ch = logging.StreamHandler(sys.stdout)
        ch.setLevel(logging.INFO)
    ch.setFormatter(logging.Formatter(
        '%(asctime)s - %(levelname)s\n  %(message)s'
    ))
    logger.addHandler(ch)

    file_config = None
    if _verbosity == 2 and ns.settings.log_directory is not None:
        file_prefix = datetime.datetime.now().strftime("%Y-%m-%d_%Hh%M_%S")
        file_config = os.path.join(
            ns.settings.log_directory, f"{file_prefix}_newtonscope.log"
        )
        ns.utils.mkdir_p(os.path.dirname(file_config))

        fh = logging.FileHandler(file_config)
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter(
            "%(asctime)s - %(levelname)s - %(filename)s: %(funcName)s\n  "
            "%(message)s"
        ))
        logger.addHandler(fh)

    logger.info(
        f"Starting logger for newtonscope {ns.__version__}, "
        f"verbosity: {verbosity}"
    )
    if file_config is not None:
        logger.info(f"Started file logger: {file_config}")
    elif _verbosity == 2:
        logger.warning(
            "Unable to start file logger: "
            "ns.settings.log_directory not specified"
        )
