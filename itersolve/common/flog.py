'''
Console and file logging for the iterative solvers.

The Logger wraps a standard `logging.Logger` and adds indentation levels,
optional ANSI colours and a per-process global instance shared by all
solvers and preconditioners.

@note File logging is enabled by setting the environment variable PYLOGFILE to a non-zero value.
@note Coloured output is disabled by setting the environment variable PYLOGCOLORS to '0'.

-------------------------------------------------------
file        :   itersolve/common/flog.py
description :   Logger with verbosity control used across itersolve.
-------------------------------------------------------
'''

__all__         = [
    "Logger",
    "Colors",
    "get_global_logger"
]

import os
import re
import sys
import logging
import threading
from datetime import datetime
from typing import Optional, Union

######################################################
#! COLOURS
######################################################

class Colors:
    """
    ANSI escape codes for console output.
    """

    black   = "\033[30m"
    red     = "\033[31m"
    green   = "\033[32m"
    yellow  = "\033[33m"
    blue    = "\033[34m"
    white   = "\033[0m"  # reset

    _MAPPING = {
        "black" : black,
        "red"   : red,
        "green" : green,
        "yellow": yellow,
        "blue"  : blue,
        "white" : white
    }

    def __init__(self, color : str):
        self.color = color

    def __str__(self) -> str:
        return Colors._MAPPING.get(self.color, Colors.white)

    def __repr__(self) -> str:
        return str(self)

    def __call__(self, text: str) -> str:
        return f"{self}{text}{Colors.white}"

# ANSI colour codes (CSI sequences: ESC [ ... m)
_ansi_escape = re.compile(r'\x1b\[[0-9;]*m')

class StripAnsiFormatter(logging.Formatter):
    """ Formatter for file handlers, removes the colour codes. """

    def format(self, record):
        msg = super().format(record)
        return _ansi_escape.sub('', msg)

######################################################
#! LOGGER
######################################################

ENV_LOGGER_FILE     = 'PYLOGFILE'
ENV_LOGGER_COLORS   = 'PYLOGCOLORS'

class Logger:
    """
    Logger class for handling console and file logging with verbosity control.
    """

    LEVELS = {
        logging.DEBUG   : 'debug',
        logging.INFO    : 'info',
        logging.WARNING : 'warning',
        logging.ERROR   : 'error'
    }

    LEVELS_R = {v: k for k, v in LEVELS.items()}

    def __init__(self,
                name            : str                   = "itersolve",
                logfile         : Optional[str]         = None,
                lvl             : Union[int, str]       = logging.INFO,
                use_ts_in_cmd   : bool                  = False):
        """
        Initialize the logger instance.

        Args:
            name (str):
                Name of the underlying `logging` logger.
            logfile (str):
                Name of the log file, only used when PYLOGFILE is set.
                An empty name falls back to a timestamp.
            lvl (int or str):
                Logging level (default: logging.INFO).
            use_ts_in_cmd (bool):
                Whether to prefix console output with a timestamp.
        """
        self.now_str            = datetime.now().strftime("%d_%m_%Y_%H-%M_%S")
        self.lvl                = Logger.LEVELS_R.get(lvl, logging.INFO) if isinstance(lvl, str) else lvl
        self.has_colors         = sys.stdout.isatty() and os.environ.get(ENV_LOGGER_COLORS, '1') != '0'
        self.logfile            = None

        self.logger             = logging.getLogger(name)
        self.logger.setLevel(self.lvl)
        self.logger.propagate   = False

        # a re-created Logger must not duplicate the output
        for h in list(self.logger.handlers):
            self.logger.removeHandler(h)
            h.close()

        console_fmt             = '%(asctime)s [%(levelname)s] %(message)s' if use_ts_in_cmd else '[%(levelname)s] %(message)s'
        ch                      = logging.StreamHandler(sys.stdout)
        ch.setLevel(self.lvl)
        ch.setFormatter(logging.Formatter(console_fmt, datefmt="%d_%m_%Y_%H-%M_%S"))
        self.logger.addHandler(ch)

        if logfile is not None and os.environ.get(ENV_LOGGER_FILE, '0') != '0':
            base_name           = logfile[:-4] if logfile.endswith('.log') else logfile
            self.configure("./log", base_name or self.now_str)

    # --------------------------------------------------------------

    def configure(self, directory: str, base_name: str):
        """
        Attach a file handler writing to `directory/base_name.log`.
        """
        os.makedirs(directory, exist_ok=True)
        self.logfile    = os.path.join(directory, f'{base_name}.log')
        fh              = logging.FileHandler(self.logfile, encoding='utf-8')
        fh.setLevel(self.lvl)
        fh.setFormatter(StripAnsiFormatter('%(asctime)s [%(levelname)s] %(message)s', datefmt="%d_%m_%Y_%H-%M-%S"))
        self.logger.addHandler(fh)
        self.info(f"Log file created: {self.logfile}")

    # --------------------------------------------------------------

    @staticmethod
    def colorize(txt: str, color: Optional[str]) -> str:
        if not color or color.lower() == 'white':
            return str(txt)
        return Colors(color)(txt)

    @staticmethod
    def print_tab(lvl=0) -> str:
        """ Indentation prefix for nested messages. """
        return '\t' * lvl + ('->' if lvl > 0 else '')

    def _format(self, msg: str, lvl: int, color: Optional[str]) -> str:
        if color is not None and self.has_colors:
            msg = self.colorize(msg, color)
        return f"{Logger.print_tab(lvl)}{msg}"

    # --------------------------------------------------------------

    def info(self, msg: str, lvl=0, verbose=True, color=None):
        if verbose:
            self.logger.info(self._format(msg, lvl, color))

    def debug(self, msg: str, lvl=0, verbose=True, color=None):
        if verbose:
            self.logger.debug(self._format(msg, lvl, color))

    def warning(self, msg: str, lvl=0, verbose=True, color='yellow'):
        if verbose:
            self.logger.warning(self._format(msg, lvl, color))

######################################################

_G_LOGGER     = None
_G_LOGGER_PID = None
_G_LOCK       = threading.Lock()

def get_global_logger(**kwargs) -> Logger:
    """
    One Logger per process (PID), safe across threads and forks.

    Args:
        **kwargs: Arguments passed to the Logger constructor on first use.
        - name (str): Name of the logger (default: "itersolve").
        - lvl (int): Logging level (default: logging.INFO).
        - use_ts_in_cmd (bool): Timestamps in console output (default: True).
        - logfile (str or None): Log file name (default: None).

    Example
    -------
        >>> logger = get_global_logger()
        >>> logger.debug("Starting CG...", lvl=1)
    """
    global  _G_LOGGER, _G_LOGGER_PID
    pid     = os.getpid()

    if _G_LOGGER is not None and _G_LOGGER_PID == pid:
        return _G_LOGGER

    with _G_LOCK:
        if _G_LOGGER is not None and _G_LOGGER_PID == pid:
            return _G_LOGGER

        _G_LOGGER       = Logger(
            name            = kwargs.get("name",            "itersolve"),
            lvl             = kwargs.get("lvl",             logging.INFO),
            use_ts_in_cmd   = kwargs.get("use_ts_in_cmd",   True),
            logfile         = kwargs.get("logfile",         None),
        )
        _G_LOGGER_PID   = pid
        return _G_LOGGER

######################################################
#! EOF
