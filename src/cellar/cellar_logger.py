"""
Logger used throughout cellar. Every component receives an instance and emits
structured, single-line JSON records through the standard logging module.
"""

import inspect
import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime


@dataclass
class LogLine:
    """
    Represents a line in the cellar log
    """

    time: str
    level: str
    caller_file: str
    caller_name: str
    caller_line: int
    message: str


class CellarLogger:
    """
    Logger class
    """

    def __init__(self, name: str = "cellar", level: int = logging.INFO) -> None:
        self.logger = logging.getLogger(name)
        self.logger.setLevel(level)

    def log(self, debug_message: str, level: int, sanitized_error_message: str = "") -> None:
        """
        Log the debug and sanitized messages using the logger
        """

        debug_message = debug_message.replace("'", '"').replace("\n", " ")
        sanitized_error_message = sanitized_error_message.replace("'", '"').replace("\n", " ")
        if sanitized_error_message:
            debug_message = f"{debug_message} ({sanitized_error_message})"

        # Collect details about the callee
        caller_frame = inspect.currentframe().f_back
        caller_info = inspect.getframeinfo(caller_frame)

        log_line = LogLine(
            time=str(datetime.now()),
            level=logging.getLevelName(level),
            caller_file=caller_info.filename.split("/")[-1],
            caller_name=caller_info.function,
            caller_line=caller_info.lineno,
            message=debug_message,
        )

        self.logger.log(level=level, msg=json.dumps(asdict(log_line)))
