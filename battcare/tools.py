import logging
from logging.handlers import RotatingFileHandler
import os
from pathlib import Path
from subprocess import DEVNULL, PIPE, TimeoutExpired, run
import sys

from battcare.globals import LOG_DIR
from battcare.prints import print_error


class ConditionalFormatter(logging.Formatter):
    """
    A custom formatter that applies different format strings based on record level.
    Shows file name and line number only for ERROR and CRITICAL levels.
    """

    def __init__(self) -> None:
        self.default_fmt = "%(asctime)s [%(levelname)s] [%(module)s] %(message)s"
        self.error_fmt = "%(asctime)s [%(levelname)s] [%(filename)s:%(lineno)d] %(message)s"

        super().__init__(fmt=self.default_fmt, datefmt="%Y-%m-%d %H:%M:%S")

    def format(self, record) -> str:
        original_fmt: str = self._style._fmt

        if record.levelno >= logging.ERROR:
            self._style._fmt = self.error_fmt
        else:
            self._style._fmt = self.default_fmt

        result: str = super().format(record)

        self._style._fmt = original_fmt

        return result


def setup_logger(verbose: bool = False) -> None:
    """Setup global logging.

    The rotating log file is only added when the log directory is usable,
    queries run by unprivileged users just log to stdout.
    """
    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(logging.Formatter("[%(levelname)s] [%(module)s] %(message)s"))
    handlers: list[logging.Handler] = [stream_handler]

    if create_log_dir():
        file_handler = RotatingFileHandler(
            os.path.join(LOG_DIR, "battcare.log"),
            maxBytes=10*1024*1024, # 10MB
            encoding="utf-8"
        )
        file_handler.setFormatter(ConditionalFormatter())
        handlers.append(file_handler)

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        handlers=handlers,
    )

def create_log_dir() -> bool:
    try:
        os.makedirs(LOG_DIR, mode=0o755, exist_ok=True)
        return os.access(LOG_DIR, os.W_OK)
    except OSError:
        return False

def root_check() -> None:
    if os.getuid() != 0:
        print_error("Must be run with root privileges, for example: sudo battcare ...")
        sys.exit(1)

def read_sysfs(path: str | Path) -> str | None:
    """Return the trimmed content of a sysfs attribute, None if it can't be read."""
    try:
        return Path(path).read_text(errors="replace").strip()
    except (FileNotFoundError, NotADirectoryError):
        return None
    except OSError as e:
        logging.debug("failed to read %s: %s", path, e)
        return None

def read_sysfs_int(path: str | Path) -> int | None:
    value = read_sysfs(path)
    try:
        return int(value) if value is not None else None
    except ValueError:
        logging.debug("non numeric value in %s: %r", path, value)
        return None

def write_sysfs(path: str | Path, value: object) -> bool:
    try:
        Path(path).write_text(f"{value}\n")
        return True
    except PermissionError:
        logging.warning("no permission to write %s", path)
        return False
    except OSError as e:
        logging.error("failed to write %s to %s: %s", value, path, e)
        return False

def run_command(args: list[str], timeout: float = 10) -> tuple[int, str]:
    """Run an external command, return (exit status, stripped stdout)."""
    try:
        result = run(args, stdout=PIPE, stderr=DEVNULL, text=True, errors="replace", timeout=timeout)
    except FileNotFoundError:
        return 127, ""
    except OSError as e:
        # exists but can't be executed, same status a shell reports
        logging.error("failed to run %s: %s", args[0], e)
        return 126, ""
    except TimeoutExpired:
        logging.error("%s timed out after %ss", " ".join(args), timeout)
        return 124, ""
    return result.returncode, result.stdout.strip()

def module_installed(module: str) -> bool:
    """True if modinfo can resolve the kernel module, i.e. it can be loaded."""
    return run_command(["modinfo", module])[0] == 0
