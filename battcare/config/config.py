from configparser import ConfigParser, Error as ConfigParserError
import logging
from os import getenv, path
from subprocess import getoutput
import sys
from typing import Callable

from pyinotify import ThreadedNotifier, WatchManager

from battcare.config.event_handler import ConfigEventHandler, MASK
from battcare.globals import SYSTEM_CONFIG_FILE

BACKEND_OPTIONS = {
    "native": "natacpi_enable",
    "legacy-tool": "tpacpi_enable",
    "vendor-module": "tpsmapi_enable",
}

def find_config_file(args_config_file) -> str | None:
    """
    Find the config file to use.

    Look for a config file in the following priorization order:
    1. Command line argument
    2. User config file
    3. System config file

    :param args_config_file: Path to the config file provided as a command line argument
    :return: The path to the config file to use, None if there is none
    """
    if args_config_file is not None:
        if path.isfile(args_config_file): return args_config_file    # (1) Command line argument was specified
        print(f'Error: Config file specified with "--config {args_config_file}" not found.')
        sys.exit(1)

    # use $SUDO_USER or $USER to get home dir since sudo can't access user env vars
    user_config_path = getenv('XDG_CONFIG_HOME', default=getoutput('getent passwd ${SUDO_USER:-$USER} | cut -d: -f6')+'/.config')
    for dir in ('', '/battcare'):
        conf_file = user_config_path+dir+'/battcare.conf'
        if path.isfile(conf_file): return conf_file                  # (2) User config file

    if path.isfile(SYSTEM_CONFIG_FILE): return SYSTEM_CONFIG_FILE    # (3) System config file
    return None

class Config:
    conf: ConfigParser
    file: str | None = None
    auto_reload: bool = False

    def __init__(self) -> None:
        self.conf = ConfigParser()
        self.listeners: list[Callable[[], None]] = []

    def get_option(self, section: str, option: str) -> str: return self.conf[section][option]

    def has_option(self, section: str, option: str) -> bool: return self.conf.has_option(section, option)

    def backend_enabled(self, method: str) -> bool:
        """A backend is enabled unless its flag is explicitly switched off."""
        try: return self.conf.getboolean("battery", BACKEND_OPTIONS[method], fallback=True)
        except ValueError:
            logging.warning("invalid value for [battery] %s, treating it as enabled", BACKEND_OPTIONS[method])
            return True

    def get_threshold(self, battery: str, mode: str) -> str | None:
        """Raw configured threshold for a battery section, validation happens later."""
        option = f"{mode}_threshold"
        for section in (battery, battery.upper(), battery.lower()):
            if self.has_option(section, option): return self.get_option(section, option).strip()
        return None

    def set_file(self, file: str | None) -> None:
        self.file = file
        if file is None:
            logging.info("no config file found, using defaults")
            return
        logging.info("using settings defined in %s", file)
        self.update_config()
        if self.auto_reload: self.watch_manager.add_watch(path.dirname(file), mask=MASK)

    def setup(self, args_config_file: str | None, auto_reload: bool = False) -> None:
        self.auto_reload = auto_reload
        if self.auto_reload:    # check for file changes using threading
            self.watch_manager: WatchManager = WatchManager()
            self.notifier: ThreadedNotifier = ThreadedNotifier(self.watch_manager, ConfigEventHandler(self))
            self.notifier.start()

        self.set_file(find_config_file(args_config_file))

    def stop_notifier(self) -> None:
        if self.auto_reload: self.notifier.stop()

    def add_listener(self, listener: Callable[[], None]) -> None: self.listeners.append(listener)

    def notify_listeners(self) -> None:
        for listener in self.listeners: listener()

    def update_config(self) -> None:
        self.conf = ConfigParser()      # create new ConfigParser to prevent old data from remaining
        try: self.conf.read(self.file)
        except ConfigParserError as e: logging.error("the following error occured while parsing the config file: %r", e)

CONFIG = Config()
