import logging

import pyinotify

MASK = pyinotify.IN_CREATE | pyinotify.IN_DELETE | pyinotify.IN_MODIFY | pyinotify.IN_MOVED_FROM | pyinotify.IN_MOVED_TO

class ConfigEventHandler(pyinotify.ProcessEvent):
    """Reloads the config and re-runs its listeners on any change of the watched file."""

    def __init__(self, config) -> None:
        self.config = config

    def _process_update(self, event: pyinotify.Event) -> None:
        # editors write a backup ending in '~' next to the file
        if event.pathname.rstrip("~") != self.config.file: return
        logging.info("%s changed, reloading", self.config.file)
        self.config.update_config()
        self.config.notify_listeners()

    process_IN_MODIFY = process_IN_CREATE = process_IN_DELETE = _process_update

    # editors saving through a temporary file show up as moves
    process_IN_MOVED_FROM = process_IN_MOVED_TO = _process_update
