class EventHook(object):
    """
    Simple event implementation.
    Usage:
        on_event = EventHook()
        on_event += handler
        on_event.fire(*args, **kwargs)
    """

    def __init__(self):
        self._handlers = []

    def __iadd__(self, handler):
        self._handlers.append(handler)
        return self

    def __isub__(self, handler):
        if handler in self._handlers:
            self._handlers.remove(handler)
        return self

    def __len__(self):
        return len(self._handlers)

    def fire(self, *args, **kwargs):
        """
        Call all registered handlers with the given arguments.
        """
        for handler in list(self._handlers):
            handler(*args, **kwargs)

    def clear(self):
        self._handlers = []
