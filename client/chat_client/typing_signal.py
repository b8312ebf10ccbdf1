import threading

QUIET_PERIOD = 0.7


class TypingDebouncer:
    """Emit isTyping=True on a keystroke and isTyping=False after a quiet period.

    Every keystroke restarts the quiet period; nothing accumulates.
    `timer_factory(interval, fn)` must return an object with start()/cancel(),
    which threading.Timer does.
    """

    def __init__(self, emit, quiet_period=QUIET_PERIOD, timer_factory=threading.Timer):
        self._emit = emit
        self._quiet_period = quiet_period
        self._timer_factory = timer_factory
        self._timer = None
        self._lock = threading.Lock()

    def keystroke(self):
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = self._timer_factory(self._quiet_period, self._quiet)
            if hasattr(self._timer, 'daemon'):
                self._timer.daemon = True
            self._timer.start()
        self._emit(True)

    def _quiet(self):
        with self._lock:
            self._timer = None
        self._emit(False)

    def stop(self):
        """Cancel a pending quiet timer and announce the user stopped typing right away."""
        with self._lock:
            pending = self._timer is not None
            if pending:
                self._timer.cancel()
                self._timer = None
        if pending:
            self._emit(False)

    @property
    def active(self):
        return self._timer is not None
