import time
from threading import Event
from typing import Optional

from .exc import QueryTimeout, Cancelled


class Deadline:
    """ A time budget for a store call, with an optional cancellation switch

        The translator checks it before and after every store call; a write checks it once more before the commit:

            deadline = Deadline(timeout=5.0)
            translator.find_all(deadline=deadline)

        To cancel a call from another thread, give it an Event and set() it:

            cancel = threading.Event()
            deadline = Deadline(cancel_event=cancel)
    """

    def __init__(self, timeout: Optional[float] = None, cancel_event: Optional[Event] = None):
        """ Init a deadline

        :param timeout: Number of seconds the call may take. None: no limit
        :param cancel_event: An Event that cancels the call when set
        """
        assert timeout is None or timeout >= 0
        self.timeout = timeout
        self.cancel_event = cancel_event
        self.expires_at = None if timeout is None else time.monotonic() + timeout

    @property
    def remaining(self) -> Optional[float]:
        """ Seconds left, or None when there's no time limit """
        if self.expires_at is None:
            return None
        return max(0.0, self.expires_at - time.monotonic())

    def check(self, operation: str = 'call'):
        """ Raise if the call has to stop

        :raises Cancelled: the cancel event is set
        :raises QueryTimeout: the deadline has expired
        """
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise Cancelled('{} was cancelled'.format(operation))
        if self.expires_at is not None and time.monotonic() >= self.expires_at:
            raise QueryTimeout('{} has exceeded its deadline of {}s'.format(operation, self.timeout))

    def __repr__(self):
        return 'Deadline(timeout={!r})'.format(self.timeout)
