"""Terminal renderer — prints the session's filtered view as it changes."""

import sys

from log_viewer.formatter import format_record
from log_viewer.session import LogViewerSession


class TerminalRenderer:
    """Subscribes to a session and prints each newly visible record once.

    Records are written oldest first so the terminal reads top to bottom;
    a historical page that arrives after live records is printed when it
    lands, not re-sorted into already printed output.

    The printed set holds identities of records still in the timeline; it
    grows with the timeline and is emptied when the timeline is cleared.
    """

    def __init__(self, session: LogViewerSession, out=None, color: bool = True):
        self._session = session
        self._out = out or sys.stdout
        self._color = color
        self._printed: set = set()
        self._unsubscribe = None
        self._reported_error = None

    def attach(self):
        self._unsubscribe = self._session.subscribe(self._on_change)

    def detach(self):
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    @property
    def printed(self) -> int:
        return len(self._printed)

    def refresh(self):
        """Print anything visible that has not been printed yet."""
        self._on_change(None)

    def report_error(self) -> bool:
        """Print the session's blocking error once. Returns True if there is one."""
        error = self._session.error
        if error is None:
            return False
        if error is not self._reported_error:
            self._reported_error = error
            self._out.write(f"ERROR: {error.message} (retry to reconnect)\n")
            self._out.flush()
        return True

    def _on_change(self, _snapshot):
        if not _snapshot and _snapshot is not None:
            # Timeline was cleared: start over.
            self._printed.clear()
            return
        fresh = [r for r in self._session.get_filtered_view() if r.identity not in self._printed]
        for record in reversed(fresh):
            spans = self._session.highlight_spans(record.log_string)
            self._out.write(format_record(record, spans, color=self._color) + "\n")
            self._printed.add(record.identity)
        if fresh:
            self._out.flush()
