"""
`ldavec.session.Session` objects hold the execution context for loading data: a
worker pool for parallel parsing, with explicit start-up and tear-down.
"""

import contextlib
import os

from joblib import Parallel, delayed

import ldavec.dataset


class Session:
    """
    An explicit execution context for reading and parsing input data.

    The session owns a `joblib` thread pool that is created by `Session.start()` and
    released by `Session.stop()`.  Sessions can (and usually should) be used as
    context managers:

    >>> with Session(app_name="LDAExample") as session:
    ...     dataset = ldavec.read_vectors(session, "sample_lda_data.txt")

    Parameters
    ----------
    app_name: str, optional
        A human-readable name for the session.
    workers: int or "auto", optional
        Number of worker threads.  joblib conventions are followed, so `-1` will
        use all cores.  If "auto", will use half the number of available CPU cores.
    """

    def __init__(self, app_name="ldavec", workers=1):
        self.app_name = app_name

        if workers == "auto":
            # We need at least 1 worker
            workers = max(1, int((os.cpu_count() or 1) / 2))
        if not isinstance(workers, int) or workers == 0:
            raise ValueError(
                "Invalid value for `workers` (must be a non-zero integer or 'auto')"
            )
        self.workers = workers

        self._exit_stack = None
        self._parallel = None
        self._stopped = False

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()

    def __repr__(self):
        if self._stopped:
            state = "stopped"
        elif self._parallel is not None:
            state = "active"
        else:
            state = "new"
        return f"<Session '{self.app_name}': {state}, workers={self.workers}>"

    @property
    def active(self):
        return self._parallel is not None

    def start(self):
        """
        Acquire the session's worker pool.  Calling `start()` on an already active
        session does nothing.

        Returns
        -------
        Session
            This session, for chaining.
        """
        if self._stopped:
            raise RuntimeError(
                f"Session '{self.app_name}' has been stopped and cannot be restarted."
            )
        if self._parallel is None:
            self._exit_stack = contextlib.ExitStack()
            self._parallel = self._exit_stack.enter_context(
                Parallel(n_jobs=self.workers, prefer="threads")
            )
        return self

    def stop(self):
        """
        Release the session's worker pool.  Safe to call more than once.
        """
        if self._exit_stack is not None:
            self._exit_stack.close()
        self._exit_stack = None
        self._parallel = None
        self._stopped = True

    def _check_active(self):
        if self._stopped:
            raise RuntimeError(f"Session '{self.app_name}' has been stopped.")
        if self._parallel is None:
            raise RuntimeError(
                f"Session '{self.app_name}' has not been started; call `start()` or "
                f"use it as a context manager."
            )

    def text_file(self, path):
        """
        Read all the lines from a UTF-8 text file, with line terminators removed.

        Parameters
        ----------
        path: str or pathlib.Path

        Returns
        -------
        list of str
        """
        self._check_active()
        with open(path, "r", encoding="utf8") as fp:
            return [line.rstrip("\r\n") for line in fp]

    def map(self, func, items):
        """
        Apply `func` to every item on the session's worker pool.

        Results are returned in input order; the first exception raised by `func`
        propagates to the caller.

        Parameters
        ----------
        func: callable
        items: iterable

        Returns
        -------
        list
        """
        self._check_active()
        items = list(items)
        if not items:
            return []
        if self.workers == 1:
            return [func(item) for item in items]
        return self._parallel(delayed(func)(item) for item in items)

    def create_dataset(self, records, schema=None):
        """
        Build a `ldavec.dataset.Dataset` from the given rows.

        Parameters
        ----------
        records: iterable of ldavec.dataset.Record
        schema: ldavec.dataset.Schema, optional
            Defaults to `ldavec.dataset.FEATURES_SCHEMA`.

        Returns
        -------
        ldavec.dataset.Dataset
        """
        self._check_active()
        return ldavec.dataset.Dataset(records, schema)
