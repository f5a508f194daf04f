import threading

import numpy as np


class TensorLedger:
    """Tracks numeric buffers between allocation and release.

    Every array created on the inference path is registered here and must be
    released exactly once. `live` reports how many are still held, which is
    what the hygiene tests assert on.
    """

    def __init__(self):
        self._live = {}
        self._lock = threading.Lock()
        self.allocated = 0
        self.released = 0

    def track(self, array):
        array = np.asarray(array)
        with self._lock:
            key = id(array)
            if key not in self._live:
                self._live[key] = array
                self.allocated += 1
        return array

    def release(self, *arrays):
        with self._lock:
            for array in arrays:
                if array is None:
                    continue
                if self._live.pop(id(array), None) is not None:
                    self.released += 1

    def is_live(self, array):
        return id(array) in self._live

    @property
    def live(self):
        return len(self._live)


class TensorScope:
    """Collects tensors created during one unit of work and releases them on exit.

    Tensors passed to `keep` survive the scope and become the caller's.
    """

    def __init__(self, ledger):
        self.ledger = ledger
        self._owned = []
        self._kept = set()

    def track(self, array):
        array = self.ledger.track(array)
        self._owned.append(array)
        return array

    def keep(self, array):
        self._kept.add(id(array))
        return array

    def close(self):
        to_release = [a for a in self._owned if id(a) not in self._kept]
        self._owned = []
        self.ledger.release(*to_release)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
