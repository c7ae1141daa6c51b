"""Testing support – fakes and pytest fixtures.

Import in your ``conftest.py``::

    pytest_plugins = ["reliable_delivery.testing.fixtures"]
"""

from reliable_delivery.testing.fakes import FakeClock, FrozenClock, RecordingTransport

__all__ = ["FakeClock", "FrozenClock", "RecordingTransport"]
