"""Testing fakes – deterministic doubles for kernel ports."""
from reliable_delivery.kernel.time import FrozenClock
from reliable_delivery.testing.fakes.clock import EPOCH, FakeClock
from reliable_delivery.testing.fakes.transport import RecordingTransport

__all__ = ["EPOCH", "FakeClock", "FrozenClock", "RecordingTransport"]
