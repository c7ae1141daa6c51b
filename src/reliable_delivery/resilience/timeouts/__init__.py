from reliable_delivery.resilience.timeouts.policy import TimeoutPolicy

__all__ = ["TimeoutPolicy"]
