"""Module for time utilities."""
import time


def get_current_time_ms() -> int:
    """Get current timestamp in milliseconds."""
    return int(time.time() * 1000)
