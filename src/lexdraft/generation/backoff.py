"""Exponential backoff between AI generation attempts."""


def compute_backoff_delay(attempt: int, base_ms: int = 500, cap_ms: int = 2000) -> int:
    """
    Delay before retrying after ``attempt`` failed.

    Args:
        attempt: 1-indexed number of the attempt that just failed
        base_ms: Delay after the first failure
        cap_ms: Upper bound for any delay

    Returns:
        Delay in milliseconds, ``min(base_ms * 2^(attempt-1), cap_ms)``
    """
    if attempt < 1:
        raise ValueError(f"attempt must be >= 1, got {attempt}")
    return min(base_ms * 2 ** (attempt - 1), cap_ms)
