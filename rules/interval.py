"""rules.interval: Backoff policy for thumbnail rechecks."""

DEFAULT_CEILING_DAYS = 16


def next_check_interval(
    current_days: int,
    changed: bool,
    errored: bool,
    ceiling_days: int = DEFAULT_CEILING_DAYS,
) -> int:
    """Return the gap, in days, before the next check.

    An error holds the interval whatever ``changed`` says. A detected change
    resets it to one day. Otherwise it doubles up to ``ceiling_days``.
    """
    if current_days < 0:
        raise ValueError(f"Interval must be non-negative, got {current_days}")

    if errored:
        return current_days
    if changed:
        return 1
    return min(current_days * 2, ceiling_days)
