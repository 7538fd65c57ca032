"""Duration formatting utilities."""

from datetime import timedelta


def format_duration(duration: timedelta) -> str:
    """
    Format a duration using its largest whole unit.

    Args:
        duration: Time span to format

    Returns:
        String such as ``"3d"``, ``"5h"`` or ``"12m"``
    """
    seconds = max(0, int(duration.total_seconds()))
    days, remainder = divmod(seconds, 86400)
    if days:
        return f"{days}d"
    hours = remainder // 3600
    if hours:
        return f"{hours}h"
    return f"{remainder // 60}m"
