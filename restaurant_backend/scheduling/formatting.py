from restaurant_backend.scheduling.models import BookingRules


def _pluralize(count: int, unit: str) -> str:
    return f'{count} {unit}' if count == 1 else f'{count} {unit}s'


def format_time_margin(minutes: int) -> str:
    hours, mins = divmod(minutes, 60)

    if hours == 0:
        return _pluralize(mins, 'minute')
    if mins == 0:
        return _pluralize(hours, 'hour')
    return f"{_pluralize(hours, 'hour')} {_pluralize(mins, 'minute')}"


def time_margin_description(rules: BookingRules) -> str:
    margin_text = format_time_margin(rules.booking_time_margin)
    return f'Tables remain unavailable for {margin_text} after each booking ends to allow for cleanup and preparation.'
