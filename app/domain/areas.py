"""Areas of law offered when creating a timeline."""

AREA_OF_LAW_OPTIONS: list[tuple[str, str]] = [
    ("criminal", "Criminal Law"),
    ("civil", "Civil Law"),
    ("corporate", "Corporate Law"),
    ("family", "Family Law"),
    ("intellectual", "Intellectual Property Law"),
]

_LABELS = dict(AREA_OF_LAW_OPTIONS)


def area_label(value: str) -> str:
    """Display label for an area-of-law value; unknown values are shown as-is."""
    return _LABELS.get(value, value)
