"""Token and duration formatting."""


def fmt_tokens(n: int) -> str:
    if n >= 1_000_000:
        return f"{n / 1_000_000:.1f}M"
    if n >= 1_000:
        return f"{n / 1_000:.1f}K"
    return str(n)


def fmt_duration(ms: int) -> str:
    """1234 → 1.23s"""
    return f"{ms / 1000:.2f}s"
