from rich.console import Console


def get_rich_console() -> Console: return Console(stderr=True)


def format_size_mb(size: int | None) -> str:
    return f"{(size or 0) / 1024 / 1024:.2f} MB"
