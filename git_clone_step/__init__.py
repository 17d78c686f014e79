"""Git clone step package initialization."""

__all__ = [
    "cli",
    "checkout",
    "credentials",
    "repo_cloner",
    "template_engine",
    "reporter",
]
