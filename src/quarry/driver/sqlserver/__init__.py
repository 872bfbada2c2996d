from .driver import SqlServerDriver

__all__ = ["SqlServerDriver"]
