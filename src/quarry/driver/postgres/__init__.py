from .driver import PostgresDriver

__all__ = ["PostgresDriver"]
