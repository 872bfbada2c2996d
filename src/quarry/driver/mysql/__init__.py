from .driver import MysqlDriver

__all__ = ["MysqlDriver"]
