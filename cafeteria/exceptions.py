"""
Error taxonomy shared by the store, importer and API layers
"""


class MenuError(Exception):
    """Base class for all cafeteria menu errors"""


class ValidationError(MenuError):
    """A feed document or item entry is malformed"""


class StorageError(MenuError):
    """A write hit a constraint violation or the database is unreachable"""


class NotFoundError(MenuError):
    """A requested row does not exist"""
