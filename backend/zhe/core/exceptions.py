class ZheError(Exception):
    """Base class for errors raised by the data layer"""


class ValidationError(ZheError):
    """Input rejected before any statement reached the store"""


class StoreError(ZheError):
    """A statement failed inside the authoritative store"""


class UniqueViolationError(StoreError):
    """A unique constraint rejected the statement"""


class SlugConflictError(UniqueViolationError):
    """The slug is already used by another link (any owner)"""

    def __init__(self, slug: str):
        super().__init__(f"Slug '{slug}' is already taken")
        self.slug = slug
