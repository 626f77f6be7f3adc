from __future__ import annotations


class MimeError(RuntimeError):
    pass


class HeaderMalformed(MimeError):
    """A structured header stayed unusable after normalization."""


class DecodeFailed(MimeError):
    """Transfer decoding of a leaf payload failed."""


class StructureTooDeep(MimeError):
    def __init__(self, depth: int, limit: int) -> None:
        super().__init__(f"MIME nesting depth {depth} exceeds limit {limit}")
        self.depth = depth
        self.limit = limit
