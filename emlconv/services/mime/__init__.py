from __future__ import annotations

from emlconv.services.mime.body import empty_body, select_body  # noqa: F401
from emlconv.services.mime.dump import dump_structure  # noqa: F401
from emlconv.services.mime.errors import (  # noqa: F401
    DecodeFailed,
    HeaderMalformed,
    MimeError,
    StructureTooDeep,
)
from emlconv.services.mime.media import InlineMediaIndex, InlineMediaIndexBuilder  # noqa: F401
from emlconv.services.mime.normalize import normalize  # noqa: F401
from emlconv.services.mime.parser import parse_message  # noqa: F401
from emlconv.services.mime.types import (  # noqa: F401
    ClassifiedEntry,
    ContentDisposition,
    ContentType,
    Diagnostic,
    MimeContainer,
    MimeLeaf,
    MimeNode,
    ParserOptions,
)
from emlconv.services.mime.walker import Classification, classify  # noqa: F401
