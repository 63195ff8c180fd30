"""
Common utility functions used across multiple routes and services.
"""

import re
import unicodedata
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Optional, TypeVar
from urllib.parse import quote

from sqlalchemy.orm import Session

from cybertrain.config import Base
from cybertrain.utils.errors import NotFoundError

ModelT = TypeVar("ModelT", bound=Base)


def iso_format(dt: datetime) -> str:
    """Format datetime as ISO string with Z suffix."""
    return dt.isoformat() + "Z"


def iso_or_none(dt: Optional[datetime]) -> Optional[str]:
    return iso_format(dt) if dt is not None else None


def get_or_404(db: Session, model: type[ModelT], entity_id: int, label: Optional[str] = None) -> ModelT:
    """Fetch a row by primary key or raise NotFoundError ("<Label> not found")."""
    obj = db.get(model, entity_id)
    if obj is None:
        raise NotFoundError(f"{label or model.__name__} not found")
    return obj


def file_safe(text: str) -> str:
    """Make a value usable inside a download filename; quotes and control characters are dropped."""
    joined = "_".join(text.split()).replace("/", "-")
    return "".join(ch for ch in joined if ch not in "\"\\" and not unicodedata.category(ch).startswith("C"))


def ascii_filename(filename: str) -> str:
    """ASCII-only form of a filename; accents are folded and anything else is dropped."""
    folded = unicodedata.normalize("NFKD", filename).encode("ascii", "ignore").decode("ascii")
    return re.sub(r"_{2,}", "_", folded)


def content_disposition(filename: str) -> str:
    """
    Attachment header value. HTTP headers are latin-1, so the plain ``filename`` carries an
    ASCII fallback and ``filename*`` carries the full UTF-8 name percent-encoded (RFC 6266).
    """
    return f"attachment; filename=\"{ascii_filename(filename)}\"; filename*=UTF-8''{quote(filename, safe='')}"


@contextmanager
def atomic(db: Session) -> Iterator[Session]:
    """Run a unit of work as one transaction: commit on success, roll back and re-raise on failure."""
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
