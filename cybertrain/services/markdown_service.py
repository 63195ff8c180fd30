import html
import logging

import markdown

logger = logging.getLogger(__name__)

_EXTENSIONS = ["extra", "nl2br", "sane_lists"]


def to_html(markdown_text: str | None) -> str:
    """Render lesson markdown to HTML; fall back to escaped text if rendering fails."""
    if not markdown_text or not markdown_text.strip():
        return ""
    try:
        return markdown.markdown(markdown_text, extensions=_EXTENSIONS, output_format="html")
    except Exception:
        logger.warning("Markdown rendering failed; returning escaped text", exc_info=True)
        return f"<p>{html.escape(markdown_text)}</p>"
