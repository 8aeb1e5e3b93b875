# =============================================================================
# HTML to Plain Text
# =============================================================================
# Degrades HTML message bodies to plain text using inscriptis.
#
# inscriptis takes care of the hard parts:
#   - Stripping every tag while keeping block structure (paragraphs, lists,
#     table rows become line breaks)
#   - Decoding HTML entities
#
# On top of that we normalize whitespace so the result reads well in a
# quoted reply or an editor buffer:
#   - 2+ line breaks (with trailing whitespace) -> exactly one blank line
#   - tabs and non-breaking spaces -> a single space
#   - runs of 2+ spaces -> exactly two spaces
#
# The normalization is idempotent: sanitizing sanitized text is a no-op.
# =============================================================================

import re

from inscriptis import get_text
from inscriptis.css_profiles import CSS_PROFILES
from inscriptis.model.config import ParserConfig

_BLANK_LINES_RE = re.compile(r"(\r?\n\s*){2,}")
_HTML_BLANK_LINES_RE = re.compile(r"(\r?\n){2,}")
_TABS_RE = re.compile(r"(\t|&nbsp;|\xa0)")
_SPACES_RE = re.compile(r" {2,}")


class TextRenderer:
    """
    Renders HTML to plain text with inscriptis.

    Usage:
        >>> renderer = TextRenderer()
        >>> renderer.render("<p>Hi</p><p>There</p>")
        'Hi\\n\\nThere'
    """

    def __init__(self) -> None:
        # Quoted text carries no link targets or image placeholders
        self._config = ParserConfig(
            css=CSS_PROFILES["strict"],
            display_links=False,
            display_images=False,
            display_anchors=False,
        )

    def render(self, html_content: str) -> str:
        """
        Convert HTML to sanitized plain text.

        Args:
            html_content: HTML markup, possibly several documents glued
                          together.

        Returns:
            Plain text, or "" for blank input.
        """
        if not html_content or not html_content.strip():
            return ""

        text = get_text(self._preclean_html(html_content), self._config)
        return sanitize_text(text)

    def _preclean_html(self, html: str) -> str:
        """Remove content inscriptis would otherwise print as text."""
        # IE / MSO conditional comments
        html = re.sub(r"<!--\[if[^\]]*\]>.*?<!\[endif\]-->", "", html, flags=re.DOTALL | re.IGNORECASE)
        html = re.sub(r"<!\[if[^\]]*\]>.*?<!\[endif\]>", "", html, flags=re.DOTALL | re.IGNORECASE)

        html = re.sub(r"<style[^>]*>.*?</style>", "", html, flags=re.DOTALL | re.IGNORECASE)
        html = re.sub(r"<script[^>]*>.*?</script>", "", html, flags=re.DOTALL | re.IGNORECASE)
        html = re.sub(r"<\?xml[^>]*\?>", "", html, flags=re.IGNORECASE)

        return html


def sanitize_text(text: str) -> str:
    """
    Normalize whitespace of text extracted from HTML.

    Applying this function twice gives the same result as applying it once.
    """
    text = _TABS_RE.sub(" ", text)
    text = _BLANK_LINES_RE.sub("\n\n", text)
    text = _SPACES_RE.sub("  ", text)
    return text.strip()


def merge_blank_lines(html: str) -> str:
    """Collapse 2+ consecutive line breaks of raw HTML into one blank line."""
    return _HTML_BLANK_LINES_RE.sub("\n\n", html)


_default_renderer: TextRenderer | None = None


def html_to_text(html_content: str) -> str:
    """Convert HTML to sanitized plain text with the default renderer."""
    global _default_renderer
    if _default_renderer is None:
        _default_renderer = TextRenderer()
    return _default_renderer.render(html_content)
