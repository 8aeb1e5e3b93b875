# =============================================================================
# Rendering Module
# =============================================================================
# Degrades HTML bodies to plain text for quoting, forwarding and templates.
# Uses inscriptis for HTML->text conversion plus whitespace normalization.
# =============================================================================

from quill.rendering.text import TextRenderer, html_to_text, sanitize_text

__all__ = ["TextRenderer", "html_to_text", "sanitize_text"]
