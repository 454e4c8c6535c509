"""Message template loading and rendering."""

import html
import logging
import re
from dataclasses import dataclass
from pathlib import Path

import yaml

from tutoring.config import get_brand_name, get_default_language
from tutoring.enums import NotificationType


logger = logging.getLogger(__name__)

GENERIC_TEMPLATE = "generic"

# Regex to match markdown links: [text](url)
MARKDOWN_LINK_PATTERN = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")
HTML_LINK_PATTERN = re.compile(r'<a href="([^"]*)">(.*?)</a>', re.DOTALL)
HTML_BREAK_PATTERN = re.compile(r"<br\s*/?>[ \t]*\n?", re.IGNORECASE)
HTML_BLOCK_END_PATTERN = re.compile(r"</(p|div|h[1-6])>", re.IGNORECASE)
HTML_TAG_PATTERN = re.compile(r"<[^>]+>")

_templates: dict | None = None


def load_templates() -> dict:
    """
    Load message templates from YAML file.

    Caches templates after first load.
    """
    global _templates
    if _templates is not None:
        return _templates

    yaml_path = Path(__file__).parent / "messages.yaml"
    with open(yaml_path, encoding="utf-8") as f:
        _templates = yaml.safe_load(f)

    return _templates


def render_message(template: str, context: dict) -> str:
    """
    Render a message template with context variables.

    Args:
        template: String with {variable} placeholders
        context: Dict of variable names to values

    Returns:
        Rendered string

    Raises:
        KeyError: If a required variable is missing from context
    """
    return template.format(**context)


def markdown_to_html(text: str, language: str = "ar", title: str | None = None) -> str:
    """
    Convert markdown-style links to HTML and wrap in basic HTML structure.

    Converts [text](url) to <a href="url">text</a> and preserves line breaks.
    Arabic content is laid out right-to-left.
    """
    direction = "rtl" if language == "ar" else "ltr"
    align = "right" if direction == "rtl" else "left"

    html_body = MARKDOWN_LINK_PATTERN.sub(r'<a href="\2">\1</a>', text.strip())
    html_body = html_body.replace("\n", "<br>\n")
    heading = f"<h2>{title}</h2>\n" if title else ""

    return f"""<!DOCTYPE html>
<html dir="{direction}" lang="{language}">
<head>
    <meta charset="utf-8">
</head>
<body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Tahoma, sans-serif; line-height: 1.6; color: #333; text-align: {align};">
{heading}{html_body}
</body>
</html>"""


def html_to_plain_text(markup: str) -> str:
    """
    Derive a plain-text alternative from an HTML body.

    Links become "text (url)", line breaks are kept and all other markup is
    stripped.
    """
    text = HTML_LINK_PATTERN.sub(
        lambda m: m.group(2) if m.group(2) == m.group(1) else f"{m.group(2)} ({m.group(1)})",
        markup,
    )
    text = HTML_BREAK_PATTERN.sub("\n", text)
    text = HTML_BLOCK_END_PATTERN.sub("\n\n", text)
    text = HTML_TAG_PATTERN.sub("", text)
    text = html.unescape(text)

    lines = [line.strip() for line in text.splitlines()]
    text = "\n".join(lines)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


@dataclass
class RenderedMessage:
    """Texts for every channel, rendered from one template entry."""

    title: str
    message: str
    subject: str | None = None
    html: str | None = None
    text: str | None = None

    @property
    def has_email(self) -> bool:
        return self.subject is not None and self.html is not None


class TemplateRenderer:
    """
    Renders notification texts per kind and language.

    Unknown kinds and templates with missing placeholders fall back to the
    generic template instead of failing the delivery.
    """

    def __init__(self, templates: dict | None = None):
        self._templates = templates

    @property
    def templates(self) -> dict:
        if self._templates is None:
            self._templates = load_templates()
        return self._templates

    def render(
        self,
        kind: NotificationType | str,
        language: str | None = None,
        params: dict | None = None,
    ) -> RenderedMessage:
        key = getattr(kind, "value", kind)
        context = {"brand": get_brand_name(), "name": "", **(params or {})}

        entry = self.templates.get(key)
        if entry:
            try:
                return self._render_entry(entry, language, context)
            except KeyError as e:
                logger.warning(
                    f"Template {key!r} could not be rendered (missing {e}), "
                    "using generic template"
                )
        else:
            logger.warning(f"No template for {key!r}, using generic template")

        return self._render_entry(self.templates[GENERIC_TEMPLATE], language, context)

    def _render_entry(
        self, entry: dict, language: str | None, context: dict
    ) -> RenderedMessage:
        language, parts = self._pick_language(entry, language)

        title = render_message(parts["title"], context)
        message = render_message(parts["message"], context)
        if "email_subject" not in parts or "email_body" not in parts:
            return RenderedMessage(title=title, message=message)

        html_context = {k: html.escape(str(v)) for k, v in context.items()}
        subject = render_message(parts["email_subject"], context)
        body = render_message(parts["email_body"], html_context)
        html_body = markdown_to_html(body, language=language, title=html.escape(title))

        return RenderedMessage(
            title=title,
            message=message,
            subject=subject,
            html=html_body,
            text=html_to_plain_text(html_body),
        )

    @staticmethod
    def _pick_language(entry: dict, language: str | None) -> tuple[str, dict]:
        for candidate in (language, get_default_language()):
            if candidate and candidate in entry:
                return candidate, entry[candidate]
        fallback = next(iter(entry))
        return fallback, entry[fallback]
