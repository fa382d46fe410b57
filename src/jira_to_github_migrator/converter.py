"""Convert Jira rich text to GitHub Markdown.

Jira hands us descriptions and comment bodies in one of three shapes:

1. An Atlassian Document Format (ADF) tree: ``{"type": "doc", "content": [...]}``.
   It is parsed into :class:`ConversionNode` objects and rendered node by node.
2. Legacy wiki markup (``*bold*``, ``{code}``, ``h1.``...). This goes through two
   pure steps: :func:`legacy_to_generic_markup` rewrites the wiki syntax into
   HTML, then :func:`generic_markup_to_final_markup` renders that HTML as
   Markdown with ``markdownify``.
3. Anything else: wrapper objects are unwrapped, other values stringified.

Malformed ADF nodes never abort a conversion; they are dropped and the rest of
the document is rendered.
"""

from __future__ import annotations

import enum
import html
import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Final

from markdownify import ATX
from markdownify import MarkdownConverter as HtmlMarkdownConverter

from .exceptions import ConversionError

if TYPE_CHECKING:
    from collections.abc import Callable

logger: logging.Logger = logging.getLogger(__name__)

DEFAULT_MEDIA_ALT: Final[str] = "attachment"
_WRAPPER_FIELDS: Final[tuple[str, ...]] = ("content", "body", "text", "value")


class NodeKind(enum.Enum):
    DOCUMENT = "doc"
    TEXT = "text"
    PARAGRAPH = "paragraph"
    HEADING = "heading"
    ORDERED_LIST = "orderedList"
    BULLET_LIST = "bulletList"
    LIST_ITEM = "listItem"
    CODE_BLOCK = "codeBlock"
    MEDIA = "media"
    LINE_BREAK = "hardBreak"
    GENERIC = "generic"


_KIND_BY_ADF_TYPE: Final[dict[str, NodeKind]] = {kind.value: kind for kind in NodeKind} | {
    "mediaSingle": NodeKind.MEDIA,
    "mediaGroup": NodeKind.MEDIA,
}


@dataclass
class ConversionNode:
    """A node of the rich document tree, independent of ADF's JSON shape."""

    kind: NodeKind
    children: list[ConversionNode] = field(default_factory=list)
    text: str | None = None
    attrs: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_adf(cls, data: object) -> ConversionNode:
        """Parse an ADF node. Malformed children are dropped.

        Raises:
            ConversionError: If ``data`` itself is not an ADF node
        """
        if not isinstance(data, dict):
            msg = f"Expected an ADF node object, got {type(data).__name__}"
            raise ConversionError(msg)

        raw_type = data.get("type")
        kind = _KIND_BY_ADF_TYPE.get(raw_type, NodeKind.GENERIC) if isinstance(raw_type, str) else NodeKind.GENERIC

        children: list[ConversionNode] = []
        raw_children = data.get("content")
        if isinstance(raw_children, list):
            for raw_child in raw_children:
                try:
                    children.append(cls.from_adf(raw_child))
                except ConversionError as e:
                    logger.debug(f"Dropping malformed {raw_type} child: {e}")
        elif raw_children is not None:
            logger.debug(f"Ignoring non-list content of {raw_type} node")

        raw_text = data.get("text")
        raw_attrs = data.get("attrs")
        return cls(
            kind=kind,
            children=children,
            text=raw_text if isinstance(raw_text, str) else None,
            attrs=raw_attrs if isinstance(raw_attrs, dict) else {},
        )


class AdfRenderer:
    """Renders a :class:`ConversionNode` tree as Markdown."""

    _handlers: dict[NodeKind, Callable[[ConversionNode], str]]

    def __init__(self) -> None:
        self._handlers = {
            NodeKind.TEXT: self._text,
            NodeKind.LINE_BREAK: lambda _node: "\n",
            NodeKind.PARAGRAPH: self._paragraph,
            NodeKind.HEADING: self._heading,
            NodeKind.ORDERED_LIST: self._list,
            NodeKind.BULLET_LIST: self._list,
            NodeKind.LIST_ITEM: self._list_item,
            NodeKind.CODE_BLOCK: self._code_block,
            NodeKind.MEDIA: self._media,
        }

    def render(self, node: ConversionNode) -> str:
        handler = self._handlers.get(node.kind, self._container)
        return handler(node)

    def _children(self, node: ConversionNode) -> str:
        return "".join(self.render(child) for child in node.children)

    def _container(self, node: ConversionNode) -> str:
        # Documents and unknown kinds: recurse; unknown leaves yield nothing
        return self._children(node)

    def _text(self, node: ConversionNode) -> str:
        return node.text or ""

    def _paragraph(self, node: ConversionNode) -> str:
        if not node.children:
            return ""
        return self._children(node) + "\n\n"

    def _heading(self, node: ConversionNode) -> str:
        if not node.children:
            return ""
        level = node.attrs.get("level")
        if not isinstance(level, int) or not 1 <= level <= 6:  # noqa: PLR2004
            level = 1
        return f"{'#' * level} {self._children(node)}\n\n"

    def _list(self, node: ConversionNode) -> str:
        if not node.children:
            return ""
        ordered = node.kind is NodeKind.ORDERED_LIST
        lines: list[str] = []
        for index, item in enumerate(node.children, start=1):
            prefix = f"{index}. " if ordered else "- "
            first, *rest = self.render(item).strip().split("\n")
            # Indent continuation lines so nested lists stay attached to their item
            indent = " " * len(prefix)
            lines.append(prefix + first)
            lines.extend(indent + line if line else line for line in rest)
        return "\n".join(lines) + "\n\n"

    def _list_item(self, node: ConversionNode) -> str:
        return self._children(node).strip()

    def _code_block(self, node: ConversionNode) -> str:
        if not node.children:
            return ""
        language = node.attrs.get("language")
        fence = f"```{language}" if isinstance(language, str) else "```"
        return f"{fence}\n{self._children(node)}\n```\n\n"

    def _media(self, node: ConversionNode) -> str:
        # mediaSingle / mediaGroup wrap the actual media nodes
        if node.children:
            return self._children(node)
        alt = node.attrs.get("alt") or DEFAULT_MEDIA_ALT
        return f"[{alt}]"


_LINE_ENDINGS: Final[re.Pattern[str]] = re.compile(r"\r\n|\r")
_CODE_BLOCK: Final[re.Pattern[str]] = re.compile(r"\{code(?::([^}]+))?\}([\s\S]*?)\{code\}")
_INLINE_CODE: Final[re.Pattern[str]] = re.compile(r"\{\{([^}]+)\}\}")
_PLACEHOLDER: Final[re.Pattern[str]] = re.compile(r"\x00(\d+)\x00")

# Applied outside code only. Order matters: inline spans, links, headings.
_LEGACY_SUBSTITUTIONS: Final[tuple[tuple[re.Pattern[str], str], ...]] = (
    (re.compile(r"(?<![\w*])\*([^*\n]+)\*(?![\w*])"), r"<strong>\1</strong>"),
    (re.compile(r"(?<![\w])_([^_\n]+)_(?![\w])"), r"<em>\1</em>"),
    (re.compile(r"\[([^|\]]+)\|([^\]]+)\]"), r'<a href="\2">\1</a>'),
    (re.compile(r"\[([^\]]+)\]"), r'<a href="\1">\1</a>'),
    (re.compile(r"^h([1-6])\.\s*(.+)$", re.MULTILINE), r"<h\1>\2</h\1>"),
)


def legacy_to_generic_markup(text: str) -> str:
    """Rewrite Jira wiki markup into HTML.

    ``{code}`` blocks and ``{{inline}}`` spans are cut out first and put back
    verbatim at the end, so markup characters inside code are left alone.
    """
    protected: list[str] = []

    def protect(fragment: str) -> str:
        protected.append(fragment)
        return f"\x00{len(protected) - 1}\x00"

    text = _LINE_ENDINGS.sub("\n", text)
    text = _CODE_BLOCK.sub(
        lambda m: protect(
            f'<pre><code class="{m.group(1) or ""}">{html.escape(m.group(2), quote=False)}</code></pre>'
        ),
        text,
    )
    text = _INLINE_CODE.sub(lambda m: protect(f"<code>{html.escape(m.group(1), quote=False)}</code>"), text)

    for pattern, replacement in _LEGACY_SUBSTITUTIONS:
        text = pattern.sub(replacement, text)
    return _PLACEHOLDER.sub(lambda m: protected[int(m.group(1))], text)


def _code_language(el: Any) -> str | None:  # noqa: ANN401 - bs4 Tag
    code = el.find("code")
    classes = code.get("class") if code is not None else None
    languages = [c for c in classes or [] if c]
    return languages[0] if languages else None


class JiraHtmlConverter(HtmlMarkdownConverter):
    """markdownify converter with Jira-specific rules for ``<tt>`` and panels."""

    def __init__(self, **options: Any) -> None:  # noqa: ANN401
        options.setdefault("heading_style", ATX)
        options.setdefault("bullets", "-")
        options.setdefault("code_language_callback", _code_language)
        super().__init__(**options)

    def convert_tt(self, el: Any, text: str, parent_tags: set[str]) -> str:  # noqa: ANN401, ARG002
        if "_noformat" in parent_tags:
            return text
        return f"`{text}`"

    def convert_div(self, el: Any, text: str, parent_tags: set[str]) -> str:  # noqa: ANN401
        classes = el.get("class") or []
        if any("panel" in c for c in classes):
            quoted = text.strip().replace("\n", "\n> ")
            return f"\n> {quoted}\n"
        return super().convert_div(el, text, parent_tags)


def generic_markup_to_final_markup(html: str) -> str:
    """Render HTML as GitHub Markdown."""
    return JiraHtmlConverter().convert(html).strip()


class DocumentConverter:
    """Converts any Jira rich-text value to Markdown.

    Stateless and free of I/O, so one instance can be shared for a whole run.
    """

    _renderer: AdfRenderer

    def __init__(self) -> None:
        self._renderer = AdfRenderer()

    def to_markdown(self, content: object) -> str:
        """Convert an ADF tree, wiki markup or plain value to Markdown.

        Empty input (``None``, ``""``...) always yields ``""``.
        """
        if not content:
            return ""

        if isinstance(content, dict):
            if isinstance(content.get("type"), str):
                return self.document_to_markdown(content)
            for name in _WRAPPER_FIELDS:
                value = content.get(name)
                if value:
                    return self.to_markdown(value)
            content = str(content)
        elif not isinstance(content, str):
            content = str(content)

        return generic_markup_to_final_markup(legacy_to_generic_markup(content))

    def document_to_markdown(self, document: dict[str, Any]) -> str:
        """Render an ADF tree. Malformed nodes degrade to partial text."""
        try:
            root = ConversionNode.from_adf(document)
        except ConversionError as e:
            logger.warning(f"Could not parse rich text document: {e}")
            return ""
        return self._renderer.render(root)


_default_converter = DocumentConverter()


def to_markdown(content: object) -> str:
    """Module-level shortcut for :meth:`DocumentConverter.to_markdown`."""
    return _default_converter.to_markdown(content)
