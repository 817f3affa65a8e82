import re

from bs4 import BeautifulSoup, Tag

_NON_VISIBLE_TAGS = ("script", "style", "noscript", "template")
_BLOCK_TAGS = (
    "address", "article", "aside", "blockquote", "dd", "div", "dl", "dt",
    "figcaption", "figure", "footer", "form", "h1", "h2", "h3", "h4", "h5", "h6",
    "header", "hr", "li", "main", "nav", "ol", "p", "section", "table", "td",
    "th", "tr", "ul",
)
_INLINE_WS_RE = re.compile(r"[ \t  ]+")


def make_soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")


def strip_non_visible(soup: BeautifulSoup) -> BeautifulSoup:
    """Drop script/style content so their tokens never leak into text scans."""
    for tag in soup.find_all(_NON_VISIBLE_TAGS):
        tag.decompose()
    return soup


def layout_lines(soup: BeautifulSoup) -> list[str]:
    """Visible text split on block boundaries and <br>, one entry per line.

    Mutates ``soup`` (inserts line breaks), so call it after DOM queries.
    A line ending with ":" is joined with the following one, which keeps
    "<dt>Siège social :</dt><dd>...</dd>" on one line.
    """
    for br in soup.find_all("br"):
        br.replace_with("\n")
    for block in soup.find_all(_BLOCK_TAGS):
        block.insert_before("\n")
        block.insert_after("\n")

    root = soup.body or soup
    lines: list[str] = []
    for raw in root.get_text("").split("\n"):
        line = _INLINE_WS_RE.sub(" ", raw).strip()
        if not line:
            continue
        if lines and lines[-1].endswith(":"):
            lines[-1] = f"{lines[-1]} {line}"
        else:
            lines.append(line)
    return lines


def closest(tag: Tag, names: tuple[str, ...] = (), classes: tuple[str, ...] = (), ids: tuple[str, ...] = ()) -> Tag | None:
    """Nearest ancestor (or self) matching a tag name, a class or an id."""
    node: Tag | None = tag
    while node is not None and isinstance(node, Tag):
        if node.name in names:
            return node
        node_classes = [c.lower() for c in node.get("class") or []]
        if any(c in node_classes for c in classes):
            return node
        if (node.get("id") or "").lower() in ids:
            return node
        node = node.parent
    return None
