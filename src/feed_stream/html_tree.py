from __future__ import annotations

"""
html_tree.py — лёгкое DOM-дерево поверх html.parser + мини-селекторы.

Поддерживаемые селекторы (достаточно для карточек истории/виджета "load more"):
  tag, .class, #id, [attr], [attr=value] и их комбинации,
  потомки через пробел: ".yt-thumb-simple img"
"""

from dataclasses import dataclass, field
from html.parser import HTMLParser
import re
from typing import Iterator, Optional, Sequence


_WS_RE = re.compile(r"\s+")

_VOID_TAGS = frozenset({
    "area", "base", "br", "col", "embed", "hr", "img", "input",
    "link", "meta", "param", "source", "track", "wbr",
})


@dataclass
class _HtmlNode:
    tag: str
    attrs: dict[str, str]
    parent: Optional[int]
    children: list[int] = field(default_factory=list)
    # (порядковый номер в документе, текст)
    text_parts: list[tuple[int, str]] = field(default_factory=list)


class _HtmlTreeBuilder(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.nodes: list[_HtmlNode] = [_HtmlNode(tag="__root__", attrs={}, parent=None)]
        self.stack: list[int] = [0]
        self._seq = 0

    def _push_node(self, tag: str, attrs: Sequence[tuple[str, Optional[str]]], *, self_close: bool) -> None:
        parent = self.stack[-1] if self.stack else 0
        clean_attrs: dict[str, str] = {}
        for k, v in attrs:
            if not k:
                continue
            clean_attrs[str(k).strip().lower()] = "" if v is None else str(v)

        t = str(tag or "").strip().lower()
        idx = len(self.nodes)
        self.nodes.append(_HtmlNode(tag=t, attrs=clean_attrs, parent=parent))
        self.nodes[parent].children.append(idx)
        if not self_close and t not in _VOID_TAGS:
            self.stack.append(idx)

    def handle_starttag(self, tag: str, attrs: Sequence[tuple[str, Optional[str]]]) -> None:
        self._push_node(tag, attrs, self_close=False)

    def handle_startendtag(self, tag: str, attrs: Sequence[tuple[str, Optional[str]]]) -> None:
        self._push_node(tag, attrs, self_close=True)

    def handle_endtag(self, tag: str) -> None:
        if len(self.stack) <= 1:
            return
        t = str(tag or "").strip().lower()
        for i in range(len(self.stack) - 1, 0, -1):
            if self.nodes[self.stack[i]].tag == t:
                del self.stack[i:]
                return

    def handle_data(self, data: str) -> None:
        if not data or not self.stack:
            return
        self._seq += 1
        self.nodes[self.stack[-1]].text_parts.append((self._seq, data))


@dataclass(frozen=True)
class _SimpleSelector:
    tag: Optional[str]
    id_value: Optional[str]
    classes: tuple[str, ...]
    attrs: tuple[tuple[str, Optional[str]], ...]


def _iter_descendants(nodes: list[_HtmlNode], start_id: int) -> Iterator[int]:
    # document order (pre-order)
    stack = list(reversed(nodes[start_id].children))
    while stack:
        idx = stack.pop()
        yield idx
        if nodes[idx].children:
            stack.extend(reversed(nodes[idx].children))


def _read_ident(token: str, pos: int) -> tuple[str, int]:
    n = len(token)
    i = pos
    while i < n and token[i] not in ".#[":
        i += 1
    return token[pos:i], i


def _parse_simple_selector(token: str) -> Optional[_SimpleSelector]:
    t = str(token or "").strip()
    if not t:
        return None

    i = 0
    n = len(t)
    tag: Optional[str] = None
    id_value: Optional[str] = None
    classes: list[str] = []
    attrs: list[tuple[str, Optional[str]]] = []

    if i < n and (t[i].isalpha() or t[i] == "*"):
        start = i
        i += 1
        while i < n and (t[i].isalnum() or t[i] in ("_", "-")):
            i += 1
        tag = t[start:i].lower()

    while i < n:
        ch = t[i]
        if ch in ("#", "."):
            ident, i = _read_ident(t, i + 1)
            if not ident:
                return None
            if ch == "#":
                id_value = ident
            else:
                classes.append(ident)
            continue
        if ch == "[":
            end = t.find("]", i + 1)
            if end < 0:
                return None
            body = t[i + 1 : end].strip()
            if not body:
                return None
            if "=" in body:
                k, v = body.split("=", 1)
                val = v.strip()
                if len(val) >= 2 and val[0] == val[-1] and val[0] in ("'", '"'):
                    val = val[1:-1]
                attrs.append((k.strip().lower(), val))
            else:
                attrs.append((body.lower(), None))
            i = end + 1
            continue
        return None

    return _SimpleSelector(tag=tag, id_value=id_value, classes=tuple(classes), attrs=tuple(attrs))


def _matches(node: _HtmlNode, sel: _SimpleSelector) -> bool:
    if sel.tag and sel.tag != "*" and node.tag != sel.tag:
        return False

    if sel.id_value is not None and node.attrs.get("id") != sel.id_value:
        return False

    if sel.classes:
        cls_set = {x for x in _WS_RE.split((node.attrs.get("class") or "").strip()) if x}
        if any(c not in cls_set for c in sel.classes):
            return False

    for key, expected in sel.attrs:
        if key not in node.attrs:
            return False
        if expected is not None and node.attrs.get(key) != expected:
            return False

    return True


def _compile(selector: str) -> list[_SimpleSelector]:
    tokens = [x for x in _WS_RE.split(str(selector or "").strip()) if x]
    chain: list[_SimpleSelector] = []
    for tok in tokens:
        parsed = _parse_simple_selector(tok)
        if parsed is None:
            raise ValueError(f"unsupported selector: {selector!r}")
        chain.append(parsed)
    return chain


class HtmlDocument:
    """Parsed HTML tree. Elements are addressed by node index."""

    def __init__(self, html: str) -> None:
        p = _HtmlTreeBuilder()
        p.feed(html or "")
        p.close()
        self._nodes = p.nodes

    @property
    def root(self) -> "Element":
        return Element(self, 0)

    def select(self, selector: str) -> list["Element"]:
        return self.root.select(selector)

    def select_one(self, selector: str) -> Optional["Element"]:
        return self.root.select_one(selector)

    def __len__(self) -> int:
        return len(self._nodes) - 1


@dataclass(frozen=True)
class Element:
    doc: HtmlDocument
    node_id: int

    @property
    def tag(self) -> str:
        return self.doc._nodes[self.node_id].tag

    def attr(self, name: str) -> str:
        """Attribute value, "" if absent."""
        return self.doc._nodes[self.node_id].attrs.get(name.lower(), "")

    def has_attr(self, name: str) -> bool:
        return name.lower() in self.doc._nodes[self.node_id].attrs

    def text(self) -> str:
        """Text of the element and all descendants, whitespace collapsed."""
        nodes = self.doc._nodes
        parts: list[tuple[int, str]] = list(nodes[self.node_id].text_parts)
        for idx in _iter_descendants(nodes, self.node_id):
            parts.extend(nodes[idx].text_parts)
        parts.sort()
        return _WS_RE.sub(" ", " ".join(p for _, p in parts)).strip()

    def select(self, selector: str) -> list["Element"]:
        nodes = self.doc._nodes
        current = [self.node_id]
        for step in _compile(selector):
            next_ids: list[int] = []
            seen: set[int] = set()
            for ctx in current:
                for node_id in _iter_descendants(nodes, ctx):
                    if node_id in seen:
                        continue
                    if _matches(nodes[node_id], step):
                        next_ids.append(node_id)
                        seen.add(node_id)
            current = next_ids
            if not current:
                break
        # несколько контекстов могли дать выдачу не в порядке документа
        return [Element(self.doc, i) for i in sorted(current)]

    def select_one(self, selector: str) -> Optional["Element"]:
        found = self.select(selector)
        return found[0] if found else None
