"""Vue single-file component splitting."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from ..errors import TransformError

_OPEN_TAG = re.compile(r"<(template|script|style)(\s[^>]*)?>", re.IGNORECASE)
_ATTRIBUTE = re.compile(r"([:@\w-]+)(?:\s*=\s*(?:\"([^\"]*)\"|'([^']*)'|([^\s\"'>]+)))?")
_TEMPLATE_TAG = re.compile(r"<(/?)template(?:\s[^>]*)?>", re.IGNORECASE)

_SCRIPT_LANGS = {"js", "ts", "jsx", "tsx"}


@dataclass(frozen=True)
class SfcBlock:
    content: str
    attrs: Dict[str, str] = field(default_factory=dict)
    line: int = 1


@dataclass(frozen=True)
class SfcDescriptor:
    """Top-level blocks of a ``.vue`` file."""

    path: Path
    template: Optional[SfcBlock]
    script: Optional[SfcBlock]
    styles: Tuple[SfcBlock, ...] = ()

    @property
    def script_lang(self) -> str:
        if self.script is None:
            return "js"
        return self.script.attrs.get("lang", "js")


def parse_sfc(source: str, path: Path | str) -> SfcDescriptor:
    """Split ``source`` into its template, script and style blocks."""
    path = Path(path)
    template: Optional[SfcBlock] = None
    script: Optional[SfcBlock] = None
    styles: List[SfcBlock] = []

    position = 0
    while True:
        match = _OPEN_TAG.search(source, position)
        if match is None:
            break
        tag = match.group(1).lower()
        attrs = _parse_attrs(match.group(2) or "")
        content_start = match.end()
        line = source.count("\n", 0, content_start) + 1
        if tag == "template":
            content_end, position = _template_bounds(source, content_start, path, line)
        else:
            closing = re.compile(rf"</{tag}\s*>", re.IGNORECASE).search(source, content_start)
            if closing is None:
                raise TransformError(path, f"Unclosed <{tag}> block", line=line)
            content_end, position = closing.start(), closing.end()
        block = SfcBlock(content=source[content_start:content_end], attrs=attrs, line=line)

        if tag == "template":
            if template is not None:
                raise TransformError(path, "Multiple <template> blocks", line=line)
            lang = attrs.get("lang", "html")
            if lang != "html":
                raise TransformError(path, f"Unsupported template lang {lang!r}", line=line)
            template = block
        elif tag == "script":
            if "setup" in attrs:
                raise TransformError(path, "<script setup> is not supported", line=line)
            if script is not None:
                raise TransformError(path, "Multiple <script> blocks", line=line)
            lang = attrs.get("lang", "js")
            if lang not in _SCRIPT_LANGS:
                raise TransformError(path, f"Unsupported script lang {lang!r}", line=line)
            script = block
        else:
            lang = attrs.get("lang", "css")
            if lang != "css":
                raise TransformError(path, f"Unsupported style lang {lang!r}", line=line)
            styles.append(block)

    return SfcDescriptor(path=path, template=template, script=script, styles=tuple(styles))


def _template_bounds(source: str, start: int, path: Path, line: int) -> Tuple[int, int]:
    depth = 1
    for match in _TEMPLATE_TAG.finditer(source, start):
        if match.group(1):
            depth -= 1
            if depth == 0:
                return match.start(), match.end()
        elif not match.group(0).endswith("/>"):
            depth += 1
    raise TransformError(path, "Unclosed <template> block", line=line)


def _parse_attrs(raw: str) -> Dict[str, str]:
    attrs: Dict[str, str] = {}
    for match in _ATTRIBUTE.finditer(raw):
        name = match.group(1)
        value = next((group for group in match.groups()[1:] if group is not None), "")
        attrs[name.lower()] = value
    return attrs


__all__ = ["SfcBlock", "SfcDescriptor", "parse_sfc"]
