"""Section model for generated documents and its Markdown / HTML renderers."""

import html
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional, Sequence, Union


@dataclass
class Paragraph:
    text: str
    bold: bool = False


@dataclass
class BulletList:
    items: List[str]


@dataclass
class Table:
    headers: List[str]
    rows: List[List[str]]
    # Rows rendered in bold, e.g. totals
    emphasized_rows: List[int] = field(default_factory=list)


Block = Union[Paragraph, BulletList, Table]


@dataclass
class Section:
    heading: Optional[str]
    blocks: List[Block] = field(default_factory=list)


@dataclass
class DocumentBody:
    title: str
    sections: List[Section] = field(default_factory=list)


def format_money(amount: Union[float, Decimal, None]) -> str:
    if amount is None:
        return "$0.00"
    return f"${Decimal(str(amount)).quantize(Decimal('0.01')):,}"


def _md_cell(value: str) -> str:
    return value.replace("|", "\\|").replace("\n", " ")


def _markdown_block(block: Block) -> str:
    if isinstance(block, Paragraph):
        return f"**{block.text}**" if block.bold else block.text
    if isinstance(block, BulletList):
        return "\n".join(f"- {item}" for item in block.items)

    lines = [
        "| " + " | ".join(_md_cell(h) for h in block.headers) + " |",
        "|" + "|".join("---" for _ in block.headers) + "|",
    ]
    for index, row in enumerate(block.rows):
        cells = [_md_cell(c) for c in row]
        if index in block.emphasized_rows:
            cells = [f"**{c}**" if c else c for c in cells]
        lines.append("| " + " | ".join(cells) + " |")
    return "\n".join(lines)


def render_markdown(body: DocumentBody) -> str:
    """Render a document body as Markdown."""
    parts = [f"# {body.title}"]
    for section in body.sections:
        if section.heading:
            parts.append(f"## {section.heading}")
        parts.extend(_markdown_block(block) for block in section.blocks)
    return "\n\n".join(parts) + "\n"


def _html_block(block: Block) -> str:
    if isinstance(block, Paragraph):
        text = html.escape(block.text)
        return f"<p><strong>{text}</strong></p>" if block.bold else f"<p>{text}</p>"
    if isinstance(block, BulletList):
        items = "".join(f"<li>{html.escape(item)}</li>" for item in block.items)
        return f"<ul>{items}</ul>"

    head = "".join(f"<th>{html.escape(h)}</th>" for h in block.headers)
    rows: List[str] = []
    for index, row in enumerate(block.rows):
        cells: Sequence[str] = [html.escape(c) for c in row]
        if index in block.emphasized_rows:
            cells = [f"<strong>{c}</strong>" for c in cells]
        rows.append("<tr>" + "".join(f"<td>{c}</td>" for c in cells) + "</tr>")
    return f"<table><thead><tr>{head}</tr></thead><tbody>{''.join(rows)}</tbody></table>"


def render_html(body: DocumentBody) -> str:
    """Render a document body as an HTML fragment with all text escaped."""
    parts = [f"<h1>{html.escape(body.title)}</h1>"]
    for section in body.sections:
        if section.heading:
            parts.append(f"<h2>{html.escape(section.heading)}</h2>")
        parts.extend(_html_block(block) for block in section.blocks)
    return f"<article>{''.join(parts)}</article>"
