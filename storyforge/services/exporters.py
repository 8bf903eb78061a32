"""Render a project's chapters into downloadable documents.

PDF output uses the FPDF core fonts, so text is folded to Latin-1 before it is
laid out. Markdown, plain text and HTML are rendered as UTF-8.
"""
from __future__ import annotations

import html
import textwrap
import unicodedata
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from fpdf import FPDF
from fpdf.errors import FPDFException

EXPORT_FORMATS = ("pdf", "markdown", "text", "html")

MIME_TYPES = {
    "pdf": "application/pdf",
    "markdown": "text/markdown; charset=utf-8",
    "text": "text/plain; charset=utf-8",
    "html": "text/html; charset=utf-8",
}

FILE_EXTENSIONS = {"pdf": "pdf", "markdown": "md", "text": "txt", "html": "html"}

EMPTY_CHAPTER_TEXT = "(No chapter text available.)"


class ExportError(RuntimeError):
    """Raised when a project cannot be rendered to the requested format."""


@dataclass
class ExportOptions:
    include_title_page: bool = True
    include_table_of_contents: bool = True
    include_character_list: bool = False
    include_setting_descriptions: bool = False


@dataclass
class ExportDocument:
    content: bytes
    mimetype: str
    extension: str

    @property
    def size(self) -> int:
        return len(self.content)


def _clean(value: Optional[str]) -> str:
    if not value:
        return ""
    return str(value).strip()


def chapter_heading(chapter: Any) -> str:
    title = _clean(getattr(chapter, "title", "")) or "Untitled Chapter"
    return f"Chapter {getattr(chapter, 'position', '?')}: {title}"


def _entries(items: Sequence[Any], detail_attr: str) -> List[tuple]:
    return [(_clean(item.name), _clean(getattr(item, detail_attr, ""))) for item in items]


def _paragraphs(text: str) -> List[str]:
    return [part.strip() for part in text.split("\n\n") if part.strip()]


def render_text(project, chapters, characters=(), settings=(), options: Optional[ExportOptions] = None) -> str:
    options = options or ExportOptions()
    lines: List[str] = []

    if options.include_title_page:
        lines.append(_clean(project.title) or "Untitled Project")
        if _clean(project.description):
            lines.extend(["", _clean(project.description)])
    if options.include_table_of_contents and chapters:
        lines.extend(["", "Contents:"])
        lines.extend(f"  {chapter_heading(chapter)}" for chapter in chapters)
    if options.include_character_list and characters:
        lines.extend(["", "Characters:"])
        lines.extend(f"- {name}: {detail}" if detail else f"- {name}" for name, detail in _entries(characters, "short_description"))
    if options.include_setting_descriptions and settings:
        lines.extend(["", "Settings:"])
        lines.extend(f"- {name}: {detail}" if detail else f"- {name}" for name, detail in _entries(settings, "description"))

    for chapter in chapters:
        lines.extend(["", chapter_heading(chapter)])
        synopsis = _clean(chapter.synopsis)
        if synopsis:
            lines.append(f"Synopsis: {synopsis}")
        lines.extend(["", _clean(chapter.content) or EMPTY_CHAPTER_TEXT])

    return "\n".join(lines).strip() + "\n"


def render_markdown(project, chapters, characters=(), settings=(), options: Optional[ExportOptions] = None) -> str:
    options = options or ExportOptions()
    lines: List[str] = []

    if options.include_title_page:
        lines.append(f"# {_clean(project.title) or 'Untitled Project'}")
        if _clean(project.description):
            lines.extend(["", _clean(project.description)])
    if options.include_table_of_contents and chapters:
        lines.extend(["", "## Contents", ""])
        lines.extend(f"{index}. {chapter_heading(chapter)}" for index, chapter in enumerate(chapters, start=1))
    if options.include_character_list and characters:
        lines.extend(["", "## Characters", ""])
        lines.extend(f"- **{name}**: {detail}" if detail else f"- **{name}**" for name, detail in _entries(characters, "short_description"))
    if options.include_setting_descriptions and settings:
        lines.extend(["", "## Settings", ""])
        lines.extend(f"- **{name}**: {detail}" if detail else f"- **{name}**" for name, detail in _entries(settings, "description"))

    for chapter in chapters:
        lines.extend(["", f"## {chapter_heading(chapter)}"])
        synopsis = _clean(chapter.synopsis)
        if synopsis:
            lines.extend(["", f"*{synopsis}*"])
        lines.extend(["", _clean(chapter.content) or EMPTY_CHAPTER_TEXT])

    return "\n".join(lines).strip() + "\n"


def render_html(project, chapters, characters=(), settings=(), options: Optional[ExportOptions] = None) -> str:
    options = options or ExportOptions()
    escape = html.escape
    title = _clean(project.title) or "Untitled Project"
    body: List[str] = []

    if options.include_title_page:
        body.append(f"<h1>{escape(title)}</h1>")
        if _clean(project.description):
            body.append(f"<p>{escape(_clean(project.description))}</p>")
    if options.include_table_of_contents and chapters:
        body.append("<h2>Contents</h2>")
        body.append("<ol>")
        body.extend(
            f'<li><a href="#chapter-{index}">{escape(chapter_heading(chapter))}</a></li>'
            for index, chapter in enumerate(chapters, start=1)
        )
        body.append("</ol>")
    for heading, items, attr in (
        ("Characters", characters if options.include_character_list else (), "short_description"),
        ("Settings", settings if options.include_setting_descriptions else (), "description"),
    ):
        if not items:
            continue
        body.append(f"<h2>{heading}</h2>")
        body.append("<ul>")
        for name, detail in _entries(items, attr):
            suffix = f": {escape(detail)}" if detail else ""
            body.append(f"<li><strong>{escape(name)}</strong>{suffix}</li>")
        body.append("</ul>")

    for index, chapter in enumerate(chapters, start=1):
        body.append(f'<section id="chapter-{index}">')
        body.append(f"<h2>{escape(chapter_heading(chapter))}</h2>")
        synopsis = _clean(chapter.synopsis)
        if synopsis:
            body.append(f"<p><em>{escape(synopsis)}</em></p>")
        paragraphs = _paragraphs(_clean(chapter.content)) or [EMPTY_CHAPTER_TEXT]
        body.extend(f"<p>{escape(paragraph)}</p>" for paragraph in paragraphs)
        body.append("</section>")

    return "\n".join(
        [
            "<!DOCTYPE html>",
            '<html lang="en">',
            f'<head><meta charset="utf-8"><title>{escape(title)}</title></head>',
            "<body>",
            *body,
            "</body>",
            "</html>",
        ]
    ) + "\n"


_PDF_LATIN1_REPLACEMENTS = {
    ord("\u2010"): "-",
    ord("\u2011"): "-",
    ord("\u2012"): "-",
    ord("\u2013"): "-",
    ord("\u2014"): "-",
    ord("\u2212"): "-",
    ord("\u2018"): "'",
    ord("\u2019"): "'",
    ord("\u201C"): '"',
    ord("\u201D"): '"',
    ord("\u2026"): "...",
    ord("\u00A0"): " ",
    ord("\u202F"): " ",
    ord("\u200B"): "",
    ord("\ufeff"): "",
}


def _pdf_safe_text(text: str) -> str:
    """Return ``text`` folded to what the Latin-1 core fonts can draw."""

    normalized = unicodedata.normalize("NFKC", text or "").replace("\t", " ")
    replaced = normalized.translate(_PDF_LATIN1_REPLACEMENTS)
    return replaced.encode("latin-1", "replace").decode("latin-1")


def _pdf_wrapped_text(text: str, *, width: int = 100) -> str:
    wrapped: List[str] = []
    for raw_line in _pdf_safe_text(text).splitlines():
        if not raw_line:
            wrapped.append("")
            continue
        chunks = textwrap.wrap(raw_line, width=width, break_long_words=True, break_on_hyphens=False)
        wrapped.extend(chunks or [""])
    return "\n".join(wrapped)


def _write(pdf: FPDF, height: float, text: str) -> None:
    sanitized = _pdf_wrapped_text(text)
    if not sanitized:
        return
    width = pdf.w - pdf.l_margin - pdf.r_margin
    try:
        pdf.set_x(pdf.l_margin)
        pdf.multi_cell(width, height, sanitized)
    except FPDFException:
        pdf.ln(height)
        pdf.set_x(pdf.l_margin)
        try:
            pdf.multi_cell(width, height, sanitized)
        except FPDFException as exc:
            raise ExportError(f"Failed to render PDF content: {exc}") from exc


def render_pdf(project, chapters, characters=(), settings=(), options: Optional[ExportOptions] = None) -> bytes:
    options = options or ExportOptions()
    pdf = FPDF()
    pdf.set_auto_page_break(auto=True, margin=15)
    pdf.set_left_margin(15)
    pdf.set_right_margin(15)

    front_matter = (
        options.include_title_page
        or (options.include_table_of_contents and chapters)
        or (options.include_character_list and characters)
        or (options.include_setting_descriptions and settings)
    )
    if front_matter:
        pdf.add_page()
    if options.include_title_page:
        pdf.set_font("Times", "B", 18)
        _write(pdf, 10, _clean(project.title) or "Untitled Project")
        pdf.ln(4)
        if _clean(project.description):
            pdf.set_font("Times", "", 12)
            _write(pdf, 6, _clean(project.description))
            pdf.ln(4)

    sections = []
    if options.include_table_of_contents and chapters:
        sections.append(("Contents", [chapter_heading(chapter) for chapter in chapters]))
    if options.include_character_list and characters:
        sections.append(
            ("Characters", [f"{n}: {d}" if d else n for n, d in _entries(characters, "short_description")])
        )
    if options.include_setting_descriptions and settings:
        sections.append(("Settings", [f"{n}: {d}" if d else n for n, d in _entries(settings, "description")]))
    for heading, entries in sections:
        pdf.set_font("Times", "B", 14)
        _write(pdf, 8, heading)
        pdf.set_font("Times", "", 12)
        for entry in entries:
            _write(pdf, 6, entry)
        pdf.ln(4)

    for chapter in chapters:
        pdf.add_page()
        pdf.set_font("Times", "B", 14)
        _write(pdf, 10, chapter_heading(chapter))
        synopsis = _clean(chapter.synopsis)
        if synopsis:
            pdf.set_font("Times", "I", 11)
            _write(pdf, 6, synopsis)
            pdf.ln(2)
        pdf.set_font("Times", "", 12)
        for paragraph in _paragraphs(_clean(chapter.content)) or [EMPTY_CHAPTER_TEXT]:
            _write(pdf, 6.5, paragraph)
            pdf.ln(1.5)

    if pdf.page == 0:
        pdf.add_page()

    try:
        return bytes(pdf.output())
    except FPDFException as exc:
        raise ExportError(f"Unable to export PDF: {exc}") from exc


_RENDERERS: Dict[str, Callable[..., Any]] = {
    "pdf": render_pdf,
    "markdown": render_markdown,
    "text": render_text,
    "html": render_html,
}


def render_export(
    export_format: str,
    project,
    chapters: Sequence[Any],
    *,
    characters: Sequence[Any] = (),
    settings: Sequence[Any] = (),
    options: Optional[ExportOptions] = None,
) -> ExportDocument:
    """Render ``chapters`` of ``project`` in ``export_format``."""

    renderer = _RENDERERS.get(export_format)
    if renderer is None:
        raise ExportError(f"Unsupported export format: {export_format}")
    rendered = renderer(project, list(chapters), list(characters), list(settings), options)
    content = rendered if isinstance(rendered, bytes) else rendered.encode("utf-8")
    return ExportDocument(content=content, mimetype=MIME_TYPES[export_format], extension=FILE_EXTENSIONS[export_format])
