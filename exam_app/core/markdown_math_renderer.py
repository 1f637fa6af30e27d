"""Markdown + LaTeX rendering of question content for exam clients.

Question stems and option texts are authored in markdown with ``$...$`` math.
The server converts them to HTML fragments and leaves the math delimiters in
place for MathJax to typeset in the browser. Answer keys are never part of a
rendered question.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from markdown_it import MarkdownIt

from exam_app.core.models import Question, QuestionType

_EMPTY_STEM_HTML = "<p><em>No content provided.</em></p>"


@dataclass(frozen=True, slots=True)
class RenderedQuestion:
    question_id: str
    question_type: QuestionType
    stem_html: str
    options_html: tuple[str, ...]
    unit: str | None = None


@dataclass(slots=True)
class MarkdownMathRenderer:
    """Converts markdown-with-math question content into HTML fragments."""

    enable_html: bool = False
    _markdown: MarkdownIt = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._markdown = (
            MarkdownIt("commonmark", {"html": self.enable_html})
            .enable("table")
            .enable("strikethrough")
        )

    def render_fragment(self, markdown_text: str) -> str:
        """Render a block of markdown into an HTML fragment."""
        sanitized = markdown_text.strip()
        if not sanitized:
            return _EMPTY_STEM_HTML
        return self._markdown.render(sanitized)

    def render_inline(self, markdown_text: str) -> str:
        """Render short text such as an option label without a wrapping paragraph."""
        return self._markdown.renderInline(markdown_text.strip())

    def render_question(self, question: Question) -> RenderedQuestion:
        unit = None
        if question.question_type is QuestionType.NUMERICAL and question.numerical_key is not None:
            unit = question.numerical_key.unit or None
        return RenderedQuestion(
            question_id=question.id,
            question_type=question.question_type,
            stem_html=self.render_fragment(question.text),
            options_html=tuple(self.render_inline(option) for option in question.options),
            unit=unit,
        )


# Shared instance used by the API server.
renderer = MarkdownMathRenderer()
