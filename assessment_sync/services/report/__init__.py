from .base import CategorySection, ReportContext, ReportRenderer, build_report_context
from .markdown import MarkdownRenderer
from .powerpoint import PowerPointRenderer

__all__ = [
    "CategorySection",
    "ReportContext",
    "ReportRenderer",
    "build_report_context",
    "MarkdownRenderer",
    "PowerPointRenderer",
    "get_renderer",
]

RENDERERS = {
    "pptx": PowerPointRenderer,
    "markdown": MarkdownRenderer,
}


def get_renderer(fmt: str, **kwargs) -> ReportRenderer:
    try:
        renderer_cls = RENDERERS[fmt]
    except KeyError:
        raise ValueError(f"Unknown report format: {fmt}")
    return renderer_cls(**kwargs)
