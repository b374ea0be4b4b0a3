import logging
from pathlib import Path
from typing import Union

from assessment_sync.services.report.base import ReportContext, ReportRenderer
from assessment_sync.services.templates import get_markdown_report

logger = logging.getLogger(__name__)


class MarkdownRenderer(ReportRenderer):
    extension = ".md"

    def render(self, context: ReportContext, output_path: Union[str, Path]) -> Path:
        path = Path(output_path)
        path.write_text(get_markdown_report({"report": context}), encoding="utf-8")
        logger.info(f"Markdown report written to {path}")
        return path
