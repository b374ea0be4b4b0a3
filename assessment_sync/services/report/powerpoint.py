import logging
from pathlib import Path
from typing import List, Optional, Union

from pptx import Presentation
from pptx.dml.color import RGBColor
from pptx.enum.text import PP_ALIGN
from pptx.util import Inches, Pt

from assessment_sync.core.constants import SCORE_BUCKET_COLORS
from assessment_sync.services.report.base import (
    CategorySection,
    ReportContext,
    ReportRenderer,
)

logger = logging.getLogger(__name__)

TITLE_LAYOUT = 0
TITLE_ONLY_LAYOUT = 5


def _add_table(slide, headers: List[str], rows: List[List[str]], top=Inches(1.6)):
    left, width, height = Inches(0.6), Inches(9.0), Inches(1.0)
    n_rows = max(2, 1 + len(rows))
    table = slide.shapes.add_table(n_rows, len(headers), left, top, width, height).table

    for j, h in enumerate(headers):
        cell = table.cell(0, j)
        cell.text = h
        for p in cell.text_frame.paragraphs:
            p.font.bold = True
            p.font.size = Pt(14)
            p.alignment = PP_ALIGN.LEFT

    if not rows:
        table.cell(1, 0).text = "No data available."
        return table

    for i, row in enumerate(rows, start=1):
        for j, value in enumerate(row):
            cell = table.cell(i, j)
            cell.text = value
            for p in cell.text_frame.paragraphs:
                p.font.size = Pt(12)
    return table


class PowerPointRenderer(ReportRenderer):
    """
    Slide deck: a title slide, a summary table, and one slide per category
    with its score and hyperlinked top recommendations.
    """

    extension = ".pptx"

    def __init__(self, template_path: Optional[Union[str, Path]] = None):
        self.template_path = Path(template_path) if template_path else None

    def _presentation(self):
        if self.template_path and self.template_path.exists():
            return Presentation(str(self.template_path))
        return Presentation()

    @staticmethod
    def _section_title(section: CategorySection) -> str:
        agg = section.aggregate
        if agg.pillar:
            return f"{agg.pillar} - {agg.display_name}"
        return agg.display_name

    def _add_title_slide(self, prs, context: ReportContext) -> None:
        slide = prs.slides.add_slide(prs.slide_layouts[TITLE_LAYOUT])
        slide.shapes.title.text = context.title
        if len(slide.placeholders) > 1:
            slide.placeholders[1].text = (
                f"{context.total_recommendations} recommendations in {len(context.sections)} categories"
            )

    def _add_summary_slide(self, prs, context: ReportContext) -> None:
        slide = prs.slides.add_slide(prs.slide_layouts[TITLE_ONLY_LAYOUT])
        slide.shapes.title.text = "Summary"
        if context.pillar_scores:
            rows = [[ps.pillar, f"{ps.score}/100", ps.description] for ps in context.pillar_scores]
            _add_table(slide, ["Pillar", "Score", "Summary"], rows)
            return
        rows = [
            [
                self._section_title(section),
                str(round(section.aggregate.score)),
                str(section.aggregate.high_severity_count),
            ]
            for section in context.sections
        ]
        _add_table(slide, ["Category", "Score", f"Weight >= {context.minimum_report_level}"], rows)

    def _add_category_slide(self, prs, section: CategorySection, minimum_report_level: int) -> None:
        agg = section.aggregate
        slide = prs.slides.add_slide(prs.slide_layouts[TITLE_ONLY_LAYOUT])
        slide.shapes.title.text = self._section_title(section)

        box = slide.shapes.add_textbox(Inches(0.6), Inches(1.4), Inches(9.0), Inches(0.8))
        p = box.text_frame.paragraphs[0]
        run = p.add_run()
        run.text = f"Score {round(agg.score)}"
        run.font.bold = True
        run.font.size = Pt(24)
        run.font.color.rgb = RGBColor.from_string(SCORE_BUCKET_COLORS[agg.bucket])
        detail = p.add_run()
        detail.text = (
            f"   {agg.high_severity_count} of {agg.recommendation_count} "
            f"recommendations with weight >= {minimum_report_level}"
        )
        detail.font.size = Pt(14)

        body = slide.shapes.add_textbox(Inches(0.6), Inches(2.4), Inches(9.0), Inches(4.0))
        tf = body.text_frame
        tf.word_wrap = True
        if not section.recommendations:
            tf.text = "No recommendations."
            return
        for i, rec in enumerate(section.recommendations):
            p = tf.paragraphs[0] if i == 0 else tf.add_paragraph()
            run = p.add_run()
            run.text = rec.link_text
            run.font.size = Pt(14)
            if rec.link:
                run.hyperlink.address = rec.link
            weight = p.add_run()
            weight.text = f"  ({rec.weight})"
            weight.font.size = Pt(12)

    def render(self, context: ReportContext, output_path: Union[str, Path]) -> Path:
        path = Path(output_path)
        prs = self._presentation()

        self._add_title_slide(prs, context)
        self._add_summary_slide(prs, context)
        for section in context.sections:
            self._add_category_slide(prs, section, context.minimum_report_level)

        prs.save(str(path))
        logger.info(f"Slide deck with {len(prs.slides)} slides written to {path}")
        return path
