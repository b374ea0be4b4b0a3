"""
Command line entry point.

    assessment-sync report content.csv --output deck.pptx
    assessment-sync sync content.csv --project owner/repo --tag WAF-2024
    assessment-sync normalize content.csv --output filtered.csv
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from assessment_sync.core.config import settings
from assessment_sync.core.constants import SUPPORTED_TRACKERS
from assessment_sync.core.metrics import write_metrics
from assessment_sync.models.aggregate import SortOrder
from assessment_sync.models.category import AssessmentSource, CategoryCaptionTable
from assessment_sync.services.aggregator import ScoreAggregator
from assessment_sync.services.extractor import InputError, load_assessment, write_filtered_csv
from assessment_sync.services.normalizer import (
    CategoryNormalizer,
    load_caption_table,
    load_knowledge_base,
)
from assessment_sync.services.reconciler import TrackerReconciler, TrackerStateError
from assessment_sync.services.report import build_report_context, get_renderer
from assessment_sync.services.trackers import create_tracker

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_INPUT_ERROR = 1
EXIT_TRACKER_STATE_ERROR = 2
EXIT_PARTIAL_FAILURE = 3


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _captions(path: Optional[str]) -> CategoryCaptionTable:
    return load_caption_table(path) if path else CategoryCaptionTable()


def _normalized_assessment(args):
    assessment = load_assessment(args.input)
    captions = _captions(args.captions)
    knowledge_base = load_knowledge_base(args.knowledge_base) if getattr(args, "knowledge_base", None) else None
    normalizer = CategoryNormalizer.for_source(
        AssessmentSource(args.source),
        captions=captions,
        knowledge_base=knowledge_base,
    )
    normalizer.normalize(assessment.recommendations)
    return assessment, captions


def confirm(prompt: str) -> bool:
    try:
        answer = input(f"{prompt} [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def cmd_report(args) -> int:
    assessment, _ = _normalized_assessment(args)
    aggregator = ScoreAggregator(minimum_report_level=args.minimum_report_level, by_pillar=args.by_pillar)
    context = build_report_context(
        assessment,
        aggregator,
        order=SortOrder(args.sort),
        top_n=args.top,
        max_sections=args.max_slides,
    )
    renderer = get_renderer(args.format)
    output = Path(args.output) if args.output else Path(args.input).with_suffix(renderer.extension)
    renderer.render(context, output)
    print(f"Report written to {output}")
    return EXIT_OK


def cmd_normalize(args) -> int:
    assessment, _ = _normalized_assessment(args)
    written = write_filtered_csv(assessment, args.output, pillars=args.pillar or None)
    print(f"{written} recommendations written to {args.output}")
    return EXIT_OK


def cmd_sync(args) -> int:
    assessment, captions = _normalized_assessment(args)
    recommendations = assessment.recommendations
    if not args.project:
        raise InputError("No tracker project given (--project or TRACKER_PROJECT)")

    tracker = create_tracker(args.tracker, args.uri, args.project, args.token)
    with tracker:
        reconciler = TrackerReconciler(
            tracker,
            tag=args.tag,
            by_pillar=args.by_pillar,
            max_label_length=args.max_label_length,
            captions=captions,
        )

        plan = reconciler.plan(recommendations)
        print(plan.summary())
        if args.dry_run:
            return EXIT_OK
        if plan.planned == 0 and plan.containers_planned == 0:
            print("Nothing to import.")
            return EXIT_OK
        if not args.yes and not confirm(f"Import {plan.planned} items into {tracker.project}?"):
            print("Aborted.")
            return EXIT_OK

        report = reconciler.sync(recommendations)

    print(report.summary())
    for result in report.results:
        if result.error:
            hint = " (retry later)" if result.retryable else ""
            print(f"  failed {result.kind} '{result.title}': {result.error}{hint}")
    if args.metrics_file:
        write_metrics(args.metrics_file)
    return EXIT_PARTIAL_FAILURE if report.has_failures else EXIT_OK


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("input", help="Assessment export (content.csv)")
    parser.add_argument("--captions", help="Category caption lookup CSV")
    parser.add_argument(
        "--source",
        choices=[s.value for s in AssessmentSource],
        default=AssessmentSource.WELL_ARCHITECTED.value,
        help="Tool that produced the export",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="assessment-sync", description=settings.PROJECT_NAME)
    parser.add_argument("--log-level", default=settings.LOG_LEVEL)
    sub = parser.add_subparsers(dest="command", required=True)

    report_parser = sub.add_parser("report", help="Render a slide deck or markdown report")
    _add_common_arguments(report_parser)
    report_parser.add_argument("--output", "-o")
    report_parser.add_argument("--format", choices=["pptx", "markdown"], default="pptx")
    report_parser.add_argument("--top", type=int, default=settings.TOP_RECOMMENDATIONS)
    report_parser.add_argument("--minimum-report-level", type=int, default=settings.MINIMUM_REPORT_LEVEL)
    report_parser.add_argument("--sort", choices=[o.value for o in SortOrder], default=SortOrder.SCORE.value)
    report_parser.add_argument("--by-pillar", action="store_true")
    report_parser.add_argument("--max-slides", type=int, default=settings.MAX_SLIDES)
    report_parser.set_defaults(func=cmd_report)

    sync_parser = sub.add_parser("sync", help="Create missing milestones and issues in a tracker")
    _add_common_arguments(sync_parser)
    sync_parser.add_argument("--tracker", choices=SUPPORTED_TRACKERS, default=settings.TRACKER_TYPE)
    sync_parser.add_argument("--uri", default=settings.TRACKER_URL)
    sync_parser.add_argument("--project", default=settings.TRACKER_PROJECT)
    sync_parser.add_argument("--token", default=settings.TRACKER_TOKEN)
    sync_parser.add_argument("--tag", default=settings.ASSESSMENT_TAG)
    sync_parser.add_argument("--knowledge-base", help="Title,Description CSV with extra issue text")
    sync_parser.add_argument("--by-pillar", action="store_true")
    sync_parser.add_argument("--max-label-length", type=int, default=settings.MAX_LABEL_LENGTH)
    sync_parser.add_argument("--yes", "-y", action="store_true", help="Do not ask for confirmation")
    sync_parser.add_argument("--dry-run", action="store_true")
    sync_parser.add_argument("--metrics-file")
    sync_parser.set_defaults(func=cmd_sync)

    normalize_parser = sub.add_parser("normalize", help="Write the recommendation table of selected pillars")
    _add_common_arguments(normalize_parser)
    normalize_parser.add_argument("--output", "-o", required=True)
    normalize_parser.add_argument("--pillar", action="append")
    normalize_parser.set_defaults(func=cmd_normalize)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        return args.func(args)
    except InputError as e:
        logger.error(str(e))
        return EXIT_INPUT_ERROR
    except TrackerStateError as e:
        logger.error(str(e))
        return EXIT_TRACKER_STATE_ERROR
    except ValueError as e:
        # Tracker configuration, e.g. missing token or malformed repository
        logger.error(str(e))
        return EXIT_INPUT_ERROR


if __name__ == "__main__":
    sys.exit(main())
