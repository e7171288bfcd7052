"""
Command-line interface for the exam evaluation pipeline.

Usage:
    python -m exam_eval segment FILE [--answer-sheet | --submission] [--lookahead N]
    python -m exam_eval prepare --submission FILE --key FILE [OPTIONS]
    python -m exam_eval evaluate --submission FILE --key FILE [OPTIONS]

Exit codes: 0 success, 1 configuration or usage error, 2 extraction error,
3 scoring service error.
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from typing import Any, List, Optional

from exam_eval.config import Settings, get_settings
from exam_eval.models.extraction import SourceDocument
from exam_eval.services.document_classifier import classify_document
from exam_eval.services.evaluation_pipeline import evaluate_submission, prepare_evaluation
from exam_eval.services.question_segmenter import segment_text
from exam_eval.services.scoring_client import OracleError, OracleResponseError, score_submission
from exam_eval.services.text_extractor import ExtractionError, load_document_text
from exam_eval.utils.retry import retry_with_backoff

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_EXTRACTION = 2
EXIT_ORACLE = 3


def create_parser() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="exam-eval",
        description="Exam evaluation CLI - segment, reconcile and score exam documents"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Segment command
    segment_parser = subparsers.add_parser(
        "segment",
        help="Extract and segment one document into questions"
    )
    segment_parser.add_argument("file", type=str, help="PDF or DOCX document")
    role = segment_parser.add_mutually_exclusive_group()
    role.add_argument(
        "--answer-sheet",
        action="store_true",
        help="Treat the document as an answer key"
    )
    role.add_argument(
        "--submission",
        action="store_true",
        help="Treat the document as a student submission"
    )
    segment_parser.add_argument(
        "--lookahead",
        type=int,
        default=None,
        help="Lines scanned after key-style short answers (default: from env or 10)"
    )

    # Prepare and evaluate share their document arguments
    for name, help_text in (
        ("prepare", "Build the scoring request for a submission and answer key"),
        ("evaluate", "Score a submission against an answer key"),
    ):
        command_parser = subparsers.add_parser(name, help=help_text)
        command_parser.add_argument(
            "--submission", "-s", type=str, required=True, help="Student submission document"
        )
        command_parser.add_argument(
            "--key", "-k", type=str, required=True, help="Answer key document"
        )
        command_parser.add_argument(
            "--submission-id", type=str, default=None, help="Identifier attached to submission metadata"
        )
        command_parser.add_argument(
            "--exam-id", type=str, default=None, help="Identifier attached to answer key metadata"
        )
        command_parser.add_argument(
            "--lookahead", type=int, default=None, help="Lines scanned after key-style short answers"
        )
        if name == "evaluate":
            command_parser.add_argument(
                "--oracle-url",
                type=str,
                default=None,
                help="Scoring service base URL (default: SCORING_ORACLE_URL)"
            )

    return parser


def read_document(path: str, metadata: Optional[dict] = None) -> SourceDocument:
    """Load a local file into a SourceDocument."""
    with open(path, "rb") as f:
        content = f.read()
    return SourceDocument(
        filename=os.path.basename(path),
        content=content,
        metadata=metadata or {},
    )


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


async def segment_command(args: argparse.Namespace, settings: Settings) -> int:
    """Segment one document and print the extraction result."""
    document = read_document(args.file)
    loaded = await load_document_text(document, settings)

    if args.answer_sheet:
        declared_role = "answer_sheet"
    elif args.submission:
        declared_role = "submission"
    else:
        declared_role = None
    classification = classify_document(document.filename, loaded.text, declared_role)

    result = segment_text(
        loaded.text,
        classification.is_answer_sheet,
        lookahead_window=args.lookahead or settings.key_answer_lookahead,
    )
    _print_json(result.model_dump(mode="json", by_alias=True))
    return EXIT_OK


def _documents(args: argparse.Namespace) -> tuple[SourceDocument, SourceDocument]:
    submission_metadata = {"submissionId": args.submission_id} if args.submission_id else {}
    key_metadata = {"examId": args.exam_id} if args.exam_id else {}
    return (
        read_document(args.submission, submission_metadata),
        read_document(args.key, key_metadata),
    )


async def prepare_command(args: argparse.Namespace, settings: Settings) -> int:
    """Build the scoring request and print its payload."""
    submission, answer_sheet = _documents(args)
    request = await prepare_evaluation(
        submission,
        answer_sheet,
        settings=settings,
        lookahead_window=args.lookahead,
    )
    _print_json(request.to_payload())
    return EXIT_OK


async def evaluate_command(args: argparse.Namespace, settings: Settings) -> int:
    """Run the whole pipeline and print the aggregated scores."""
    if not (args.oracle_url or settings.scoring_oracle_url):
        print("Error: no scoring service configured (use --oracle-url or SCORING_ORACLE_URL)")
        return EXIT_USAGE

    submission, answer_sheet = _documents(args)
    scorer = retry_with_backoff(
        max_retries=settings.oracle_max_retries,
        retryable_exceptions=(OracleError,),
        non_retryable_exceptions=(OracleResponseError,),
    )(score_submission)

    outcome = await evaluate_submission(
        submission,
        answer_sheet,
        settings=settings,
        oracle_url=args.oracle_url,
        lookahead_window=args.lookahead,
        scorer=scorer,
    )
    _print_json(outcome.model_dump(mode="json", by_alias=True))
    return EXIT_OK


COMMANDS = {
    "segment": segment_command,
    "prepare": prepare_command,
    "evaluate": evaluate_command,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return EXIT_USAGE

    try:
        settings = get_settings()
    except ValueError as e:
        print(f"Configuration error: {e}")
        return EXIT_USAGE

    logging.basicConfig(
        level=settings.log_level,
        format='%(message)s',
        stream=sys.stderr
    )

    if args.lookahead is not None and args.lookahead < 1:
        print("Error: --lookahead must be at least 1")
        return EXIT_USAGE

    try:
        return asyncio.run(COMMANDS[args.command](args, settings))
    except OSError as e:
        print(f"Error: cannot read document: {e}")
        return EXIT_USAGE
    except ExtractionError as e:
        print(f"Extraction failed: {e}")
        return EXIT_EXTRACTION
    except OracleError as e:
        print(f"Scoring failed: {e}")
        return EXIT_ORACLE
    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        return EXIT_USAGE
