#!/usr/bin/env python3
"""
Invoice Pipeline - Main Entry Point.

Command-line interface for the invoice pipeline: load PDFs into the
document store, classify and extract them, inspect a single document and
export the results.

Usage:
    python main.py ingest --input ./attachments/
    python main.py process --backend ollama
    python main.py inspect 12
    python main.py inspect ./attachments/invoice.pdf
    python main.py export --output results.xlsx
    python main.py stats

Author: ML Engineering Team
Version: 1.0.0
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

# Import project modules
from config import ConfigurationManager
from invoice_pipeline.utils.logger import ROOT_LOGGER_NAME, setup_logger_from_config, get_logger
from invoice_pipeline.utils.exceptions import InvoicePipelineError
from invoice_pipeline.model_inference import Backend, InvoiceRecord, LlmSettings


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed argument namespace.
    """
    parser = argparse.ArgumentParser(
        description="Invoice PDF classification and extraction pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    Load a folder of attachments:
        python main.py ingest --input ./attachments/

    Classify and extract with the local model:
        python main.py process --backend ollama

    Regex extraction only:
        python main.py process --backend heuristics

    Diagnose one document:
        python main.py inspect 12
        """
    )

    parser.add_argument(
        "--config", "-c",
        type=str,
        default=None,
        help="Configuration file merged over the defaults"
    )

    parser.add_argument(
        "--db",
        type=str,
        default=None,
        help="Path to the SQLite document store"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    ingest = subparsers.add_parser("ingest", help="Load PDF files into the document store")
    ingest.add_argument(
        "--input", "-i",
        type=str,
        required=True,
        help="Directory containing PDF attachments"
    )
    ingest.add_argument(
        "--pattern", "-p",
        type=str,
        default=None,
        help="Glob pattern inside the directory (default: *.pdf)"
    )

    process = subparsers.add_parser("process", help="Classify pending documents and extract text ones")
    process.add_argument(
        "--backend", "-b",
        type=str,
        choices=[b.value for b in Backend],
        default=None,
        help="Extraction backend (overrides llm.backend)"
    )
    process.add_argument(
        "--all",
        action="store_true",
        help="Re-extract text documents that already have an extraction"
    )

    inspect = subparsers.add_parser("inspect", help="Diagnose a single document")
    inspect.add_argument(
        "target",
        type=str,
        help="Document id in the store, or path to a PDF file"
    )
    inspect.add_argument(
        "--backend", "-b",
        type=str,
        choices=[b.value for b in Backend],
        default=None,
        help="Extraction backend (overrides llm.backend)"
    )

    export = subparsers.add_parser("export", help="Export stored extractions to Excel")
    export.add_argument(
        "--output", "-o",
        type=str,
        default=None,
        help="Output .xlsx file (default: outputs/invoice_extractions_<timestamp>.xlsx)"
    )

    subparsers.add_parser("stats", help="Show store counts and extraction coverage")

    return parser.parse_args(argv)


def initialize_system(args: argparse.Namespace) -> ConfigurationManager:
    """
    Initialize the pipeline with configuration and logging.

    Args:
        args: Parsed command-line arguments.

    Returns:
        Initialized configuration manager.
    """
    config = ConfigurationManager(args.config)

    logger = setup_logger_from_config()

    if args.debug:
        root_logger = logging.getLogger(ROOT_LOGGER_NAME)
        root_logger.setLevel(logging.DEBUG)
        for handler in root_logger.handlers:
            handler.setLevel(logging.DEBUG)

    logger.info("=" * 60)
    logger.info("INVOICE PIPELINE")
    logger.info("=" * 60)
    logger.info(f"Version: {config.get('project.version', '1.0.0')}")
    logger.info(f"Command: {args.command}")

    return config


def open_store(args: argparse.Namespace):
    from invoice_pipeline.output_handler import SQLiteDocumentStore
    return SQLiteDocumentStore(args.db)


def build_orchestrator(args: argparse.Namespace, store):
    from invoice_pipeline.orchestrator import ExtractionOrchestrator
    return ExtractionOrchestrator(
        store,
        llm_settings=LlmSettings.from_config(getattr(args, "backend", None)),
    )


def run_ingest(args: argparse.Namespace) -> int:
    """Load PDFs from a directory into the store."""
    from invoice_pipeline.input_handler import DirectorySource

    logger = get_logger(__name__)
    store = open_store(args)

    documents = DirectorySource(args.input).fetch_documents(args.pattern)

    inserted = 0
    for document in documents:
        _, is_new = store.add_document(document.filename, document.data)
        if is_new:
            inserted += 1

    logger.info(f"Ingest complete: {inserted} new, {len(documents) - inserted} duplicate")
    return 0


def run_process(args: argparse.Namespace) -> int:
    """Classify pending documents and extract the text ones."""
    logger = get_logger(__name__)
    store = open_store(args)
    orchestrator = build_orchestrator(args, store)

    report = orchestrator.run(only_unextracted=not args.all)
    if report.aborted:
        logger.error(f"No documents processed: {report.abort_reason}")
        return 1

    logger.info("=" * 60)
    logger.info(
        f"Processing complete: {len(report.outcomes)} extracted "
        f"({report.count_by_source('llm')} llm, {report.count_by_source('heuristic')} heuristic, "
        f"{report.fallback_count} fallback)"
    )
    logger.info("=" * 60)

    if report.outcomes:
        print(report.coverage.print_report())
    return 0


def _print_record(title: str, record: InvoiceRecord) -> None:
    filled, total = record.coverage()
    print(f"\n=== {title} ({filled}/{total} fields) ===")
    print(record.to_json())


def run_inspect(args: argparse.Namespace) -> int:
    """Print classification, text preview and both extraction results."""
    store = open_store(args)
    orchestrator = build_orchestrator(args, store)

    target = Path(args.target)
    if target.is_file():
        inspection = orchestrator.inspect_bytes(target.name, target.read_bytes())
    elif args.target.isdigit():
        inspection = orchestrator.inspect_document(int(args.target))
    else:
        raise FileNotFoundError(f"Not a document id or PDF file: {args.target}")

    print(f"File: {inspection.filename}")
    print(f"Classification: {inspection.verdict.kind.value}")
    if inspection.verdict.reason:
        print(f"Reason: {inspection.verdict.reason}")

    if inspection.text_preview is not None:
        print(f"\n=== Extracted text (first {len(inspection.text_preview)} chars) ===")
        print(inspection.text_preview)

    if inspection.heuristic_record is not None:
        _print_record("Heuristic extraction", inspection.heuristic_record)

    if inspection.llm_record is not None:
        _print_record("LLM extraction", inspection.llm_record)
    elif inspection.llm_error:
        print(f"\nLLM extraction failed: {inspection.llm_error}")

    return 0


def run_export(args: argparse.Namespace) -> int:
    """Export every stored extraction to Excel."""
    from invoice_pipeline.output_handler import ExcelExporter

    logger = get_logger(__name__)
    store = open_store(args)

    extractions = store.get_extractions()
    if not extractions:
        logger.error("No extractions to export")
        return 1

    filename = None
    output_dir = None
    if args.output:
        output_path = Path(args.output)
        filename = output_path.name
        output_dir = str(output_path.parent)

    filepath = ExcelExporter().export(extractions, filename=filename, output_dir=output_dir)
    logger.info(f"Excel output: {filepath}")
    return 0


def run_stats(args: argparse.Namespace) -> int:
    """Print store counts and the coverage of stored extractions."""
    from invoice_pipeline.evaluation import CoverageReport

    store = open_store(args)
    counts = store.get_counts()

    print("Documents: " + ", ".join(f"{key}={value}" for key, value in counts.items()))
    extractions = store.get_extractions()
    if extractions:
        print(CoverageReport.from_extractions(extractions).print_report())
    return 0


COMMANDS = {
    "ingest": run_ingest,
    "process": run_process,
    "inspect": run_inspect,
    "export": run_export,
    "stats": run_stats,
}


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main function - entry point for command-line execution.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    args = parse_arguments(argv)

    try:
        initialize_system(args)
        return COMMANDS[args.command](args)

    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    except InvoicePipelineError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    except KeyboardInterrupt:
        print("\nOperation cancelled by user")
        return 130

    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        if args.debug:
            import traceback
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
