"""Command-line interface for wallet receipt parsing and upload checks."""

import json
import logging
import sys
from collections import Counter
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import click
from tqdm import tqdm

from .classify import CategoryResolver, TagResolver
from .export import ExcelExporter
from .intake import build_draft
from .metadata import load_history, load_snapshot
from .models import DraftRecord, HistoryRecord, MetadataSnapshot
from .parse import ReceiptParser
from .review import ReviewItem, ReviewQueue, make_snippet
from .settings import Settings, load_settings
from .upload import UploadValidator

# stdout carries command output; logs go to stderr
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stderr)
    ]
)
logger = logging.getLogger(__name__)


def determine_period(drafts: List[DraftRecord], timezone) -> str:
    """
    Most common pay month of the drafts.

    Returns:
        e.g. "2026_02", or "mixed" when no month covers more than half
    """
    if not drafts:
        return "empty"
    months = Counter(datetime.fromtimestamp(d.pay_time, timezone).strftime('%Y_%m') for d in drafts)
    month, count = months.most_common(1)[0]
    return month if count / len(drafts) > 0.5 else "mixed"


class BatchProcessor:
    """Turns a folder of recognized-text dumps into drafts."""

    def __init__(self,
                 settings: Settings,
                 snapshot: MetadataSnapshot,
                 history: List[HistoryRecord],
                 max_workers: int = 4):
        self.settings = settings
        self.snapshot = snapshot
        self.history = history
        self.max_workers = max_workers

        self.parser = ReceiptParser(timezone=settings.tzinfo(), default_currency=settings.currency)
        self.category_resolver = CategoryResolver(history_window=settings.history_window,
                                                  vote_window=settings.vote_window)
        self.tag_resolver = TagResolver(history_window=settings.history_window)
        self.review_queue = ReviewQueue(low_confidence_threshold=settings.low_confidence_threshold,
                                        duplicate_tolerance=settings.duplicate_amount_tolerance,
                                        timezone=settings.tzinfo())

        self.stats = {
            'total_files': 0,
            'processed': 0,
            'failed': 0,
            'review_items': 0,
        }

    def find_text_files(self, input_dir: Path) -> List[Path]:
        """All .txt files below ``input_dir``, sorted."""
        files = sorted(set(input_dir.glob('**/*.txt')))
        logger.info(f"Found {len(files)} text files in {input_dir}")
        return files

    def process_single_file(self, path: Path) -> DraftRecord:
        """
        Build a draft from one text file. The file's modification time is
        used as the capture time.
        """
        text = path.read_text(encoding='utf-8-sig')
        capture_ts = int(path.stat().st_mtime)
        return build_draft(
            text, capture_ts, self.snapshot, self.history,
            parser=self.parser,
            category_resolver=self.category_resolver,
            tag_resolver=self.tag_resolver,
            source_name=path.name,
        )

    def process_batch(self, input_dir: Path) -> List[DraftRecord]:
        files = self.find_text_files(input_dir)
        self.stats['total_files'] = len(files)
        if not files:
            logger.warning("No text files found!")
            return []

        drafts: List[DraftRecord] = []
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            future_to_file = {executor.submit(self.process_single_file, f): f for f in files}

            with tqdm(total=len(files), desc="Processing receipts") as pbar:
                for future in as_completed(future_to_file):
                    path = future_to_file[future]
                    try:
                        drafts.append(future.result())
                        self.stats['processed'] += 1
                    except (OSError, UnicodeDecodeError, ValueError) as e:
                        logger.error(f"Failed to process {path}: {e}")
                        self.stats['failed'] += 1
                        self.review_queue.add_item(ReviewItem(
                            source_name=path.name,
                            reason=f"Processing failed: {e}",
                            raw_snippet=f"Error: {e}",
                        ))

                    pbar.update(1)
                    pbar.set_postfix({
                        'processed': self.stats['processed'],
                        'failed': self.stats['failed'],
                    })

        drafts.sort(key=lambda d: d.source_name)
        for draft in drafts:
            category = self.snapshot.category_by_id(draft.category_id)
            self.review_queue.add_from_draft(draft, category.name if category else None)
        for item in self.review_queue.detect_conflicts(drafts):
            self.review_queue.add_item(item)
        self.stats['review_items'] = len(self.review_queue.items)

        logger.info(f"Batch processing complete. Processed: {self.stats['processed']}, "
                    f"Failed: {self.stats['failed']}, Review items: {self.stats['review_items']}")
        return drafts


def _load_inputs(settings_path: Optional[Path], metadata_path: Optional[Path],
                 history_path: Optional[Path]):
    settings = load_settings(settings_path)
    snapshot = load_snapshot(metadata_path) if metadata_path else MetadataSnapshot()
    history = load_history(history_path) if history_path else []
    return settings, snapshot, history


def _enable_debug(debug: bool):
    if debug:
        logging.getLogger().setLevel(logging.DEBUG)
        click.echo("Debug mode enabled - detailed parsing logs will be shown", err=True)


@click.group()
def cli():
    """Wallet receipts - parse payment screenshots' text into bookkeeping drafts."""
    pass


@cli.command()
@click.argument('files', nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--settings', 'settings_path', type=click.Path(exists=True, path_type=Path),
              help='Settings YAML (time zone, currency)')
@click.option('--debug', is_flag=True, help='Enable debug output')
def parse(files: List[Path], settings_path: Optional[Path], debug: bool):
    """
    Parse recognized-text files and print the fields as JSON.

    Example:
        receipts parse shot1.txt shot2.txt
    """
    _enable_debug(debug)
    try:
        settings = load_settings(settings_path)
        parser = ReceiptParser(timezone=settings.tzinfo(), default_currency=settings.currency)
        results: List[Dict[str, Any]] = []
        for path in files:
            parsed = parser.parse_best(path.read_text(encoding='utf-8-sig'))
            results.append({'file': path.name, **asdict(parsed)})
        click.echo(json.dumps(results if len(results) > 1 else results[0], ensure_ascii=False, indent=2))
    except Exception as e:
        logger.error(f"Parsing failed: {e}")
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@cli.command()
@click.option('--in', 'input_dir', required=True, type=click.Path(exists=True, file_okay=False, path_type=Path),
              help='Input directory containing recognized-text .txt files')
@click.option('--out', 'output_dir', required=True, type=click.Path(path_type=Path),
              help='Output directory for results')
@click.option('--metadata', 'metadata_path', type=click.Path(exists=True, path_type=Path),
              help='Snapshot JSON with accounts, categories and tags payloads')
@click.option('--history', 'history_path', type=click.Path(exists=True, path_type=Path),
              help='JSON list of previously labeled records')
@click.option('--settings', 'settings_path', type=click.Path(exists=True, path_type=Path),
              help='Settings YAML')
@click.option('--max-workers', default=4, type=int, help='Maximum number of parallel workers')
@click.option('--summary', is_flag=True, help='Include per-category summary in Excel output')
@click.option('--debug', is_flag=True, help='Enable debug output')
def run(input_dir: Path,
        output_dir: Path,
        metadata_path: Optional[Path],
        history_path: Optional[Path],
        settings_path: Optional[Path],
        max_workers: int,
        summary: bool,
        debug: bool):
    """
    Process a folder of recognized-text dumps into drafts, review items and Excel.

    Example:
        receipts run --in ./ocr --out ./out --metadata meta.json --summary
    """
    _enable_debug(debug)
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
        settings, snapshot, history = _load_inputs(settings_path, metadata_path, history_path)

        logger.info(f"Input directory: {input_dir}")
        logger.info(f"Output directory: {output_dir}")
        logger.info(f"Max workers: {max_workers}")

        processor = BatchProcessor(settings, snapshot, history, max_workers=max_workers)
        drafts = processor.process_batch(input_dir)

        if not drafts:
            logger.error("No files were processed successfully!")
            return

        drafts_path = output_dir / 'drafts.json'
        with open(drafts_path, 'w', encoding='utf-8') as f:
            json.dump([d.to_dict() for d in drafts], f, ensure_ascii=False, indent=2)

        excel_path = output_dir / f"receipts_{determine_period(drafts, settings.tzinfo())}.xlsx"
        exporter = ExcelExporter(excel_path, timezone=settings.tzinfo())
        exporter.export_drafts(drafts, processor.review_queue.items, snapshot, include_summary=summary)

        click.echo("\n" + "=" * 50)
        click.echo("PROCESSING SUMMARY")
        click.echo("=" * 50)
        click.echo(f"Total files found: {processor.stats['total_files']}")
        click.echo(f"Successfully processed: {processor.stats['processed']}")
        click.echo(f"Failed: {processor.stats['failed']}")
        click.echo(f"Items needing review: {len(processor.review_queue.items)}")
        click.echo("\nOutput files:")
        click.echo(f"  - Excel: {excel_path}")
        click.echo(f"  - Drafts: {drafts_path}")

        review_summary = processor.review_queue.get_summary()
        if review_summary['total']:
            click.echo(f"\n{review_summary['total']} items need manual review:")
            for reason, count in sorted(review_summary['reason_breakdown'].items()):
                click.echo(f"  - {reason}: {count}")

    except Exception as e:
        logger.error(f"Processing failed: {e}")
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@cli.command()
@click.argument('record_path', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--metadata', 'metadata_path', type=click.Path(exists=True, path_type=Path),
              help='Snapshot JSON with accounts, categories and tags payloads')
@click.option('--settings', 'settings_path', type=click.Path(exists=True, path_type=Path),
              help='Settings YAML with host, token and defaults')
@click.option('--debug', is_flag=True, help='Enable debug output')
def check(record_path: Path, metadata_path: Optional[Path], settings_path: Optional[Path], debug: bool):
    """
    Re-validate drafts (one object or a list, as written by `run`) for upload.

    Prints the posting payload for each draft that passes and the reason for
    each one that does not. Exits 2 when any draft fails.
    """
    _enable_debug(debug)
    try:
        settings, snapshot, _ = _load_inputs(settings_path, metadata_path, None)
        with open(record_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        records = [DraftRecord.from_dict(item) for item in (data if isinstance(data, list) else [data])]
    except Exception as e:
        logger.error(f"Check failed: {e}")
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    validator = UploadValidator(TagResolver(history_window=settings.history_window))
    failures = 0
    for record in records:
        result = validator.check(record, settings, snapshot)
        name = record.source_name or make_snippet(record.raw_text)[:40]
        if result.ok:
            click.echo(f"OK {name}: {json.dumps(result.plan.to_payload(), ensure_ascii=False)}")
        else:
            failures += 1
            click.echo(f"FAIL {name}: {result.message}")

    if failures:
        sys.exit(2)


if __name__ == '__main__':
    cli()
