"""CLI interface for perizia analysis"""
import click
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional
from .config import LOG_LEVEL
from .errors import PeriziaError
from .extractor import PeriziaExtractor
from .keywords import FIELD_LABELS
from .models import AnalysisResult
from .provider import SummaryProvider, make_provider
import time
import traceback


def analysis_to_json(result: AnalysisResult, summary: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    data = result.to_dict()
    if summary is not None:
        data["summary"] = summary
    return data


def process_pdf_file(extractor: PeriziaExtractor,
                     pdf_path: Path,
                     provider: Optional[SummaryProvider] = None,
                     output_dir: Path = None,
                     verbose: bool = False) -> Dict[str, Any]:
    """Process a single PDF file"""
    try:
        pdf_bytes = pdf_path.read_bytes()

        click.echo(f"Processing: {pdf_path.name}")

        start_ts = time.perf_counter()
        result = extractor.analyze(pdf_bytes)

        summary = None
        if provider is not None:
            summary = provider.summarize(result.fields, result.pages).model_dump()
        elapsed_s = time.perf_counter() - start_ts

        data = analysis_to_json(result, summary)

        if output_dir:
            output_path = output_dir / f"{pdf_path.stem}_perizia.json"
            with open(output_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            click.echo(f"  Results saved to: {output_path}")

        click.echo(f"  Time: {elapsed_s:.2f}s | Mode: {result.analysis_mode} | "
                   f"Engine: {result.engine} | Pages: {result.pages_analyzed}/{result.total_pages}")
        for name, field in result.fields.items():
            click.echo(f"  {FIELD_LABELS[name]}: {field.status.value} "
                       f"({field.confidence:.2f}) {field.summary}")

        return data

    except PeriziaError as e:
        click.echo(f"  Error processing {pdf_path.name}: {e.message}", err=True)
        if verbose:
            click.echo(json.dumps(e.to_dict(), indent=2, ensure_ascii=False), err=True)
        return {"error": e.to_dict()}
    except Exception as e:
        click.echo(f"  Error processing {pdf_path.name}: {e}", err=True)
        if verbose:
            traceback.print_exc()
        return {"error": {"error": "unexpected", "message": str(e)}}


@click.command()
@click.argument('pdf_folder', type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option('--output-dir', '-o',
              type=click.Path(file_okay=False, path_type=Path),
              help='Directory to save analysis results')
@click.option('--summary/--no-summary', default=False,
              help='Add an operative summary to each result')
@click.option('--keep-images', is_flag=True,
              help='Keep rendered page images of scanned PDFs for inspection')
@click.option('--verbose', '-v', is_flag=True,
              help='Verbose output')
def main(pdf_folder: Path, output_dir: Path, summary: bool, keep_images: bool, verbose: bool):
    """
    Analyze the perizie (PDF) in a folder.

    PDF_FOLDER: Folder containing PDF files to process

    Examples:

    \b
    perizia-extract /path/to/perizie --output-dir results
    perizia-extract /path/to/perizie --summary --verbose
    """
    logging.basicConfig(level=logging.DEBUG if verbose else LOG_LEVEL,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        extractor = PeriziaExtractor(keep_images=keep_images)
        provider = make_provider() if summary else None
    except Exception as e:
        click.echo(f"Error initializing extractor: {e}", err=True)
        if verbose:
            traceback.print_exc()
        return

    if output_dir:
        output_dir.mkdir(parents=True, exist_ok=True)

    pdf_files = sorted(pdf_folder.glob('*.pdf'))
    if not pdf_files:
        click.echo(f"No PDF files found in {pdf_folder}", err=True)
        return

    click.echo(f"Found {len(pdf_files)} PDF file(s)")

    all_results = {}
    for pdf_file in pdf_files:
        all_results[pdf_file.name] = process_pdf_file(
            extractor, pdf_file, provider, output_dir, verbose
        )

    succeeded = sum(1 for data in all_results.values() if "error" not in data)
    click.echo(f"\nProcessed {succeeded}/{len(all_results)} PDF(s) successfully")

    if output_dir and all_results:
        combined_path = output_dir / "all_results.json"
        with open(combined_path, 'w', encoding='utf-8') as f:
            json.dump(all_results, f, indent=2, ensure_ascii=False)
        click.echo(f"Combined results saved to: {combined_path}")


if __name__ == '__main__':
    main()
