"""promocards - command-line runner for promotional card batches."""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from .config import settings
from .errors import BatchSetupError, ConfigurationError, ValidationError
from .models import CardRequest, normalize_batch
from .utils import get_logger, setup_logging

logger = get_logger(__name__)

SAMPLE_CARDS = [
    {
        "header": "Summer Sale",
        "promo": "50% off all items! Limited time offer on selected products.",
        "template": "default",
    },
    {
        "header": "New Arrivals",
        "promo": "Check out our latest collection of amazing products",
        "template": "default",
    },
]


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Render promotional cards from design templates and publish them",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m promocards.main --input updates.json            # Render a batch
  python -m promocards.main --input updates.json --dry-run  # Save cards locally
  python -m promocards.main --strategy liveAutomation       # Drive the live editor
  python -m promocards.main --list-components               # Show template node IDs
  python -m promocards.main --list-templates                # Show the template table
  python -m promocards.main --test                          # Render one sample card
  python -m promocards.main --show-results                  # Print the latest batch
        """,
    )

    parser.add_argument(
        "--input",
        type=Path,
        help="JSON file with an array of {header, promo, template?} records (default: sample cards)",
    )
    parser.add_argument(
        "--strategy",
        choices=["rest", "liveAutomation"],
        help="Rendering strategy (default: RENDERING_STRATEGY)",
    )
    parser.add_argument(
        "--delay-ms",
        type=int,
        help="Pause between records in milliseconds (default: INTER_RECORD_DELAY_MS)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Write cards to the output directory instead of uploading",
    )
    parser.add_argument(
        "--list-components",
        action="store_true",
        help="List components in the design file and exit",
    )
    parser.add_argument(
        "--list-templates",
        action="store_true",
        help="Print the configured template names and references and exit",
    )
    parser.add_argument(
        "--test",
        action="store_true",
        help="Render a single sample card",
    )
    parser.add_argument(
        "--show-results",
        action="store_true",
        help="Print the latest saved batch result and exit",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        help="Override output directory",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    return parser.parse_args(argv)


def load_records(path: Path) -> list:
    """Load inbound records from a JSON file."""
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict) and "cards" in data:
        data = data["cards"]
    return data


def _apply_overrides(args: argparse.Namespace) -> None:
    if args.output_dir:
        settings.output_dir = args.output_dir
    if args.delay_ms is not None:
        settings.inter_record_delay_ms = max(0, args.delay_ms)
    if args.dry_run:
        settings.upload_service = "local"


async def _list_components() -> int:
    from .sources import FigmaRestSource

    source = FigmaRestSource.from_settings(settings)
    async with source.session() as session:
        components = await session.list_components()
    print(json.dumps(components, indent=2))
    return 0


def _list_templates() -> int:
    from .templates import TemplateResolver

    resolver = TemplateResolver.from_settings(settings)
    table = {name: resolver.resolve(name).remote_ref for name in resolver.names}
    print(json.dumps(table, indent=2))
    return 0


async def _run(args: argparse.Namespace) -> int:
    from .batch import BatchRunner
    from .results_store import ResultsStore

    if args.show_results:
        latest = ResultsStore.from_settings(settings).load_latest()
        if latest is None:
            logger.error("No results found. Run a batch first.")
            return 1
        print(json.dumps(latest.to_dict(), indent=2))
        return 0

    if args.list_components:
        return await _list_components()

    if args.list_templates:
        return _list_templates()

    runner = BatchRunner.from_settings(settings, strategy=args.strategy)

    if args.test:
        result = await runner.render_one(CardRequest(header="Test Header", promo="Test Promo Text"))
        print(json.dumps(result.to_dict(), indent=2))
        return 0 if result.success else 1

    records = load_records(args.input) if args.input else SAMPLE_CARDS
    requests = normalize_batch(records)
    batch = await runner.run_batch(requests)

    print(json.dumps(batch.to_dict(), indent=2))
    for result in batch:
        if result.success:
            logger.info(f"{result.header}: {result.image_url}")
    return 0


def main(argv=None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    log_level = "DEBUG" if args.debug else settings.log_level
    setup_logging(level=log_level, gcp_project_id=settings.gcp_project_id)

    _apply_overrides(args)
    settings.ensure_directories()

    try:
        return asyncio.run(_run(args))
    except ValidationError as e:
        logger.error(f"Invalid input: {e.message}")
        return 1
    except (ConfigurationError, BatchSetupError) as e:
        logger.error(f"Batch could not start: {e}")
        return 1
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Could not read input: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
