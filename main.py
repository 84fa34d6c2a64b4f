#!/usr/bin/env python3
"""
Main entry point for the SpiderRank search engine.
"""

import asyncio
import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, TextIO

from spiderrank import __version__
from spiderrank.crawler.url_frontier import InvalidSeedURLError
from spiderrank.indexer.pipeline import IndexingPipeline
from spiderrank.storage.index_store import IndexStoreManager, IndexStoreError
from spiderrank.utils.config import Config, load_config, validate_config
from spiderrank.utils.logger import setup_logging, log_system_info
from spiderrank.utils.monitoring import initialize_monitoring

PROMPT = "\nEnter search query (e.g., 'berserk anime') or 'exit': "


class SpiderRankApp:
    """Main application class: index and search modes."""

    def __init__(self, config: Config):
        self.config = config
        self.logger = logging.getLogger(__name__)

    async def run_index(self, seed_urls: Optional[List[str]] = None) -> int:
        """Crawl, score and persist. Returns a process exit code."""
        crawler = self.config.crawler
        seeds = seed_urls or crawler.seed_urls

        self.logger.info("=== SPIDERRANK INDEXER STARTING ===")
        self.logger.info(f"Seed URLs: {seeds}")
        self.logger.info(f"Page limit: {crawler.page_limit}")
        self.logger.info(f"Concurrency: {crawler.concurrency}")
        self.logger.info(f"Task timeout: {crawler.task_timeout}s")
        self.logger.info(f"Storage type: {self.config.storage.type}")

        monitor = initialize_monitoring(
            self.config.monitoring.metrics_enabled,
            self.config.monitoring.prometheus_port
        )
        pipeline = IndexingPipeline(self.config, monitor=monitor)

        try:
            report = await pipeline.run(seeds)
        except InvalidSeedURLError as e:
            self.logger.error(f"Invalid seed URL: {e}")
            return 1
        except IndexStoreError as e:
            self.logger.error(f"Failed to save index: {e}")
            return 1

        self.logger.info(f"Indexed {report.documents_stored} pages, {len(report.index)} terms")
        self.logger.info(f"Monitoring summary: {monitor.get_summary()}")
        self.logger.info("=== SPIDERRANK INDEXER FINISHED ===")
        return 0

    async def run_search(self, query: Optional[str] = None, top_k: int = 10,
                         stdin: Optional[TextIO] = None, stdout: Optional[TextIO] = None) -> int:
        """Answer one query, or prompt interactively until 'exit' or EOF."""
        stdin = stdin or sys.stdin
        stdout = stdout or sys.stdout
        store = IndexStoreManager(self.config.storage)
        try:
            await store.initialize()
            print("Loading search index...", file=stdout)
            terms = await store.term_count()
            print(f"Index loaded ({terms} terms). Ready to search.", file=stdout)

            if query is not None:
                await self._answer(store, query, top_k, stdout)
                return 0

            while True:
                stdout.write(PROMPT)
                stdout.flush()
                line = stdin.readline()
                if not line:
                    break
                text = line.strip()
                if not text:
                    continue
                if text.lower() == 'exit':
                    break
                await self._answer(store, text, top_k, stdout)
        except IndexStoreError as e:
            print(f"Error: {e}", file=stdout)
            print("Please run the indexer first with: `python main.py index`", file=stdout)
            return 1
        finally:
            await store.close()

        return 0

    @staticmethod
    async def _answer(store: IndexStoreManager, query: str, top_k: int, stdout: TextIO):
        results = await store.search(query, top_k)
        if not results:
            print(f"No results found for '{query}'.", file=stdout)
            return

        print(f"\nTop {len(results)} pages for '{query}':", file=stdout)
        for url, score in results:
            print(f"  - [{score:.6f}] {url}", file=stdout)
            document = await store.get_document(url)
            if document and document.title:
                print(f"    Title: {document.title}", file=stdout)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="SpiderRank: crawl, rank and search a web graph",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py index                         # Crawl and index with config.yaml
  python main.py index --max-pages 50          # Limit the crawl to 50 pages
  python main.py index --seed https://example.com/
  python main.py search                        # Interactive search prompt
  python main.py search --query "rust tokio"   # One-shot query
        """
    )

    parser.add_argument(
        'mode',
        nargs='?',
        choices=['index', 'search'],
        default='search',
        help='index: crawl and build the index; search: query it (default)'
    )
    parser.add_argument(
        '--config',
        default='config.yaml',
        help='Path to configuration file (default: config.yaml)'
    )
    parser.add_argument('--max-pages', type=int, help='Maximum number of pages to crawl')
    parser.add_argument('--concurrency', type=int, help='Concurrent fetch tasks')
    parser.add_argument('--seed', action='append', dest='seeds', help='Seed URL (repeatable)')
    parser.add_argument('--query', help='Run a single search query and exit')
    parser.add_argument('--top-k', type=int, default=10, help='Results to show per query')
    parser.add_argument('--version', action='version', version=f'SpiderRank {__version__}')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    if not Path(args.config).exists():
        print(f"Error: Configuration file '{args.config}' not found.")
        print("Please create a config.yaml file or specify a different path with --config")
        return 1

    try:
        config = load_config(args.config)
        if args.max_pages is not None:
            config.crawler.page_limit = args.max_pages
        if args.concurrency is not None:
            config.crawler.concurrency = args.concurrency
        if args.seeds:
            config.crawler.seed_urls = args.seeds
        validate_config(config, require_seeds=args.mode == 'index')
        if args.top_k < 1:
            raise ValueError("--top-k must be at least 1")
    except (ValueError, TypeError) as e:
        print(f"Error: invalid configuration: {e}")
        return 1

    app = SpiderRankApp(config)
    try:
        if args.mode == 'index':
            setup_logging(config.logging)
            log_system_info()
            return asyncio.run(app.run_index())
        return asyncio.run(app.run_search(args.query, args.top_k))
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 1


if __name__ == '__main__':
    sys.exit(main())
