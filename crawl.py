"""CLI entrypoint for focused website crawls."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
import sys
from typing import Any

from sitecrawler import (
    CrawlConfig,
    CrawlOrchestrator,
    CrawlReport,
    PlanningError,
    RobotsTxtChecker,
    load_config,
)
from sitecrawler.constants import JSON_INDENT

RESULT_FILENAME = "crawl_result.json"
KNOWLEDGE_ITEMS_FILENAME = "knowledge_items.jsonl"

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_BAD_CONFIG = 2
EXIT_REJECTED = 3
EXIT_INTERRUPTED = 130


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Crawl one website and turn its pages into knowledge items.",
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to JSON/YAML crawl config.",
    )
    parser.add_argument(
        "--seed",
        type=str,
        default=None,
        help="Seed URL. Overrides the config seed_url if provided.",
    )
    parser.add_argument(
        "--output_dir",
        type=Path,
        default=Path("crawled_output"),
        help="Directory for crawl_result.json, knowledge_items.jsonl and logs.",
    )

    parser.add_argument("--max_pages", type=int, default=None)
    parser.add_argument("--max_depth", type=int, default=None)
    parser.add_argument(
        "--no_respect_robots",
        dest="respect_robots",
        action="store_false",
        default=None,
        help="Ignore robots.txt.",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Worker threads (1-5). Defaults to the strategy's concurrency.",
    )

    parser.add_argument("--timeout_seconds", type=float, default=None)
    parser.add_argument(
        "--crawl_timeout_seconds",
        type=float,
        default=None,
        help="Stop the whole crawl after this many seconds, keeping partial results.",
    )
    parser.add_argument("--user_agent", type=str, default=None)
    parser.add_argument(
        "--no_dedup",
        action="store_true",
        help="Keep near-duplicate pages instead of skipping them.",
    )

    parser.add_argument(
        "--plan_only",
        action="store_true",
        help="Print the crawl budget and strategy without fetching anything.",
    )
    parser.add_argument(
        "--print_stats_json",
        action="store_true",
        help="Print full stats JSON in stdout after run.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging.",
    )

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> CrawlConfig:
    if args.config is not None:
        payload = load_config(args.config).to_dict()
    else:
        payload = {"settings": {}, "crawler": {}}

    settings = payload["settings"]
    crawler = payload["crawler"]

    if args.seed is not None:
        payload["seed_url"] = args.seed

    if not payload.get("seed_url"):
        raise ValueError("No seed provided. Use --config with seed_url or --seed.")

    if args.max_pages is not None:
        settings["max_pages"] = args.max_pages
    if args.max_depth is not None:
        settings["max_depth"] = args.max_depth
    if args.respect_robots is not None:
        settings["respect_robots_txt"] = args.respect_robots

    if args.concurrency is not None:
        crawler["concurrency"] = args.concurrency
    if args.timeout_seconds is not None:
        crawler["timeout_seconds"] = args.timeout_seconds
    if args.crawl_timeout_seconds is not None:
        crawler["crawl_timeout_seconds"] = args.crawl_timeout_seconds
    if args.user_agent is not None:
        crawler["user_agent"] = args.user_agent
    if args.no_dedup:
        crawler["dedup_enabled"] = False

    return CrawlConfig.from_dict(payload)


def setup_logging(output_dir: Path, verbose: bool) -> None:
    log_level = logging.DEBUG if verbose else logging.INFO

    log_dir = output_dir / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / "crawl.log"

    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(log_level)

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setLevel(log_level)
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)

    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setLevel(log_level)
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    # Fallback extractors log every discarded node at WARNING.
    logging.getLogger("trafilatura").setLevel(logging.ERROR)
    logging.getLogger("readability").setLevel(logging.ERROR)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def write_outputs(report: CrawlReport, output_dir: Path) -> dict[str, Path]:
    output_dir.mkdir(parents=True, exist_ok=True)

    result_path = output_dir / RESULT_FILENAME
    result_path.write_text(
        json.dumps(report.to_json(), indent=JSON_INDENT, ensure_ascii=False) + "\n",
        encoding="utf-8",
    )

    items_path = output_dir / KNOWLEDGE_ITEMS_FILENAME
    with items_path.open("w", encoding="utf-8") as handle:
        for item in report.result.knowledge_items:
            handle.write(json.dumps(item.to_json(), ensure_ascii=False) + "\n")

    return {"crawl_result": result_path, "knowledge_items": items_path}


def print_plan(orchestrator: CrawlOrchestrator, config: CrawlConfig) -> None:
    budget, strategy = orchestrator.plan(config.settings)
    print(
        json.dumps(
            {"budget": budget.to_json(), "strategy": strategy.to_json()},
            indent=JSON_INDENT,
            sort_keys=True,
        )
    )


def print_summary(
    report: CrawlReport,
    paths: dict[str, Path],
    *,
    print_stats_json: bool,
) -> None:
    result = report.result
    stats: dict[str, Any] = report.stats

    print("\n=== Crawl Complete ===")
    print(f"seed: {report.seed_url}")
    print(f"state: {report.state.value}")
    if report.strategy is not None:
        print(f"strategy: {report.strategy.type.value}")
    print(f"sitemap_used: {report.sitemap_used}")
    if report.error:
        print(f"stopped_early: {report.error}")
    for name, path in paths.items():
        print(f"{name}: {path}")

    print("\n--- Core Stats ---")
    print(f"total_pages_attempted: {result.total_pages_attempted}")
    print(f"successful_pages: {result.successful_pages}")
    print(f"failed_pages: {result.failed_pages}")
    print(f"skipped_pages: {result.skipped_pages}")
    print(f"knowledge_items: {len(result.knowledge_items)}")
    if "duration_seconds" in stats:
        print(f"duration_seconds: {stats['duration_seconds']}")

    if print_stats_json:
        print("\n--- Full Stats JSON ---")
        print(json.dumps(stats, indent=JSON_INDENT, sort_keys=True))


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(args.output_dir, verbose=args.verbose)

    try:
        config = build_config(args)
    except Exception as exc:
        logging.error("Failed to build config: %s", exc)
        return EXIT_BAD_CONFIG

    orchestrator = CrawlOrchestrator(config.crawler)
    if args.plan_only:
        print_plan(orchestrator, config)
        return EXIT_OK

    logging.info(
        "Starting crawl: seed=%s, output_dir=%s, max_pages=%d, max_depth=%d",
        config.seed_url,
        args.output_dir,
        config.settings.max_pages,
        config.settings.max_depth,
    )

    robots_checker = None
    if config.settings.respect_robots_txt:
        robots_checker = RobotsTxtChecker(
            user_agent=config.crawler.validation_user_agent,
            timeout_seconds=config.crawler.head_timeout_seconds,
        )

    try:
        report = orchestrator.run(config.seed_url, config.settings, robots_checker)
        paths = write_outputs(report, args.output_dir)
    except PlanningError as exc:
        logging.error("Crawl rejected (%s): %s", exc.code, exc.message)
        return EXIT_REJECTED
    except KeyboardInterrupt:
        logging.error("Interrupted by user")
        return EXIT_INTERRUPTED
    except Exception:
        logging.exception("Crawl failed")
        return EXIT_FAILED

    print_summary(report, paths, print_stats_json=args.print_stats_json)
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
