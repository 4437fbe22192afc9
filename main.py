"""CLI entry point for the roadmap content engine."""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

import yaml

from content_engine.core.config import Settings
from content_engine.core.schemas import Roadmap
from content_engine.llm import available_providers, get_provider
from content_engine.pipeline.orchestrator import (
    build_skeleton_roadmap,
    export_roadmap_json,
    generate_enriched_roadmap,
)
from content_engine.pipeline.query_generator import QueryGenerator
from content_engine.pipeline.quota_ledger import QuotaLedger, build_ledgers
from content_engine.providers.tavily import TavilyProvider
from content_engine.providers.youtube import YouTubeProvider


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        default="config/settings.yaml",
        help="Path to settings YAML file (default: config/settings.yaml)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )


def _add_topic(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--topic", required=True, help="Topic to find learning content for")
    parser.add_argument(
        "--skill-level",
        default="beginner",
        choices=["beginner", "intermediate", "advanced"],
        help="Learner skill level (default: beginner)",
    )
    parser.add_argument(
        "--llm",
        help="LLM provider for query generation, or 'none' for keyword fallback "
             "(default: llm.provider from config)",
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Roadmap content engine - find, score and distribute learning content",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # --- generate subcommand ---
    generate_parser = subparsers.add_parser(
        "generate", help="Enrich a roadmap with videos and articles",
    )
    _add_topic(generate_parser)
    generate_parser.add_argument(
        "--roadmap",
        help="Roadmap YAML/JSON file (default: five-milestone skeleton for the topic)",
    )
    generate_parser.add_argument(
        "--timeout",
        type=float,
        help="Deadline in seconds for each provider branch (default: search.timeout_s)",
    )
    generate_parser.add_argument(
        "--export",
        choices=["json"],
        help="Export the enriched roadmap to format (json)",
    )
    _add_common(generate_parser)

    # --- queries subcommand ---
    queries_parser = subparsers.add_parser(
        "queries", help="Show the search queries generated for a topic",
    )
    _add_topic(queries_parser)
    _add_common(queries_parser)

    # --- quota subcommand ---
    quota_parser = subparsers.add_parser(
        "quota", help="Show configured provider quotas and credential status",
    )
    _add_common(quota_parser)

    return parser.parse_args(argv)


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def load_roadmap(path: str | Path) -> Roadmap:
    """Load a roadmap from a YAML or JSON file."""
    path = Path(path)
    if not path.exists():
        msg = f"Roadmap file not found: {path}"
        raise FileNotFoundError(msg)
    raw = yaml.safe_load(path.read_text()) or {}
    return Roadmap.model_validate(raw)


def build_query_generator(
    settings: Settings,
    llm_name: str | None,
    ledgers: dict[str, QuotaLedger],
) -> QueryGenerator:
    """Query generator for the requested LLM provider ('none' disables the LLM)."""
    name = llm_name if llm_name is not None else settings.llm.provider
    if not name or name == "none":
        return QueryGenerator()
    return QueryGenerator(
        provider=get_provider(name),
        ledger=ledgers.get("llm"),
        model=settings.llm.model,
    )


async def cmd_generate(args: argparse.Namespace, settings: Settings) -> None:
    """Handle generate subcommand."""
    if args.roadmap:
        roadmap = load_roadmap(args.roadmap)
    else:
        roadmap = build_skeleton_roadmap(args.topic, args.skill_level)

    ledgers = build_ledgers(settings.quotas)
    enriched = await generate_enriched_roadmap(
        roadmap,
        settings,
        query_generator=build_query_generator(settings, args.llm, ledgers),
        video_provider=YouTubeProvider(settings.providers.video, ledgers.get("youtube")),
        article_provider=TavilyProvider(settings.providers.article, ledgers.get("tavily")),
        timeout_s=args.timeout,
    )

    meta = enriched.metadata
    print(f"\nRoadmap '{enriched.topic}' ({enriched.skill_level}): "
          f"{len(enriched.milestones)} milestones")
    print(f"  Videos: {meta['realVideos']} real, {meta['fallbackVideos']} fallback")
    print(f"  Articles: {meta['realArticles']} real, {meta['fallbackArticles']} fallback")
    if meta["degradedQueries"]:
        print("  Queries: keyword fallback (LLM unavailable)")
    for provider, exceeded in meta["budgetExceeded"].items():
        if exceeded:
            print(f"  Budget exceeded: {provider}")

    for ledger in ledgers.values():
        for warning in ledger.warnings():
            print(f"  Warning: {warning}")

    if args.export == "json":
        print(f"\n{export_roadmap_json(enriched)}")


async def cmd_queries(args: argparse.Namespace, settings: Settings) -> None:
    """Handle queries subcommand."""
    ledgers = build_ledgers(settings.quotas)
    generator = build_query_generator(settings, args.llm, ledgers)
    plan = await generator.generate(args.topic, args.skill_level, settings.search.max_queries)

    print(f"Topic: {plan.topic} -> {plan.canonical_topic}")
    print(f"Degraded: {plan.degraded}")
    print("Video queries:")
    for q in plan.video_queries:
        print(f"  - {q.text}")
    print("Article queries:")
    for q in plan.article_queries:
        print(f"  - {q.text}")
    if plan.reasoning:
        print(f"Reasoning: {plan.reasoning}")


def cmd_quota(settings: Settings) -> None:
    """Handle quota subcommand."""
    env_vars = {
        "youtube": settings.providers.video.api_key_env,
        "tavily": settings.providers.article.api_key_env,
    }
    for name, quota in sorted(settings.quotas.items()):
        print(f"{name}: {quota.max_requests_per_minute}/min, "
              f"{quota.max_requests_per_hour}/hour, {quota.max_daily_cost:g} units/day")
        env_var = env_vars.get(name)
        if env_var:
            mode = "live" if os.environ.get(env_var) else "mock (no credentials)"
            print(f"  {env_var}: {mode}")
    print(f"LLM provider: {settings.llm.provider or 'none'} "
          f"(available: {', '.join(available_providers())})")


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        settings = Settings.from_yaml(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        if args.command == "generate":
            asyncio.run(cmd_generate(args, settings))
        elif args.command == "queries":
            asyncio.run(cmd_queries(args, settings))
        else:
            cmd_quota(settings)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
