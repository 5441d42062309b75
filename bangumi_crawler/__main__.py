# bangumi_crawler/__main__.py

import argparse
import asyncio
import json
import logging
import sys
from typing import Any

import httpx

from bangumi_crawler.config import CrawlerConfig, get_configuration, logger
from bangumi_crawler.services.aggregation import aggregate_season, build_sites


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bangumi_crawler",
        description="Resolve broadcast schedules for a season of anime titles.",
    )
    parser.add_argument("--config", default="config.ini", help="Path to config.ini")
    parser.add_argument("--output", help="Write JSON here instead of stdout")
    subparsers = parser.add_subparsers(dest="command", required=True)

    season = subparsers.add_parser("season", help="Resolve a whole season")
    season.add_argument("season", help="Season token such as 2023q2")

    site = subparsers.add_parser("site", help="Look up one title on a site")
    site.add_argument("site", help="Site name, e.g. bilibili or nicovideo")
    site.add_argument("id", help="The site's ID for the title")
    return parser


async def run(args: argparse.Namespace, config: CrawlerConfig) -> Any:
    async with httpx.AsyncClient(
        timeout=config.http_timeout, follow_redirects=True
    ) as client:
        if args.command == "season":
            return await aggregate_season(args.season, config, client=client)

        config.enabled_sites = [args.site]
        sites = build_sites(config, client)
        if not sites:
            logger.error(f"Unknown site '{args.site}'.")
            return {}
        return await sites[0].get_info(args.id)


def main(argv: list[str] | None = None) -> int:
    """
    Main function: parse arguments, load config.ini and print the result as JSON.
    """
    args = build_parser().parse_args(argv)
    config = get_configuration(args.config)
    logging.getLogger().setLevel(config.log_level)

    result = asyncio.run(run(args, config))
    output = json.dumps(result, ensure_ascii=False, indent=2)
    if args.output:
        with open(args.output, "w", encoding="utf-8") as fh:
            fh.write(output + "\n")
        logger.info(f"Wrote results to '{args.output}'.")
    else:
        print(output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
