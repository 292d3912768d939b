"""
Preview what a filter link or a plain-language description asks the catalog for.

This script:
1) Reads a query string (or a full URL) or a natural-language description
2) Normalizes it into the canonical filter state
3) Prints the canonical URL and the exact catalog request
4) Optionally fetches the first page (needs TMDB credentials in .env)

Usage:
    python -m scripts.preview_query "?type=tv&with_genres=18,9648&vote_average.gte=7"
    python -m scripts.preview_query --text "action movies from the 90s on netflix" --fetch
"""

import argparse  # command line flags
import asyncio  # run the async catalog call
import sys  # make the package importable from a plain checkout
from pathlib import Path

from loguru import logger  # console logging

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
	sys.path.insert(0, str(ROOT))

from cinefilter.catalog import CatalogClient, CatalogError  # catalog HTTP client
from cinefilter.defaults import active_filter_fields  # facets that narrow the query
from cinefilter.nl_parser import NaturalLanguageFilterParser  # free text -> patch
from cinefilter.query_builder import build_catalog_request  # state -> catalog call
from cinefilter.settings import configure_logging, load_settings  # env config
from cinefilter.store import FilterStore  # applies the parsed patch
from cinefilter.url_sync import parse_filters_from_url, serialize_filters  # URL dialect codec


def main():
	parser = argparse.ArgumentParser(description="Preview the catalog request for a set of filters")
	parser.add_argument("link", nargs="?", default="", help="query string or URL carrying filters")
	parser.add_argument("--text", help="natural-language description instead of a link")
	parser.add_argument("--type", default="movie", choices=["movie", "tv"], help="content type when the input does not say")
	parser.add_argument("--fetch", action="store_true", help="also fetch the first page from the catalog")
	args = parser.parse_args()

	settings = load_settings()
	configure_logging(settings.log_level)

	# 1) Build the state
	if args.text:
		store = FilterStore(content_type=args.type)
		store.apply_patch(NaturalLanguageFilterParser().parse(args.text, content_type=args.type))
		state = store.state
	else:
		link = args.link if "?" in args.link else f"?{args.link}"
		state = parse_filters_from_url(link, args.type)

	# 2) Show what it means
	req = build_catalog_request(state)
	logger.info("=" * 60)
	logger.info(f"Canonical link : ?{serialize_filters(state)}")
	logger.info(f"Active facets  : {', '.join(active_filter_fields(state)) or '(none)'}")
	logger.info(f"Catalog call   : GET {req.path}")
	for key, value in req.params.items():
		logger.info(f"    {key} = {value}")
	logger.info("=" * 60)

	# 3) Optionally fetch
	if not args.fetch:
		return
	if not settings.has_catalog_credentials:
		logger.error("Set TMDB_API_KEY or TMDB_BEARER_TOKEN to fetch results")
		return
	client = CatalogClient(settings.catalog_base_url, settings.tmdb_api_key, settings.tmdb_bearer_token, settings.catalog_timeout_s)
	try:
		payload = asyncio.run(client.discover(state))
	except CatalogError as e:
		logger.error(f"Fetch failed: {e}")
		return
	logger.info(f"[OK] {payload.get('total_results', 0)} results; first page:")
	for item in payload.get("results", [])[:10]:
		title = item.get("title") or item.get("name")
		date = item.get("release_date") or item.get("first_air_date") or "----"
		logger.info(f"  {date[:4]}  {item.get('vote_average', 0):>4}  {title}")


if __name__ == '__main__':
	main()
