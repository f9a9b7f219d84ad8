"""Scrape LinkedIn jobs into the local database.

Reads searches from config/searches.yml unless --keywords is given, seeds the
dedup tracker with ids already stored (and optionally a CSV), upserts every
scraped job as it arrives.

    LI_AT_COOKIE=... python -m jobscraper.scripts.run_search --keywords "python" --location Berlin
"""
from pathlib import Path
import sys
import os
import yaml
import argparse
import asyncio
import logging

# Ensure project root is on path when executing this file directly
ROOT = Path(__file__).resolve().parent.parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from jobscraper.linkedin.db import JobDB
from jobscraper.linkedin.errors import ScraperError
from jobscraper.linkedin.exporter import jobs_to_csv, read_ids_from_csv
from jobscraper.linkedin.logging_config import setup_logging, log_event
from jobscraper.linkedin.models import BrowserOptions
from jobscraper.linkedin.scraper import LinkedInScraper
from jobscraper.linkedin.settings import CONFIG_DIR, SETTINGS

logger = logging.getLogger('run_search')


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description='Scrape LinkedIn job searches')
    ap.add_argument('--searches', type=Path, default=CONFIG_DIR / 'searches.yml', help='YAML file with global_filters and searches')
    ap.add_argument('--keywords', type=str, help='Ad-hoc keywords (bypass searches file)')
    ap.add_argument('--location', type=str, help='Ad-hoc location (required with --keywords)')
    ap.add_argument('--limit', type=int, help='Jobs per search')
    ap.add_argument('--max-concurrent', type=int, help='Parallel browser sessions')
    ap.add_argument('--exclude', action='append', default=[], help='Job field to skip (repeatable), e.g. description')
    ap.add_argument('--headed', action='store_true', help='Show the browser window')
    ap.add_argument('--slow-mo', type=int, help='Delay between browser actions in ms')
    ap.add_argument('--db', type=Path, default=SETTINGS.db_path, help='SQLite database path')
    ap.add_argument('--csv', type=Path, help='Also export the jobs scraped this run to CSV')
    ap.add_argument('--seed-csv', type=Path, help='CSV with an id column of jobs to skip')
    ap.add_argument('--debug', action='store_true', help='Enable debug logging')
    return ap


def load_search_config(args) -> dict:
    if args.keywords:
        if not (args.location or '').strip():
            raise SystemExit('--location is required with --keywords')
        logger.info('Using ad-hoc search override')
        return {'searches': [{'keywords': args.keywords, 'location': args.location}]}
    cfg = yaml.safe_load(Path(args.searches).read_text(encoding='utf-8')) or {}
    if not cfg.get('searches'):
        raise SystemExit(f"No searches defined in {args.searches}")
    return cfg


async def run(args) -> int:
    cfg = load_search_config(args)
    db = JobDB(args.db)
    known = set(db.fetch_ids())
    if args.seed_csv:
        known.update(read_ids_from_csv(args.seed_csv))
    logger.info(f"Loaded {len(cfg['searches'])} searches, {len(known)} known job ids")

    browser_options = {'headless': not args.headed}
    if args.slow_mo is not None:
        browser_options['slow_mo'] = args.slow_mo
    scraped = []

    def on_scrape(record, index):
        db.upsert_job(record)
        scraped.append(record)

    async with LinkedInScraper(
        os.getenv('LI_AT_COOKIE'),
        scraped_ids=known,
        browser_options=BrowserOptions(**browser_options),
    ) as scraper:
        outcomes = await scraper.search(
            cfg['searches'],
            on_scrape,
            limit=args.limit or cfg.get('limit'),
            exclude_fields=args.exclude or cfg.get('exclude_fields') or (),
            max_concurrent=args.max_concurrent or cfg.get('max_concurrent'),
            global_filters=cfg.get('global_filters'),
        )
    for o in outcomes:
        kw = cfg['searches'][o.index].get('keywords')
        logger.info(f"Search '{kw}' state={o.state.value} scraped={o.emitted} pages={o.pages}" + (f" error={o.error}" if o.error else ''))
    if args.csv and scraped:
        jobs_to_csv(scraped, args.csv)
        logger.info(f"Exported {len(scraped)} jobs to {args.csv}")
    logger.info(f"Run complete new_jobs={len(scraped)} total_in_db={db.count()}")
    log_event('run_complete', new_jobs=len(scraped))
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(level='debug' if args.debug else SETTINGS.log_level, file_path=SETTINGS.log_file,
                  max_bytes=SETTINGS.log_max_bytes, backup_count=SETTINGS.log_backup_count)
    try:
        return asyncio.run(run(args))
    except ScraperError as e:
        logger.error(str(e))
        return 2


if __name__ == '__main__':
    sys.exit(main())
