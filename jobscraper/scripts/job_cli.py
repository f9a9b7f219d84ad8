import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from jobscraper.linkedin.db import JobDB
from jobscraper.linkedin.exporter import jobs_to_csv
from jobscraper.linkedin.settings import SETTINGS


def cmd_list(args):
    db = JobDB(args.db)
    total, jobs = db.search(q=args.query, company=args.company, remote=args.remote, limit=args.limit)
    for j in jobs:
        flag = ' [reposted]' if j.is_reposted else ''
        print(f"{j.id}\t{j.company} - {j.title}\t{j.location}\t{j.remote or ''}{flag}")
    print(f"{len(jobs)} of {total} jobs")


def cmd_count(args):
    print(JobDB(args.db).count())


def cmd_export(args):
    jobs = JobDB(args.db).fetch_all()
    fields = args.fields.split(',') if args.fields else None
    path = jobs_to_csv(jobs, args.out, fields=fields)
    print(f"Exported {len(jobs)} jobs -> {path}")


def build_parser():
    ap = argparse.ArgumentParser("job cli")
    ap.add_argument('--db', type=Path, default=SETTINGS.db_path)
    sub = ap.add_subparsers(dest='cmd', required=True)

    lp = sub.add_parser('list')
    lp.add_argument('--query', '-q')
    lp.add_argument('--company')
    lp.add_argument('--remote')
    lp.add_argument('--limit', type=int, default=50)
    lp.set_defaults(func=cmd_list)

    cp = sub.add_parser('count')
    cp.set_defaults(func=cmd_count)

    ep = sub.add_parser('export')
    ep.add_argument('out', type=Path)
    ep.add_argument('--fields', help='Comma separated columns (default: all)')
    ep.set_defaults(func=cmd_export)
    return ap


def main(argv=None):
    args = build_parser().parse_args(argv)
    args.func(args)
    return 0


if __name__ == '__main__':
    sys.exit(main())
