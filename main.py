import argparse
import logging
import os
import sys

sys.path.append(os.path.join(os.path.dirname(__file__), 'src'))

from swarmscrape import Scraper


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Query BitTorrent trackers for swarm statistics.")
    parser.add_argument("hashes", nargs="+", help="40 character hex info hashes")
    parser.add_argument("-t", "--tracker", dest="trackers", action="append", required=True,
                        help="tracker URL (udp://, http:// or https://); repeat to add fallbacks")
    parser.add_argument("--max-trackers", type=int, default=None,
                        help="stop after this many usable trackers")
    parser.add_argument("--timeout", type=float, default=2, help="seconds per tracker")
    parser.add_argument("--announce", action="store_true",
                        help="use announce requests instead of scrape")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s - %(levelname)s - %(name)s - %(message)s',
        datefmt='%H:%M:%S'
    )

    scraper = Scraper()
    results = scraper.scrape(
        args.hashes,
        args.trackers,
        max_trackers=args.max_trackers,
        timeout=args.timeout,
        announce=args.announce,
    )

    for info_hash, record in results.items():
        print(f"{info_hash}  seeders={record.seeders} completed={record.completed} leechers={record.leechers}")

    if scraper.has_errors():
        print("Errors:", file=sys.stderr)
        for error in scraper.get_errors():
            print(f"  {error}", file=sys.stderr)

    return 0 if results else 1


if __name__ == "__main__":
    sys.exit(main())
