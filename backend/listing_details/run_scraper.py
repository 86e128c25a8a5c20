import argparse
import asyncio
import csv
import json
import logging
from dataclasses import replace

from .client import new_client
from .errors import FetchError, InvalidInputError
from .llm import build_llm
from .scraper import fetch_listing_details
from .settings import PipelineSettings

log = logging.getLogger("listing_details")

CSV_FIELDNAMES = [
    "url", "address", "title", "price", "beds", "baths", "sqft", "propertyType",
    "yearBuilt", "garageSpaces", "levels", "lotSize", "imageUrl", "latitude",
    "longitude", "description",
]


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Extract structured details from real estate listing pages.")
    p.add_argument("urls", nargs="+", help="One or more listing page URLs")
    p.add_argument("--output", help="Optional path to save results as .json or .csv")
    p.add_argument("--print-details", action="store_true", help="Print each listing row to stdout")
    p.add_argument("--verbose", action="store_true", help="Enable debug logging")
    p.add_argument("--concurrency", type=int, default=3, help="How many pages to process at once")
    p.add_argument(
        "--sequential-llm",
        action="store_true",
        help="Run the price call before the detail call and pass its answer along as a hint",
    )
    return p.parse_args(argv)


def format_row(row: dict) -> str:
    price = f"${float(row['price']):,.0f}" if row.get("price") else "N/A"
    beds = f"{row['beds']} bd" if row.get("beds") else "--"
    baths = f"{row['baths']} ba" if row.get("baths") else "--"
    sqft = f"{float(row['sqft']):,.0f} sqft" if row.get("sqft") else "--"
    where = (
        f"{row['latitude']:.5f},{row['longitude']:.5f}"
        if row.get("latitude") is not None
        else "no coords"
    )
    return f"- {row.get('address') or row.get('title') or '?'} | {price} | {beds} / {baths} | {sqft} | {where} | {row['url']}"


def write_output(rows: list[dict], out_path: str) -> bool:
    """Write rows as JSON or CSV depending on the extension. False if the extension is unknown."""
    if out_path.lower().endswith(".json"):
        with open(out_path, "w", encoding="utf-8") as f:
            json.dump(rows, f, indent=2, ensure_ascii=False)
    elif out_path.lower().endswith(".csv"):
        with open(out_path, "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=CSV_FIELDNAMES)
            writer.writeheader()
            for r in rows:
                writer.writerow({k: r.get(k) for k in CSV_FIELDNAMES})
    else:
        return False
    return True


async def main(argv=None) -> int:
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)s | %(message)s",
    )
    if args.verbose:
        log.setLevel(logging.DEBUG)

    settings = PipelineSettings.from_env()
    if args.sequential_llm:
        settings = replace(settings, llm_concurrent=False)
    llm = build_llm(settings)

    sem = asyncio.Semaphore(max(1, args.concurrency))

    async with new_client(settings) as client:

        async def scrape_one(url: str):
            async with sem:
                try:
                    record = await fetch_listing_details(url, settings=settings, client=client, llm=llm)
                except (InvalidInputError, FetchError) as e:
                    log.error("❌ %s", e)
                    return None
                return {"url": url, **record.to_dict()}

        results = await asyncio.gather(*(scrape_one(u) for u in args.urls))

    rows = [r for r in results if r is not None]

    if args.print_details:
        for row in rows:
            print(format_row(row))

    if args.output:
        if write_output(rows, args.output):
            print(f"Saved {len(rows)} listing(s) to {args.output}")
        else:
            print(f"[warn] Unknown output format for '{args.output}'. Use .json or .csv")

    print(f"\nExtracted {len(rows)} of {len(args.urls)} listing(s).")
    return 0 if rows else 1


def cli():
    raise SystemExit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
