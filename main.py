"""Tracevista - subject search aggregation

Simple CLI for running one aggregation against the configured providers.
"""

import argparse
import asyncio
import json
from dataclasses import asdict

from tracevista.errors import SubjectValidationError
from tracevista.models.entities import AggregatedReport, Budget, SubjectParams
from tracevista.services.aggregator import aggregate
from tracevista.tools.hunter_email import HunterEmailAdapter
from tracevista.tools.scraperapi_scraper import ScraperApiAdapter
from tracevista.tools.search_provider import WebSearchAdapter


def report_to_dict(report: AggregatedReport) -> dict:
    data = asdict(report)
    data["events"] = [{"event": event.event.value, **event.data} for event in report.events]
    return data


async def run_search(params: SubjectParams, budget: Budget, *, scrape: bool, as_json: bool):
    """Run one aggregation and print the report."""
    adapters = [WebSearchAdapter(location=params.location), HunterEmailAdapter()]
    if scrape:
        adapters.append(ScraperApiAdapter())

    if not as_json:
        print(f"Subject: {params.name}" + (f" ({params.location})" if params.location else ""))
        print("-" * 50)

    report = await aggregate(params, adapters, budget)

    if as_json:
        print(json.dumps(report_to_dict(report), indent=2, default=str))
        return

    print(f"\n[*] Status: {report.status.value}")
    print(f"   Results: {len(report.results)}  Entities: {len(report.entities)}")
    print(f"   Cost: ${report.total_cost:.3f}  Credits: {report.credits_used}")
    print(f"   Correlation: {report.correlation_score}%")

    if report.has_low_results:
        print("\n[!] Few results found. Try broadening the search parameters.")

    for result in report.results[:10]:
        print(f"\n  [{result.relevance_score:>3}] {result.title}")
        print(f"        {result.url}  ({result.source}, confidence {result.confidence})")

    if report.entities:
        print(f"\n{'='*50}")
        print("ENTITIES:")
        for entity in report.entities:
            mark = "+" if entity.verified else " "
            print(f"  [{mark}] {entity.type.value:<10} {entity.value}  ({entity.confidence})")

    for error in report.errors:
        print(f"\n[!] {error.provider} {error.category}: {error.cause.value} - {error.message}")
    for skip in report.skipped:
        print(f"[-] skipped {skip.provider} {skip.category}: {skip.reason}")

    for line in report.recommendations:
        print(f"\n[>] {line}")


def main():
    parser = argparse.ArgumentParser(description="Tracevista subject search")
    parser.add_argument("--name", "-n", required=True, help="Subject full name")
    parser.add_argument("--city", help="City")
    parser.add_argument("--state", help="Two-letter state")
    parser.add_argument("--phone", help="Phone number")
    parser.add_argument("--email", help="Email address")
    parser.add_argument("--address", help="Street address")
    parser.add_argument("--max-cost", type=float, help="Spend ceiling in USD")
    parser.add_argument("--max-credits", type=int, help="Scraping credit ceiling")
    parser.add_argument("--scrape", action="store_true", help="Also fetch people-search pages")
    parser.add_argument("--json", action="store_true", help="Print the full report as JSON")

    args = parser.parse_args()

    params = SubjectParams(
        name=args.name,
        city=args.city,
        state=args.state,
        phone=args.phone,
        email=args.email,
        address=args.address,
    )
    budget = Budget(max_cost=args.max_cost, max_credits=args.max_credits)
    try:
        asyncio.run(run_search(params, budget, scrape=args.scrape, as_json=args.json))
    except SubjectValidationError as e:
        parser.error(str(e))


if __name__ == "__main__":
    main()
