"""Run a single question through the pipeline and print the streamed output."""

import argparse
import asyncio
import json
import sys
from pathlib import Path

# Ensure project root is on sys.path when executed via `python scripts/...`
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from searchrag.logger import setup_logging
from searchrag.pipeline import ENVELOPE_SEPARATOR, Pipeline
from searchrag.types import GoRequest


async def run_query(request: GoRequest) -> None:
    pipeline = Pipeline()
    # the envelope is always the final piece, so hold one piece back
    pending = None
    async for piece in pipeline.run(request):
        if pending is not None:
            print(pending, end="", flush=True)
        pending = piece
    if pending is None:
        return

    envelope = json.loads(pending[len(ENVELOPE_SEPARATOR) :])
    print("\n\n=== Sources ===")
    for source in envelope.get("sources", []):
        print(f"- {source['title']}: {source['link']}")
    if "suggestedQuestions" in envelope:
        print("\n=== Follow-up questions ===")
        for question in envelope["suggestedQuestions"]:
            print(f"- {question}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Ask searchrag a question.")
    parser.add_argument("message", help="Question to answer.")
    parser.add_argument("--pages", type=int, default=None, help="Number of search results to scan.")
    parser.add_argument("--no-sources", action="store_true", help="Omit sources from the envelope.")
    parser.add_argument("--no-follow-up", action="store_true", help="Skip follow-up questions.")
    parser.add_argument("--cite", action="store_true", help="Ask for inline source annotations.")
    parser.add_argument("--log-level", default="WARNING")
    args = parser.parse_args()

    setup_logging(args.log_level)
    body = {"message": args.message}
    if args.pages is not None:
        body["numberOfPagesToScan"] = args.pages
    if args.no_sources:
        body["returnSources"] = False
    if args.no_follow_up:
        body["returnFollowUpQuestions"] = False
    if args.cite:
        body["embedSourcesInLLMResponse"] = True
    asyncio.run(run_query(GoRequest.model_validate(body)))
