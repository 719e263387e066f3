#!/usr/bin/env python3
"""
Ask a Plan

Answers one question about a plan from exported takeoff and snippet files.

Usage:
    python scripts/ask_plan.py "How many SF of roofing?" --takeoff takeoff.json [--snippets chunks.json]
    python scripts/ask_plan.py "What's on page 3?" --snippets chunks.json --embeddings --verbose
"""

import sys
import json
import argparse
import logging
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


def main():
    parser = argparse.ArgumentParser(description="Ask a grounded question about a construction plan")
    parser.add_argument("question", type=str, help="Question to ask about the plan")
    parser.add_argument("--takeoff", type=Path, help="Takeoff JSON export (list, JSON string, or envelope)")
    parser.add_argument("--snippets", type=Path, help="Blueprint snippet JSON export")
    parser.add_argument("--plan-id", type=str, default="local-plan", help="Plan identifier")
    parser.add_argument("--user-id", type=str, default="local-user", help="User identifier")
    parser.add_argument("--embeddings", action="store_true", help="Rank snippets with fastembed instead of keywords")
    parser.add_argument("--show-sources", action="store_true", help="Print classification and matched items")
    parser.add_argument("--json", action="store_true", help="Print the full retrieval result as JSON")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    from planchat.common.config import load_config
    from planchat.common.embedding_service import get_embedding_service
    from planchat.common.errors import PlanChatError
    from planchat.common.stores import (
        InMemorySnippetStore,
        InMemoryTakeoffStore,
        load_snippets_file,
        load_takeoff_file,
    )
    from planchat.retriever import PlanChatPipeline, PlanScope

    config = load_config()
    if not config.llm.api_key:
        print(f"[PlanChat] ERROR: No API key configured for provider '{config.llm.provider}'")
        sys.exit(1)

    takeoff_store = InMemoryTakeoffStore()
    if args.takeoff:
        load_takeoff_file(takeoff_store, args.takeoff, args.plan_id, args.user_id)

    embedding_svc = None
    if args.embeddings:
        embedding_svc = get_embedding_service(config.embedding.mode, config.embedding.model)
        if not embedding_svc.is_available:
            print("[PlanChat] WARNING: Embedding service not available, using keyword ranking")
    snippet_store = InMemorySnippetStore(embedding_service=embedding_svc)
    if args.snippets:
        count = load_snippets_file(snippet_store, args.snippets, args.plan_id)
        logging.getLogger("planchat.scripts.ask_plan").info("Loaded %d snippets", count)

    pipeline = PlanChatPipeline(config, takeoff_store=takeoff_store, snippet_store=snippet_store)
    if not pipeline.llm_client.is_available:
        print(f"[PlanChat] ERROR: LLM client for provider '{config.llm.provider}' could not be initialized")
        sys.exit(1)

    scope = PlanScope(plan_id=args.plan_id, user_id=args.user_id)
    try:
        response = pipeline.ask(scope, args.question)
    except PlanChatError as e:
        print(f"[PlanChat] ERROR: {e}")
        sys.exit(1)

    print(response.answer)

    if args.show_sources:
        print()
        print(f"[PlanChat] Classification: {response.classification.model_dump_json()}")
        print(f"[PlanChat] Scope: {response.result.scope_description}")
        for item in response.result.related_items[:10]:
            print(f"[PlanChat]   {item.category} / {item.name}: {item.quantity} {item.unit or ''}")
        missing = response.result.missing_scope
        if missing is not None:
            if missing.is_empty:
                print("[PlanChat] Missing scope: none found")
            for line in missing.recommendations:
                print(f"[PlanChat] Missing scope: {line}")

    if args.json:
        print(json.dumps(response.result.to_payload(), indent=2))


if __name__ == "__main__":
    main()
