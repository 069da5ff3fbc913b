#!/usr/bin/env python3
"""
CLI interface for the Bible Q&A Agent.
"""

import argparse
import asyncio
import logging
import os
import sys
from datetime import datetime
from pathlib import Path

from dotenv import load_dotenv

from .agent import DEFAULT_TRANSLATION, create_agent
from .generator import DEFAULT_MODEL, GenerationError
from .passages import DEFAULT_K_PASSAGES
from .rerank import Mode


def check_environment():
    """Check that required environment variables are set."""
    if not os.getenv("OPENAI_API_KEY"):
        print("Error: OPENAI_API_KEY environment variable not set.")
        print("Please set it in a .env file or export it in your shell.")
        sys.exit(1)


def make_run_log_dir() -> Path:
    """Create a per-run log directory under logs/."""
    logs_root = Path(__file__).parent.parent / "logs"
    run_log_dir = logs_root / datetime.now().strftime("%Y%m%d-%H%M%S")
    run_log_dir.mkdir(parents=True, exist_ok=True)
    return run_log_dir


def print_passages(passages):
    for p in passages:
        label = "reading" if p["source"] == "verse" else f"{p['score']:.3f}"
        print(f"  [{label}] {p['ref']}: {p['snippet']}")


def run_search(agent, args):
    response = asyncio.run(agent.search(
        args.query,
        top_k=args.topk,
        mode=args.mode,
        include_deutero=not args.no_deutero,
        translations=args.translations,
    ))
    print(f"{response.total} candidates, showing {len(response.results)} ({response.mode} mode)")
    for r in response.results:
        ref = r.ref_start if r.verse_start == r.verse_end else f"{r.ref_start} - {r.ref_end}"
        print()
        print(f"{ref} [{r.translation}] final={r.final_score:.4f} "
              f"semantic={r.semantic_score:.4f} evidence={r.evidence_score:.4f}")
        print(f"  {r.text}")
        for note in r.evidence.notes:
            print(f"  - {note}")


def ask_once(agent, args, question: str):
    result = asyncio.run(agent.ask(
        question,
        translation=args.translation,
        book=args.book,
        chapter=args.chapter,
        verse=args.verse,
        k_passages=args.k_passages,
        mode=args.mode,
    ))
    print(result["raw_response_text"])
    if result["relevant_passages"]:
        print()
        print("Relevant passages:")
        print_passages(result["relevant_passages"])


def interactive_mode(agent, args):
    """Ask repeated questions from one reading location."""
    print("=" * 60)
    print("Bible Q&A Agent")
    print("=" * 60)
    print(f"Reading {args.translation} {args.book} {args.chapter}:{args.verse}")
    print("Type a question, or /quit to exit.")
    print()

    while True:
        try:
            user_input = input("question> ").strip()
        except (KeyboardInterrupt, EOFError):
            print("\nGoodbye!")
            break

        if not user_input:
            continue
        if user_input.lower() in ["/quit", "/exit", "/q"]:
            print("Goodbye!")
            break

        print()
        try:
            ask_once(agent, args, user_input)
        except (GenerationError, ValueError) as e:
            print(f"Error: {e}")
        print()


def run_ask(agent, args):
    if args.question:
        ask_once(agent, args, args.question)
    else:
        interactive_mode(agent, args)


def run_chapter(agent, args):
    chapter = agent.read_chapter(args.translation, args.book, args.chapter)
    if chapter is None:
        print(f"Error: chapter not found: {args.translation} {args.book} {args.chapter}", file=sys.stderr)
        sys.exit(1)

    print(f"{chapter['book_id']} {chapter['chapter']} ({chapter['translation']})")
    for v in chapter["verses"]:
        print(f"{v['verse']} {v['text']}")
    for label in ("prev", "next"):
        ref = chapter[label]
        if ref:
            where = ref["book_id"] if ref["chapter"] is None else f"{ref['book_id']} {ref['chapter']}"
            print(f"{label}: {where}")


def run_books(agent, args):
    for book in agent.list_books(args.translation):
        print(f"  {book.book_id:<4} {book.name} ({book.testament}): {book.chapters} chapters")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Bible Q&A Agent",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument(
        "--model",
        type=str,
        default=os.getenv("GPT_MODEL", DEFAULT_MODEL),
        help=f"OpenAI model to use (default: {DEFAULT_MODEL})"
    )
    parser.add_argument(
        "--data-dir",
        type=str,
        help="Path to Bible data directory"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    search = sub.add_parser("search", help="Free-text search with evidence reranking")
    search.add_argument("query")
    search.add_argument("--topk", type=int, default=10)
    search.add_argument("--mode", choices=[m.value for m in Mode], default=Mode.EXPLORER.value)
    search.add_argument("--no-deutero", action="store_true", help="Exclude deuterocanonical books")
    search.add_argument("--translations", nargs="+", help="Restrict to these translations")
    search.set_defaults(handler=run_search)

    ask = sub.add_parser("ask", help="Ask a question from a reading location")
    ask.add_argument("question", nargs="?", help="Question to ask (interactive mode if omitted)")
    ask.add_argument("--translation", default=DEFAULT_TRANSLATION)
    ask.add_argument("--book", required=True)
    ask.add_argument("--chapter", type=int, required=True)
    ask.add_argument("--verse", type=int, required=True)
    ask.add_argument("--k-passages", type=int, default=DEFAULT_K_PASSAGES)
    ask.add_argument("--mode", choices=[m.value for m in Mode], default=Mode.EXPLORER.value)
    ask.set_defaults(handler=run_ask)

    chapter = sub.add_parser("chapter", help="Read a chapter")
    chapter.add_argument("book")
    chapter.add_argument("chapter", type=int)
    chapter.add_argument("--translation", default=DEFAULT_TRANSLATION)
    chapter.set_defaults(handler=run_chapter)

    books = sub.add_parser("books", help="List books")
    books.add_argument("--translation", default=None)
    books.set_defaults(handler=run_books)

    return parser


def main():
    """Main entry point."""
    load_dotenv()

    args = build_parser().parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    check_environment()

    try:
        agent = create_agent(data_dir=args.data_dir, model=args.model, log_dir=str(make_run_log_dir()))
    except (FileNotFoundError, ValueError) as e:
        print(f"Error creating agent: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        args.handler(agent, args)
    except (GenerationError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
