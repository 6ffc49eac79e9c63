"""CLI interface for Vocab SRS.

Usage:
    python -m vocab_srs review              Start a review session
    python -m vocab_srs stats               Show your statistics
    python -m vocab_srs add ITEM [ITEM...]  Add learnable items
    python -m vocab_srs due                 Show how many items are due
    python -m vocab_srs show ITEM           Show an item's scheduling state
"""

import argparse
import asyncio
import logging
import time
import uuid

from backend.config import settings, utcnow
from backend.database import init_db, record_store
from backend.srs.method_selector import (
    MethodSelectorConfig,
    aggregate_performance,
    method_selection_report,
    select_method,
)
from backend.srs.queue import DirectionMode, SessionConfig, build_queue
from backend.srs.session import ReviewSession
from backend.srs.sm2 import Direction, Rating, format_interval, format_next_review, is_due
from backend.srs.status import ItemStatus, classify_status, directional_accuracy, record_accuracy

RATING_KEYS = {
    "1": Rating.FORGOT,
    "2": Rating.HARD,
    "3": Rating.GOOD,
    "4": Rating.EASY,
}


def parse_rating(text: str) -> Rating | None:
    """Parse a rating typed at the prompt ("3", "good", "g")."""
    text = text.strip().lower()
    if text in RATING_KEYS:
        return RATING_KEYS[text]
    for rating in Rating:
        if text and rating.value.startswith(text):
            return rating
    return None


async def cmd_review(args: argparse.Namespace) -> None:
    """Run an interactive review session."""
    await init_db()
    config = SessionConfig(
        session_size=args.max_items,
        randomize=not args.in_order,
        direction=DirectionMode(args.direction),
        practice_mode=args.practice,
    )
    queue = await build_queue(record_store, config)

    if queue.total == 0:
        print("\nNo items due for review. You're all caught up!")
        return

    session = ReviewSession()
    rng = session.rng if config.randomize else None
    session.start(queue.item_ids(config.session_size, rng), config, shuffle=False)
    selector_config = MethodSelectorConfig.from_settings()

    print("\n  Review Session")
    print(f"  {len(queue.due_records)} due + {len(queue.new_records)} new, {len(session.candidates)} this session\n")
    print("  Ratings: 1=Forgot  2=Hard  3=Good  4=Easy")
    print("  Type 'q' to quit\n")

    while (item_id := session.current_item) is not None:
        history = await record_store.method_history(item_id)
        performance = aggregate_performance(await record_store.log_entries(item_id))
        selection = select_method(history, performance, selector_config, rng=session.rng)
        session.assign_method(item_id, selection.method)

        direction = session.direction_for(item_id)
        arrow = "->" if direction is Direction.FORWARD else "<-"
        print(f"  [{len(session.outcomes) + 1}/{len(session.candidates)}] {item_id}  {arrow}")
        print(f"  Method: {selection.method.value}")
        if args.verbose:
            print(method_selection_report(selection, item_id))

        start_time = time.monotonic()
        response = input("  Rate [1-4]: ")
        time_ms = int((time.monotonic() - start_time) * 1000)

        if response.strip().lower() == "q":
            session.abort()
            print("\n  Session ended early.")
            break

        rating = parse_rating(response)
        if rating is None:
            print("  Please answer 1-4 (or forgot/hard/good/easy).\n")
            continue

        outcome = await session.submit(record_store, item_id, rating, time_ms)
        if outcome is not None and outcome.record is not None:
            note = ""
            if outcome.effective_rating is not outcome.rating:
                note = f" (counted as {outcome.effective_rating.value})"
            print(f"  Next review in {format_interval(outcome.record.interval)}{note}\n")

    summary = session.summary
    if summary is not None:
        await record_store.save_session(str(uuid.uuid4()), summary)
        if not summary.aborted:
            print("\n  Session Complete!")
        print(
            f"  Reviewed: {summary.reviewed}  Correct: {summary.correct}  "
            f"Accuracy: {summary.accuracy_rate * 100:.0f}%\n"
        )


async def cmd_stats(args: argparse.Namespace) -> None:
    """Show overall statistics."""
    await init_db()
    now = utcnow()
    records = await record_store.all_records()
    statuses = [classify_status(r) for r in records]
    performance = aggregate_performance(await record_store.log_entries())

    print("\n  Vocab SRS Statistics")
    print(f"  {'Total items:':<20} {len(records)}")
    print(f"  {'Due now:':<20} {sum(1 for r in records if is_due(r, now))}")
    print(f"  {'New:':<20} {statuses.count(ItemStatus.NEW)}")
    print(f"  {'Learning:':<20} {statuses.count(ItemStatus.LEARNING)}")
    print(f"  {'Mastered:':<20} {statuses.count(ItemStatus.MASTERED)}")
    print(f"  {'Total reviews:':<20} {sum(r.total_reviews for r in records)}")
    if performance:
        print("\n  Accuracy by method")
        for method, perf in sorted(performance.items(), key=lambda kv: kv[0].value):
            print(f"  {method.value + ':':<20} {perf.accuracy * 100:.0f}% ({perf.attempts} attempts)")
    print()


async def cmd_add(args: argparse.Namespace) -> None:
    """Add items; each one is due for review immediately."""
    await init_db()
    for item_id in args.items:
        existing = await record_store.get_record(item_id)
        if existing:
            print(f"  '{item_id}' already exists.")
            continue
        await record_store.create_initial_record(item_id)
        print(f"  Added '{item_id}' (ready for review)")


async def cmd_due(args: argparse.Namespace) -> None:
    """Show how many items are due."""
    await init_db()
    due = await record_store.get_due_records(utcnow())
    new = sum(1 for r in due if r.total_reviews == 0)
    print(f"  {len(due) - new} items due, {new} new items available")


async def cmd_show(args: argparse.Namespace) -> None:
    """Show one item's scheduling state."""
    await init_db()
    record = await record_store.get_record(args.item)
    if record is None:
        print(f"  '{args.item}' not found.")
        return

    forward = directional_accuracy(record, Direction.FORWARD)
    reverse = directional_accuracy(record, Direction.REVERSE)
    print(f"\n  {record.item_id}")
    print(f"  {'Status:':<20} {classify_status(record).value}")
    print(f"  {'Ease factor:':<20} {record.ease_factor:.2f}")
    print(f"  {'Interval:':<20} {format_interval(record.interval)}")
    print(f"  {'Repetition:':<20} {record.repetition}")
    print(f"  {'Accuracy:':<20} {record_accuracy(record)}% of {record.total_reviews}")
    print(f"  {'Forward / reverse:':<20} {forward if forward is not None else '-'} / {reverse if reverse is not None else '-'}")
    if record.next_review_date:
        print(f"  {'Next review:':<20} {format_next_review(record.next_review_date)}")
    print()


def main() -> None:
    """Entry point for the Vocab SRS CLI application."""
    parser = argparse.ArgumentParser(
        prog="vocab_srs",
        description="Vocabulary review scheduler",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # review
    review_parser = subparsers.add_parser("review", help="Start a review session")
    review_parser.add_argument(
        "--max-items", type=int, default=settings.session_size, help="Max items per session"
    )
    review_parser.add_argument(
        "--direction", choices=[m.value for m in DirectionMode], default=DirectionMode.MIXED.value
    )
    review_parser.add_argument("--practice", action="store_true", help="Include items not yet due")
    review_parser.add_argument("--in-order", action="store_true", help="Don't shuffle items")

    # stats
    subparsers.add_parser("stats", help="Show your statistics")

    # add
    add_parser = subparsers.add_parser("add", help="Add learnable items")
    add_parser.add_argument("items", nargs="+", help="Item identifiers")

    # due
    subparsers.add_parser("due", help="Show items due for review")

    # show
    show_parser = subparsers.add_parser("show", help="Show an item's scheduling state")
    show_parser.add_argument("item", help="Item identifier")

    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    if not args.command:
        parser.print_help()
        return

    cmd_map = {
        "review": cmd_review,
        "stats": cmd_stats,
        "add": cmd_add,
        "due": cmd_due,
        "show": cmd_show,
    }

    asyncio.run(cmd_map[args.command](args))


if __name__ == "__main__":
    main()
