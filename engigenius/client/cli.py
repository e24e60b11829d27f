"""Command-line client: ask the relay one question and stream the answer."""

import argparse
import asyncio
import sys
from typing import Optional, Sequence

from engigenius.client.ask_client import AskClient
from engigenius.client.conversation import Message
from engigenius.client.session import Notification, StudySession
from engigenius.core.config import settings
from engigenius.services.record_store import InMemoryRecordStore, RecordStore, build_record_store


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="engigenius-ask", description=__doc__)
    parser.add_argument("question", help="Question to ask")
    parser.add_argument("--user-id", default=None, help="Signed-in user; enables saving answers and topics")
    parser.add_argument("--relay-url", default=None, help="Override RELAY_URL")
    parser.add_argument("--token", default=None, help="Bearer token for the relay")
    parser.add_argument(
        "--store-token", default=None,
        help="User access token for the record store (sent with SUPABASE_ANON_KEY)",
    )
    parser.add_argument(
        "--output", nargs="?", const=".", default=None,
        help="Also write the answer to a file (default name engi-genius-answer-<ms>.txt)",
    )
    return parser


def build_store(store_token: Optional[str]) -> RecordStore:
    """The command line never writes with the service-role key."""
    if store_token:
        return build_record_store(store_token)
    if settings.RECORD_STORE == "rest":
        print("No --store-token given; answers are kept in memory only", file=sys.stderr)
    return InMemoryRecordStore()


class TerminalEcho:
    """Prints only the new tail of the growing assistant message."""

    def __init__(self, out=sys.stdout):
        self._out = out
        self._message_id: Optional[str] = None
        self._printed = 0

    def __call__(self, snapshot: tuple[Message, ...]) -> None:
        last = snapshot[-1]
        if last.role != "assistant":
            return
        if last.id != self._message_id:
            self._message_id, self._printed = last.id, 0
        self._out.write(last.content[self._printed:])
        self._out.flush()
        self._printed = len(last.content)


async def _ask(args: argparse.Namespace) -> int:
    def notify(n: Notification) -> None:
        print(f"[{n.title}] {n.description}".rstrip(), file=sys.stderr)

    client = AskClient(relay_url=args.relay_url, access_token=args.token)
    session = StudySession(client, build_store(args.store_token), user_id=args.user_id, notify=notify)
    unsubscribe = session.conversation.subscribe(TerminalEcho())
    try:
        outcome = await session.ask(args.question)
        print()
        if outcome is None or not outcome.ok:
            return 1
        if outcome.insight is not None:
            if outcome.insight.topics:
                print("Important topics: " + ", ".join(outcome.insight.topics))
            if outcome.insight.summary:
                print("Summary: " + outcome.insight.summary)
        if args.output is not None:
            path = session.export_answer(outcome.answer, args.output)
            print(f"Answer written to {path}", file=sys.stderr)
        await session.persistence.join()
        return 0
    finally:
        unsubscribe()
        await session.aclose()


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    return asyncio.run(_ask(args))


if __name__ == "__main__":
    sys.exit(main())
