#!/usr/bin/env python3
"""
Static Chatter - Main Entry Point
=================================

Command-line interface for the rule-based chatter bot.

Usage:
    python main.py --chat                 # Interactive chat session
    python main.py --test "hi" "thanks"   # Send messages, print replies
    python main.py --intents              # List known intents
    python main.py --status               # Show configuration
    python main.py --setup                # Write default config and rules
"""

import sys
import argparse
from pathlib import Path
from typing import List, Optional

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent))

from core.config import Config, load_config, create_default_config
from core.exceptions import ChatterError, RateLimitExceeded, SessionExpired
from core.logging import setup_logging, get_logger
from rules.engine import IntentMatcher
from services.chat import ChatService

logger = get_logger("main")

EXIT_COMMANDS = ("/quit", "/exit")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Static Chatter - rule-based conversational responder",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py --chat                     Chat interactively
  python main.py --test "hello" "bye"       Send messages on one session
  python main.py --intents --rules my.yaml  List intents from a rules file
  python main.py --setup                    Write default config and rules
        """
    )

    mode_group = parser.add_mutually_exclusive_group()
    mode_group.add_argument(
        "--chat",
        action="store_true",
        help="Start an interactive chat session"
    )
    mode_group.add_argument(
        "--test",
        nargs="+",
        metavar="MESSAGE",
        help="Send one or more messages on a single session and print replies"
    )
    mode_group.add_argument(
        "--intents",
        action="store_true",
        help="List intents in evaluation order"
    )
    mode_group.add_argument(
        "--status",
        action="store_true",
        help="Show configuration and rule summary"
    )
    mode_group.add_argument(
        "--setup",
        action="store_true",
        help="Write default config.yaml and rules.yaml"
    )

    parser.add_argument(
        "--config",
        type=str,
        metavar="PATH",
        help="Path to configuration file (--setup writes into its directory)"
    )
    parser.add_argument(
        "--rules",
        type=str,
        metavar="PATH",
        help="Path to a YAML rules file (overrides config)"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )

    return parser.parse_args(argv)


def run_setup(config_dir: Optional[str] = None) -> None:
    """Write default configuration and rule files."""
    config = create_default_config(config_dir)
    rules_path = IntentMatcher.with_defaults().save_rules(
        str(Path(config.config_dir) / "rules.yaml")
    )

    print(f"✓ Wrote {Path(config.config_dir) / 'config.yaml'}")
    print(f"✓ Wrote {rules_path}")
    print("\nTo use the rules file, set rules.rules_file in config.yaml")


def run_status(config: Config, chat: ChatService) -> None:
    """Display configuration and rule summary."""
    print("\n" + "=" * 50)
    print(f"{config.app_name} v{config.version} - Status")
    print("=" * 50 + "\n")

    print("Realm")
    print("-" * 30)
    print(f"  Realm id: {config.realm.realm_id}")
    for address in config.realm.node_addresses:
        print(f"  Node:     {address}")

    print("\nSessions")
    print("-" * 30)
    print(f"  Max sessions: {config.session.max_sessions}")
    print(f"  Idle TTL:     {config.session.ttl_seconds:.0f}s")
    print(
        f"  Rate limit:   {config.session.rate_limit_per_window} per "
        f"{config.session.rate_window_seconds:.0f}s"
    )

    print("\nRules")
    print("-" * 30)
    print(f"  Source:  {config.rules.rules_file or 'built-in'}")
    print(f"  Rules:   {len(chat.matcher)}")
    print(f"  Intents: {len(chat.list_intents())}")

    print("\n" + "=" * 50 + "\n")


def run_intents(chat: ChatService) -> None:
    """Print intents in evaluation order."""
    for position, intent_id in enumerate(chat.list_intents(), start=1):
        rules = chat.matcher.get_rules(intent_id)
        patterns = ", ".join(rule.pattern.pattern for rule in rules)
        print(f"{position:>3}. {intent_id:<22} {patterns}")


def run_test_messages(chat: ChatService, messages: List[str]) -> None:
    """Send messages on one session and print each reply with its intent."""
    session_id = chat.open_session()
    try:
        for message in messages:
            match = chat.submit(session_id, message)
            print(f"> {message}")
            print(f"  [{match.intent_id}] {match.response}")
    finally:
        chat.close_session(session_id)


def run_chat(chat: ChatService) -> None:
    """Interactive chat loop on a single session."""
    session_id = chat.open_session()
    print("Type a message and press Enter. /quit to leave.\n")

    try:
        while True:
            try:
                line = input("you> ")
            except EOFError:
                print()
                break

            if line.strip() in EXIT_COMMANDS:
                break

            try:
                print(f"static> {chat.send_utterance(session_id, line)}")
            except RateLimitExceeded as e:
                print(f"(slow down, try again in {e.retry_after:.0f}s)")
            except SessionExpired:
                print("(session expired, starting a new one)")
                session_id = chat.open_session()
            except ChatterError as e:
                print(f"(error: {e.message})")
    finally:
        chat.close_session(session_id)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    try:
        if args.setup:
            run_setup(str(Path(args.config).parent) if args.config else None)
            return 0

        config = load_config(args.config)
        if args.rules:
            config.rules.rules_file = args.rules
            config.validate()
        if args.debug:
            config.debug = True

        setup_logging(
            log_dir=config.log_dir if config.debug else None,
            log_level="DEBUG" if config.debug else "WARNING",
            console_output=True
        )

        chat = ChatService.from_config(config)

        if args.chat:
            run_chat(chat)
        elif args.test:
            run_test_messages(chat, args.test)
        elif args.intents:
            run_intents(chat)
        else:
            run_status(config, chat)
            if not args.status:
                print("No mode specified. Use --chat, --test, --intents or --help")

        return 0

    except ChatterError as e:
        print(f"\nError: {e}")
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted")
        return 0


if __name__ == "__main__":
    sys.exit(main())
