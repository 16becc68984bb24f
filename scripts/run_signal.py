"""
Manual Run: Crypto Signal Pipeline

Runs the full pipeline (static_filter → data_fetch → llm_analysis →
format_signal) for one token with live Tavily / Groq calls, prints the
summary, and optionally broadcasts the formatted signal to Telegram chats.

Usage:
  python -m scripts.run_signal SOL --address So11111111111111111111111111111111111111112 --price 142.5 \
      --rsi 18 --vwap-deviation 4.2 --adx 45
  python -m scripts.run_signal SOL --price 142.5 --rsi 82 --percent-b 1.1 --send-to 123456789
  python -m scripts.run_signal --graph-png signal_graph.png
"""

import argparse
import asyncio
import sys
from datetime import datetime
from pathlib import Path

# Ensure project root is on path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from signal_agent.clients.telegram_client import TelegramBroadcaster
from signal_agent.exceptions import SignalAgentError
from signal_agent.graph.workflow import generate_signal, print_signal_summary
from signal_agent.utils.config import LOG_FILE, LOG_LEVEL, get_config_summary
from signal_agent.utils.logger import setup_application_logging


INDICATORS = ('rsi', 'vwap_deviation', 'percent_b', 'adx', 'atr_percent', 'obv_zscore')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the crypto signal pipeline for one token")
    parser.add_argument("symbol", nargs="?", default="SOL", help="Token symbol (default: SOL)")
    parser.add_argument("--address", default="", help="Token contract address (enables fundamental search)")
    parser.add_argument("--price", type=float, default=0.0, help="Current token price")
    parser.add_argument("--language", default="en", help="Language for LLM text (default: en)")
    for name in INDICATORS:
        parser.add_argument(f"--{name.replace('_', '-')}", dest=name, default=None, help=f"{name} value")
    parser.add_argument(
        "--send-to",
        nargs="*",
        default=[],
        metavar="CHAT_ID",
        help="Telegram chat IDs to broadcast the signal to",
    )
    parser.add_argument(
        "--graph-png",
        default=None,
        help="Only write the pipeline graph as PNG to this path and exit",
    )
    return parser


async def run(args: argparse.Namespace) -> int:
    technical_analysis = {name: getattr(args, name) for name in INDICATORS}

    final_state = await generate_signal(
        token_address=args.address,
        token_symbol=args.symbol,
        current_price=args.price,
        technical_analysis=technical_analysis,
        user_language=args.language,
    )
    print_signal_summary(final_state)

    final_signal = final_state.get('final_signal')
    if args.send_to and final_signal:
        print(f"📤 Broadcasting to {len(args.send_to)} chats...")
        try:
            result = await TelegramBroadcaster().send_message(args.send_to, final_signal['message'])
        except SignalAgentError as e:
            print(f"❌ Broadcast failed: {e}")
            return 1
        print(f"✅ Delivered {result['success_count']}/{result['total_users']} "
              f"(failed: {', '.join(result['failed_users']) or 'none'})")

    return 0 if final_state.get('error') is None else 1


def main() -> int:
    args = build_parser().parse_args()
    setup_application_logging(LOG_LEVEL, LOG_FILE)

    if args.graph_png:
        from signal_agent.graph.app import write_graph_png
        path = write_graph_png(Path(args.graph_png))
        print(f"Graph written to {path}")
        return 0

    print("\n" + "=" * 60)
    print("Crypto Signal Pipeline")
    print("=" * 60)
    print(f"Token:  {args.symbol.upper()} {args.address}")
    print(f"Time:   {datetime.now().isoformat()}")
    print(f"Config: {get_config_summary()}")
    print("=" * 60 + "\n")

    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
