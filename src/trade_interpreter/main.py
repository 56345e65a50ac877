"""
Main entry point for the Trade Interpreter service.
"""

import argparse
import logging
import sys

import uvicorn

from trade_interpreter.api.app import create_app
from trade_interpreter.bridge.cross_device import CrossDeviceBridge
from trade_interpreter.config import get_settings
from trade_interpreter.orchestrator.trade_interpreter import TradeInterpreter
from trade_interpreter.orchestrator.webhook_processor import WebhookEventProcessor
from trade_interpreter.translation.preserving_translator import PreservingTranslator
from trade_interpreter.translation.provider import HTTPTranslationProvider
from trade_interpreter.voice.synthesis import HTTPVoiceSynthesisProvider


def setup_logging() -> None:
    """Configure application logging."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def build_app():
    """Wire providers, coordinator, webhook processor and bridge into the API app."""
    settings = get_settings()
    logger = logging.getLogger(__name__)
    logger.debug(f"Translation provider: {settings.translation_endpoint}")
    logger.debug(f"Synthesis provider: {settings.synthesis_endpoint}")

    translator = PreservingTranslator(HTTPTranslationProvider())
    interpreter = TradeInterpreter(translator=translator, synthesis=HTTPVoiceSynthesisProvider())
    processor = WebhookEventProcessor(interpreter)
    bridge = CrossDeviceBridge(interpreter)
    return create_app(interpreter, processor=processor, bridge=bridge)


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the application."""
    settings = get_settings()
    parser = argparse.ArgumentParser(prog="trade_interpreter")
    parser.add_argument("--host", default=settings.host, help="Bind host")
    parser.add_argument("--port", type=int, default=settings.port, help="Bind port")
    args = parser.parse_args(argv)

    setup_logging()
    logger = logging.getLogger(__name__)
    logger.info(f"Starting Trade Interpreter on {args.host}:{args.port}")

    try:
        uvicorn.run(build_app(), host=args.host, port=args.port, log_level=settings.log_level.lower())
    except KeyboardInterrupt:
        print("\nTrade Interpreter stopped by user.")
        sys.exit(0)
    except Exception as e:
        logging.error(f"Application error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
