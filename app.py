from flask import Flask, request, jsonify
from datetime import datetime, timezone
from dotenv import load_dotenv
import logging
import sys
import threading

from lib.async_runner import BackgroundLoop
from lib.config import get_settings

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    stream=sys.stdout
)
logger = logging.getLogger(__name__)

load_dotenv()

PLAIN_TEXT = {'Content-Type': 'text/plain; charset=utf-8'}

def install_exception_hooks():
    """Log uncaught errors without bringing the bot down"""
    def log_uncaught(exc_type, exc_value, exc_traceback):
        logger.critical("Uncaught exception", exc_info=(exc_type, exc_value, exc_traceback))

    def log_uncaught_thread(args):
        logger.critical(
            f"Uncaught exception in thread {args.thread.name if args.thread else '?'}",
            exc_info=(args.exc_type, args.exc_value, args.exc_traceback)
        )

    sys.excepthook = log_uncaught
    threading.excepthook = log_uncaught_thread

def create_app(webhook_handler=None, runner: BackgroundLoop = None) -> Flask:
    if webhook_handler is None:
        from api.factory import build_webhook_handler
        install_exception_hooks()
        webhook_handler = build_webhook_handler(get_settings())
    runner = runner or BackgroundLoop()

    app = Flask(__name__)

    @app.route("/health", methods=['GET'])
    def health():
        """Health check"""
        return jsonify({
            "status": "OK",
            "timestamp": datetime.now(timezone.utc).isoformat()
        })

    @app.route("/webhook", methods=['POST'])
    def webhook():
        """Handle incoming WhatsApp webhooks from Z-API"""
        try:
            logger.info("Received webhook from Z-API")
            payload = request.get_json(silent=True)
            logger.info(f"Webhook data: {payload}")

            body, status = runner.run(webhook_handler.handle(payload))
            return body, status, PLAIN_TEXT

        except Exception as e:
            logger.error(f"Error handling webhook: {str(e)}", exc_info=True)
            return "Erro interno do servidor", 500, PLAIN_TEXT

    return app

_app = None

def __getattr__(name):
    # WSGI servers load "app:app"; build it on first access so importing
    # this module does not require credentials
    global _app
    if name == 'app':
        if _app is None:
            _app = create_app()
        return _app
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

if __name__ == "__main__":
    settings = get_settings()
    logger.info("Starting Flask server...")
    create_app().run(host="0.0.0.0", port=settings.port)
