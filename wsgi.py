"""WSGI entry point for production deployment."""
import sys
import logging
from pathlib import Path

# Ensure project root is on path
sys.path.insert(0, str(Path(__file__).parent))

from config import load_config
from utils.logger import setup_logging
from models.database import Database
from monitor.monitor import build_monitor
from web.app import create_app

logger = logging.getLogger("fxbias.wsgi")

config = load_config()
setup_logging(config.get("logging", {}).get("level", "INFO"), config.get("logging", {}).get("file"))

db = None
if config.get("database", {}).get("enabled"):
    db = Database(config["database"]["path"])
    db.connect()

monitor = build_monitor(config, persistence=db)
app = create_app(config, {"monitor": monitor, "db": db})

# Background collection keeps the API populated
monitor.start()
logger.info("FX Bias Monitor API ready")
