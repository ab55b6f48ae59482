import logging
import sys

from config import LOG_LEVEL, LOG_FILE

handlers = [logging.StreamHandler(sys.stdout)]
if LOG_FILE:
    handlers.append(logging.FileHandler(LOG_FILE, encoding='utf-8'))

# Configure logging
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=handlers
)

# Create logger
logger = logging.getLogger(__name__)

# Set logging level for SQLAlchemy
logging.getLogger('sqlalchemy').setLevel(logging.WARNING)
