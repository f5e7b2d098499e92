"""Image generation agent package."""

__app__ = "Image Generation Agent"
__author__ = "AI Apps GBB Team"
__version__ = "0.1.0"

import os
import logging
import sys
from logging.handlers import RotatingFileHandler

from dotenv import load_dotenv

from .agent import ImageGenerationAgent, generate_image_with_agent  # noqa: F401
from .config import DEFAULT_CONFIG, PRESET_CONFIGS, AgentConfig, create_config  # noqa: F401
from .schemas import GenerationRequest, GenerationResponse  # noqa: F401
from .main import app  # noqa: F401

_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging() -> logging.Logger:
    logger = logging.getLogger()
    logger.setLevel(logging.DEBUG)
    if any(isinstance(h, RotatingFileHandler) for h in logger.handlers):
        return logger

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(os.getenv("IMAGE_AGENT_LOG_LEVEL", "INFO").upper())
    console_handler.setFormatter(logging.Formatter(_FORMAT))

    file_handler = RotatingFileHandler(
        os.getenv("IMAGE_AGENT_LOG_FILE", "image_agent.log"),
        maxBytes=10*1024*1024,
        backupCount=5,
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(_FORMAT))

    logger.addHandler(console_handler)
    logger.addHandler(file_handler)

    return logger

logger = setup_logging()
logger.info(f"{__app__} - {__author__} - Version: {__version__} initialized")

env_path = os.path.join(os.path.dirname(os.path.abspath(__file__)), '.env')
if not load_dotenv(dotenv_path=env_path):
    logger.debug("dotenv skipped or not found at %s", env_path)
