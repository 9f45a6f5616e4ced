"""Configuration loader for EZ Forms with environment-specific support"""

import os
from pathlib import Path

from dotenv import load_dotenv

server_dir = Path(__file__).parent.parent.parent
env_path = server_dir / ".env"

# Load .env file if it exists. For local development only.
if env_path.exists():
    load_dotenv(env_path)

# Configuration dictionary - set once at initialization
config = {
    "database_url": os.getenv("DATABASE_URL", "sqlite:///./ez_forms.db"),
    "log_level": os.getenv("LOG_LEVEL", "INFO"),
    "port": int(os.getenv("PORT", "8080")),
    "app_base_url": os.getenv("APP_BASE_URL"),
    "auth0_domain": os.getenv("AUTH0_DOMAIN"),
    "anthropic_api_key": os.getenv("ANTHROPIC_API_KEY"),
    "anthropic_model": os.getenv("ANTHROPIC_MODEL"),
    "environment": os.getenv("ENVIRONMENT", "development"),
}
