import os
import warnings

from dotenv import load_dotenv

basedir = os.path.abspath(os.path.dirname(__file__))
load_dotenv(os.path.join(basedir, ".env"))


DEFAULT_FAVORITE_TEAMS = (
    "colorado,colorado buffaloes,cu,buffs,"
    "colorado state,colorado state rams,csu,rams,"
    "nebraska,nebraska cornhuskers,huskers,nu,"
    "michigan,michigan wolverines,wolverines,um"
)


def _env_bool(name, default):
    return os.environ.get(name, str(default)).lower() in ["true", "on", "1"]


class Config:
    # Provider credentials
    CFBD_API_KEY = os.environ.get("CFBD_API_KEY")
    ODDS_API_KEY = os.environ.get("ODDS_API_KEY")

    # Database configuration - built from environment at initialization
    def __init__(self):
        """Initialize configuration with dynamic database URI"""
        self.SQLALCHEMY_DATABASE_URI = self._build_database_uri()

        if not self.CFBD_API_KEY:
            warnings.warn(
                "🔑 CFBD_API_KEY not set! CollegeFootballData will be skipped "
                "and games will come from ESPN or scraping.",
                UserWarning,
            )
        if not self.ODDS_API_KEY:
            warnings.warn(
                "🔑 ODDS_API_KEY not set! Spreads will come from scraped betting lines only.",
                UserWarning,
            )

    def _build_database_uri(self):
        """Build database URI from environment variables"""
        database_url = os.environ.get("DATABASE_URL")

        if database_url:
            return database_url

        db_type = os.environ.get("DB_TYPE", "sqlite")

        if db_type.lower() == "postgresql":
            db_host = os.environ.get("DB_HOST") or "localhost"
            db_port = os.environ.get("DB_PORT") or "5432"
            db_name = os.environ.get("DB_NAME") or "cfb_pickem_db"
            db_user = os.environ.get("DB_USER") or "cfb_user"
            db_password = os.environ.get("DB_PASSWORD") or "cfb_password"

            return f"postgresql+psycopg://{db_user}:{db_password}@{db_host}:{db_port}/{db_name}"
        else:
            # Default to SQLite for development
            return "sqlite:///" + os.path.join(basedir, "cfb_pickem.db")

    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Provider endpoints
    CFBD_API_BASE_URL = (
        os.environ.get("CFBD_API_BASE_URL") or "https://api.collegefootballdata.com"
    )
    ESPN_API_BASE_URL = (
        os.environ.get("ESPN_API_BASE_URL")
        or "https://site.api.espn.com/apis/site/v2/sports/football/college-football"
    )
    ODDS_API_BASE_URL = (
        os.environ.get("ODDS_API_BASE_URL") or "https://api.the-odds-api.com/v4"
    )

    # Season calendar
    SEASON_START_DATE = os.environ.get("SEASON_START_DATE", "2025-08-25")  # Monday of week 1
    SEASON_YEAR = int(os.environ.get("SEASON_YEAR") or SEASON_START_DATE[:4])
    MAX_WEEK = int(os.environ.get("MAX_WEEK") or 15)
    BOOTSTRAP_WEEKS = int(os.environ.get("BOOTSTRAP_WEEKS") or 12)
    GAMES_PER_WEEK = int(os.environ.get("GAMES_PER_WEEK") or 8)
    SCORE_LOOKBACK_WEEKS = int(os.environ.get("SCORE_LOOKBACK_WEEKS") or 4)
    DEADLINE_HOUR = int(os.environ.get("DEADLINE_HOUR") or 20)  # local time, Saturday
    TIMEZONE = os.environ.get("TIMEZONE", "America/Denver")
    FAVORITE_TEAMS = [
        team.strip().lower()
        for team in os.environ.get("FAVORITE_TEAMS", DEFAULT_FAVORITE_TEAMS).split(",")
        if team.strip()
    ]

    # Provider quota protection
    USAGE_MIN_CREDITS = int(os.environ.get("USAGE_MIN_CREDITS") or 50)
    USAGE_MAX_ERROR_RATE = float(os.environ.get("USAGE_MAX_ERROR_RATE") or 0.5)
    USAGE_MIN_CALLS = int(os.environ.get("USAGE_MIN_CALLS") or 10)
    USAGE_WINDOW_HOURS = int(os.environ.get("USAGE_WINDOW_HOURS") or 24)
    USAGE_RETENTION_DAYS = int(os.environ.get("USAGE_RETENTION_DAYS") or 30)

    # HTTP behaviour
    PROVIDER_MAX_RETRIES = int(os.environ.get("PROVIDER_MAX_RETRIES") or 3)
    PROVIDER_RETRY_DELAY = float(os.environ.get("PROVIDER_RETRY_DELAY") or 1.0)
    API_REQUEST_INTERVAL = float(os.environ.get("API_REQUEST_INTERVAL") or 0.5)
    SCRAPE_REQUEST_INTERVAL = float(os.environ.get("SCRAPE_REQUEST_INTERVAL") or 1.0)

    # Scheduler configuration
    SCHEDULER_ENABLED = _env_bool("SCHEDULER_ENABLED", True)
    SCHEDULER_TIMEZONE = os.environ.get("SCHEDULER_TIMEZONE") or TIMEZONE

    # Logging configuration
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    LOG_TO_CONSOLE = _env_bool("LOG_TO_CONSOLE", True)
    LOG_TO_FILE = _env_bool("LOG_TO_FILE", True)
    LOG_DIR = os.environ.get("LOG_DIR", "logs")

    # Environment detection
    FLASK_ENV = os.environ.get("FLASK_ENV", "development")
    DEBUG = FLASK_ENV == "development"
    TESTING = False


class DevelopmentConfig(Config):
    """Development configuration with helpful defaults"""

    DEBUG = True
    SQLALCHEMY_ECHO = os.environ.get("SQLALCHEMY_ECHO", "False").lower() == "true"


class ProductionConfig(Config):
    """Production configuration"""

    DEBUG = False

    def __init__(self):
        super().__init__()

        if self.SQLALCHEMY_DATABASE_URI.startswith("sqlite"):
            warnings.warn(
                "🚨 PRODUCTION WARNING: running on SQLite. "
                "Set DATABASE_URL or DB_TYPE=postgresql for concurrent workers.",
                UserWarning,
            )


class TestingConfig(Config):
    """Testing configuration"""

    TESTING = True
    SCHEDULER_ENABLED = False
    LOG_TO_FILE = False
    LOG_TO_CONSOLE = False
    PROVIDER_MAX_RETRIES = 1
    PROVIDER_RETRY_DELAY = 0.0
    API_REQUEST_INTERVAL = 0.0
    SCRAPE_REQUEST_INTERVAL = 0.0
    CFBD_API_KEY = "test-cfbd-key"
    ODDS_API_KEY = "test-odds-key"
    SEASON_START_DATE = "2025-08-25"
    SEASON_YEAR = 2025
    TIMEZONE = "America/Denver"
    SCHEDULER_TIMEZONE = "UTC"

    def __init__(self):
        super().__init__()
        self.SQLALCHEMY_DATABASE_URI = os.environ.get(
            "TEST_DATABASE_URL", "sqlite:///:memory:"
        )


# Configuration mapping
config = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
    "default": DevelopmentConfig,
}
