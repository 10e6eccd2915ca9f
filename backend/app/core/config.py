from pydantic_settings import BaseSettings
from pydantic import Field
import urllib.parse
from typing import List

class Settings(BaseSettings):
    PROJECT_NAME: str = "Goal Coach"
    API_V1_STR: str = "/api/v1"
    LOG_LEVEL: str = "INFO"

    DATABASE_URL: str = Field("sqlite+aiosqlite:///./goal_coach.db", env="DATABASE_URL")

    BACKEND_CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:3001",
    ]

    # Auth backend
    AUTH_AUTO_CONFIRM: bool = False
    AUTH_SESSION_TTL_HOURS: int = 168
    AUTH_MAX_FAILED_ATTEMPTS: int = 5
    AUTH_LOCKOUT_MINUTES: int = 15
    PASSWORD_MIN_LENGTH: int = 6
    BCRYPT_ROUNDS: int = 12

    # Starter checklist attached to every new goal
    DEFAULT_GOAL_STEPS: List[str] = [
        "Define an action plan",
        "Learn the fundamentals",
        "Practice what you have learned",
        "Complete a first project",
    ]

    # Chat-completion service. The key itself never lives here: clients send it per request.
    COACH_API_URL: str = "https://api.openai.com/v1/chat/completions"
    COACH_MODEL: str = "gpt-3.5-turbo"
    COACH_MAX_TOKENS: int = 500
    COACH_TEMPERATURE: float = 0.7
    COACH_HISTORY_LIMIT: int = 10
    COACH_TIMEOUT_SECONDS: float = 45.0
    COACH_KEY_HEADER: str = "X-OpenAI-Key"

    @property
    def async_database_url(self) -> str:
        if "sqlite" in self.DATABASE_URL:
            return self.DATABASE_URL

        url = self.DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://")
        try:
            parsed = urllib.parse.urlparse(url)
            query_params = urllib.parse.parse_qs(parsed.query)
            params_to_remove = ['sslmode', 'channel_binding']
            for param in params_to_remove:
                if param in query_params:
                    del query_params[param]
            new_query = urllib.parse.urlencode(query_params, doseq=True)
            url = urllib.parse.urlunparse(parsed._replace(query=new_query))
        except ValueError:
            url = url.replace("?sslmode=require", "").replace("&sslmode=require", "")
            url = url.replace("?channel_binding=require", "").replace("&channel_binding=require", "")

        return url

    class Config:
        env_file = ".env"
        case_sensitive = True

settings = Settings()
