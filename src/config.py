import os

from dotenv import load_dotenv


class Config:
    def __init__(self, env_file=None):
        """
        Initialize configuration by loading environment variables and setting default attributes.

        Loads environment variables from the provided .env file path when `env_file` is given; otherwise loads from the default environment. After loading, sets configuration attributes (database connection, AssemblyAI transcription, Gemini summary model, prompts location, blob storage, JWT and web app settings) using environment values with sensible defaults.
        Parameters:
            env_file (str | None): Optional path to a .env file to load environment variables from. If omitted, the default environment or default .env discovery is used.
        """
        if env_file:
            load_dotenv(env_file)
        else:
            load_dotenv()

        # Database configuration
        self.DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./airtime.db")
        self.DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "5"))
        self.DB_MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "10"))
        self.DB_ECHO = os.getenv("DB_ECHO", "false").lower() == "true"

        # AssemblyAI transcription
        self.ASSEMBLYAI_API_KEY = os.getenv("ASSEMBLYAI_API_KEY", "")
        self.ASSEMBLYAI_BASE_URL = os.getenv(
            "ASSEMBLYAI_BASE_URL", "https://api.assemblyai.com/v2"
        ).rstrip("/")

        # Summary model configuration
        self.GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
        self.GEMINI_SUMMARY_MODEL = os.getenv("GEMINI_SUMMARY_MODEL", "gemini-2.5-flash")
        self.SUMMARY_TEMPERATURE = float(os.getenv("SUMMARY_TEMPERATURE", "0.2"))
        # Seconds
        self.SUMMARY_REQUEST_TIMEOUT = int(os.getenv("SUMMARY_REQUEST_TIMEOUT", "60"))

        # Prompts configuration
        base_dir = os.path.dirname(__file__)
        default_prompts_dir = os.path.join(base_dir, "../prompts")
        self.PROMPTS_DIR = os.getenv("PROMPTS_DIR", default_prompts_dir)

        # Blob storage (uploaded audio files)
        self.BLOB_READ_WRITE_TOKEN = os.getenv("BLOB_READ_WRITE_TOKEN", "")
        self.BLOB_API_URL = os.getenv("BLOB_API_URL", "https://blob.vercel-storage.com").rstrip("/")

        # Web application configuration
        self.WEB_ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*")
        self.WEB_PORT = int(os.getenv("PORT", "8080"))
        self.WEB_RATE_LIMIT = os.getenv("RATE_LIMIT", "60/minute")

        # JWT configuration
        self.JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "")
        self.JWT_ALGORITHM = "HS256"
        self.JWT_EXPIRATION_DAYS = int(os.getenv("JWT_EXPIRATION_DAYS", "7"))

        # Shared secret for the event intake endpoint (empty disables it)
        self.EVENT_API_KEY = os.getenv("EVENT_API_KEY", "")

    def validate_transcription(self):
        """
        Validate that transcription credentials are configured.

        Raises:
            ValueError: If ASSEMBLYAI_API_KEY is not set.
        """
        if not self.ASSEMBLYAI_API_KEY:
            raise ValueError(
                "ASSEMBLYAI_API_KEY is not set. "
                "Please add it to your .env file."
            )
