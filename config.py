import os
from dotenv import load_dotenv

load_dotenv()

GROQ_API_KEY = os.getenv("GROQ_API_KEY")
# Must be a vision-capable model
GROQ_MODEL = os.getenv("GROQ_MODEL", "meta-llama/llama-4-scout-17b-16e-instruct")

# Signs the session cookie; the app refuses to start without it
SESSION_SECRET = os.getenv("SESSION_SECRET")
SESSION_MAX_AGE = int(os.getenv("SESSION_MAX_AGE", "3600"))
SESSION_COOKIE = os.getenv("SESSION_COOKIE", "document_session")

# "memory" or "sql"
SESSION_BACKEND = os.getenv("SESSION_BACKEND", "memory")
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./document_sessions.db")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "[%(asctime)s] [%(levelname)s] %(name)s - %(message)s")
LOG_DATE_FORMAT = os.getenv("LOG_DATE_FORMAT", "%Y-%m-%d %H:%M:%S")

# Used by the Streamlit upload console
API_BASE_URL = os.getenv("API_BASE_URL", "http://127.0.0.1:8000")
