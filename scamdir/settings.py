import os

from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./scamdir.db")

ADMIN_USER = os.getenv("ADMIN_USER")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD")

# country calling code used to expand trunk-prefixed national numbers, e.g. "233"
DEFAULT_CALLING_CODE = os.getenv("SCAMDIR_DEFAULT_CALLING_CODE") or None

LOG_LEVEL = os.getenv("SCAMDIR_LOG_LEVEL", "INFO").upper()

PAGE_SIZE = 25
