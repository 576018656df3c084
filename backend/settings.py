import os

from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")

# Placeholder stored on new users until they set a real shipping address
DEFAULT_ADDRESS = os.getenv("DEFAULT_ADDRESS", "ADDRESS_NOT_SET")
DEFAULT_PAYMENT_OPTION = os.getenv("DEFAULT_PAYMENT_OPTION", "PAYMENT_OPTION_DEFAULT")
DEFAULT_WALLET_MONEY = float(os.getenv("DEFAULT_WALLET_MONEY", "500"))

JWT_SECRET = os.getenv("JWT_SECRET", "change-me-in-production")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_ACCESS_EXPIRATION_MINUTES = int(os.getenv("JWT_ACCESS_EXPIRATION_MINUTES", "240"))

BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
PORT = int(os.getenv("PORT", 8000))
