import os
from dotenv import load_dotenv
load_dotenv()

class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev_secret_change_me")
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///financial_service.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # tokens are minted by the platform's auth service; issuer is checked only when set
    JWT_ISS = os.getenv("JWT_ISS") or None
    TIMEZONE = os.getenv("TIMEZONE", "Asia/Kolkata")

    SUPABASE_URL = os.getenv("SUPABASE_URL")
    SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY")
    INVOICE_BUCKET = os.getenv("INVOICE_BUCKET", "invoices")
    INVOICE_TEMPLATE = os.getenv("INVOICE_TEMPLATE", "templates/invoice_letterpad.jpg")
    INVOICE_FONT = os.getenv("INVOICE_FONT", "fonts/Poppins-Bold.ttf")

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
    LOG_FORMAT = os.getenv("LOG_FORMAT", "detailed")
