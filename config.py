# Configuration settings for the Hospital MIS Dashboard API
import os

# JWT Configuration
SECRET_KEY = os.getenv("HMS_SECRET_KEY", "hospital-secret-key")
ALGORITHM = os.getenv("HMS_JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("HMS_TOKEN_EXPIRE_MINUTES", "480"))

# Password hashing
PASSWORD_SALT = os.getenv("HMS_PASSWORD_SALT", "hospital_salt")

# Database Configuration
DATABASE_PATH = os.getenv("HMS_DATABASE_PATH", "hospital.db")

# Session storage keys (identity record, authorized pages record)
STORAGE_USER_KEY = "mis_user"
STORAGE_PAGES_KEY = "mis_pages"

# Navigation targets
LOGIN_PATH = "/login"
DEFAULT_LANDING_PATH = "/admin/dashboard"

# Identity defaults
DEFAULT_ROLE = "user"
DEFAULT_AVATARS = {
    "admin": "https://images.pexels.com/photos/220453/pexels-photo-220453.jpeg?auto=compress&cs=tinysrgb&w=600",
    "user": "https://images.pexels.com/photos/614810/pexels-photo-614810.jpeg?auto=compress&cs=tinysrgb&w=600",
}

# Roles that can be assigned from user management
VALID_ROLES = [
    "admin",
    "doctor",
    "nurse",
    "lab",
    "pharmacy",
    "receptionist",
    "rmo",
    "ot",
    "dressing staff",
    "user",
]

# Logging
LOG_LEVEL = os.getenv("HMS_LOG_LEVEL", "INFO")

# API Configuration
API_TITLE = "Hospital MIS Dashboard"
API_VERSION = "1.0.0"
HOST = os.getenv("HMS_HOST", "127.0.0.1")
PORT = int(os.getenv("HMS_PORT", "8000"))
