"""Contains all models commonly used across different modules."""
from enum import Enum


class Role(str, Enum):
    """Enumeration of user roles."""
    USER = "user"
    ADMIN = "admin"


class TokenType(str, Enum):
    """Enumeration of token types."""
    ACCESS = "access"
    REFRESH = "refresh"
