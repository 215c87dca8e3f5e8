# storefront/services/auth/passwords.py
import bcrypt

# bcrypt only reads the first 72 bytes; newer releases reject longer input
MAX_PASSWORD_BYTES = 72


class PasswordHasher:
    """Salted bcrypt hashing for stored account passwords"""

    def __init__(self, rounds: int = 10):
        self.rounds = rounds

    def hash(self, password: str) -> str:
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(password.encode()[:MAX_PASSWORD_BYTES], salt).decode()

    def verify(self, hashed_password: str, password: str) -> bool:
        try:
            return bcrypt.checkpw(password.encode()[:MAX_PASSWORD_BYTES], hashed_password.encode())
        except ValueError:
            # Malformed hash
            return False
