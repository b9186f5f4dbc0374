from cryptography.fernet import Fernet

from settings import settings

cipher_suite = Fernet(settings.token_encryption_key.encode())


class TokenCipher:
    """Encrypts OAuth token strings before they reach the database."""

    @staticmethod
    def encrypt(value: str) -> str:
        return cipher_suite.encrypt(value.encode()).decode()

    @staticmethod
    def decrypt(value: str) -> str:
        return cipher_suite.decrypt(value.encode()).decode()
