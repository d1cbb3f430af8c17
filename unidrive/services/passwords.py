import bcrypt


def hash_password(password: str) -> str:
    # gensalt() makes a fresh salt each call; decode() stores the hash as a string
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(plain_password: str | None, hashed_password: str | None) -> bool:
    """False for a missing password or hash instead of raising."""
    if not plain_password or not hashed_password:
        return False
    return bcrypt.checkpw(plain_password.encode(), hashed_password.encode())
