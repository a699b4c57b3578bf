"""
Identity registry: maps a connecting SSH user and key to a stored user.
"""
import logging

from pipbin.database import PasteDatabase
from pipbin.errors import DuplicateUser, InvalidSession, Unauthorized
from pipbin.models import Greeting, Resolution, SshKey

logger = logging.getLogger(__name__)


class IdentityRegistry:
    """Resolves users by name, registering them on first contact."""

    def __init__(self, db: PasteDatabase):
        self.db = db

    async def resolve_or_register(self, username: str, fingerprint: str, key_type: str) -> Resolution:
        """
        Find the user called ``username`` and check the presented key.

        An unknown name creates a user with the presented key as its only
        credential. A known name must present one of its stored keys; a
        mismatch never adds the key.

        Raises:
            InvalidSession: If the transport gave no username
            StorageFailure: If the lookup or insert fails
            Unauthorized: If the key is not registered to the existing user
        """
        if not username:
            raise InvalidSession("no user")

        user = await self.db.get_user(username)

        if user is None:
            try:
                user = await self.db.create_user(username, SshKey(type=key_type, fingerprint=fingerprint))
            except DuplicateUser:
                # another session registered this name between lookup and insert
                user = await self.db.get_user(username)
                if user is None:
                    raise
            else:
                logger.info(f"Created new user {user.name} with key type {key_type}")
                return Resolution(user=user, greeting=Greeting.WELCOME, message=f"welcome to pip {username}!")

        for key in user.ssh_keys:
            if key.matches(fingerprint, key_type):
                logger.info(f"Authorized user {user.name} with key type {key.type}")
                return Resolution(
                    user=user,
                    greeting=Greeting.WELCOME_BACK,
                    message=f"✔ welcome back to pip {username}!",
                )

        logger.warning(f"Unauthorized key for user {user.name} with key type {key_type}")
        raise Unauthorized(user)
