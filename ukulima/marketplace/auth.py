"""Sign-in state and the current user's profile."""
from ukulima.core.constants import NS_USER
from ukulima.offline.remote import RemoteError

ME_KEY = "me"


class AuthManager:
    """Sign-in state. The profile is mirrored so it reads offline."""

    def __init__(self, manager):
        self.manager = manager
        self.current_user: dict | None = None
        manager.register_collaborator("user", self.load_user)

    @property
    def is_logged_in(self) -> bool:
        return self.manager.remote.token is not None

    async def sign_in(self, email: str, password: str) -> dict | None:
        await self.manager.remote.sign_in(email, password)
        return await self.load_user()

    async def sign_up(self, profile: dict) -> dict | None:
        await self.manager.remote.sign_up(profile)
        return await self.load_user()

    def sign_out(self) -> None:
        self.manager.remote.sign_out()
        self.manager.mirror.delete(NS_USER, ME_KEY)
        self.current_user = None

    async def load_user(self) -> dict | None:
        """Refresh the profile; a rejected token signs the user out."""
        if not self.is_logged_in:
            self.current_user = None
            return None

        if self.manager.is_online:
            try:
                user = await self.manager.remote.me()
            except RemoteError as e:
                if e.status in (401, 403):
                    self.sign_out()
                    return None
            else:
                self.manager.put(NS_USER, ME_KEY, user)
                self.current_user = user
                return user

        self.current_user = self.manager.get(NS_USER, ME_KEY)
        return self.current_user
