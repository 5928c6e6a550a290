"""Authentication: the identity provider collaborator and the session facade."""
import abc
import logging
from typing import Any, Callable, Dict, List, Optional

import httpx

from .config import SlateConfig
from .errors import IdentityProviderError, Unauthenticated
from .models import Identity

logger = logging.getLogger(__name__)

IdentityCallback = Callable[[Optional[Identity]], None]


class IdentityProvider(abc.ABC):
    """
    Identity provider collaborator.

    Concrete providers perform the remote calls and report session changes
    through :meth:`_set_identity`; observer bookkeeping lives here.
    """

    def __init__(self):
        self._identity: Optional[Identity] = None
        self._observers: List[IdentityCallback] = []

    @abc.abstractmethod
    async def sign_up(self, email: str, password: str) -> Identity:
        """Create an account and sign it in."""

    @abc.abstractmethod
    async def update_display_name(self, display_name: str) -> Identity:
        """Set the display name of the signed-in account."""

    @abc.abstractmethod
    async def sign_in_password(self, email: str, password: str) -> Identity:
        ...

    @abc.abstractmethod
    async def sign_in_federated(self, **credential: Any) -> Identity:
        ...

    @abc.abstractmethod
    async def sign_out(self) -> None:
        ...

    def current_identity(self) -> Optional[Identity]:
        return self._identity

    def observe_current_identity(self, callback: IdentityCallback) -> Callable[[], None]:
        """Register ``callback`` for sign-in/sign-out changes; returns the remover."""
        self._observers.append(callback)

        def unsubscribe() -> None:
            if callback in self._observers:
                self._observers.remove(callback)

        return unsubscribe

    def _set_identity(self, identity: Optional[Identity], notify: bool = True) -> None:
        self._identity = identity
        if not notify:
            return
        for callback in list(self._observers):
            callback(identity)


class IdentityToolkitProvider(IdentityProvider):
    """
    Email/password and federated sign-in over the Identity Toolkit REST API.

    The session (tokens and identity) is held in memory for the life of the
    provider. Rejections are raised as :class:`IdentityProviderError` with the
    provider's code (``EMAIL_EXISTS``, ``INVALID_PASSWORD``, ...); transport
    failures use the ``NETWORK_ERROR`` code.
    """

    def __init__(self, config: SlateConfig, http_client: Optional[httpx.AsyncClient] = None):
        super().__init__()
        self.config = config
        self._http_client = http_client
        self._id_token: Optional[str] = None
        self._refresh_token: Optional[str] = None

    @property
    def base_url(self) -> str:
        if self.config.auth_emulator_host:
            return f"http://{self.config.auth_emulator_host}/identitytoolkit.googleapis.com/v1"
        return self.config.identity_toolkit_url.rstrip("/")

    async def _post(self, endpoint: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}/accounts:{endpoint}"
        params = {"key": self.config.api_key}
        try:
            if self._http_client is not None:
                response = await self._http_client.post(url, params=params, json=payload)
            else:
                async with httpx.AsyncClient(timeout=httpx.Timeout(None)) as client:
                    response = await client.post(url, params=params, json=payload)
        except httpx.HTTPError as exc:
            logger.error(f"Identity provider unreachable at {url}: {exc}")
            raise IdentityProviderError("NETWORK_ERROR", str(exc)) from exc

        if response.is_error:
            raise self._provider_error(response)
        return response.json()

    @staticmethod
    def _provider_error(response: httpx.Response) -> IdentityProviderError:
        try:
            message = response.json()["error"]["message"]
        except (ValueError, KeyError, TypeError):
            message = f"HTTP {response.status_code}"
        # Messages look like "WEAK_PASSWORD : Password should be at least 6 characters"
        code = message.split(" : ", 1)[0].strip()
        logger.error(f"Identity provider rejected request: {message}")
        return IdentityProviderError(code, message)

    def _start_session(self, body: Dict[str, Any]) -> Identity:
        self._id_token = body.get("idToken")
        self._refresh_token = body.get("refreshToken")
        identity = Identity(
            uid=body["localId"],
            email=body.get("email"),
            display_name=body.get("displayName") or None,
            photo_url=body.get("photoUrl") or body.get("profilePicture") or None,
        )
        self._set_identity(identity)
        return identity

    async def sign_up(self, email: str, password: str) -> Identity:
        body = await self._post(
            "signUp", {"email": email, "password": password, "returnSecureToken": True}
        )
        return self._start_session(body)

    async def update_display_name(self, display_name: str) -> Identity:
        current = self.current_identity()
        if current is None or not self._id_token:
            raise Unauthenticated("update the display name")
        body = await self._post(
            "update",
            {"idToken": self._id_token, "displayName": display_name, "returnSecureToken": True},
        )
        self._id_token = body.get("idToken", self._id_token)
        self._refresh_token = body.get("refreshToken", self._refresh_token)
        identity = current.model_copy(update={"display_name": body.get("displayName", display_name)})
        # A profile change is not a sign-in/sign-out: observers are not notified.
        self._set_identity(identity, notify=False)
        return identity

    async def sign_in_password(self, email: str, password: str) -> Identity:
        body = await self._post(
            "signInWithPassword",
            {"email": email, "password": password, "returnSecureToken": True},
        )
        return self._start_session(body)

    async def sign_in_federated(
        self,
        id_token: Optional[str] = None,
        access_token: Optional[str] = None,
        provider_id: str = "google.com",
        request_uri: str = "http://localhost",
    ) -> Identity:
        """Exchange an OAuth credential obtained by the caller for a session."""
        if id_token:
            post_body = f"id_token={id_token}&providerId={provider_id}"
        elif access_token:
            post_body = f"access_token={access_token}&providerId={provider_id}"
        else:
            raise ValueError("Federated sign-in needs an id_token or an access_token.")
        body = await self._post(
            "signInWithIdp",
            {
                "postBody": post_body,
                "requestUri": request_uri,
                "returnSecureToken": True,
                "returnIdpCredential": True,
            },
        )
        return self._start_session(body)

    async def sign_out(self) -> None:
        self._id_token = None
        self._refresh_token = None
        self._set_identity(None)


class IdentitySession:
    """
    Current-identity facade used by the feed controller and the workflows.

    Provider errors are never caught here: they reach the caller unchanged.
    """

    def __init__(self, provider: IdentityProvider):
        self._provider = provider

    @property
    def provider(self) -> IdentityProvider:
        return self._provider

    def observe(self, callback: IdentityCallback) -> Callable[[], None]:
        """
        Call ``callback`` now with the current identity (or None), then on
        every sign-in and sign-out, in the order they happen. Returns the
        unsubscribe handle.
        """
        unsubscribe = self._provider.observe_current_identity(callback)
        callback(self._provider.current_identity())
        return unsubscribe

    async def sign_up(self, email: str, password: str, display_name: str) -> Identity:
        """
        Create an account, then apply the display name.

        These are two remote calls. When the second one fails the account
        exists without a display name and the error propagates.
        """
        logger.info(f"Creating user with email: {email}")
        identity = await self._provider.sign_up(email, password)
        identity = await self._provider.update_display_name(display_name)
        logger.info(f"User created successfully: {identity.uid}")
        return identity

    async def sign_in(self, email: str, password: str) -> Identity:
        logger.info(f"Signing in with email: {email}")
        identity = await self._provider.sign_in_password(email, password)
        logger.info(f"User signed in successfully: {identity.uid}")
        return identity

    async def sign_in_federated(self, **credential: Any) -> Identity:
        identity = await self._provider.sign_in_federated(**credential)
        logger.info(f"User signed in with federated credential: {identity.uid}")
        return identity

    async def sign_out(self) -> None:
        await self._provider.sign_out()
        logger.info("User signed out successfully")

    def current(self) -> Optional[Identity]:
        return self._provider.current_identity()

    def require(self, action: str = "perform this action") -> Identity:
        identity = self.current()
        if identity is None:
            raise Unauthenticated(action)
        return identity
