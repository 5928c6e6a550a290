import os
import logging
from typing import Optional

from google.cloud.firestore_v1 import AsyncClient, Client

from .config import SlateConfig

logger = logging.getLogger(__name__)


class FirestoreDB:
    """
    Helper wrapper that encapsulates the creation of the Firestore clients
    for one backend project.

    Two clients are kept:

    * an :class:`~google.cloud.firestore_v1.AsyncClient` for reads and writes;
    * a synchronous :class:`~google.cloud.firestore_v1.Client`, used only for
      live snapshot listeners (the SDK exposes ``on_snapshot`` on the
      synchronous API).

    Both are created lazily, so a wrapper built from a placeholder or broken
    configuration constructs fine and only fails when an operation runs.
    The same object can point at a local emulator, the real backend, or a
    :class:`unittest.mock.MagicMock` for unit tests.
    """

    def __init__(self, config: SlateConfig, credentials=None):
        """
        Parameters
        ----------
        config :
            Backend connection settings. ``project_id``, ``database`` and
            ``emulator_host`` are used here.
        credentials :
            Explicit credentials object; if *None*, the Google SDK default
            credentials chain is used.
        """
        self.config = config
        self.project_id = config.project_id
        self.database = config.database
        self.credentials = credentials
        self._emulator_host: Optional[str] = config.emulator_host

        self._client: Optional[AsyncClient] = None
        self._watch_client: Optional[Client] = None

    # --------------------------------------------------------------------- #
    # Clients                                                               #
    # --------------------------------------------------------------------- #

    @property
    def client(self) -> AsyncClient:
        if self._client is None:
            self._client = self._init_client(AsyncClient)
        return self._client

    @client.setter
    def client(self, value) -> None:
        self._client = value

    @property
    def watch_client(self) -> Client:
        if self._watch_client is None:
            self._watch_client = self._init_client(Client)
        return self._watch_client

    @watch_client.setter
    def watch_client(self, value) -> None:
        self._watch_client = value

    def _init_client(self, client_cls):
        """
        Instantiate ``client_cls`` for the configured project.

        * If ``self._emulator_host`` is set, ``FIRESTORE_EMULATOR_HOST`` is
          exported so that the Google client libraries route all traffic to
          the local emulator.
        * Otherwise any previously set ``FIRESTORE_EMULATOR_HOST`` is removed
          to make sure we hit the real backend.
        """
        if self._emulator_host:
            os.environ["FIRESTORE_EMULATOR_HOST"] = self._emulator_host
            logger.info(f"Using Firestore emulator on {self._emulator_host}")
        else:
            os.environ.pop("FIRESTORE_EMULATOR_HOST", None)
        return client_cls(
            project=self.project_id,
            database=self.database,
            credentials=self.credentials,
        )

    def _reset_clients(self) -> None:
        self._client = None
        self._watch_client = None

    # --------------------------------------------------------------------- #
    # Public utility methods                                                #
    # --------------------------------------------------------------------- #

    def use_emulator(self, host: str = "localhost:8080"):
        """Point the instance at a **local emulator**; clients are rebuilt lazily."""
        self._emulator_host = host
        self._reset_clients()
        logger.info(f"Emulator enabled on {host}")

    def clear_emulator(self):
        """Disable the emulator and reconnect to the production endpoint."""
        self._emulator_host = None
        self._reset_clients()
        logger.info("Emulator disabled - using real Firestore.")

    def mock_firestore_for_tests(self):
        """Replace both clients with :class:`unittest.mock.MagicMock` objects."""
        from unittest.mock import MagicMock

        self._client = MagicMock()
        self._watch_client = MagicMock()
        logger.info("Firestore clients replaced with MagicMock for unit tests.")
