import threading
from pathlib import Path
from typing import Iterable, Optional

from fastapi import Request

from config import Settings
from logging_config import get_logger
from schemas.url import Mapping
from services.url_service import generate_token


logger = get_logger("store")


class MappingStore:
    """
    In-memory token -> URL table backed by an append-only journal.

    One lock guards both the table and the journal file; every read and
    write holds it for the duration of the operation.
    """

    def __init__(self, journal_path):
        self.journal_path = Path(journal_path)
        self._urls: dict[str, str] = {}
        self._lock = threading.Lock()

    def __contains__(self, token: str) -> bool:
        with self._lock:
            return token in self._urls

    def __len__(self) -> int:
        with self._lock:
            return len(self._urls)

    def load(self, stream: Iterable[str]) -> int:
        """
        Replay journal lines into the table

        Args:
            stream: Any iterable of text lines

        Returns:
            int: Number of mappings loaded
        """
        loaded = 0
        with self._lock:
            for line in stream:
                mapping = Mapping.from_line(line)
                if mapping is None:
                    logger.warning("Skipping invalid line: %r", line)
                    continue
                self._urls[mapping.token] = mapping.target
                logger.debug("Loaded URL mapping: %s -> %s", mapping.token, mapping.target)
                loaded += 1
        return loaded

    def load_journal(self) -> int:
        """
        Replay the journal file; read errors are logged, not raised
        """
        logger.info("Loading journal %s", self.journal_path)
        try:
            # undecodable bytes load as U+FFFD
            with self.journal_path.open(encoding="utf-8", errors="replace") as f:
                loaded = self.load(f)
        except OSError as e:
            logger.error("Could not read journal %s: %s", self.journal_path, e)
            return 0
        logger.info("Loaded %d URL mappings", loaded)
        return loaded

    def insert(self, token: str, target: str) -> None:
        """
        Add a mapping and append it to the journal

        A failed append is logged; the mapping stays in memory.
        """
        with self._lock:
            self._insert(Mapping(token=token, target=target))

    def add(self, target: str, max_attempts: int) -> str:
        """
        Store a target under a freshly generated token

        Token choice and insert happen in one critical section.

        Raises:
            TokenSpaceExhausted: If no free token was found
        """
        with self._lock:
            token = generate_token(self._urls.__contains__, max_attempts)
            self._insert(Mapping(token=token, target=target))
        return token

    def resolve(self, token: str) -> Optional[str]:
        with self._lock:
            return self._urls.get(token)

    def _insert(self, mapping: Mapping) -> None:
        self._urls[mapping.token] = mapping.target
        self._append(mapping)

    def _append(self, mapping: Mapping) -> None:
        try:
            with self.journal_path.open("a", encoding="utf-8") as f:
                f.write(mapping.to_line())
        except OSError as e:
            logger.error("Could not write to journal %s: %s", self.journal_path, e)
            return
        logger.info("Saved URL mapping: %s -> %s", mapping.token, mapping.target)


def init_store(settings: Settings) -> MappingStore:
    """
    Create the journal if missing and replay it into a new store

    Raises:
        OSError: If the journal file cannot be created
    """
    path = Path(settings.URLS_FILE)
    if not path.exists():
        path.touch()
        logger.info("File %s created successfully", path)

    store = MappingStore(path)
    store.load_journal()
    return store


def get_store(request: Request) -> MappingStore:
    """
    Dependency for getting the mapping store
    Usage: store: MappingStore = Depends(get_store)
    """
    return request.app.state.store
