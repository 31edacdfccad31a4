"""Persistence for the single OAuth token set."""

import contextlib
import logging
from pathlib import Path

import aiofiles
from pydantic import ValidationError

from blogger_mcp.models import TokenSet

logger = logging.getLogger(__name__)


class CredentialStore:
    """
    Loads and saves one TokenSet as JSON at a fixed path.

    Pure data access: no refresh or validity policy lives here. Failures never
    propagate. A broken or missing file reads as "not authenticated", and a
    failed write is logged while the caller keeps using its in-memory token.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    async def load(self) -> TokenSet | None:
        """Return the stored token set, or None if absent or unreadable."""
        if not self.path.exists():
            return None

        try:
            async with aiofiles.open(self.path, encoding="utf-8") as f:
                content = await f.read()
            return TokenSet.model_validate_json(content)
        except (ValidationError, OSError, ValueError) as e:
            logger.warning("Failed to load OAuth tokens from %s: %s", self.path, e)
            return None

    async def save(self, tokens: TokenSet) -> bool:
        """Overwrite the stored record with `tokens`. Returns False on failure."""
        # Write to a temp file first so a crash never leaves a half-written record
        temp_path = self.path.with_suffix(".tmp")
        try:
            async with aiofiles.open(temp_path, "w", encoding="utf-8") as f:
                await f.write(tokens.model_dump_json(indent=2, exclude_none=True))
            temp_path.chmod(0o600)
            temp_path.replace(self.path)
        except OSError as e:
            logger.error("Failed to save OAuth tokens to %s: %s", self.path, e)
            with contextlib.suppress(OSError):
                temp_path.unlink(missing_ok=True)
            return False

        logger.debug("OAuth tokens saved to %s", self.path)
        return True

    async def clear(self) -> bool:
        """Delete the stored record. A missing file counts as success."""
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            logger.error("Failed to delete OAuth tokens at %s: %s", self.path, e)
            return False
        return True
