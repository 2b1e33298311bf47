"""
Prompt Loader - Loads prompt templates from text files.

Prompts are organized in subdirectories:
- world_builder/ - World concept generation
- zone_builder/ - Zone layout and population
- dialogue/ - NPC one-liners and multi-turn chat

Templates use ``str.format`` placeholders. A template is re-read when its
file changes on disk, so prompts can be tuned without a restart.
"""

import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class PromptLoader:
    """Loads, caches and renders prompt templates."""

    def __init__(self, prompts_dir: Optional[Path] = None):
        """
        Args:
            prompts_dir: Directory containing prompt categories. Defaults to
                the prompts/ directory next to this module.
        """
        if prompts_dir is None:
            prompts_dir = Path(__file__).parent / "prompts"

        self.prompts_dir = Path(prompts_dir)
        self._cache: dict[str, tuple[float, str]] = {}

    def get_prompt(self, category: str, filename: str) -> str:
        """
        Get a raw prompt template.

        Raises:
            FileNotFoundError: If the template does not exist
        """
        cache_key = f"{category}/{filename}"
        path = self.prompts_dir / category / filename

        if not path.exists():
            raise FileNotFoundError(
                f"Prompt file not found: {path}\n"
                f"Expected location: {self.prompts_dir}/{category}/{filename}"
            )

        mtime = path.stat().st_mtime
        cached = self._cache.get(cache_key)
        if cached is None or cached[0] < mtime:
            if cached is not None:
                logger.info(f"Hot reloading modified prompt: {cache_key}")
            else:
                logger.debug(f"Loading prompt: {cache_key}")
            self._cache[cache_key] = (mtime, path.read_text(encoding="utf-8"))

        return self._cache[cache_key][1]

    def render(self, category: str, filename: str, **values: object) -> str:
        """Load a template and fill in its placeholders"""
        return self.get_prompt(category, filename).format(**values)


# Global instance, created on first use
_loader: Optional[PromptLoader] = None


def get_loader() -> PromptLoader:
    """Get the global prompt loader instance."""
    global _loader
    if _loader is None:
        _loader = PromptLoader()
    return _loader
