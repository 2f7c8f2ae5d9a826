"""Loading of the prompt text files that live next to this module."""
from functools import lru_cache
from pathlib import Path
import typing as t


@lru_cache(maxsize=None)
def load_prompt(prompt_name: str, prompts_dir: t.Optional[str] = None) -> str:
    """
    Load a prompt from a text file.

    Args:
        prompt_name: Name of the prompt file (without .txt extension)
        prompts_dir: Optional directory to read from. Defaults to this package.

    Returns:
        The prompt text.

    Raises:
        FileNotFoundError: If the prompt file doesn't exist.
    """
    directory = Path(prompts_dir) if prompts_dir else Path(__file__).resolve().parent
    prompt_file = directory / f"{prompt_name}.txt"

    if not prompt_file.is_file():
        raise FileNotFoundError(f"Prompt file not found: {prompt_file}")
    return prompt_file.read_text(encoding="utf-8")
