import os
from pathlib import Path
from typing import Optional

# Variables the function actually reads; anything else in .env is ignored
_KNOWN_KEYS = (
	"GEMINI_API_KEY",
	"GEMINI_MODEL",
	"TEMPERATURE",
	"LLM_MAX_TOKENS",
	"TOP_K",
	"TOP_P",
	"LLM_TIMEOUT_SECS",
	"LLM_TRANSPORT_TIMEOUT_SECS",
	"FALLBACK_PREVIEW_CHARS",
	"LOG_LEVEL",
)


def load_env_file(path: Optional[Path] = None) -> int:
	"""Copy known settings from a .env file into os.environ; returns how many were set.

	The process environment always wins. Quoted values are unquoted.
	"""
	env_path = path or Path(os.getenv("VIZBRIDGE_ENV_FILE", ".env"))
	if not env_path.is_file():
		return 0
	loaded = 0
	try:
		lines = env_path.read_text(encoding="utf-8").splitlines()
	except OSError:
		return 0
	for line in lines:
		s = line.strip()
		if s.startswith("export "):
			s = s[len("export "):].strip()
		if not s or s.startswith("#") or "=" not in s:
			continue
		key, val = (part.strip() for part in s.split("=", 1))
		if key not in _KNOWN_KEYS or key in os.environ:
			continue
		if len(val) >= 2 and val[0] == val[-1] and val[0] in "\"'":
			val = val[1:-1]
		os.environ[key] = val
		loaded += 1
	return loaded


# Keep tests offline: never pick up a developer's real GEMINI_API_KEY
if not os.getenv("PYTEST_CURRENT_TEST"):
	load_env_file()
