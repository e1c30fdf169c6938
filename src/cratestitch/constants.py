# src/cratestitch/constants.py
"""Central constants used across the project."""


# --- env keys ---
DEFAULT_ENV_LOG_LEVEL: str = "LOG_LEVEL"
DEFAULT_ENV_DEBOUNCE_MS: str = "DEBOUNCE_MS"

# --- program defaults ---
DEFAULT_LOG_LEVEL: str = "info"
DEFAULT_DEBOUNCE_MS: int = 500
DEFAULT_POLL_INTERVAL: float = 0.1  # seconds between filesystem scans
DEFAULT_SRC_DIR: str = "src"

# --- bundle defaults ---
DEFAULT_STRIP_TESTS: bool = True
DEFAULT_STRIP_DOCS: bool = True
DEFAULT_EXPAND_MODULES: bool = True
DEFAULT_MINIFY: str = "none"

# --- crate layout conventions ---
MANIFEST_NAME: str = "Cargo.toml"
SOURCE_SUFFIX: str = ".rs"
MODULE_INDEX_FILE: str = "mod.rs"
DEFAULT_LIB_PATH: str = "src/lib.rs"
DEFAULT_MAIN_PATH: str = "src/main.rs"
DEFAULT_BIN_DIR: str = "src/bin"
