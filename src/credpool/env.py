import os
from collections.abc import Iterable

DEFAULT_ENV_VAR = "RETTIWT_API_KEYS"


def _parse_env_file(env_path: str) -> dict[str, str]:
    """Parse a simple .env file into a dict without modifying os.environ.

    Supports basic KEY=VALUE pairs, ignoring comments and blank lines.
    Surrounding single/double quotes are stripped if present.
    """
    values: dict[str, str] = {}
    try:
        with open(env_path) as f:
            for raw_line in f:
                line = raw_line.strip()
                if not line or line.startswith("#"):
                    continue
                if "=" not in line:
                    continue
                key, val = line.split("=", 1)
                key = key.strip()
                val = val.strip().strip('"').strip("'")
                if key:
                    values[key] = val
    except FileNotFoundError:
        # Silently ignore missing file to make the helper easy to use
        pass
    return values


def parse_credentials(raw: str) -> list[str]:
    """Split a comma-separated credential string, trimming and dropping empty entries."""
    return [part.strip() for part in raw.split(",") if part.strip()]


def load_credentials_from_env(
    names: Iterable[str] | None = None,
    prefix: str | None = None,
    env_path: str | None = None,
    **kwargs,
) -> list[str]:
    """Collect credentials from environment variables.

    - If neither 'names' nor 'prefix' is given, read RETTIWT_API_KEYS.
    - If 'names' is provided, look up each explicit env var name.
    - If 'prefix' is provided, use every env var whose name starts with the prefix,
        in sorted variable-name order.
    - If both are provided, results are combined (names first).
    - If 'env_path' is provided, variables from the .env file augment lookups (without
        mutating the process environment). Values in the actual environment take
        precedence over the file.

    kwargs keywords:
    split_commas: split comma-separated values (default True)
    """
    file_env = _parse_env_file(env_path) if env_path else {}
    env_map: dict[str, str] = {**file_env, **os.environ}
    split_commas = kwargs.get("split_commas", True)

    if not names and not prefix:
        names = [DEFAULT_ENV_VAR]

    variables: list[str] = list(names or [])
    if prefix:
        variables += sorted(v for v in env_map if v.startswith(prefix) and v not in variables)

    results: list[str] = []
    for var in variables:
        value = env_map.get(var)
        if not value:
            continue
        if split_commas:
            results.extend(parse_credentials(value))
        elif value.strip():
            results.append(value.strip())
    return results
