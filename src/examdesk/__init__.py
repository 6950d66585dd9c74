"""Top-level package for the examdesk data core.

Provides subpackages:
- examdesk.core – immutable models, path lens, schemas
- examdesk.storage – key-value medium, persistence adapter, Store
- examdesk.backup – timed backups with rotation and advisory locking
- examdesk.migration – one-time legacy data discovery and merge
- examdesk.repository – path-addressed CRUD over the Store
"""

def _get_version() -> str:
    """Get version from pyproject.toml (dev) or importlib.metadata (installed)."""
    from pathlib import Path

    pyproject = Path(__file__).resolve().parent.parent.parent / "pyproject.toml"
    if pyproject.exists():
        try:
            for line in pyproject.read_text().splitlines():
                if line.strip().startswith("version"):
                    # Parse: version = "0.3.0"
                    return line.split("=")[1].strip().strip('"').strip("'")
        except OSError:
            pass

    try:
        from importlib.metadata import version as pkg_version
        return pkg_version("examdesk")
    except Exception:
        return "0.0.0"

__version__ = _get_version()
__all__: list[str] = ["__version__"]
