# groundops_api/models/__init__.py
import importlib
import pkgutil

_SKIP = {"__pycache__"}


def load_all():
    """Import every model module in this package so db.metadata is complete (migrations, create_all)."""
    for mod in pkgutil.iter_modules(__path__):
        if mod.name in _SKIP or mod.ispkg:
            continue
        importlib.import_module(f"{__name__}.{mod.name}")
