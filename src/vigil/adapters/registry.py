"""Resolve the inference adapter named in vigil.yaml.

``adapter: openai`` selects the Responses API adapter. Any other value
must be a dotted path to a BaseAdapter subclass, which lets a project
plug in its own model provider.
"""

from __future__ import annotations

import importlib

from vigil.adapters.base import BaseAdapter

DEFAULT_ADAPTER = "openai"
_OPENAI_ADAPTER_PATH = "vigil.adapters.openai_adapter.OpenAIResponsesAdapter"


def _import_class(dotted_path: str) -> object:
    module_path, _, class_name = dotted_path.rpartition(".")
    module = importlib.import_module(module_path)
    cls = getattr(module, class_name, None)
    if cls is None:
        raise ImportError(f"Module '{module_path}' has no attribute '{class_name}'.")
    return cls


def get_adapter(name: str = DEFAULT_ADAPTER) -> BaseAdapter:
    """Instantiate the adapter for a config value.

    Raises:
        ValueError: If name is neither "openai" nor a module.Class path.
        ImportError: If the module (or the openai SDK) cannot be imported.
        TypeError: If the resolved object is not a BaseAdapter subclass.
    """
    if name == DEFAULT_ADAPTER:
        dotted_path = _OPENAI_ADAPTER_PATH
    elif "." in name.strip("."):
        dotted_path = name
    else:
        raise ValueError(
            f"Unknown adapter '{name}'. Use '{DEFAULT_ADAPTER}' or a dotted path "
            "such as 'my_pkg.adapters.MyAdapter'."
        )

    cls = _import_class(dotted_path)
    if not isinstance(cls, type) or not issubclass(cls, BaseAdapter):
        raise TypeError(f"'{dotted_path}' must subclass vigil.adapters.base.BaseAdapter.")
    return cls()
