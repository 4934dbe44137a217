import importlib
from pathlib import Path
from typing import Any, Dict, List, Optional, Type

from transaction_tagger.config.settings import ConfigLoader
from transaction_tagger.parsers.base import RecordLoader, RecordParseError


class LoaderFactory:
    """
    Factory for creating record loaders.

    Uses a registry pattern to map a format name ('csv', 'json') and its file
    extensions to a RecordLoader class.
    """

    _locked = False
    _registry: Dict[str, Type[RecordLoader]] = {}
    _extensions: Dict[str, str] = {}

    @classmethod
    def register(
        cls,
        format_name: str,
        loader_class: Type[RecordLoader],
        extensions: Optional[List[str]] = None,
    ) -> None:
        """
        Register a loader for a format.

        Args:
            format_name: Unique identifier for the format (e.g. 'csv')
            loader_class: The loader class
            extensions: File extensions routed to this loader. Defaults to
                the loader's own `extensions`.

        Raises:
            ValueError: If the format is already registered
            TypeError: If loader_class doesn't inherit from RecordLoader
            RuntimeError: If the registry is locked
        """
        if cls._locked:
            raise RuntimeError("Registry is locked, cannot add more loaders")

        if format_name in cls._registry:
            raise ValueError(f"Loader for '{format_name}' is already registered")

        if not isinstance(loader_class, type) or not issubclass(loader_class, RecordLoader):
            raise TypeError(f"{loader_class} must inherit from RecordLoader")

        cls._registry[format_name] = loader_class
        for extension in extensions or loader_class.extensions:
            cls._extensions[extension.lower()] = format_name

    @classmethod
    def lock_registry(cls):
        """Prevent further registration (call after app initialization)"""
        cls._locked = True

    @classmethod
    def reset(cls):
        """Clear the registry. Intended for tests."""
        cls._registry = {}
        cls._extensions = {}
        cls._locked = False

    @classmethod
    def create_loader(cls, format_name: str) -> RecordLoader:
        """
        Create a loader instance for a format.

        Raises:
            ValueError: If no loader is registered for this format
        """
        if format_name not in cls._registry:
            available = ', '.join(cls._registry.keys())
            raise ValueError(
                f"No loader registered for '{format_name}'. "
                f"Available loaders: {available}"
            )
        return cls._registry[format_name]()

    @classmethod
    def loader_for_file(cls, filepath: Path | str) -> RecordLoader:
        """
        Pick a loader by file extension.

        Raises:
            RecordParseError: If the extension is not supported
        """
        suffix = Path(filepath).suffix.lower()
        format_name = cls._extensions.get(suffix)
        if format_name is None:
            raise RecordParseError(
                f"Unsupported file format '{suffix}'. "
                f"Supported: {', '.join(sorted(cls._extensions)) or 'none registered'}"
            )
        return cls.create_loader(format_name)

    @classmethod
    def get_available_formats(cls) -> list[str]:
        return list(cls._registry.keys())

    @classmethod
    def load_loaders_from_config(cls, config: Optional[Dict[str, Any]] = None) -> None:
        """
        Load and register loaders from configuration, then lock the registry.

        Args:
            config: Optional config dict. If None, loads from ConfigLoader.

            Example (testing):
                LoaderFactory.load_loaders_from_config(config={"loaders": [...]})
        """
        if config is None:
            config = ConfigLoader.load_loaders_config()

        for loader_config in config['loaders']:
            module_path, class_name = str(loader_config['class']).rsplit('.', 1)
            module = importlib.import_module(module_path)
            loader_class = getattr(module, class_name)

            cls.register(loader_config['format'], loader_class, loader_config.get('extensions'))

        cls.lock_registry()
