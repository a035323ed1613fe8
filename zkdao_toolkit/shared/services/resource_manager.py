import json
from pathlib import Path
from typing import Any, Dict


class ResourceManager:
    """Manages access to packaged resources like ABIs and Poseidon parameters"""

    def __init__(self):
        self._package_root = Path(__file__).resolve().parent.parent.parent
        self._resources_root = (self._package_root / "resources").resolve(
            strict=False
        )
        self._cache: Dict[str, Any] = {}

    def get_resource_path(self, resource_type: str, filename: str) -> Path:
        """Get full path to a resource file"""
        resource_dir = self._get_resource_dir(resource_type)
        resource_path = (resource_dir / filename).resolve(strict=False)

        try:
            resource_path.relative_to(resource_dir)
        except ValueError:
            raise ValueError(
                f"Invalid resource path outside {resource_dir}: {filename}"
            )

        return resource_path

    def load_abi(self, name: str) -> Any:
        """Load an ABI file from the resources"""
        return self._load_json("abi", name)

    def load_poseidon_params(self, name: str) -> Dict[str, Any]:
        """Load a Poseidon parameter set exported from the circuit"""
        return self._load_json("poseidon", name)

    def has_resource(self, resource_type: str, name: str) -> bool:
        return self.get_resource_path(resource_type, f"{name}.json").exists()

    def _load_json(self, resource_type: str, name: str) -> Any:
        cache_key = f"{resource_type}:{name}"
        if cache_key not in self._cache:
            path = self.get_resource_path(resource_type, f"{name}.json")
            if not path.exists():
                raise FileNotFoundError(
                    f"{resource_type} file not found: {path}"
                )
            with open(path) as f:
                self._cache[cache_key] = json.load(f)
        return self._cache[cache_key]

    def _get_resource_dir(self, resource_type: str) -> Path:
        resource_dir = (self._resources_root / resource_type).resolve(
            strict=False
        )
        try:
            resource_dir.relative_to(self._resources_root)
        except ValueError:
            raise ValueError(f"Invalid resource type: {resource_type}")

        return resource_dir


# Global instance
resource_manager = ResourceManager()
