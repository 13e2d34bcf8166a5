import json
from typing import List, Dict, Any
from .schema_compiler import CompiledSchema, CONTEXT_KEY

class ToolSchemaGenerator:
    """Generates JSON schemas for catalog tools to be advertised to the agent host."""

    @staticmethod
    def generate_schema(compiled: CompiledSchema, include_context: bool = False) -> Dict[str, Any]:
        """
        Convert a compiled tool schema into a function-calling schema dictionary.
        The internal context is hidden unless explicitly requested.
        """
        parameters = compiled.json_schema()
        parameters.pop("title", None)

        if not include_context:
            parameters.get("properties", {}).pop(CONTEXT_KEY, None)
            # The context model definition is only referenced by that property
            if not _uses_defs(parameters):
                parameters.pop("$defs", None)

        return {
            "name": compiled.spec.name,
            "description": compiled.spec.description,
            "parameters": parameters
        }

    @staticmethod
    def generate_schemas(compiled: List[CompiledSchema], include_context: bool = False) -> List[Dict[str, Any]]:
        """Generate schemas for a list of tools."""
        return [ToolSchemaGenerator.generate_schema(c, include_context) for c in compiled]


def _uses_defs(parameters: Dict[str, Any]) -> bool:
    return "$ref" in json.dumps(parameters.get("properties", {}))
