"""Schema Compiler - Runtime argument validators built from tool specs.

Each tool's declared argument list is compiled once into a Pydantic model.
Validation is strict on declared types, injects declared defaults, and
accepts the internal ``__userContext`` object on every tool.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Type, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    ValidationError,
    create_model,
)

from .errors import ArgumentValidationError
from .types import ArgumentType, InvocationContext, ToolArgument, ToolSpec

logger = logging.getLogger(__name__)

CONTEXT_KEY = "__userContext"
_CONTEXT_FIELD = "user_context"

_TYPE_MAP: Dict[ArgumentType, Any] = {
    ArgumentType.STRING: StrictStr,
    ArgumentType.NUMBER: Union[StrictInt, StrictFloat],
    ArgumentType.INTEGER: Union[StrictInt, StrictFloat],
    ArgumentType.BOOLEAN: StrictBool,
    ArgumentType.OBJECT: Dict[str, Any],
    ArgumentType.ARRAY: List[Any],
}


@dataclass(frozen=True)
class ValidatedArguments:
    """Domain arguments plus the separated internal context."""
    arguments: Dict[str, Any]
    context: Optional[InvocationContext] = None


class CompiledSchema:
    """Validator for a single tool, compiled from its argument descriptors."""

    def __init__(self, spec: ToolSpec, model: Type[BaseModel], field_names: Dict[str, str]):
        self.spec = spec
        self.model = model
        # argument name -> internal model field name
        self._field_names = field_names

    @property
    def tool_name(self) -> str:
        return self.spec.name

    def validate(self, raw_arguments: Optional[Dict[str, Any]]) -> ValidatedArguments:
        """
        Validate raw call arguments.

        Args:
            raw_arguments: Arguments as received from the host, possibly
                including ``__userContext``

        Returns:
            ValidatedArguments with defaults applied and context split out

        Raises:
            ArgumentValidationError: Naming every offending field
        """
        try:
            instance = self.model.model_validate(raw_arguments or {})
        except ValidationError as e:
            raise self._to_argument_error(e) from e

        arguments: Dict[str, Any] = {}
        for arg in self.spec.args:
            field_name = self._field_names.get(arg.name)
            if field_name is None:
                continue
            if field_name in instance.model_fields_set:
                arguments[arg.name] = getattr(instance, field_name)
            elif arg.has_default:
                arguments[arg.name] = arg.default

        # Undeclared arguments are kept for the query-string fallback
        for key, value in (instance.model_extra or {}).items():
            arguments[key] = value

        return ValidatedArguments(
            arguments=arguments,
            context=getattr(instance, _CONTEXT_FIELD),
        )

    def json_schema(self) -> Dict[str, Any]:
        """JSON schema of the tool's input, as advertised to the host."""
        return self.model.model_json_schema(by_alias=True)

    def _to_argument_error(self, error: ValidationError) -> ArgumentValidationError:
        problems: List[str] = []
        fields: List[str] = []
        for item in error.errors():
            parts = [str(part) for part in item.get("loc", ())]
            loc = ".".join(parts) or "<arguments>"
            # Union members add their own loc segments; report the argument
            field = parts[0] if parts else loc
            if field not in fields:
                fields.append(field)
            problems.append(f"{loc}: {item.get('msg', 'invalid value')}")
        message = f"Invalid arguments for {self.spec.name}: " + "; ".join(problems)
        logger.warning(message)
        return ArgumentValidationError(message, tool_name=self.spec.name, fields=fields)


def _field_definition(arg: ToolArgument, index: int) -> Tuple[str, Tuple[Any, Any]]:
    python_type = _TYPE_MAP[arg.type]
    field_name = f"arg_{index}"
    if arg.required:
        info = Field(..., alias=arg.name, title=arg.name, description=arg.description)
        return field_name, (python_type, info)
    info = Field(
        default=arg.default,
        alias=arg.name,
        title=arg.name,
        description=arg.description,
    )
    return field_name, (Optional[python_type], info)


def _model_name(tool_name: str) -> str:
    cleaned = re.sub(r"[^0-9a-zA-Z_]", "_", tool_name)
    return f"{cleaned[:1].upper()}{cleaned[1:]}Arguments"


def compile_schema(spec: ToolSpec) -> CompiledSchema:
    """
    Build the runtime validator for one tool.

    Args:
        spec: Tool specification with its ordered argument list

    Returns:
        CompiledSchema wrapping a generated Pydantic model
    """
    definitions: Dict[str, Any] = {}
    field_names: Dict[str, str] = {}

    for index, arg in enumerate(spec.args):
        if arg.name == CONTEXT_KEY:
            logger.warning(f"[{spec.name}] Ignoring argument that shadows {CONTEXT_KEY}")
            continue
        field_name, definition = _field_definition(arg, index)
        definitions[field_name] = definition
        field_names[arg.name] = field_name

    definitions[_CONTEXT_FIELD] = (
        Optional[InvocationContext],
        Field(
            default=None,
            alias=CONTEXT_KEY,
            description="Internal user context for multi-tenant authentication and approval workflow",
        ),
    )

    model = create_model(
        _model_name(spec.name),
        __config__=ConfigDict(extra="allow", populate_by_name=False),
        **definitions,
    )
    logger.debug(f"Compiled schema for {spec.name} with {len(field_names)} arguments")
    return CompiledSchema(spec, model, field_names)
