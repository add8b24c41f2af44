"""Registry IR converter for binding generators.

Converts a Khronos-style API registry (vk.xml) into a profile-agnostic
intermediate representation: structures, functions, enums and constants,
each projected once per API profile or extension.

Usage:
    python registry_ir.py --vk-xml path/to/vk.xml --dump-ir out/ir.json
"""

import argparse
import enum
import json
import re
import xml.etree.ElementTree as ET
from collections import defaultdict
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, fields, is_dataclass, replace
from pathlib import Path
from typing import BinaryIO, NamedTuple

DEFAULT_VK_XML = Path("vk.xml")
DEFAULT_PREFIX = "vk"
DEFAULT_APIS = ("vulkan",)


# ===--- CLI config contracts ---=== #


class ApiVersion(NamedTuple):
    major: int
    minor: int

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}"


@dataclass(frozen=True)
class ConvertConfig:
    vk_xml: Path
    prefix: str
    apis: tuple[str, ...] | None
    dump_ir: Path | None


VALID_ERROR_CODES = {
    "INVALID_PREFIX",
    "INVALID_API",
    "CONFLICT_API_FLAGS",
    "PATH_NOT_FOUND",
}
_PREFIX_RE = re.compile(r"^[A-Za-z][A-Za-z0-9]*$")
_API_RE = re.compile(r"^[a-z][a-z0-9]*$")


class ConfigError(Exception):
    def __init__(self, code: str, message: str, suggestion: str | None = None):
        if code not in VALID_ERROR_CODES:
            raise ValueError(f"Unknown config error code: {code}")
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion


def validate_prefix(raw: str) -> str:
    if _PREFIX_RE.match(raw):
        return raw
    raise ConfigError(
        "INVALID_PREFIX",
        f"Invalid function prefix: {raw!r}",
        "The prefix must be a plain identifier such as vk or xr.",
    )


def validate_api_name(name: str) -> str:
    if _API_RE.match(name):
        return name
    raise ConfigError(
        "INVALID_API",
        f"Invalid API tag: {name!r}",
        "API tags are lowercase registry identifiers such as vulkan or vulkansc.",
    )


def validate_path_exists(
    path: Path | None, flag: str, suggestion: str | None = None
) -> Path:
    if path is None:
        raise ConfigError(
            "PATH_NOT_FOUND",
            f"{flag} is required: no path provided.",
            suggestion or f"Pass the path explicitly: {flag} /path/to/resource",
        )
    if path.exists():
        return path
    raise ConfigError(
        "PATH_NOT_FOUND",
        f"Path for {flag} does not exist: {path}",
        suggestion or "Provide an existing path for this flag.",
    )


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Convert an API registry into a binding generator IR"
    )

    parser.add_argument("--vk-xml", type=Path, default=DEFAULT_VK_XML)
    parser.add_argument("--prefix", type=str, default=DEFAULT_PREFIX)

    api_group = parser.add_mutually_exclusive_group()
    api_group.add_argument("--api", action="append", default=None)
    api_group.add_argument("--all-apis", action="store_true", default=False)

    parser.add_argument("--dump-ir", type=Path, default=None)

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = build_argument_parser()
    return parser.parse_args(argv)


def validate_config(args: argparse.Namespace) -> ConvertConfig:
    if args.api and args.all_apis:
        raise ConfigError(
            "CONFLICT_API_FLAGS",
            "Cannot combine --api with --all-apis.",
            "Use --api with one or more tags, or --all-apis.",
        )

    prefix = validate_prefix(args.prefix)

    if args.all_apis:
        apis = None
    elif args.api:
        apis = tuple(dict.fromkeys(validate_api_name(name) for name in args.api))
    else:
        apis = DEFAULT_APIS

    vk_xml = validate_path_exists(
        args.vk_xml,
        "--vk-xml",
        "Clone Vulkan-Docs:\n"
        "  git clone https://github.com/KhronosGroup/Vulkan-Docs.git\n"
        "Or pass a custom path: --vk-xml /your/path/to/vk.xml",
    )

    return ConvertConfig(
        vk_xml=vk_xml,
        prefix=prefix,
        apis=apis,
        dump_ir=args.dump_ir,
    )


def build_config(argv: list[str] | None = None) -> ConvertConfig:
    return validate_config(parse_args(argv))


# ===--- Conversion errors ---=== #


VALID_CONVERSION_ERROR_CODES = {
    "FORMAT_ERROR",
    "DUPLICATE_ENTITY",
    "UNRESOLVED_TYPE_SIZE",
}


class ConversionError(Exception):
    """Fatal conversion failure. The whole run for the document is aborted."""

    def __init__(self, code: str, message: str):
        if code not in VALID_CONVERSION_ERROR_CODES:
            raise ValueError(f"Unknown conversion error code: {code}")
        super().__init__(message)
        self.code = code
        self.message = message


# ===--- Constants ---=== #

# Native C scalar -> canonical type name. Seeds the type map list of a run.
DEFAULT_TYPE_MAP = {
    "char": "byte",
    "int8_t": "sbyte",
    "uint8_t": "byte",
    "int16_t": "short",
    "uint16_t": "ushort",
    "int": "int",
    "int32_t": "int",
    "uint32_t": "uint",
    "int64_t": "long",
    "uint64_t": "ulong",
    "float": "float",
    "double": "double",
    "size_t": "nuint",
}

PRIMITIVE_SIZES = {
    "byte": 1,
    "sbyte": 1,
    "short": 2,
    "ushort": 2,
    "int": 4,
    "uint": 4,
    "long": 8,
    "ulong": 8,
    "float": 4,
    "double": 8,
    "nint": 8,
    "nuint": 8,
}

POINTER_SIZE = 8
REGISTRY_TYPE_DEFAULT_SIZE = 4

DISPATCHABLE_HANDLE_TYPE = "nint"
NON_DISPATCHABLE_HANDLE_TYPE = "ulong"

CORE_EXTENSION_NAME = "Core"
API_CONSTANTS_BLOCK = "API Constants"
NULL_TERMINATED = "null-terminated"

FLAG_BITS_SUFFIX = "FlagBits"
FLAGS_SUFFIX = "Flags"

ENUM_BASE_VALUE = 1000000000
ENUM_RANGE_SIZE = 1000

RESERVED_IDENTIFIERS = {
    "base",
    "checked",
    "default",
    "event",
    "fixed",
    "in",
    "internal",
    "lock",
    "object",
    "operator",
    "out",
    "params",
    "ref",
    "string",
    "type",
}


# ===--- Specification model ---=== #


@dataclass(frozen=True)
class TypeSpec:
    name: str
    pointer_indirection: int = 0
    array_dimensions: tuple[int, ...] = ()
    is_const: bool = False

    def __str__(self) -> str:
        const = "const " if self.is_const else ""
        dims = "".join(f"[{d}]" for d in self.array_dimensions)
        return f"{const}{self.name}{'*' * self.pointer_indirection}{dims}"


@dataclass(frozen=True)
class MemberSpec:
    name: str
    type: TypeSpec
    element_count: int = 1
    element_count_symbolic: str | None = None
    legal_values: str | None = None
    comment: str = ""


@dataclass(frozen=True)
class StructureDefinition:
    name: str
    members: tuple[MemberSpec, ...]


@dataclass(frozen=True)
class HandleDefinition:
    name: str
    can_be_dispatched: bool


class EnumType(enum.Enum):
    PLAIN = "enum"
    BITMASK = "bitmask"


@dataclass(frozen=True)
class EnumValue:
    name: str
    value: int
    comment: str = ""


@dataclass(frozen=True)
class EnumDefinition:
    name: str
    type: EnumType
    values: tuple[EnumValue, ...]


class ParameterModifier(enum.Enum):
    NONE = "none"
    IN = "in"
    OUT = "out"
    REF = "ref"


@dataclass(frozen=True)
class ParameterSpec:
    name: str
    type: TypeSpec
    modifier: ParameterModifier = ParameterModifier.IN
    element_count: int = 1
    element_count_symbolic: tuple[str, ...] | None = None
    is_null_terminated: bool = False


@dataclass(frozen=True)
class CommandDefinition:
    name: str
    return_type: TypeSpec
    parameters: tuple[ParameterSpec, ...]


class ConstantType(enum.Enum):
    FLOAT32 = "float"
    UINT32 = "uint32_t"
    UINT64 = "uint64_t"
    INT32 = "int32_t"
    UNKNOWN = ""


@dataclass(frozen=True)
class ConstantDefinition:
    name: str
    value: str
    type: ConstantType
    comment: str = ""


@dataclass(frozen=True)
class TypedefDefinition:
    name: str
    type: str
    requires: str | None = None


@dataclass(frozen=True)
class FeatureDefinition:
    name: str
    api: str
    number: ApiVersion
    command_names: tuple[str, ...]


@dataclass(frozen=True)
class ExtensionConstant:
    name: str
    value: str
    comment: str = ""


@dataclass(frozen=True)
class EnumExtension:
    """An extension `<enum>` entry. `extended_type` is None when freestanding."""

    name: str
    extended_type: str | None
    value: str


@dataclass(frozen=True)
class ExtensionDefinition:
    name: str
    number: int
    supported: tuple[str, ...]
    command_names: tuple[str, ...]
    constants: tuple[ExtensionConstant, ...]
    enum_extensions: tuple[EnumExtension, ...]


@dataclass(frozen=True)
class SpecificationModel:
    """Typed read-only view of one registry document.

    Attributes:
        structures: Struct definitions in declaration order.
        unions: Union definitions in declaration order.
        handles: Handle definitions in declaration order.
        enums: Enum definitions with feature/extension values folded in.
        commands: Commands, including materialized command aliases.
        constants: API Constants block entries.
        typedefs: Bitmask typedefs (`VkFooFlags` -> `VkFlags`).
        base_types: Base type name -> underlying native type.
        type_aliases: Aliased struct/union/handle/enum/bitmask names -> target.
        features: One entry per (feature, api tag) pair in document order.
        extensions: Non-disabled extensions in document order.
    """

    structures: tuple[StructureDefinition, ...]
    unions: tuple[StructureDefinition, ...]
    handles: tuple[HandleDefinition, ...]
    enums: tuple[EnumDefinition, ...]
    commands: tuple[CommandDefinition, ...]
    constants: tuple[ConstantDefinition, ...]
    typedefs: tuple[TypedefDefinition, ...]
    base_types: dict[str, str]
    type_aliases: dict[str, str]
    features: tuple[FeatureDefinition, ...]
    extensions: tuple[ExtensionDefinition, ...]


# ===--- XML loading ---=== #


def _api_selected(api_value: str | None, apis: frozenset[str] | None) -> bool:
    if not api_value or apis is None:
        return True
    return any(token.strip() in apis for token in api_value.split(","))


def _select_api_tags(
    api_value: str, apis: frozenset[str] | None
) -> tuple[str, ...]:
    tags = [token.strip() for token in api_value.split(",") if token.strip()]
    if apis is not None:
        tags = [tag for tag in tags if tag in apis]
    return tuple(dict.fromkeys(tags))


def _parse_c_int(s: str) -> int:
    s = s.strip().strip("()").strip()
    if s.startswith("~"):
        inner = s[1:]
        width = 64 if inner.upper().endswith("ULL") else 32
        return ~_parse_c_int(inner) & ((1 << width) - 1)
    s = s.rstrip("uUlL")
    if s.startswith("0x") or s.startswith("0X"):
        return int(s, 16)
    if s.startswith("-"):
        return -int(s[1:], 16 if s[1:].startswith("0x") else 10)
    return int(s)


def _type_name(t: ET.Element) -> str:
    name = t.get("name")
    if not name:
        name_el = t.find("name")
        if name_el is not None:
            name = name_el.text
    return name or ""


def _comment_text(el: ET.Element) -> str:
    return (el.findtext("comment") or el.get("comment") or "").strip()


def parse_version_number(raw: str) -> ApiVersion:
    major_s, _, minor_s = raw.strip().partition(".")
    try:
        return ApiVersion(int(major_s), int(minor_s or "0"))
    except ValueError as err:
        raise ConversionError(
            "FORMAT_ERROR", f"Invalid feature version number: {raw!r}"
        ) from err


def load_api_constants(
    root: ET.Element,
) -> tuple[list[ConstantDefinition], dict[str, int]]:
    """Load the API Constants block.

    Returns the constant definitions in document order, and the subset that
    parse as integers for resolving `[<enum>CONST</enum>]` array sizes.
    """
    constants: list[ConstantDefinition] = []
    by_name: dict[str, ConstantDefinition] = {}
    int_values: dict[str, int] = {}
    for block in root.findall("enums"):
        if block.get("name") != API_CONSTANTS_BLOCK:
            continue
        for val in block.findall("enum"):
            name = val.get("name")
            value = val.get("value")
            alias = val.get("alias")
            if not name:
                continue
            if value is not None:
                try:
                    const_type = ConstantType(val.get("type", ""))
                except ValueError:
                    const_type = ConstantType.UNKNOWN
                constant = ConstantDefinition(
                    name, value, const_type, val.get("comment", "")
                )
                try:
                    int_values[name] = _parse_c_int(value)
                except ValueError:
                    pass
            elif alias and alias in by_name:
                constant = replace(by_name[alias], name=name)
                if alias in int_values:
                    int_values[name] = int_values[alias]
            else:
                continue
            constants.append(constant)
            by_name[name] = constant
    return constants, int_values


def _parse_array_dims(
    el: ET.Element, name_tail: str, api_constants: Mapping[str, int]
) -> tuple[tuple[int, ...], str | None]:
    dims = [int(d) for d in re.findall(r"\[(\d+)\]", name_tail)]
    symbolic = None
    enum_el = el.find("enum")
    if "[" in name_tail and enum_el is not None and enum_el.text:
        symbolic = enum_el.text.strip()
        size = api_constants.get(symbolic)
        if size is None:
            raise ConversionError(
                "FORMAT_ERROR", f"Unknown array size constant: {symbolic}"
            )
        dims.append(size)
    return tuple(dims), symbolic


def _element_count(dims: tuple[int, ...]) -> int:
    total = 1
    for d in dims:
        total *= d
    return total


def parse_member(
    m: ET.Element, api_constants: Mapping[str, int]
) -> MemberSpec | None:
    type_el = m.find("type")
    name_el = m.find("name")
    if type_el is None or name_el is None:
        return None
    member_name = name_el.text or ""
    text_before = m.text or ""
    type_tail = type_el.tail or ""
    name_tail = name_el.tail or ""

    dims, array_symbolic = _parse_array_dims(m, name_tail, api_constants)
    type_spec = TypeSpec(
        name=type_el.text or "",
        pointer_indirection=type_tail.count("*"),
        array_dimensions=dims,
        is_const="const" in text_before,
    )

    # `null-terminated` is a termination marker, not an element count.
    len_parts = [
        part.strip()
        for part in m.get("len", "").split(",")
        if part.strip() and part.strip() != NULL_TERMINATED
    ]

    return MemberSpec(
        name=member_name,
        type=type_spec,
        element_count=_element_count(dims),
        element_count_symbolic=array_symbolic or ",".join(len_parts) or None,
        legal_values=m.get("values"),
        comment=_comment_text(m),
    )


def extract_structures(
    root: ET.Element,
    category: str,
    apis: frozenset[str] | None,
    api_constants: Mapping[str, int],
) -> tuple[list[StructureDefinition], dict[str, str]]:
    structures = []
    aliases = {}
    for t in root.findall(f"types/type[@category='{category}']"):
        if not _api_selected(t.get("api"), apis):
            continue
        alias = t.get("alias")
        if alias:
            aliases[_type_name(t)] = alias
            continue
        members = []
        seen_api_members = set()
        for m in t.findall("member"):
            m_api = m.get("api")
            if not _api_selected(m_api, apis):
                continue
            parsed = parse_member(m, api_constants)
            if parsed is None:
                continue
            # Per-api variants of the same member: first selected one wins.
            if m_api and parsed.name in seen_api_members:
                continue
            if m_api:
                seen_api_members.add(parsed.name)
            members.append(parsed)
        structures.append(StructureDefinition(_type_name(t), tuple(members)))
    return structures, aliases


def extract_handles(
    root: ET.Element, apis: frozenset[str] | None
) -> tuple[list[HandleDefinition], dict[str, str]]:
    handles = []
    aliases = {}
    for t in root.findall("types/type[@category='handle']"):
        if not _api_selected(t.get("api"), apis):
            continue
        alias = t.get("alias")
        if alias:
            aliases[_type_name(t)] = alias
            continue
        name_el = t.find("name")
        type_el = t.find("type")
        if name_el is None or type_el is None or not name_el.text:
            continue
        if type_el.text == "VK_DEFINE_HANDLE":
            dispatchable = True
        elif type_el.text == "VK_DEFINE_NON_DISPATCHABLE_HANDLE":
            dispatchable = False
        else:
            continue
        handles.append(HandleDefinition(name_el.text, dispatchable))
    return handles, aliases


def extract_base_types(
    root: ET.Element, apis: frozenset[str] | None
) -> dict[str, str]:
    base_types = {}
    for t in root.findall("types/type[@category='basetype']"):
        if not _api_selected(t.get("api"), apis):
            continue
        name_el = t.find("name")
        type_el = t.find("type")
        if name_el is None or type_el is None or not type_el.text:
            continue
        pointer = "*" * (type_el.tail or "").count("*")
        base_types[name_el.text] = f"{type_el.text}{pointer}"
    return base_types


def extract_typedefs(
    root: ET.Element, apis: frozenset[str] | None
) -> tuple[list[TypedefDefinition], dict[str, str]]:
    typedefs = []
    aliases = {}
    for t in root.findall("types/type[@category='bitmask']"):
        if not _api_selected(t.get("api"), apis):
            continue
        alias = t.get("alias")
        if alias:
            aliases[_type_name(t)] = alias
            continue
        name_el = t.find("name")
        type_el = t.find("type")
        if name_el is None or type_el is None or not name_el.text:
            continue
        requires = t.get("requires") or t.get("bitvalues")
        typedefs.append(TypedefDefinition(name_el.text, type_el.text or "", requires))
    return typedefs, aliases


def _parse_registry_int(raw: str, what: str) -> int:
    try:
        return int(raw)
    except ValueError as err:
        raise ConversionError("FORMAT_ERROR", f"Invalid {what}: {raw!r}") from err


def _enum_int_value(val: ET.Element, default_extnumber: str | None) -> int | None:
    value_str = val.get("value")
    bitpos = val.get("bitpos")
    offset = val.get("offset")
    if value_str is not None:
        try:
            return _parse_c_int(value_str)
        except ValueError:
            return None
    if bitpos is not None:
        return 1 << _parse_registry_int(bitpos, "enum bitpos")
    if offset is not None:
        extnumber = val.get("extnumber", default_extnumber)
        if extnumber is None:
            return None
        int_val = (
            ENUM_BASE_VALUE
            + (_parse_registry_int(extnumber, "extension number") - 1) * ENUM_RANGE_SIZE
            + _parse_registry_int(offset, "enum offset")
        )
        if val.get("dir") == "-":
            int_val = -int_val
        return int_val
    return None


class _EnumCollector:
    """Accumulates enum values across blocks, features and extensions."""

    def __init__(self):
        self.values: dict[str, list[EnumValue]] = defaultdict(list)
        self.seen: dict[str, set[str]] = defaultdict(set)

    def add(self, enum_name: str, value: EnumValue) -> None:
        if value.name in self.seen[enum_name]:
            return
        self.values[enum_name].append(value)
        self.seen[enum_name].add(value.name)


def _collect_enum_blocks(
    root: ET.Element, apis: frozenset[str] | None, collector: _EnumCollector
) -> dict[str, EnumType]:
    block_types = {}
    for block in root.findall("enums"):
        block_name = block.get("name", "")
        if not block_name or block_name == API_CONSTANTS_BLOCK:
            continue
        try:
            block_types[block_name] = EnumType(block.get("type", "enum"))
        except ValueError:
            block_types[block_name] = EnumType.PLAIN
        for val in block.findall("enum"):
            name = val.get("name")
            if not name or val.get("alias") or not _api_selected(val.get("api"), apis):
                continue
            int_val = _enum_int_value(val, None)
            if int_val is None:
                continue
            collector.add(block_name, EnumValue(name, int_val, val.get("comment", "")))
    return block_types


def _merge_extending_enum(
    val: ET.Element, default_extnumber: str | None, collector: _EnumCollector
) -> None:
    name = val.get("name")
    extends = val.get("extends")
    if not name or not extends or val.get("alias"):
        return
    int_val = _enum_int_value(val, default_extnumber)
    if int_val is None:
        return
    collector.add(extends, EnumValue(name, int_val, val.get("comment", "")))


def extract_features(
    root: ET.Element, apis: frozenset[str] | None, collector: _EnumCollector
) -> list[FeatureDefinition]:
    features = []
    for feat in root.findall("feature"):
        tags = _select_api_tags(feat.get("api", ""), apis)
        if not tags:
            continue
        number = parse_version_number(feat.get("number", "0.0"))
        command_names: dict[str, None] = {}
        for req in feat.findall("require"):
            if not _api_selected(req.get("api"), apis):
                continue
            for cmd in req.findall("command"):
                cmd_name = cmd.get("name")
                if cmd_name:
                    command_names[cmd_name] = None
            for val in req.findall("enum"):
                _merge_extending_enum(val, None, collector)
        for tag in tags:
            features.append(
                FeatureDefinition(
                    name=feat.get("name", ""),
                    api=tag,
                    number=number,
                    command_names=tuple(command_names),
                )
            )
    return features


def extract_extensions(
    root: ET.Element, apis: frozenset[str] | None, collector: _EnumCollector
) -> list[ExtensionDefinition]:
    extensions = []
    for ext in root.findall("extensions/extension"):
        supported = _select_api_tags(ext.get("supported", ""), apis)
        supported = tuple(tag for tag in supported if tag != "disabled")
        if not supported:
            continue
        extnumber = ext.get("number")
        command_names: dict[str, None] = {}
        constants: list[ExtensionConstant] = []
        enum_extensions: list[EnumExtension] = []
        for req in ext.findall("require"):
            if not _api_selected(req.get("api"), apis):
                continue
            for cmd in req.findall("command"):
                cmd_name = cmd.get("name")
                if cmd_name:
                    command_names[cmd_name] = None
            for val in req.findall("enum"):
                name = val.get("name")
                if not name:
                    continue
                extends = val.get("extends")
                alias = val.get("alias")
                if extends is None and alias is None and val.get("value") is not None:
                    constants.append(
                        ExtensionConstant(name, val.get("value", ""), val.get("comment", ""))
                    )
                    continue
                if alias is not None:
                    value_text = alias
                else:
                    int_val = _enum_int_value(val, extnumber)
                    if int_val is None:
                        continue
                    value_text = str(int_val)
                enum_extensions.append(EnumExtension(name, extends, value_text))
                _merge_extending_enum(val, extnumber, collector)
        extensions.append(
            ExtensionDefinition(
                name=ext.get("name", ""),
                number=_parse_registry_int(extnumber or "0", "extension number"),
                supported=supported,
                command_names=tuple(command_names),
                constants=tuple(constants),
                enum_extensions=tuple(enum_extensions),
            )
        )
    return extensions


def extract_enums(
    root: ET.Element,
    apis: frozenset[str] | None,
    block_types: Mapping[str, EnumType],
    collector: _EnumCollector,
) -> tuple[list[EnumDefinition], dict[str, str]]:
    names: dict[str, None] = {}
    aliases = {}
    for t in root.findall("types/type[@category='enum']"):
        if not _api_selected(t.get("api"), apis):
            continue
        name = t.get("name")
        if not name:
            continue
        alias = t.get("alias")
        if alias:
            aliases[name] = alias
            continue
        names[name] = None
    for block_name in block_types:
        names.setdefault(block_name, None)

    enums = []
    for name in names:
        enum_type = block_types.get(name)
        if enum_type is None:
            enum_type = EnumType.BITMASK if FLAG_BITS_SUFFIX in name else EnumType.PLAIN
        enums.append(EnumDefinition(name, enum_type, tuple(collector.values.get(name, ()))))
    return enums, aliases


def _param_modifier(type_spec: TypeSpec) -> ParameterModifier:
    if type_spec.pointer_indirection == 0 or type_spec.is_const:
        return ParameterModifier.IN
    if type_spec.name == "void":
        return ParameterModifier.NONE
    return ParameterModifier.OUT


def parse_command_param(
    p: ET.Element, api_constants: Mapping[str, int]
) -> ParameterSpec | None:
    type_el = p.find("type")
    name_el = p.find("name")
    if type_el is None or name_el is None:
        return None
    dims, array_symbolic = _parse_array_dims(p, name_el.tail or "", api_constants)
    type_spec = TypeSpec(
        name=type_el.text or "",
        pointer_indirection=(type_el.tail or "").count("*"),
        array_dimensions=dims,
        is_const="const" in (p.text or ""),
    )
    len_attr = p.get("len")
    is_null_terminated = len_attr == NULL_TERMINATED
    symbolic = None
    if array_symbolic:
        symbolic = (array_symbolic,)
    elif len_attr and not is_null_terminated:
        symbolic = tuple(part.strip() for part in len_attr.split(",") if part.strip())
    return ParameterSpec(
        name=name_el.text or "",
        type=type_spec,
        modifier=_param_modifier(type_spec),
        element_count=_element_count(dims),
        element_count_symbolic=symbolic,
        is_null_terminated=is_null_terminated,
    )


def extract_commands(
    root: ET.Element, apis: frozenset[str] | None, api_constants: Mapping[str, int]
) -> list[CommandDefinition]:
    commands = []
    aliases = []
    for cmd in root.findall("commands/command"):
        if not _api_selected(cmd.get("api"), apis):
            continue
        alias = cmd.get("alias")
        if alias:
            aliases.append((cmd.get("name", ""), alias))
            continue
        proto = cmd.find("proto")
        if proto is None:
            continue
        name_el = proto.find("name")
        type_el = proto.find("type")
        if name_el is None or not name_el.text:
            continue
        if type_el is not None and type_el.text:
            ret_type = TypeSpec(type_el.text, (type_el.tail or "").count("*"))
        else:
            ret_type = TypeSpec("void")
        params = []
        for p in cmd.findall("param"):
            if not _api_selected(p.get("api"), apis):
                continue
            parsed = parse_command_param(p, api_constants)
            if parsed:
                params.append(parsed)
        commands.append(CommandDefinition(name_el.text, ret_type, tuple(params)))

    by_name = {c.name: c for c in commands}
    for alias_name, target_name in aliases:
        target = by_name.get(target_name)
        if target is not None and alias_name:
            commands.append(replace(target, name=alias_name))
    return commands


def build_specification(
    root: ET.Element, apis: Iterable[str] | None = None
) -> SpecificationModel:
    """Build the Specification Model from a parsed registry root element.

    Args:
        root: The `<registry>` element.
        apis: Optional API tags to keep. Elements carrying an `api` attribute,
            feature api tags and extension `supported` tags are filtered to
            this set. None keeps every API.

    Returns:
        The populated SpecificationModel.

    Raises:
        ConversionError: FORMAT_ERROR for malformed version numbers or unknown
            array size constants.
    """
    api_filter = frozenset(apis) if apis is not None else None

    constants, api_constants = load_api_constants(root)
    structures, struct_aliases = extract_structures(root, "struct", api_filter, api_constants)
    unions, union_aliases = extract_structures(root, "union", api_filter, api_constants)
    handles, handle_aliases = extract_handles(root, api_filter)
    typedefs, bitmask_aliases = extract_typedefs(root, api_filter)

    collector = _EnumCollector()
    block_types = _collect_enum_blocks(root, api_filter, collector)
    features = extract_features(root, api_filter, collector)
    extensions = extract_extensions(root, api_filter, collector)
    enums, enum_aliases = extract_enums(root, api_filter, block_types, collector)

    type_aliases = {
        **struct_aliases,
        **union_aliases,
        **handle_aliases,
        **bitmask_aliases,
        **enum_aliases,
    }

    return SpecificationModel(
        structures=tuple(structures),
        unions=tuple(unions),
        handles=tuple(handles),
        enums=tuple(enums),
        commands=tuple(extract_commands(root, api_filter, api_constants)),
        constants=tuple(constants),
        typedefs=tuple(typedefs),
        base_types=extract_base_types(root, api_filter),
        type_aliases=type_aliases,
        features=tuple(features),
        extensions=tuple(extensions),
    )


def load_specification(
    source: bytes | BinaryIO, apis: Iterable[str] | None = None
) -> SpecificationModel:
    """Parse registry bytes (or a binary stream) into a Specification Model.

    Raises:
        ConversionError: FORMAT_ERROR when the document is not well-formed
            XML or its root element is not `<registry>`.
    """
    data = bytes(source) if isinstance(source, (bytes, bytearray)) else source.read()
    try:
        root = ET.fromstring(data)
    except ET.ParseError as err:
        raise ConversionError(
            "FORMAT_ERROR", f"Registry document is not well-formed XML: {err}"
        ) from err
    if root.tag != "registry":
        raise ConversionError(
            "FORMAT_ERROR", f"Expected a <registry> root element, found <{root.tag}>"
        )
    return build_specification(root, apis)


def load_specification_file(
    path: Path, apis: Iterable[str] | None = None
) -> SpecificationModel:
    with path.open("rb") as f:
        return load_specification(f, apis)


# ===--- Name resolution ---=== #


def trim_prefix(name: str, prefix: str) -> str:
    if not prefix:
        return name
    token = f"{prefix.upper()}_"
    if name.startswith(token):
        return name[len(token):]
    if name.lower().startswith(prefix.lower()):
        return name[len(prefix):]
    return name


def _pascal_word(word: str) -> str:
    if word != word.upper():
        return word[0].upper() + word[1:]
    chars = list(word.lower())
    for i, ch in enumerate(chars):
        if i == 0 or chars[i - 1].isdigit():
            chars[i] = ch.upper()
    return "".join(chars)


def translate(name: str, prefix: str) -> str:
    """Trim the API prefix and convert to a PascalCase display identifier.

    `VK_IMAGE_TYPE_2D` -> `ImageType2D`, `sType` -> `SType`,
    `vkCreateInstance` -> `CreateInstance`.
    """
    trimmed = trim_prefix(name, prefix)
    words = [w for w in trimmed.split("_") if w]
    if not words:
        return trimmed
    return "".join(_pascal_word(w) for w in words)


def translate_lite(name: str, prefix: str) -> str:
    """Trim the API prefix and upper-case only the first character."""
    trimmed = trim_prefix(name, prefix)
    return trimmed[:1].upper() + trimmed[1:]


def try_trim_token(token: str, enum_name: str) -> str:
    trimmed = token[len(enum_name):] if token.startswith(enum_name) else token
    if not trimmed or trimmed[0].isdigit():
        return token
    return trimmed


def escape_reserved(name: str) -> str:
    if name in RESERVED_IDENTIFIERS:
        return name + "_"
    return name


# ===--- IR data classes ---=== #


class FlowDirection(enum.Enum):
    UNDEFINED = "undefined"
    IN = "in"
    OUT = "out"
    REF = "ref"


@dataclass(frozen=True)
class Attribute:
    name: str
    arguments: tuple[str, ...] = ()


@dataclass(frozen=True)
class Count:
    """Element multiplicity: exactly one of a literal value or a symbolic expression."""

    value: int | None = None
    symbolic: tuple[str, ...] = ()

    def __post_init__(self):
        if (self.value is None) == (not self.symbolic):
            raise ValueError("Count needs exactly one of a literal value or a symbolic expression")

    @property
    def is_symbolic(self) -> bool:
        return bool(self.symbolic)


@dataclass(frozen=True)
class Type:
    name: str
    indirection_levels: int = 0
    array_dimensions: tuple[int, ...] = ()
    original_name: str | None = None


@dataclass(frozen=True)
class Field:
    name: str
    type: Type
    native_name: str | None = None
    native_type: str | None = None
    count: Count | None = None
    default_assignment: str | None = None
    doc: str = ""
    attributes: tuple[Attribute, ...] = ()


@dataclass(frozen=True)
class Struct:
    name: str
    native_name: str
    fields: tuple[Field, ...]
    attributes: tuple[Attribute, ...] = ()
    extension_name: str = CORE_EXTENSION_NAME
    profile_name: str | None = None
    profile_version: ApiVersion | None = None


@dataclass(frozen=True)
class Parameter:
    name: str
    type: Type
    flow: FlowDirection = FlowDirection.IN
    count: Count | None = None


@dataclass(frozen=True)
class Function:
    name: str
    native_name: str
    parameters: tuple[Parameter, ...]
    return_type: Type
    categories: tuple[str, ...] = ()
    extension_name: str = CORE_EXTENSION_NAME
    profile_name: str | None = None
    profile_version: ApiVersion | None = None


@dataclass(frozen=True)
class Token:
    name: str
    native_name: str
    value: str
    doc: str = ""


@dataclass(frozen=True)
class Enum:
    name: str
    native_name: str
    tokens: tuple[Token, ...]
    attributes: tuple[Attribute, ...] = ()
    extension_name: str = CORE_EXTENSION_NAME
    profile_name: str | None = None
    profile_version: ApiVersion | None = None


@dataclass(frozen=True)
class Constant:
    name: str
    native_name: str
    value: str
    type: Type
    extension_name: str = CORE_EXTENSION_NAME


# ===--- Conversion context ---=== #


@dataclass
class ConversionContext:
    """Per-run state threaded through every conversion stage.

    `type_maps` is owned by the caller. Conversion only ever appends to it;
    existing entries are never reordered or removed.
    """

    prefix: str
    type_maps: list[dict[str, str]]

    @property
    def type_prefix(self) -> str:
        return self.prefix[:1].upper() + self.prefix[1:]

    @property
    def structure_type_name(self) -> str:
        return f"{self.type_prefix}StructureType"

    @property
    def flags_carrier_types(self) -> frozenset[str]:
        return frozenset({f"{self.type_prefix}Flags", f"{self.type_prefix}Flags64"})

    def inject_type_map(self, mapping: Mapping[str, str]) -> None:
        if mapping and mapping not in self.type_maps:
            self.type_maps.append(dict(mapping))

    def resolve(self, type_: Type) -> Type:
        return resolve_type(type_, self.type_maps)


def default_context(prefix: str = DEFAULT_PREFIX) -> ConversionContext:
    return ConversionContext(prefix=prefix, type_maps=[dict(DEFAULT_TYPE_MAP)])


# ===--- Type resolution ---=== #


def convert_type(spec: TypeSpec) -> Type:
    return Type(
        name=spec.name,
        indirection_levels=spec.pointer_indirection,
        array_dimensions=spec.array_dimensions,
        original_name=spec.name,
    )


def resolve_type_name(name: str, type_maps: Iterable[Mapping[str, str]]) -> str:
    """Follow the alias maps from `name` until no map applies.

    Maps are consulted in list order on every pass. A name already visited
    ends the walk so alias cycles terminate.
    """
    maps = list(type_maps)
    current = name
    visited = {current}
    changed = True
    while changed:
        changed = False
        for mapping in maps:
            target = mapping.get(current)
            if target is None or target in visited:
                continue
            visited.add(target)
            current = target
            changed = True
    return current


def resolve_type(type_: Type, type_maps: Iterable[Mapping[str, str]]) -> Type:
    return replace(
        type_,
        name=resolve_type_name(type_.name, type_maps),
        original_name=type_.original_name or type_.name,
    )


def size_of(
    type_name: str,
    type_maps: Iterable[Mapping[str, str]],
    type_prefix: str = "Vk",
) -> int:
    """Return the static byte size of a named type for union offset math.

    The name is resolved through the alias maps first. Pointer types are
    POINTER_SIZE. Resolved names outside PRIMITIVE_SIZES that follow the
    registry type convention (start with `type_prefix`) default to
    REGISTRY_TYPE_DEFAULT_SIZE.

    Raises:
        ConversionError: UNRESOLVED_TYPE_SIZE for any other name.
    """
    resolved = resolve_type_name(type_name, type_maps)
    if resolved.endswith("*"):
        return POINTER_SIZE
    size = PRIMITIVE_SIZES.get(resolved)
    if size is not None:
        return size
    if type_prefix and resolved.startswith(type_prefix):
        return REGISTRY_TYPE_DEFAULT_SIZE
    raise ConversionError(
        "UNRESOLVED_TYPE_SIZE",
        f"Cannot size type {type_name!r} (resolved to {resolved!r})",
    )


# ===--- Entity conversion ---=== #


def _insert_unique(entities: dict, native_name: str, entity: object, category: str) -> None:
    if native_name in entities:
        raise ConversionError(
            "DUPLICATE_ENTITY", f"Duplicate {category} native name: {native_name}"
        )
    entities[native_name] = entity


def member_count(member: MemberSpec) -> Count | None:
    if member.element_count_symbolic:
        return Count(symbolic=(member.element_count_symbolic,))
    if member.element_count != 1:
        return Count(value=member.element_count)
    return None


def structure_type_default(member: MemberSpec, ctx: ConversionContext) -> str | None:
    if member.type.name != ctx.structure_type_name:
        return None
    if not member.legal_values or not member.legal_values.strip():
        return None
    first = member.legal_values.split(",")[0].strip()
    enum_name = translate_lite(member.type.name, ctx.prefix)
    return f"{enum_name}.{try_trim_token(translate(first, ctx.prefix), enum_name)}"


def convert_field(member: MemberSpec, ctx: ConversionContext) -> Field:
    return Field(
        name=translate(member.name, ctx.prefix),
        type=convert_type(member.type),
        native_name=member.name,
        native_type=str(member.type),
        count=member_count(member),
        default_assignment=structure_type_default(member, ctx),
        doc=member.comment,
    )


def layout_type_map(spec: SpecificationModel) -> dict[str, str]:
    """Map native enum, bitmask and base type names to their storage type.

    Flag unification aliases `VkFooFlags` and `VkFooFlagBits` to a display
    name, which hides the carrier (`VkFlags` or `VkFlags64`). Union layout
    consults this map ahead of the run's type maps so those members are
    sized by their carrier.
    """
    layout = dict(spec.base_types)
    for e in spec.enums:
        layout[e.name] = "int32_t"
    for typedef in spec.typedefs:
        layout[typedef.name] = typedef.type
        if typedef.requires:
            layout[typedef.requires] = typedef.type
    return layout


def _union_element_size(
    member: MemberSpec, ctx: ConversionContext, layout: Mapping[str, str]
) -> int:
    if member.type.pointer_indirection:
        return POINTER_SIZE
    return size_of(member.type.name, [layout, *ctx.type_maps], ctx.type_prefix)


def convert_union_fields(
    union: StructureDefinition,
    ctx: ConversionContext,
    layout: Mapping[str, str] | None = None,
) -> Iterator[Field]:
    """Yield explicitly offset fields for a union.

    Members with an element count above one are unrolled into `name_0` ..
    `name_{N-1}`, each at `index * element size`. All other members sit at
    offset 0. `layout` is the storage type map from `layout_type_map`.
    """
    layout = layout or {}
    for member in union.members:
        name = translate(member.name, ctx.prefix)
        if member.element_count > 1:
            element_size = _union_element_size(member, ctx, layout)
            element_type = replace(convert_type(member.type), array_dimensions=())
            for i in range(member.element_count):
                yield Field(
                    name=f"{name}_{i}",
                    type=element_type,
                    native_name=member.name,
                    native_type=str(member.type),
                    doc=member.comment,
                    attributes=(Attribute("FieldOffset", (str(i * element_size),)),),
                )
        else:
            yield Field(
                name=name,
                type=convert_type(member.type),
                native_name=member.name,
                native_type=str(member.type),
                doc=member.comment,
                attributes=(Attribute("FieldOffset", ("0",)),),
            )


def convert_structs(spec: SpecificationModel, ctx: ConversionContext) -> dict[str, Struct]:
    """Convert structures, handles and unions into one native-name keyed dict.

    Raises:
        ConversionError: DUPLICATE_ENTITY when two of them share a native
            name, UNRESOLVED_TYPE_SIZE from union layout.
    """
    ret: dict[str, Struct] = {}
    layout = layout_type_map(spec)
    for s in spec.structures:
        _insert_unique(
            ret,
            s.name,
            Struct(
                name=translate_lite(s.name, ctx.prefix),
                native_name=s.name,
                fields=tuple(convert_field(m, ctx) for m in s.members),
            ),
            "structure",
        )

    for h in spec.handles:
        handle_type = (
            DISPATCHABLE_HANDLE_TYPE if h.can_be_dispatched else NON_DISPATCHABLE_HANDLE_TYPE
        )
        _insert_unique(
            ret,
            h.name,
            Struct(
                name=translate_lite(h.name, ctx.prefix),
                native_name=h.name,
                fields=(Field(name="Handle", type=Type(name=handle_type)),),
            ),
            "handle",
        )

    for u in spec.unions:
        _insert_unique(
            ret,
            u.name,
            Struct(
                name=translate_lite(u.name, ctx.prefix),
                native_name=u.name,
                fields=tuple(convert_union_fields(u, ctx, layout)),
                attributes=(Attribute("StructLayout", ("Explicit",)),),
            ),
            "union",
        )

    return ret


_FLOW_BY_MODIFIER = {
    ParameterModifier.NONE: FlowDirection.UNDEFINED,
    ParameterModifier.REF: FlowDirection.REF,
    ParameterModifier.OUT: FlowDirection.OUT,
}


def convert_flow(modifier: ParameterModifier) -> FlowDirection:
    return _FLOW_BY_MODIFIER.get(modifier, FlowDirection.IN)


def parameter_count(param: ParameterSpec) -> Count | None:
    if param.is_null_terminated:
        return None
    if param.element_count_symbolic:
        return Count(symbolic=param.element_count_symbolic)
    return Count(value=param.element_count)


def convert_parameter(param: ParameterSpec) -> Parameter:
    return Parameter(
        name=escape_reserved(param.name),
        type=convert_type(param.type),
        flow=convert_flow(param.modifier),
        count=parameter_count(param),
    )


def convert_functions(
    spec: SpecificationModel, ctx: ConversionContext
) -> dict[str, Function]:
    ret: dict[str, Function] = {}
    for command in spec.commands:
        _insert_unique(
            ret,
            command.name,
            Function(
                name=translate(command.name, ctx.prefix),
                native_name=command.name,
                parameters=tuple(convert_parameter(p) for p in command.parameters),
                return_type=convert_type(command.return_type),
            ),
            "function",
        )
    return ret


def convert_enums(spec: SpecificationModel, ctx: ConversionContext) -> dict[str, Enum]:
    """Convert registry enums, then fold orphan flags typedefs into the type maps.

    A bitmask typedef over the flags carrier (`VkFlags`/`VkFlags64`) whose
    required bit enum is unknown has nothing to unify with, so it is mapped
    straight to its carrier type.
    """
    ret: dict[str, Enum] = {}
    for e in spec.enums:
        enum_name = translate_lite(e.name, ctx.prefix)
        tokens = tuple(
            Token(
                name=try_trim_token(translate(v.name, ctx.prefix), enum_name),
                native_name=v.name,
                value=str(v.value),
                doc=v.comment,
            )
            for v in e.values
        )
        attributes = (Attribute("Flags"),) if e.type is EnumType.BITMASK else ()
        _insert_unique(
            ret,
            e.name,
            Enum(name=enum_name, native_name=e.name, tokens=tokens, attributes=attributes),
            "enum",
        )

    carriers = ctx.flags_carrier_types
    ctx.inject_type_map(
        {
            typedef.name: typedef.type
            for typedef in spec.typedefs
            if typedef.type in carriers
            and (typedef.requires is None or typedef.requires not in ret)
        }
    )
    return ret


def unify_flag_enums(enums: Mapping[str, Enum], ctx: ConversionContext) -> dict[str, Enum]:
    """Rename `FlagBits` enums to their `Flags` form and register the aliases.

    Both the original and the rewritten native name map to the rewritten
    display name, so struct fields typed with either the bits enum or its
    flags typedef resolve to the enum's display type.

    Raises:
        ConversionError: DUPLICATE_ENTITY when a rewritten native name
            collides with another enum.
    """
    unified: dict[str, Enum] = {}
    aliases: dict[str, str] = {}
    for native_name, e in enums.items():
        name = e.name.replace(FLAG_BITS_SUFFIX, FLAGS_SUFFIX)
        unified_native = e.native_name.replace(FLAG_BITS_SUFFIX, FLAGS_SUFFIX)
        _insert_unique(
            unified, unified_native, replace(e, name=name, native_name=unified_native), "enum"
        )
        aliases[native_name] = name
        aliases[unified_native] = name
    ctx.inject_type_map(aliases)
    return unified


def prepare_enums(spec: SpecificationModel, ctx: ConversionContext) -> dict[str, Enum]:
    """Run the enum pass: base types and aliases, conversion, flag unification.

    Must complete before any stage that resolves names through the type maps.
    Repeated runs append nothing new.
    """
    ctx.inject_type_map(spec.base_types)
    ctx.inject_type_map(spec.type_aliases)
    return unify_flag_enums(convert_enums(spec, ctx), ctx)


_CONSTANT_TYPE_NAMES = {
    ConstantType.FLOAT32: "float",
    ConstantType.UINT32: "uint",
    ConstantType.UINT64: "ulong",
    ConstantType.INT32: "int",
}


def convert_constants(spec: SpecificationModel, ctx: ConversionContext) -> list[Constant]:
    constants = [
        Constant(
            name=translate(c.name, ctx.prefix),
            native_name=c.name,
            value=c.value,
            type=Type(name=_CONSTANT_TYPE_NAMES.get(c.type, "ulong")),
        )
        for c in spec.constants
    ]
    for ext in spec.extensions:
        ext_name = trim_prefix(ext.name, ctx.prefix)
        for c in ext.constants:
            constants.append(
                Constant(
                    name=translate(c.name, ctx.prefix),
                    native_name=c.name,
                    value=c.value,
                    type=Type(name="uint"),
                    extension_name=ext_name,
                )
            )
    for ext in spec.extensions:
        ext_name = trim_prefix(ext.name, ctx.prefix)
        for ee in ext.enum_extensions:
            if ee.extended_type is not None:
                continue
            constants.append(
                Constant(
                    name=translate(ee.name, ctx.prefix),
                    native_name=ee.name,
                    value=ee.value,
                    type=Type(name="uint"),
                    extension_name=ext_name,
                )
            )
    return constants


# ===--- Profile expansion ---=== #


def feature_apis(spec: SpecificationModel) -> tuple[str, ...]:
    """Distinct feature API tags in first-seen order."""
    return tuple(dict.fromkeys(f.api for f in spec.features))


def read_structs(spec: SpecificationModel, ctx: ConversionContext) -> Iterator[Struct]:
    """Yield every structure once per distinct feature API tag.

    Projections carry no version and share the canonical Fields tuple.
    """
    prepare_enums(spec, ctx)
    structs = convert_structs(spec, ctx)
    for api in feature_apis(spec):
        for s in structs.values():
            yield replace(
                s,
                extension_name=CORE_EXTENSION_NAME,
                profile_name=api,
                profile_version=None,
            )


def read_functions(spec: SpecificationModel, ctx: ConversionContext) -> Iterator[Function]:
    """Yield profile-scoped functions for features, then extensions.

    Feature projections carry the feature's api tag and version and the
    trimmed feature name as category. Extension projections are emitted
    once per supported api tag, without version, with the trimmed extension
    name as both extension name and category. Commands missing from the
    registry's command list are skipped.
    """
    functions = convert_functions(spec, ctx)
    for feature in spec.features:
        category = trim_prefix(feature.name, ctx.prefix)
        for name in feature.command_names:
            function = functions.get(name)
            if function is None:
                continue
            yield replace(
                function,
                categories=(category,),
                extension_name=CORE_EXTENSION_NAME,
                profile_name=feature.api,
                profile_version=feature.number,
            )

    for extension in spec.extensions:
        ext_name = trim_prefix(extension.name, ctx.prefix)
        for name in extension.command_names:
            function = functions.get(name)
            if function is None:
                continue
            for api in extension.supported:
                yield replace(
                    function,
                    categories=(ext_name,),
                    extension_name=ext_name,
                    profile_name=api,
                    profile_version=None,
                )


def read_enums(spec: SpecificationModel, ctx: ConversionContext) -> Iterator[Enum]:
    enums = prepare_enums(spec, ctx)
    for api in feature_apis(spec):
        for e in enums.values():
            yield replace(
                e,
                extension_name=CORE_EXTENSION_NAME,
                profile_name=api,
                profile_version=None,
            )


def read_constants(spec: SpecificationModel, ctx: ConversionContext) -> Iterator[Constant]:
    yield from convert_constants(spec, ctx)


class RegistryIR(NamedTuple):
    structs: list[Struct]
    functions: list[Function]
    enums: list[Enum]
    constants: list[Constant]


def convert_registry(spec: SpecificationModel, ctx: ConversionContext) -> RegistryIR:
    """Materialize all four IR streams, enums first."""
    enums = list(read_enums(spec, ctx))
    structs = list(read_structs(spec, ctx))
    functions = list(read_functions(spec, ctx))
    constants = list(read_constants(spec, ctx))
    return RegistryIR(
        structs=structs, functions=functions, enums=enums, constants=constants
    )


# ===--- Summary report ---=== #


@dataclass(frozen=True)
class ProfileCount:
    """Record counts for one profile (api tag).

    Attributes:
        profile_name: API tag the records are projected under.
        structs: Number of struct records.
        enums: Number of enum records.
        core_functions: Function records from features.
        extension_functions: Function records from extensions.
    """

    profile_name: str
    structs: int
    enums: int
    core_functions: int
    extension_functions: int


@dataclass(frozen=True)
class IRSummary:
    profiles: tuple[ProfileCount, ...]
    core_constants: int
    extension_constants: int


def build_ir_summary(ir: RegistryIR) -> IRSummary:
    order: dict[str, None] = {}
    structs: dict[str, int] = defaultdict(int)
    enums: dict[str, int] = defaultdict(int)
    core_functions: dict[str, int] = defaultdict(int)
    ext_functions: dict[str, int] = defaultdict(int)

    for s in ir.structs:
        order.setdefault(s.profile_name, None)
        structs[s.profile_name] += 1
    for e in ir.enums:
        order.setdefault(e.profile_name, None)
        enums[e.profile_name] += 1
    for f in ir.functions:
        order.setdefault(f.profile_name, None)
        if f.extension_name == CORE_EXTENSION_NAME:
            core_functions[f.profile_name] += 1
        else:
            ext_functions[f.profile_name] += 1

    profiles = tuple(
        ProfileCount(
            profile_name=name,
            structs=structs[name],
            enums=enums[name],
            core_functions=core_functions[name],
            extension_functions=ext_functions[name],
        )
        for name in order
    )
    core_constants = sum(1 for c in ir.constants if c.extension_name == CORE_EXTENSION_NAME)
    return IRSummary(
        profiles=profiles,
        core_constants=core_constants,
        extension_constants=len(ir.constants) - core_constants,
    )


def format_ir_summary(summary: IRSummary) -> str:
    """Return the per-profile summary table.

        Profiles:

          vulkan      1021 structs    268 enums    215 core fn    +451 ext fn

        Constants: 38 core + 1102 from extensions
    """
    lines = ["Profiles:", ""]
    if not summary.profiles:
        lines.append("  (none)")
    for row in summary.profiles:
        struct_col = f"{row.structs} structs"
        enum_col = f"{row.enums} enums"
        core_col = f"{row.core_functions} core fn"
        ext_col = f"+{row.extension_functions} ext fn"
        lines.append(
            f"  {row.profile_name:<10} {struct_col:<15} {enum_col:<12} {core_col:<14} {ext_col}"
        )
    lines.append("")
    lines.append(
        f"Constants: {summary.core_constants} core + "
        f"{summary.extension_constants} from extensions"
    )
    lines.append("")
    return "\n".join(lines)


# ===--- IR dump ---=== #


def _jsonable(value: object, ctx: ConversionContext) -> object:
    if isinstance(value, Type):
        data = {f.name: _jsonable(getattr(value, f.name), ctx) for f in fields(value)}
        data["resolved_name"] = resolve_type_name(value.name, ctx.type_maps)
        return data
    if isinstance(value, ApiVersion):
        return str(value)
    if is_dataclass(value):
        return {f.name: _jsonable(getattr(value, f.name), ctx) for f in fields(value)}
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (tuple, list)):
        return [_jsonable(item, ctx) for item in value]
    return value


def ir_to_dict(ir: RegistryIR, ctx: ConversionContext) -> dict[str, list]:
    """Return a JSON-ready view of the IR.

    Every Type gains a `resolved_name` computed through the run's type maps,
    so the dump reflects flag unification and base type aliases.
    """
    return {
        "structs": _jsonable(ir.structs, ctx),
        "functions": _jsonable(ir.functions, ctx),
        "enums": _jsonable(ir.enums, ctx),
        "constants": _jsonable(ir.constants, ctx),
    }


def write_ir_json(ir: RegistryIR, ctx: ConversionContext, path: Path) -> int:
    """Write the IR as JSON and return the number of bytes written."""
    path.parent.mkdir(parents=True, exist_ok=True)
    text = json.dumps(ir_to_dict(ir, ctx), indent=2) + "\n"
    path.write_text(text, encoding="utf-8")
    return len(text.encode("utf-8"))


# ===--- Main conversion ---=== #


def run_convert(config: ConvertConfig) -> RegistryIR:
    """Execute the conversion pipeline for a ConvertConfig.

    Stages: load -> enums (with flag unification) -> structs -> functions ->
    constants -> optional JSON dump -> summary.

    Raises:
        OSError: Registry file not readable or dump not writable.
        ConversionError: Format, duplicate entity or type size failure.
    """
    print(f"Parsing: {config.vk_xml}")
    spec = load_specification_file(config.vk_xml, config.apis)
    print(
        f"  Registry: {len(spec.structures)} structs, {len(spec.unions)} unions, "
        f"{len(spec.handles)} handles, {len(spec.enums)} enums, "
        f"{len(spec.commands)} commands"
    )
    print(f"  Profiles: {len(spec.features)} features, {len(spec.extensions)} extensions")

    ctx = default_context(config.prefix)
    ir = convert_registry(spec, ctx)
    print(
        f"  Converted: {len(ir.structs)} structs, {len(ir.functions)} functions, "
        f"{len(ir.enums)} enums, {len(ir.constants)} constants"
    )

    if config.dump_ir is not None:
        size = write_ir_json(ir, ctx, config.dump_ir)
        print(f"  Written: {size} bytes to {config.dump_ir}")

    print(format_ir_summary(build_ir_summary(ir)), end="")
    return ir


def main():
    try:
        config = build_config()
    except ConfigError as err:
        print(f"Config error [{err.code}]: {err.message}")
        if err.suggestion:
            print(f"Hint: {err.suggestion}")
        raise SystemExit(1) from err

    try:
        run_convert(config)
    except ConversionError as err:
        print(f"Conversion error [{err.code}]: {err.message}")
        raise SystemExit(1) from err
    except OSError as err:
        print(f"Error: {err}")
        raise SystemExit(1) from err


if __name__ == "__main__":
    main()
