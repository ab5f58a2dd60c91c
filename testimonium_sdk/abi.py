"""
ABI gateway: parses a contract's JSON interface once and maps method and
event names plus Python values to wire bytes and back.

Wire encoding itself is delegated to ``eth_abi``; this module owns the
lookup tables, selectors, topics and the shape of decoded values.
"""
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import eth_abi
from eth_abi.exceptions import DecodingError, EncodingError, ParseError
from eth_abi.grammar import normalize
from eth_utils import keccak

from .exceptions import DecodeError, EncodeError, MalformedABI
from .models import LogRecord

logger = logging.getLogger(__name__)

Topics = List[Optional[List[bytes]]]

_ENTRY_TYPES = ("function", "event", "constructor", "fallback", "receive", "error")


@dataclass(frozen=True)
class AbiParam:
    """A single input or output parameter."""
    name: str
    type: str
    indexed: bool = False

    @property
    def is_dynamic_topic(self) -> bool:
        """Whether an indexed value of this type is stored as a hash in the topic."""
        return (
            self.type in ("string", "bytes")
            or self.type.endswith("]")
            or self.type.startswith("(")
        )


@dataclass(frozen=True)
class AbiMethod:
    """A contract function."""
    name: str
    raw_name: str
    inputs: Tuple[AbiParam, ...]
    outputs: Tuple[AbiParam, ...]
    state_mutability: str = "nonpayable"

    @property
    def signature(self) -> str:
        return f"{self.raw_name}({','.join(p.type for p in self.inputs)})"

    @property
    def selector(self) -> bytes:
        return keccak(text=self.signature)[:4]

    @property
    def input_types(self) -> List[str]:
        return [p.type for p in self.inputs]

    @property
    def output_types(self) -> List[str]:
        return [p.type for p in self.outputs]

    @property
    def output_names(self) -> List[str]:
        return [p.name for p in self.outputs]

    @property
    def is_constant(self) -> bool:
        return self.state_mutability in ("view", "pure")


@dataclass(frozen=True)
class AbiEvent:
    """A contract event."""
    name: str
    raw_name: str
    inputs: Tuple[AbiParam, ...]
    anonymous: bool = False

    @property
    def signature(self) -> str:
        return f"{self.raw_name}({','.join(p.type for p in self.inputs)})"

    @property
    def topic(self) -> bytes:
        return keccak(text=self.signature)


def _canonical_type(param: Dict[str, Any], context: str) -> str:
    """Collapse tuple components into ``(t1,t2)`` form and normalize aliases like ``uint``."""
    if not isinstance(param, dict) or "type" not in param:
        raise MalformedABI(f"Parameter without a type in {context}")
    type_str = param["type"]
    if not isinstance(type_str, str):
        raise MalformedABI(f"Parameter type must be a string in {context}, got {type_str!r}")
    if type_str.startswith("tuple"):
        components = param.get("components")
        if not isinstance(components, list):
            raise MalformedABI(f"Tuple parameter without components in {context}")
        inner = ",".join(_canonical_type(c, context) for c in components)
        type_str = f"({inner}){type_str[len('tuple'):]}"
    try:
        type_str = normalize(type_str)
        known = eth_abi.is_encodable_type(type_str)
    except ParseError as e:
        raise MalformedABI(f"Cannot parse type {type_str!r} in {context}: {e}") from e
    if not known:
        raise MalformedABI(f"Unknown type {type_str!r} in {context}")
    return type_str


def _params(entries: Any, context: str, allow_indexed: bool = False) -> Tuple[AbiParam, ...]:
    if entries is None:
        return ()
    if not isinstance(entries, list):
        raise MalformedABI(f"Parameter list must be an array in {context}")
    params = []
    for entry in entries:
        type_str = _canonical_type(entry, context)
        name = entry.get("name") or ""
        indexed = bool(entry.get("indexed", False)) if allow_indexed else False
        params.append(AbiParam(name=name, type=type_str, indexed=indexed))
    return tuple(params)


def _mutability(entry: Dict[str, Any]) -> str:
    if "stateMutability" in entry:
        return entry["stateMutability"]
    if entry.get("constant"):
        return "view"
    if entry.get("payable"):
        return "payable"
    return "nonpayable"


def _unique_name(name: str, taken: Dict[str, Any]) -> str:
    """Overloaded names get a numeric suffix: foo, foo0, foo1, ..."""
    if name not in taken:
        return name
    index = 0
    while f"{name}{index}" in taken:
        index += 1
    return f"{name}{index}"


class AbiGateway:
    """
    Immutable view of a contract ABI.

    Args:
        abi: JSON text or an already parsed list of ABI entries

    Raises:
        MalformedABI: If the description is not valid JSON, is not a list, or
            references unknown entry or parameter types
    """

    def __init__(self, abi: Union[str, Sequence[Dict[str, Any]]]):
        if isinstance(abi, (str, bytes)):
            try:
                entries = json.loads(abi)
            except ValueError as e:
                raise MalformedABI(f"ABI is not valid JSON: {e}") from e
        else:
            entries = abi
        if not isinstance(entries, (list, tuple)):
            raise MalformedABI(f"ABI must be a list of entries, got {type(entries).__name__}")

        methods: Dict[str, AbiMethod] = {}
        events: Dict[str, AbiEvent] = {}

        for entry in entries:
            if not isinstance(entry, dict):
                raise MalformedABI(f"ABI entry must be an object, got {entry!r}")
            kind = entry.get("type", "function")
            if kind not in _ENTRY_TYPES:
                raise MalformedABI(f"Unknown ABI entry type {kind!r}")
            raw_name = entry.get("name", "")
            context = f"{kind} {raw_name or '<unnamed>'}"

            if kind == "function":
                if not raw_name:
                    raise MalformedABI("Function entry without a name")
                name = _unique_name(raw_name, methods)
                methods[name] = AbiMethod(
                    name=name,
                    raw_name=raw_name,
                    inputs=_params(entry.get("inputs"), context),
                    outputs=_params(entry.get("outputs"), context),
                    state_mutability=_mutability(entry),
                )
            elif kind == "event":
                if not raw_name:
                    raise MalformedABI("Event entry without a name")
                name = _unique_name(raw_name, events)
                events[name] = AbiEvent(
                    name=name,
                    raw_name=raw_name,
                    inputs=_params(entry.get("inputs"), context, allow_indexed=True),
                    anonymous=bool(entry.get("anonymous", False)),
                )
            elif kind == "constructor":
                # Validated only; bindings never deploy
                _params(entry.get("inputs"), context)

        self._methods = methods
        self._events = events
        logger.debug(f"Parsed ABI with {len(methods)} methods and {len(events)} events")

    @property
    def methods(self) -> Dict[str, AbiMethod]:
        return dict(self._methods)

    @property
    def events(self) -> Dict[str, AbiEvent]:
        return dict(self._events)

    def method(self, name: str) -> AbiMethod:
        try:
            return self._methods[name]
        except KeyError:
            raise EncodeError(f"Method {name!r} not found in ABI")

    def event(self, name: str) -> AbiEvent:
        try:
            return self._events[name]
        except KeyError:
            raise DecodeError(f"Event {name!r} not found in ABI")

    def encode(self, name: str, *args: Any) -> bytes:
        """
        Encode a method call: 4-byte selector followed by the packed arguments.

        Raises:
            EncodeError: If the method is unknown or the arguments do not fit
        """
        method = self.method(name)
        if len(args) != len(method.inputs):
            raise EncodeError(
                f"{method.signature} takes {len(method.inputs)} arguments, got {len(args)}"
            )
        try:
            return method.selector + eth_abi.encode(method.input_types, list(args))
        except (EncodingError, TypeError, ValueError) as e:
            raise EncodeError(f"Cannot encode arguments for {method.signature}: {e}") from e

    def decode_result(self, name: str, data: bytes) -> Tuple[Any, ...]:
        """
        Decode raw call output into the method's declared outputs.

        Raises:
            DecodeError: If the bytes do not match the output types
        """
        method = self.method(name)
        if not method.outputs:
            return ()
        try:
            return tuple(eth_abi.decode(method.output_types, bytes(data)))
        except (DecodingError, ValueError) as e:
            raise DecodeError(f"Cannot decode output of {method.signature}: {e}") from e

    def event_topics(self, name: str, *query: Optional[Sequence[Any]]) -> Topics:
        """
        Build a topic filter for an event.

        Each positional ``query`` entry matches the corresponding indexed
        input: None matches anything, a sequence matches any of its values.
        """
        event = self.event(name)
        indexed = [p for p in event.inputs if p.indexed]
        if len(query) > len(indexed):
            raise EncodeError(f"{event.signature} has {len(indexed)} indexed inputs, got {len(query)} filters")
        topics: Topics = [] if event.anonymous else [[event.topic]]
        for param, values in zip(indexed, query):
            if values is None:
                topics.append(None)
            else:
                topics.append([self._encode_topic(param, value) for value in values])
        while topics and topics[-1] is None:
            topics.pop()
        return topics

    def _encode_topic(self, param: AbiParam, value: Any) -> bytes:
        try:
            if param.type == "string":
                return keccak(text=value)
            if param.type == "bytes":
                return keccak(bytes(value))
            if param.is_dynamic_topic:
                raise EncodeError(f"Filtering on indexed {param.type} values is not supported")
            return eth_abi.encode([param.type], [value])
        except (EncodingError, TypeError, ValueError) as e:
            raise EncodeError(f"Cannot encode topic {param.name or param.type}: {e}") from e

    def decode_log(self, name: str, record: LogRecord) -> Dict[str, Any]:
        """
        Decode a raw log into ``{input name: value}`` in declaration order.

        Unnamed inputs are keyed ``arg0``, ``arg1``... Indexed inputs of
        dynamic type are returned as the 32-byte hash stored in the topic.

        Raises:
            DecodeError: If the topics or data do not match the event
        """
        event = self.event(name)
        topics = list(record.topics)
        if not event.anonymous:
            if not topics or bytes(topics[0]) != event.topic:
                raise DecodeError(f"Log does not carry the {event.signature} signature topic")
            topics = topics[1:]

        indexed = [p for p in event.inputs if p.indexed]
        if len(topics) != len(indexed):
            raise DecodeError(
                f"{event.signature} expects {len(indexed)} indexed topics, log has {len(topics)}"
            )

        def key(index: int, param: AbiParam) -> str:
            return param.name or f"arg{index}"

        values: Dict[str, Any] = {}
        try:
            topic_iter = iter(topics)
            for i, param in enumerate(event.inputs):
                if not param.indexed:
                    continue
                topic = bytes(next(topic_iter))
                if param.is_dynamic_topic:
                    values[key(i, param)] = topic
                else:
                    values[key(i, param)] = eth_abi.decode([param.type], topic)[0]

            plain = [(i, p) for i, p in enumerate(event.inputs) if not p.indexed]
            decoded = eth_abi.decode([p.type for _, p in plain], bytes(record.data)) if plain else ()
            for (i, param), value in zip(plain, decoded):
                values[key(i, param)] = value
        except (DecodingError, ValueError) as e:
            raise DecodeError(f"Cannot decode {event.signature} log: {e}") from e

        return {key(i, p): values[key(i, p)] for i, p in enumerate(event.inputs)}
